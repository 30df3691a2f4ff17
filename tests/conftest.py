"""Shared fakes and fixtures for taskmaster tests."""
import json
import logging

import pytest

from taskmaster.config import Config
from taskmaster.orchestrator import Orchestrator
from taskmaster.research import ResearchAugmenter


class FakeBackend:
    """Backend that replays scripted responses; the last one repeats.

    A scripted item that is an exception instance is raised instead of returned.
    """

    def __init__(self, *responses, name="Fake"):
        self.name = name
        self.responses = list(responses)
        self.calls = []

    async def complete(self, prompt, params):
        self.calls.append((prompt, params))
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item


class RecordingProgress:
    def __init__(self):
        self.events = []
        self._next = 0

    def start(self, label):
        self._next += 1
        self.events.append(("start", label))
        return self._next

    def update(self, handle, text):
        self.events.append(("update", text))

    def stop(self, handle):
        self.events.append(("stop", handle))


def tasks_response(count, **extra):
    tasks = [
        {
            "id": i,
            "title": f"Task {i}",
            "description": f"Description {i}",
            "status": "pending",
            "priority": "high",
            "dependencies": [i - 1] if i > 1 else [],
            "details": "Details",
            "testStrategy": "Tests",
        }
        for i in range(1, count + 1)
    ]
    payload = {"tasks": tasks}
    payload.update(extra)
    return "Here is the breakdown:\n```json\n" + json.dumps(payload) + "\n```"


def subtasks_response(count, start_id=1):
    subtasks = [
        {
            "id": start_id + i,
            "title": f"Step {i + 1}",
            "description": "Do it",
            "dependencies": [],
            "details": "How",
        }
        for i in range(count)
    ]
    return json.dumps(subtasks)


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger("taskmaster")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_orchestrator(config, sleeps):
    def factory(generator, research_backend=None, environ=None, reporter=None):
        async def fake_sleep(seconds):
            sleeps.append(seconds)

        if environ is None:
            environ = {"PERPLEXITY_API_KEY": "test-perplexity-key"}
        research = ResearchAugmenter(
            config,
            backend_factory=lambda key: research_backend,
            environ=environ,
        )
        return Orchestrator(generator, config, reporter=reporter, research=research, sleep=fake_sleep)

    return factory


@pytest.fixture
def parent_task():
    return {
        "id": 3,
        "title": "Build login",
        "description": "Email and password login",
        "details": "Use sessions",
        "status": "pending",
        "priority": "high",
        "dependencies": [1],
    }
