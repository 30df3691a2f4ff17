"""Research augmentation for subtask expansion."""

import logging
import os
from typing import Any, Callable, Dict, Mapping, Optional

from .backends import GenerationParams, PerplexityResearch, ResearchBackend
from .config import RESEARCH_KEY_ENV, Config, require_credential
from .errors import CredentialMissing, ResearchUnavailable
from .generation import ProgressReporter, progress_ticker
from .prompts import Prompt

log = logging.getLogger(__name__)

# Favor factual, repeatable answers
RESEARCH_TEMPERATURE = 0.1


def build_research_query(task: Dict[str, Any]) -> str:
    return (
        f'I need to implement "{task.get("title", "")}" which involves: "{task.get("description", "")}".\n'
        "What are current best practices, libraries, design patterns, and implementation approaches?\n"
        "Include concrete code examples and technical considerations where relevant."
    )


class ResearchAugmenter:
    """Asks the research backend one question per task.

    The backend is created on first use and reused afterwards.
    """

    def __init__(
        self,
        config: Config,
        backend_factory: Callable[[str], ResearchBackend] = PerplexityResearch,
        environ: Optional[Mapping[str, str]] = None,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.config = config
        self.backend_factory = backend_factory
        self.environ = os.environ if environ is None else environ
        self.reporter = reporter
        self._backend: Optional[ResearchBackend] = None

    @property
    def backend(self) -> ResearchBackend:
        if self._backend is None:
            try:
                api_key = require_credential(
                    RESEARCH_KEY_ENV, self.environ, purpose="research-backed features"
                )
            except CredentialMissing as e:
                raise ResearchUnavailable(str(e)) from e
            self._backend = self.backend_factory(api_key)
        return self._backend

    async def research(self, task: Dict[str, Any]) -> str:
        log.info("Researching context for task %s: %s", task.get("id"), task.get("title", ""))
        backend = self.backend
        prompt = Prompt(system="", user=build_research_query(task))
        params = GenerationParams(model=self.config.research_model, temperature=RESEARCH_TEMPERATURE)

        try:
            if self.reporter is None:
                findings = await backend.complete(prompt, params)
            else:
                label = f"Researching best practices with {backend.name}"
                async with progress_ticker(self.reporter, label):
                    findings = await backend.complete(prompt, params)
        except ResearchUnavailable as e:
            log.error(str(e))
            raise

        log.info("Research completed, now generating subtasks with additional context")
        return findings
