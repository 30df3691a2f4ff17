"""Generation client: one backend call with progress ticks and error logging."""

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Optional, Protocol

from .backends import GenerationParams, GeneratorBackend
from .config import Config
from .errors import GenerationError
from .prompts import Prompt

log = logging.getLogger(__name__)

TICK_INTERVAL = 0.5


class ProgressReporter(Protocol):
    def start(self, label: str):
        ...

    def update(self, handle, text: str) -> None:
        ...

    def stop(self, handle) -> None:
        ...


async def _tick(reporter: ProgressReporter, handle, label: str, interval: float) -> None:
    dot_count = 0
    while True:
        await asyncio.sleep(interval)
        dot_count = (dot_count + 1) % 4
        reporter.update(handle, f"{label}{'.' * dot_count}")


@contextlib.asynccontextmanager
async def progress_ticker(
    reporter: ProgressReporter, label: str, interval: float = TICK_INTERVAL
) -> AsyncIterator[None]:
    """Animate ``label`` with an ellipsis until the block exits."""
    handle = reporter.start(label)
    ticker = asyncio.create_task(_tick(reporter, handle, label, interval))
    try:
        yield
    finally:
        ticker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await ticker
        reporter.stop(handle)


class GenerationClient:
    """Submits a prompt to the primary backend and returns the full text.

    Classified backend failures are logged with their user-facing message
    (and the raw detail when debugging) and re-raised unchanged; retry
    decisions belong to the caller.
    """

    def __init__(
        self,
        backend: GeneratorBackend,
        config: Config,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.backend = backend
        self.config = config
        self.reporter = reporter

    @property
    def params(self) -> GenerationParams:
        return GenerationParams(
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    async def generate(self, prompt: Prompt, label: str) -> str:
        try:
            if self.reporter is None:
                text = await self.backend.complete(prompt, self.params)
            else:
                async with progress_ticker(self.reporter, label):
                    text = await self.backend.complete(prompt, self.params)
        except GenerationError as e:
            log.error(str(e))
            if self.config.debug and e.detail:
                log.debug("Full error from %s: %s", self.backend.name, e.detail)
            raise

        log.info("Completed response from %s", self.backend.name)
        log.debug("Raw response (%d chars):\n%s", len(text), text)
        return text
