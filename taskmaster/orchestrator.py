"""Top-level entry points: PRD breakdown, subtask expansion, complexity analysis.

The entry points deliberately differ in how they fail:

* ``breakdown_prd`` and ``analyze_complexity`` retry, then raise. A made-up
  task list or analysis would misrepresent the input.
* ``expand_task`` never raises for generation or extraction failures. It
  returns placeholder subtasks the user can edit instead.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .backends import AnthropicGenerator, ClaudeAgentGenerator, GeneratorBackend
from .config import PRIMARY_KEY_ENV, Config, require_credential
from .errors import ExtractionFailed, GenerationError
from .extract import (
    PENDING,
    extract_complexity_report,
    extract_subtasks,
    extract_task_collection,
)
from .generation import GenerationClient, ProgressReporter
from .prompts import Prompt, build_complexity_prompt, build_prd_prompt, build_subtask_prompt
from .research import ResearchAugmenter

log = logging.getLogger(__name__)

MAX_GENERATION_RETRIES = 2
MAX_EXTRACTION_RETRIES = 2
BACKOFF_SECONDS = 5


def fallback_subtasks(
    count: int, start_id: int, parent_task_id: int
) -> List[Dict[str, Any]]:
    """Placeholder subtasks used when expansion cannot produce real ones."""
    return [
        {
            "id": start_id + i,
            "title": f"Subtask {start_id + i}",
            "description": "Auto-generated fallback subtask",
            "dependencies": [],
            "details": "This is a fallback subtask created because generation failed. "
            "Please update with real details.",
            "status": PENDING,
            "parentTaskId": parent_task_id,
        }
        for i in range(count)
    ]


class Orchestrator:
    def __init__(
        self,
        generator: GeneratorBackend,
        config: Config,
        reporter: Optional[ProgressReporter] = None,
        research: Optional[ResearchAugmenter] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.client = GenerationClient(generator, config, reporter)
        self.research = research or ResearchAugmenter(config, reporter=reporter)
        self.sleep = sleep

    @classmethod
    def from_environment(
        cls, config: Config, reporter: Optional[ProgressReporter] = None, environ=None
    ) -> "Orchestrator":
        """Build with the configured Claude generator; fails fast without a primary key."""
        api_key = require_credential(PRIMARY_KEY_ENV, environ)
        generator_cls = ClaudeAgentGenerator if config.generator == "agent" else AnthropicGenerator
        generator = generator_cls(api_key, timeout=config.request_timeout)
        research = ResearchAugmenter(config, environ=environ, reporter=reporter)
        return cls(generator, config, reporter=reporter, research=research)

    # =========================================================================
    # Retry loops
    # =========================================================================

    async def _generate(self, prompt: Prompt, label: str) -> str:
        """Generate with linear backoff on retryable classifications."""
        for attempt in range(MAX_GENERATION_RETRIES + 1):
            try:
                return await self.client.generate(prompt, label)
            except GenerationError as e:
                if not e.retryable or attempt == MAX_GENERATION_RETRIES:
                    raise
                wait = (attempt + 1) * BACKOFF_SECONDS
                log.info(
                    "Waiting %d seconds before retry %d/%d...",
                    wait,
                    attempt + 1,
                    MAX_GENERATION_RETRIES,
                )
                await self.sleep(wait)
        raise AssertionError("unreachable")

    async def _generate_and_extract(
        self, prompt: Prompt, label: str, extract: Callable[[str], Any]
    ) -> Any:
        """Extract from a response, retrying on the same text, then once regenerated."""
        text = await self._generate(prompt, label)
        for attempt in range(MAX_EXTRACTION_RETRIES + 1):
            try:
                return extract(text)
            except ExtractionFailed as e:
                log.error("Error processing %s's response: %s", self.client.backend.name, e)
                if attempt == MAX_EXTRACTION_RETRIES:
                    raise
                log.info("Retrying to parse response (%d/%d)...", attempt + 1, MAX_EXTRACTION_RETRIES)
                if attempt == 1:
                    log.info("Calling %s again for a cleaner response...", self.client.backend.name)
                    text = await self._generate(prompt, label)
        raise AssertionError("unreachable")

    # =========================================================================
    # Entry points
    # =========================================================================

    async def breakdown_prd(self, prd_text: str, prd_path: str, num_tasks: int) -> Dict[str, Any]:
        """Break a PRD into a task collection of ``num_tasks`` tasks."""
        log.info("Generating %d tasks from %s", num_tasks, prd_path)
        prompt = build_prd_prompt(prd_text, num_tasks)
        return await self._generate_and_extract(
            prompt,
            "Generating tasks from PRD",
            lambda text: extract_task_collection(text, num_tasks, prd_path),
        )

    async def expand_task(
        self,
        task: Dict[str, Any],
        num_subtasks: int,
        next_subtask_id: int,
        additional_context: str = "",
        use_research: bool = False,
    ) -> List[Dict[str, Any]]:
        """Return exactly ``num_subtasks`` subtasks, real or fallback.

        Only research failures raise, and only when research was asked for.
        """
        task_id = task["id"]
        research = None
        if use_research:
            research = await self.research.research(task)

        kind = "research-backed subtasks" if use_research else "subtasks"
        log.info("Generating %d %s for task %s: %s", num_subtasks, kind, task_id, task.get("title", ""))
        prompt = build_subtask_prompt(task, num_subtasks, next_subtask_id, additional_context, research)

        try:
            subtasks = await self._generate_and_extract(
                prompt,
                f"Generating {kind} for task {task_id}",
                lambda text: extract_subtasks(text, next_subtask_id, task_id, num_subtasks),
            )
        except (GenerationError, ExtractionFailed) as e:
            log.error("Error generating subtasks: %s", e)
            log.warning("Creating fallback subtasks")
            return fallback_subtasks(num_subtasks, next_subtask_id, task_id)

        if len(subtasks) > num_subtasks:
            log.warning("Dropping %d surplus subtasks", len(subtasks) - num_subtasks)
            subtasks = subtasks[:num_subtasks]
        elif len(subtasks) < num_subtasks:
            missing = num_subtasks - len(subtasks)
            log.warning("Padding with %d fallback subtasks", missing)
            subtasks += fallback_subtasks(missing, next_subtask_id + len(subtasks), task_id)

        log.info("Completed generating %s for task %s", kind, task_id)
        return subtasks

    async def expand_task_with_research(
        self,
        task: Dict[str, Any],
        num_subtasks: int,
        next_subtask_id: int,
        additional_context: str = "",
    ) -> List[Dict[str, Any]]:
        return await self.expand_task(
            task, num_subtasks, next_subtask_id, additional_context, use_research=True
        )

    async def analyze_complexity(self, tasks: List[Dict[str, Any]]) -> List[Any]:
        """One complexity entry per task; raises once retries are exhausted."""
        log.info("Analyzing complexity of %d tasks", len(tasks))
        prompt = build_complexity_prompt(tasks, self.config.subtask_range)
        return await self._generate_and_extract(
            prompt,
            "Analyzing task complexity",
            lambda text: extract_complexity_report(text, tasks),
        )
