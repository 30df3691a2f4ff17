"""Backend adapters for text generation and research.

Each adapter exposes ``complete(prompt, params) -> text`` and translates
its vendor's failures into the classified errors in ``errors.py``; nothing
outside this module inspects vendor error shapes.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Protocol

import anthropic
import openai
from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ClaudeSDKClient,
    ClaudeSDKError,
    CLIConnectionError,
    CLINotFoundError,
    ProcessError,
    ResultMessage,
    TextBlock,
)
from openai import AsyncOpenAI

from .errors import (
    BackendError,
    GenerationError,
    InvalidRequest,
    NetworkError,
    PermissionDenied,
    QuotaExhausted,
    ResearchUnavailable,
    Timeout,
)
from .prompts import Prompt

log = logging.getLogger(__name__)

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"
DEFAULT_MAX_OUTPUT_TOKENS = 4000


@dataclass(frozen=True)
class GenerationParams:
    model: str
    temperature: float
    max_tokens: Optional[int] = None


class GeneratorBackend(Protocol):
    name: str

    async def complete(self, prompt: Prompt, params: GenerationParams) -> str:
        ...


class ResearchBackend(Protocol):
    name: str

    async def complete(self, prompt: Prompt, params: GenerationParams) -> str:
        ...


# Checked in order; the first group with a matching keyword or status code wins.
# Status codes only match as whole numbers.
_CLASSIFIERS = [
    (QuotaExhausted, ("resource_exhausted", "rate_limit", "rate limit", "quota", "billing", "overloaded"), (429, 529)),
    (PermissionDenied, ("permission", "authentication", "unauthorized", "api key", "api_key", "forbidden"), (401, 403)),
    (InvalidRequest, ("invalid_request", "invalid request", "invalid_argument", "invalid argument"), (400,)),
    (Timeout, ("timeout", "timed out"), (408, 504)),
    (NetworkError, ("network", "connection", "econnreset", "enotfound", "unreachable"), ()),
]


def _has_status(text: str, code: int) -> bool:
    return re.search(rf"(?<![\w-]){code}(?![\w-])", text) is not None


def classify_failure(detail: str) -> GenerationError:
    """Map a backend failure description to its classified error."""
    text = (detail or "").lower()
    for error_cls, keywords, codes in _CLASSIFIERS:
        if any(k in text for k in keywords) or any(_has_status(text, c) for c in codes):
            return error_cls(detail)
    return BackendError(detail)


def classify_status(status_code: int, detail: str) -> GenerationError:
    """Classify an HTTP failure by its status code, then by its wording."""
    for error_cls, _, codes in _CLASSIFIERS:
        if status_code in codes:
            return error_cls(detail)
    return classify_failure(detail)


# =============================================================================
# Primary generator: Anthropic Messages API
# =============================================================================


class AnthropicGenerator:
    """Single request to the Messages API; applies temperature and max tokens."""

    name = "Claude"

    def __init__(self, api_key: str, timeout: float = 300.0):
        # Retries are the orchestrator's job.
        self.client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.timeout = timeout

    async def complete(self, prompt: Prompt, params: GenerationParams) -> str:
        kwargs = {}
        if prompt.system:
            kwargs["system"] = prompt.system

        try:
            response = await self.client.messages.create(
                model=params.model,
                messages=[{"role": "user", "content": prompt.user}],
                temperature=params.temperature,
                max_tokens=params.max_tokens or DEFAULT_MAX_OUTPUT_TOKENS,
                **kwargs,
            )
        except anthropic.APITimeoutError as e:
            raise Timeout(f"No response within {self.timeout:.0f} seconds") from e
        except anthropic.APIConnectionError as e:
            raise NetworkError(str(e)) from e
        except anthropic.APIStatusError as e:
            raise classify_status(e.status_code, f"{e.status_code}: {e.message}") from e
        except anthropic.AnthropicError as e:
            raise BackendError(str(e)) from e

        return "".join(block.text for block in response.content if block.type == "text")


# =============================================================================
# Alternative generator: Claude Agent SDK
# =============================================================================


class ClaudeAgentGenerator:
    """Single-turn, tool-less Claude exchange through the agent SDK.

    The agent runtime takes no sampling temperature; only the output-token
    cap is forwarded.
    """

    name = "Claude"

    def __init__(self, api_key: str, timeout: float = 300.0):
        self.api_key = api_key
        self.timeout = timeout

    def _options(self, prompt: Prompt, params: GenerationParams) -> ClaudeAgentOptions:
        env = {"ANTHROPIC_API_KEY": self.api_key}
        if params.max_tokens:
            env["CLAUDE_CODE_MAX_OUTPUT_TOKENS"] = str(params.max_tokens)
        log.debug("Agent runtime ignores temperature %.2f", params.temperature)
        return ClaudeAgentOptions(
            system_prompt=prompt.system,
            allowed_tools=[],
            max_turns=1,
            model=params.model,
            env=env,
        )

    async def _exchange(self, prompt: Prompt, params: GenerationParams) -> str:
        response_parts: List[str] = []

        async with ClaudeSDKClient(options=self._options(prompt, params)) as client:
            await client.query(prompt.user)

            async for msg in client.receive_response():
                if isinstance(msg, AssistantMessage):
                    error = getattr(msg, "error", None)
                    if error:
                        raise classify_failure(str(error))
                    for block in msg.content:
                        if isinstance(block, TextBlock):
                            response_parts.append(block.text)
                elif isinstance(msg, ResultMessage) and msg.is_error:
                    raise classify_failure(msg.result or msg.subtype)

        return "\n".join(response_parts)

    async def complete(self, prompt: Prompt, params: GenerationParams) -> str:
        try:
            return await asyncio.wait_for(self._exchange(prompt, params), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise Timeout(f"No response within {self.timeout:.0f} seconds") from e
        except CLINotFoundError as e:
            raise BackendError(str(e)) from e
        except CLIConnectionError as e:
            raise NetworkError(str(e)) from e
        except ProcessError as e:
            raise classify_failure(e.stderr or str(e)) from e
        except ClaudeSDKError as e:
            raise classify_failure(str(e)) from e
        except GenerationError:
            raise
        except Exception as e:
            # The SDK also raises bare Exception (control request timeouts, stream errors).
            raise BackendError(str(e) or type(e).__name__) from e


# =============================================================================
# Research backend: Perplexity (OpenAI-compatible API)
# =============================================================================


class PerplexityResearch:
    """Chat completion against Perplexity's OpenAI-compatible endpoint."""

    name = "Perplexity"

    def __init__(self, api_key: str, base_url: str = PERPLEXITY_BASE_URL):
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def complete(self, prompt: Prompt, params: GenerationParams) -> str:
        messages = []
        if prompt.system:
            messages.append({"role": "system", "content": prompt.system})
        messages.append({"role": "user", "content": prompt.user})

        kwargs = {}
        if params.max_tokens:
            kwargs["max_tokens"] = params.max_tokens

        try:
            response = await self.client.chat.completions.create(
                model=params.model,
                messages=messages,
                temperature=params.temperature,
                **kwargs,
            )
        except openai.APIStatusError as e:
            raise ResearchUnavailable(f"{self.name} returned HTTP {e.status_code}: {e.message}") from e
        except openai.APIError as e:
            raise ResearchUnavailable(f"{self.name} request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ResearchUnavailable(f"{self.name} returned an empty answer")
        return content
