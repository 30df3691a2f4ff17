"""Error taxonomy shared by the generation, research and extraction layers.

Every error carries a user-facing message as its ``str()``. Generation
failures additionally carry the backend's raw ``detail`` (only ever logged
at debug level) and a ``retryable`` flag the orchestrator branches on.
"""

from typing import Optional


class TaskMasterError(Exception):
    """Base class for all errors surfaced to the command line."""


class ConfigError(TaskMasterError):
    """Configuration value is missing or out of range."""


class CredentialMissing(TaskMasterError):
    """A required API key is not present in the environment."""

    def __init__(self, env_var: str, purpose: str = "task generation"):
        self.env_var = env_var
        super().__init__(
            f"{env_var} environment variable is missing. Set it to use {purpose}."
        )


class TaskStoreError(TaskMasterError):
    """PRD or task file could not be read, written or resolved."""


# =============================================================================
# Generation backend classifications
# =============================================================================


class GenerationError(TaskMasterError):
    """A classified failure from the primary generation backend."""

    retryable = False
    message = "Error communicating with the generation backend."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(self.user_message())

    def user_message(self) -> str:
        return self.message


class QuotaExhausted(GenerationError):
    retryable = True
    message = "You have exceeded your quota. Please check your plan and billing details."


class Timeout(GenerationError):
    retryable = True
    message = "The request to the generation backend timed out. Please try again."


class NetworkError(GenerationError):
    retryable = True
    message = (
        "There was a network error connecting to the generation backend. "
        "Please check your internet connection and try again."
    )


class PermissionDenied(GenerationError):
    message = "Invalid API key or insufficient permissions. Please check your API key."


class InvalidRequest(GenerationError):
    message = (
        "There was an issue with the request format. "
        "If this persists, please report it as a bug."
    )


class BackendError(GenerationError):
    """Unclassified backend failure; fatal."""

    def user_message(self) -> str:
        if self.detail:
            return f"Error communicating with the generation backend: {self.detail}"
        return self.message


# =============================================================================
# Extraction and research
# =============================================================================


class ExtractionFailed(TaskMasterError):
    """No usable JSON payload could be extracted from a response."""


class ResearchUnavailable(TaskMasterError):
    """The research backend could not answer."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Research is unavailable: {reason}")
