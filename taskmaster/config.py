"""Configuration and credential lookup.

Values come from the environment (after loading ``.env``) and may be
overridden by a YAML file using the camelCase option names.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from .errors import ConfigError, CredentialMissing

PRIMARY_KEY_ENV = "ANTHROPIC_API_KEY"
RESEARCH_KEY_ENV = "PERPLEXITY_API_KEY"

DEFAULT_MODEL = "claude-sonnet-4-5"
DEFAULT_RESEARCH_MODEL = "sonar-pro"

# Primary generator implementations selectable with GENERATOR / generator.
GENERATORS = ("anthropic", "agent")


@dataclass(frozen=True)
class Config:
    model: str = DEFAULT_MODEL
    temperature: float = 0.7
    max_tokens: int = 4000
    default_subtasks: int = 3
    debug: bool = False
    log_level: str = "INFO"
    research_model: str = DEFAULT_RESEARCH_MODEL
    request_timeout: float = 300.0
    generator: str = "anthropic"

    def validate(self) -> "Config":
        if not self.model:
            raise ConfigError("model must be a non-empty model identifier")
        if not 0.0 <= self.temperature <= 1.0:
            raise ConfigError(f"temperature must be between 0.0 and 1.0, got {self.temperature}")
        if self.max_tokens <= 0:
            raise ConfigError(f"maxTokens must be a positive integer, got {self.max_tokens}")
        if self.default_subtasks <= 0:
            raise ConfigError(
                f"defaultSubtasks must be a positive integer, got {self.default_subtasks}"
            )
        if self.request_timeout <= 0:
            raise ConfigError(f"requestTimeout must be positive, got {self.request_timeout}")
        if self.generator not in GENERATORS:
            raise ConfigError(
                f"generator must be one of {', '.join(GENERATORS)}, got {self.generator!r}"
            )
        return self

    @property
    def subtask_range(self) -> Tuple[int, int]:
        """Bounds for recommended subtask counts in complexity analysis."""
        return max(3, self.default_subtasks - 1), min(8, self.default_subtasks + 2)


# Environment variable / YAML key -> (field name, parser)
_ENV_FIELDS = {
    "MODEL": "model",
    "TEMPERATURE": "temperature",
    "MAX_TOKENS": "max_tokens",
    "DEFAULT_SUBTASKS": "default_subtasks",
    "DEBUG": "debug",
    "LOG_LEVEL": "log_level",
    "PERPLEXITY_MODEL": "research_model",
    "REQUEST_TIMEOUT": "request_timeout",
    "GENERATOR": "generator",
}

_YAML_FIELDS = {
    "model": "model",
    "temperature": "temperature",
    "maxTokens": "max_tokens",
    "defaultSubtasks": "default_subtasks",
    "debug": "debug",
    "logLevel": "log_level",
    "researchModel": "research_model",
    "requestTimeout": "request_timeout",
    "generator": "generator",
}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _coerce(field: str, value: Any) -> Any:
    """Convert a raw env/YAML value to the type of the given Config field."""
    try:
        if field in ("temperature", "request_timeout"):
            return float(value)
        if field in ("max_tokens", "default_subtasks"):
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if field == "debug":
            return _parse_bool(value)
        if field == "generator":
            return str(value).strip().lower()
        if field == "log_level":
            return str(value).upper()
        return str(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {field}: {value!r}") from None


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read the YAML overlay and map its keys to Config field names."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing config file {path}: {e}") from None

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    values = {}
    for key, value in data.items():
        field = _YAML_FIELDS.get(key)
        if field is None:
            raise ConfigError(f"Unknown config option in {path}: {key}")
        values[field] = _coerce(field, value)
    return values


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Config:
    """Build the Config from defaults, environment, YAML file and overrides."""
    if environ is None:
        load_dotenv()
        environ = os.environ

    values: Dict[str, Any] = {}
    for env_key, field in _ENV_FIELDS.items():
        raw = environ.get(env_key)
        if raw is not None and raw != "":
            values[field] = _coerce(field, raw)

    if config_path is not None:
        values.update(load_config_file(config_path))

    values.update({k: v for k, v in overrides.items() if v is not None})

    config = replace(Config(), **values)
    if config.debug:
        config = replace(config, log_level="DEBUG")
    return config.validate()


def require_credential(env_var: str, environ: Optional[Mapping[str, str]] = None, purpose: str = "task generation") -> str:
    """Return the credential or raise CredentialMissing."""
    if environ is None:
        environ = os.environ
    value = environ.get(env_var)
    if not value:
        raise CredentialMissing(env_var, purpose)
    return value
