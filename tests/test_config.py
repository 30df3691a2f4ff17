"""Configuration and credential loading."""
import pytest

from taskmaster.config import Config, load_config, require_credential
from taskmaster.errors import ConfigError, CredentialMissing


def test_defaults():
    config = load_config(environ={})
    assert config == Config()
    assert config.subtask_range == (3, 5)


def test_environment_values():
    config = load_config(
        environ={
            "MODEL": "claude-opus",
            "TEMPERATURE": "0.2",
            "MAX_TOKENS": "8000",
            "DEFAULT_SUBTASKS": "6",
            "DEBUG": "true",
            "PERPLEXITY_MODEL": "sonar",
        }
    )
    assert config.model == "claude-opus"
    assert config.temperature == 0.2
    assert config.max_tokens == 8000
    assert config.default_subtasks == 6
    assert config.debug is True
    assert config.log_level == "DEBUG"
    assert config.research_model == "sonar"
    assert config.subtask_range == (5, 8)


def test_yaml_file_overrides_environment(tmp_path):
    path = tmp_path / "taskmaster.yaml"
    path.write_text("model: from-file\nmaxTokens: 1200\ndefaultSubtasks: 1\n")
    config = load_config(path, environ={"MODEL": "from-env", "TEMPERATURE": "0.1"})
    assert config.model == "from-file"
    assert config.temperature == 0.1
    assert config.max_tokens == 1200
    assert config.subtask_range == (3, 3)


def test_overrides_win_and_none_is_ignored():
    config = load_config(environ={"DEBUG": "1"}, debug=None, temperature=0.0)
    assert config.debug is True
    assert config.temperature == 0.0


@pytest.mark.parametrize(
    "environ",
    [
        {"TEMPERATURE": "1.5"},
        {"TEMPERATURE": "warm"},
        {"MAX_TOKENS": "0"},
        {"DEFAULT_SUBTASKS": "-2"},
        {"MAX_TOKENS": "lots"},
    ],
)
def test_invalid_values(environ):
    with pytest.raises(ConfigError):
        load_config(environ=environ)


def test_unknown_yaml_option(tmp_path):
    path = tmp_path / "taskmaster.yaml"
    path.write_text("colour: blue\n")
    with pytest.raises(ConfigError, match="colour"):
        load_config(path, environ={})


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.yaml", environ={})


def test_require_credential():
    assert require_credential("ANTHROPIC_API_KEY", {"ANTHROPIC_API_KEY": "sk"}) == "sk"
    with pytest.raises(CredentialMissing, match="ANTHROPIC_API_KEY"):
        require_credential("ANTHROPIC_API_KEY", {"ANTHROPIC_API_KEY": ""})


def test_generator_selection():
    assert load_config(environ={}).generator == "anthropic"
    assert load_config(environ={"GENERATOR": "Agent"}).generator == "agent"
    with pytest.raises(ConfigError, match="generator"):
        load_config(environ={"GENERATOR": "gemini"})
