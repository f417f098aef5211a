"""Configuration loader with YAML parsing and environment variable substitution."""

from __future__ import annotations

import os
import re
from pathlib import Path

import structlog
import yaml

from .schema import TutorConfig

log = structlog.get_logger()

CONFIG_ENV_VAR = "AI_CODE_TUTOR_CONFIG"

# Searched in order when no path is given
DEFAULT_LOCATIONS = (
    Path("config/config.yaml"),
    Path("~/.ai-code-tutor/config.yaml"),
)

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def substitute_env_vars(text: str) -> str:
    """
    Replace ``${VAR}`` and ``${VAR:-default}`` with environment values.

    YAML comment lines are left untouched so commented-out examples may
    reference variables that are not set.

    Raises:
        ValueError: If a referenced variable is unset and has no default
    """

    def replacer(match: re.Match[str]) -> str:
        name = match.group("name")
        value = os.environ.get(name, match.group("default"))
        if value is None:
            raise ValueError(f"Environment variable {name} not found")
        return value

    return "".join(
        line if line.lstrip().startswith("#") else _ENV_REFERENCE.sub(replacer, line)
        for line in text.splitlines(keepends=True)
    )


def resolve_config_path(explicit: Path | None = None) -> Path | None:
    """
    Pick the configuration file to load.

    An explicit path wins, then ``$AI_CODE_TUTOR_CONFIG``, then the first
    existing entry of DEFAULT_LOCATIONS. Returns None when nothing applies.
    """
    if explicit is not None:
        return explicit
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)
    for candidate in DEFAULT_LOCATIONS:
        candidate = candidate.expanduser()
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None) -> TutorConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Without a file the defaults apply (overridable through the environment).

    Raises:
        FileNotFoundError: If a named config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    resolved = resolve_config_path(path)
    if resolved is None:
        log.debug("configuration_defaults")
        config = TutorConfig()
        validate_config(config)
        return config

    if not resolved.is_file():
        raise FileNotFoundError(f"Configuration file not found: {resolved}")

    log.info("loading_configuration", path=str(resolved))
    raw = substitute_env_vars(resolved.read_text())

    # An empty file is a valid "all defaults" configuration
    config = TutorConfig.model_validate(yaml.safe_load(raw) or {})
    validate_config(config)
    return config


def validate_config(config: TutorConfig) -> None:
    """
    Perform cross-field validation the schema cannot express.

    Raises:
        ValueError: If the selected model provider has no settings section
    """
    provider = config.llm.provider
    if provider != "none" and getattr(config.llm, provider) is None:
        raise ValueError(f"{provider.capitalize()} provider selected but {provider} config missing")
