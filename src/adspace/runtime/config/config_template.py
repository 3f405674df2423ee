"""Loading of ``config.yaml`` with ``${VAR}`` placeholders."""

import os
import re
from pathlib import Path

import yaml
from loguru import logger
from pydantic import ValidationError

from src.adspace.runtime.config.config_data import ConfigData

# ${NAME}, ${NAME:-default}, ${NAME:?message}
_PLACEHOLDER = re.compile(
    r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::(?P<op>[-?])(?P<arg>[^}]*))?\}"
)


def substitute_env_vars(text: str) -> str:
    """Replace environment placeholders in ``text``.

    Raises:
        ValueError: a placeholder without a default names an unset variable
    """

    def _resolve(match: re.Match) -> str:
        name, op, arg = match.group("name", "op", "arg")
        value = os.getenv(name)
        if value is not None:
            return value
        if op == "-":
            return arg
        if op == "?":
            raise ValueError(f"Required environment variable {name}: {arg}")
        raise ValueError(f"Required environment variable {name} not set")

    return _PLACEHOLDER.sub(_resolve, text)


def _promote_environment_variables(env_mode: str) -> None:
    """Copy ``<ENV>_NAME`` variables to ``NAME`` for the active environment."""
    prefix = f"{env_mode.upper()}_"
    promoted = {
        name[len(prefix):]: value
        for name, value in os.environ.items()
        if name.startswith(prefix) and len(name) > len(prefix)
    }
    if promoted:
        logger.info("Applying {} overrides: {}", env_mode, sorted(promoted))
        os.environ.update(promoted)


def load_templated_yaml(file_path: Path) -> ConfigData:
    """Read the ``config`` section of a YAML file into ``ConfigData``.

    Raises:
        ValueError: missing required variables, unparsable YAML or invalid values
        FileNotFoundError: the file does not exist
    """
    env_mode = os.getenv("APP_ENVIRONMENT", "development")
    logger.info("Loading configuration for environment: {}", env_mode)
    _promote_environment_variables(env_mode)

    text = substitute_env_vars(Path(file_path).read_text())
    try:
        loaded = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Error parsing YAML: {exc}") from exc

    try:
        config = ConfigData.model_validate(loaded.get("config") or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    if not config.clerk.secret_key:
        logger.warning("No identity provider secret key configured; delegated verification disabled")
    if not config.clerk.expected_issuer:
        logger.warning("No token issuer could be derived; local key verification disabled")
    return config
