"""Process-wide configuration with scoped overrides.

Services never cache configuration; they call ``get_config()`` when they need
a value, so a ``with_context`` block changes behaviour for everything that
runs inside it (tests rely on this).
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel

from src.adspace.runtime.config.config_data import ConfigData
from src.adspace.runtime.config.config_template import load_templated_yaml
from src.adspace.runtime.config.settings import EnvironmentVariables

CONFIG_PATH = Path("config.yaml")


@dataclass(frozen=True)
class AppContext:
    config: ConfigData


def _load_startup_config() -> ConfigData:
    if CONFIG_PATH.exists():
        config = load_templated_yaml(CONFIG_PATH)
    else:
        logger.warning("{} not found; using built-in defaults", CONFIG_PATH)
        config = ConfigData()
    return EnvironmentVariables().apply_to(config)


_app_context: ContextVar[AppContext] = ContextVar(
    "app_context", default=AppContext(config=_load_startup_config())
)


def get_context() -> AppContext:
    return _app_context.get()


def get_config() -> ConfigData:
    """Configuration visible to the current task or thread."""
    return _app_context.get().config


def _explicit_values(model: BaseModel) -> dict[str, Any]:
    """Fields that were assigned on ``model`` or anywhere below it."""
    values: dict[str, Any] = {}
    for name in type(model).model_fields:
        value = getattr(model, name)
        if isinstance(value, BaseModel):
            nested = _explicit_values(value)
            if nested:
                values[name] = nested
            elif name in model.model_fields_set:
                values[name] = value.model_dump()
        elif name in model.model_fields_set:
            values[name] = value
    return values


def _deep_merge(base: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@contextmanager
def with_context(config_override: ConfigData | None = None):
    """Run a block with ``config_override`` layered over the current configuration.

    Only values explicitly given on the override (at any depth) take effect;
    everything else is inherited, so overrides nest::

        with with_context(ConfigData(auth=AuthConfig(allow_unverified_fallback=True))):
            ...
    """
    if config_override is None:
        yield
        return
    if not isinstance(config_override, ConfigData):
        raise ValueError(
            f"config_override must be ConfigData or None, got {type(config_override)}"
        )

    merged = ConfigData.model_validate(
        _deep_merge(get_config().model_dump(), _explicit_values(config_override))
    )
    token = _app_context.set(replace(get_context(), config=merged))
    try:
        yield
    finally:
        _app_context.reset(token)
