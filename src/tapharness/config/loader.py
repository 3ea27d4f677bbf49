#
# config/loader.py
#
"""
Loads tapharness configuration from a TOML file into the attrs models.
"""

import tomllib
from pathlib import Path
from typing import Any

import attrs
import structlog

from tapharness.config.models import GlobalConfig, HarnessConfig, TapHarnessConfig, TranscriptConfig
from tapharness.exceptions import ConfigurationError
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("config.loader")

_SECTIONS: dict[str, type] = {
    "global": GlobalConfig,
    "harness": HarnessConfig,
    "transcript": TranscriptConfig,
}


def _build_section(name: str, model: type, data: Any, config_path: Path) -> Any:
    if not isinstance(data, dict):
        raise ConfigurationError(f"Section [{name}] in '{config_path}' must be a table")

    known = {a.name for a in attrs.fields(model)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in [{name}] of '{config_path}': {', '.join(unknown)}")

    try:
        return model(**data)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value in [{name}] of '{config_path}': {e}") from e


def load_config(config_path: Path) -> TapHarnessConfig:
    """
    Reads and validates a configuration file.

    Missing sections fall back to the model defaults.

    Raises:
        ConfigurationError: The file cannot be read, is not valid TOML, or
            contains unknown sections, keys, or invalid values.
    """
    config_log = log.bind(config_path=str(config_path))
    config_log.debug("Loading configuration")

    try:
        with open(config_path, "rb") as handle:
            raw = tomllib.load(handle)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file '{config_path}': {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in '{config_path}': {e}") from e

    unknown = sorted(set(raw) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(f"Unknown section(s) in '{config_path}': {', '.join(unknown)}")

    sections = {
        name: _build_section(name, model, raw[name], config_path)
        for name, model in _SECTIONS.items()
        if name in raw
    }
    config = TapHarnessConfig(
        harness=sections.get("harness", HarnessConfig()),
        transcript=sections.get("transcript", TranscriptConfig()),
        global_config=sections.get("global", GlobalConfig()),
    )
    config_log.info("Configuration loaded", sections=sorted(sections))
    return config


def apply_overrides(config: HarnessConfig, **overrides: Any) -> HarnessConfig:
    """Returns a copy of `config` with every non-None override applied."""
    changes = {key: value for key, value in overrides.items() if value is not None}
    if not changes:
        return config
    try:
        return attrs.evolve(config, **changes)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid option value: {e}") from e


# 🔼⚙️
