"""Configuration loading from CLI args, env vars, and an optional YAML file.

YAML layout::

    integrations:
      - type: couchdb
      - type: solr_system
        include_paths: ["/opt/solr/logs/*.log"]
    output_dir: normalized_logs/
"""

import os
import logging
from dataclasses import dataclass, field

import yaml

from lognorm.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntegrationConfig:
    type: str
    include_paths: tuple[str, ...] = ()


@dataclass(frozen=True)
class Config:
    integrations: list[IntegrationConfig] = field(default_factory=list)
    output_dir: str = "normalized_logs/"
    batch_size: int = 50
    flush_interval: float = 5.0
    registry_file: str = "normalized_logs/.registry.json"
    queue_size: int = 1000
    multiline_flush_timeout: float = 1.0
    max_lines: int = 1000
    log_level: str = "INFO"


def load_yaml_config(path: str | None) -> dict:
    """Load the YAML config file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def _parse_integrations(entries) -> list[IntegrationConfig]:
    if not isinstance(entries, list):
        raise ConfigError("'integrations' must be a list")
    result = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"type": entry}
        if not isinstance(entry, dict) or "type" not in entry:
            raise ConfigError(f"integration entry needs a 'type': {entry!r}")
        paths = entry.get("include_paths") or []
        if isinstance(paths, str):
            paths = [paths]
        result.append(IntegrationConfig(type=str(entry["type"]), include_paths=tuple(paths)))
    return result


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _log_level(yaml_data: dict) -> str:
    level = str(os.environ.get("LOG_LEVEL", yaml_data.get("log_level", "INFO"))).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"log level {level!r} is not one of {', '.join(LOG_LEVELS)}")
    return level


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name}={raw!r} is not a valid {cast.__name__}") from None


def load_config(cli_args, yaml_data: dict) -> Config:
    """Build Config from CLI args, env vars, and parsed YAML data."""
    integrations = _parse_integrations(yaml_data.get("integrations", []))
    for type_name in getattr(cli_args, "integrations", None) or []:
        integrations.append(IntegrationConfig(type=type_name))
    if not integrations:
        raise ConfigError("no integrations configured")

    output_dir = (
        getattr(cli_args, "output_dir", None)
        or yaml_data.get("output_dir")
        or Config.output_dir
    )
    return Config(
        integrations=integrations,
        output_dir=output_dir,
        batch_size=_env_number("BATCH_SIZE", yaml_data.get("batch_size", 50), int),
        flush_interval=_env_number("FLUSH_INTERVAL", yaml_data.get("flush_interval", 5.0), float),
        registry_file=os.environ.get(
            "REGISTRY_FILE",
            yaml_data.get("registry_file", os.path.join(output_dir, ".registry.json")),
        ),
        queue_size=_env_number("QUEUE_SIZE", yaml_data.get("queue_size", 1000), int),
        multiline_flush_timeout=_env_number(
            "MULTILINE_FLUSH_TIMEOUT", yaml_data.get("multiline_flush_timeout", 1.0), float,
        ),
        max_lines=_env_number("MAX_LINES", yaml_data.get("max_lines", 1000), int),
        log_level=_log_level(yaml_data),
    )
