"""Rule and record types shared by the normalization stages."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

START_STATE = "start_state"

# Top-level keys of a normalized record.
PAYLOAD = "jsonPayload"
TIMESTAMP = "timestamp"
SEVERITY = "severity"
HTTP_REQUEST = "httpRequest"
LABELS = "labels"
SOURCE_FILE = "sourceFile"

BODY_FIELD = "message"

INSTRUMENTATION_SOURCE_LABEL = 'labels."logging.googleapis.com/instrumentation_source"'

SEVERITIES = frozenset({
    "EMERGENCY", "ALERT", "CRITICAL", "ERROR", "WARNING",
    "NOTICE", "INFO", "DEBUG", "FATAL",
})


class Action(Enum):
    START = "start"
    APPEND = "append"


@dataclass(frozen=True)
class MultilineRule:
    state: str
    next_state: str
    pattern: str


@dataclass(frozen=True)
class ExtractionRule:
    pattern: str
    time_field: str | None = None
    time_format: str | None = None
    types: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class JsonRule:
    time_field: str | None = None
    time_format: str | None = None
    types: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FieldRule:
    """Sets one destination field, optionally remapping its value.

    Exactly one of ``copy_from``, ``move_from`` and ``static_value`` may be
    given; with none of them the mapping applies to the destination's
    current value.
    """
    dest: str
    copy_from: str | None = None
    move_from: str | None = None
    static_value: Any = None
    map_values: dict[str, str] | None = None
    map_values_exclusive: bool = False


@dataclass(frozen=True)
class NestWildcard:
    """Regroups flat keys matching ``wildcard`` under ``nest_under``."""
    wildcard: str
    nest_under: str
    remove_prefix: str = ""
    parent: str = ""


@dataclass
class ExtractionResult:
    fields: dict[str, Any]
    matched: bool
    timestamp: datetime | None = None
    rule_index: int | None = None
