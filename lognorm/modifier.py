"""FieldModifier: declarative rewrite of a structured record.

Rules run in declared order on a deep copy of the record, so the caller's
record is never touched. A FieldRule fills its destination from a copy, move
or static value and then optionally remaps the value; a NestWildcard rule
regroups flat keys under a common parent.
"""

import copy
import fnmatch
import logging
from typing import Iterable

from lognorm.errors import ConfigError
from lognorm.fieldpath import MISSING, get_path, has_path, pop_path, set_path
from lognorm.models import FieldRule, NestWildcard

logger = logging.getLogger(__name__)


def _validate(rules: list) -> None:
    seen: set[str] = set()
    for rule in rules:
        if isinstance(rule, NestWildcard):
            if not rule.wildcard or not rule.nest_under:
                raise ConfigError("NestWildcard needs wildcard and nest_under")
            continue
        if not isinstance(rule, FieldRule):
            raise ConfigError(f"unsupported modifier rule {rule!r}")
        if rule.dest in seen:
            raise ConfigError(f"more than one rule for field {rule.dest!r}")
        seen.add(rule.dest)
        sources = [s for s in (rule.copy_from, rule.move_from) if s is not None]
        if rule.static_value is not None:
            sources.append(rule.static_value)
        if len(sources) > 1:
            raise ConfigError(
                f"field {rule.dest!r}: copy_from, move_from and static_value are exclusive"
            )


def _map_key(value):
    if isinstance(value, (str, int, float, bool)):
        return str(value)
    return None


def apply_field_rule(record: dict, rule: FieldRule) -> None:
    """Apply *rule* to *record* in place."""
    if rule.copy_from is not None:
        value = get_path(record, rule.copy_from, MISSING)
        if value is not MISSING:
            set_path(record, rule.dest, copy.deepcopy(value))
    elif rule.move_from is not None:
        value = pop_path(record, rule.move_from, MISSING)
        if value is not MISSING:
            set_path(record, rule.dest, value)
    elif rule.static_value is not None:
        set_path(record, rule.dest, rule.static_value)

    if rule.map_values is None or not has_path(record, rule.dest):
        return
    current = get_path(record, rule.dest)
    key = _map_key(current)
    if key is not None and key in rule.map_values:
        set_path(record, rule.dest, rule.map_values[key])
    elif rule.map_values_exclusive:
        logger.debug("Dropping %s: %r is not a mapped value", rule.dest, current)
        pop_path(record, rule.dest)


def nest_wildcard(record: dict, rule: NestWildcard) -> None:
    """Move keys matching ``rule.wildcard`` under ``rule.nest_under`` in place."""
    parent = get_path(record, rule.parent) if rule.parent else record
    if not isinstance(parent, dict):
        return

    matching = [
        key for key in parent
        if key != rule.nest_under and fnmatch.fnmatchcase(key, rule.wildcard)
    ]
    if not matching:
        return

    target = parent.get(rule.nest_under)
    if target is None:
        target = parent[rule.nest_under] = {}
    elif not isinstance(target, dict):
        logger.debug("Not nesting under %s: it already holds a scalar", rule.nest_under)
        return

    for key in matching:
        suffix = key
        if rule.remove_prefix and key.startswith(rule.remove_prefix):
            suffix = key[len(rule.remove_prefix):]
        target[suffix] = parent.pop(key)


class FieldModifier:
    def __init__(self, rules: Iterable[FieldRule | NestWildcard]):
        self._rules = list(rules)
        _validate(self._rules)

    @property
    def rules(self) -> list:
        return list(self._rules)

    def apply(self, record: dict) -> dict:
        """Return a rewritten copy of *record*."""
        result = copy.deepcopy(record)
        for rule in self._rules:
            if isinstance(rule, NestWildcard):
                nest_wildcard(result, rule)
            else:
                apply_field_rule(result, rule)
        return result
