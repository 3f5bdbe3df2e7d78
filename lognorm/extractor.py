"""Field extraction from logical records.

RegexExtractor tries its rules in declared order and the first pattern that
matches the whole record wins, so specific patterns must precede catch-all
ones. JsonExtractor decodes one JSON object per record. Both degrade to an
unmatched result carrying the original text in ``message``; extraction never
raises for bad input.
"""

import json
import logging
import re
from typing import Iterable

from lognorm.coerce import coerce, validate_type
from lognorm.errors import ConfigError, TimeParseError
from lognorm.models import BODY_FIELD, ExtractionResult, ExtractionRule, JsonRule
from lognorm.timeparse import parse_timestamp

logger = logging.getLogger(__name__)

# Integrations write named groups as (?<name>...); Python spells them (?P<name>...).
_NAMED_GROUP_RE = re.compile(r"(?<!\\)\(\?<([A-Za-z_][A-Za-z0-9_]*)>")


def compile_pattern(pattern: str) -> re.Pattern:
    try:
        return re.compile(_NAMED_GROUP_RE.sub(r"(?P<\1>", pattern))
    except re.error as e:
        raise ConfigError(f"invalid extraction pattern {pattern!r}: {e}") from e


def _check_types(types: dict[str, str]) -> None:
    for name, type_name in types.items():
        try:
            validate_type(type_name)
        except ValueError as e:
            raise ConfigError(f"field {name!r}: {e}") from e


def _check_time(time_field: str | None, time_format: str | None) -> None:
    if bool(time_field) != bool(time_format):
        raise ConfigError("time_field and time_format must be set together")


def _unmatched(text: str) -> ExtractionResult:
    return ExtractionResult(fields={BODY_FIELD: text}, matched=False)


def _finish(fields: dict, time_field: str | None, time_format: str | None,
            types: dict[str, str]) -> ExtractionResult:
    """Apply declared types and pull out the timestamp."""
    for name, type_name in types.items():
        if name in fields and isinstance(fields[name], str):
            fields[name] = coerce(fields[name], type_name)

    timestamp = None
    if time_field and time_field in fields:
        raw = fields[time_field]
        try:
            timestamp = parse_timestamp(str(raw), time_format)
        except TimeParseError as e:
            logger.debug("Keeping raw %s field: %s", time_field, e)
        else:
            del fields[time_field]
    return ExtractionResult(fields=fields, matched=True, timestamp=timestamp)


class _CompiledRule:
    def __init__(self, rule: ExtractionRule):
        self.pattern = compile_pattern(rule.pattern)
        _check_time(rule.time_field, rule.time_format)
        if rule.time_field and rule.time_field not in self.pattern.groupindex:
            raise ConfigError(
                f"time_field {rule.time_field!r} is not a capture group of {rule.pattern!r}"
            )
        _check_types(rule.types)
        self.rule = rule


class RegexExtractor:
    def __init__(self, rules: Iterable[ExtractionRule]):
        self._rules = [_CompiledRule(r) for r in rules]
        if not self._rules:
            raise ConfigError("RegexExtractor needs at least one rule")
        self.unmatched = 0

    def extract(self, text: str) -> ExtractionResult:
        for index, compiled in enumerate(self._rules):
            m = compiled.pattern.fullmatch(text)
            if m is None:
                continue
            fields = {k: v for k, v in m.groupdict().items() if v is not None}
            rule = compiled.rule
            result = _finish(fields, rule.time_field, rule.time_format, rule.types)
            result.rule_index = index
            return result

        self.unmatched += 1
        logger.debug("No extraction rule matched: %.80r", text)
        return _unmatched(text)


class JsonExtractor:
    def __init__(self, rule: JsonRule | None = None):
        rule = rule or JsonRule()
        _check_time(rule.time_field, rule.time_format)
        _check_types(rule.types)
        self._rule = rule
        self.unmatched = 0

    def extract(self, text: str) -> ExtractionResult:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            self.unmatched += 1
            logger.debug("Record is not valid JSON: %s", e)
            return _unmatched(text)
        if not isinstance(data, dict):
            self.unmatched += 1
            return _unmatched(text)

        rule = self._rule
        result = _finish(data, rule.time_field, rule.time_format, rule.types)
        result.rule_index = 0
        return result
