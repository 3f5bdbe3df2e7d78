"""MultilineStitcher: groups physical lines into logical records.

Rules form a small state machine. For each line the first rule whose
``state`` equals the active state and whose pattern matches decides the next
state. A rule leaving ``start_state`` begins a new record; any other rule
appends the line to the pending one. When a continuation state has no
matching rule, the start rules get a chance to open a new record. A line that
matches nothing still opens a new record and leaves the state as it was, so
malformed input can never hold the pending buffer open.
"""

import logging
import re
from typing import Iterable

from lognorm.errors import ConfigError
from lognorm.models import START_STATE, Action, MultilineRule

logger = logging.getLogger(__name__)

LINE_SEPARATOR = "\n"
DEFAULT_MAX_LINES = 1000


class MultilineStitcher:
    def __init__(self, rules: Iterable[MultilineRule], max_lines: int = DEFAULT_MAX_LINES):
        self._rules: list[tuple[str, str, re.Pattern]] = []
        for rule in rules:
            try:
                compiled = re.compile(rule.pattern)
            except re.error as e:
                raise ConfigError(
                    f"invalid multiline pattern {rule.pattern!r} for state {rule.state!r}: {e}"
                ) from e
            self._rules.append((rule.state, rule.next_state, compiled))

        if not any(state == START_STATE for state, _, _ in self._rules):
            raise ConfigError(f"multiline rules need at least one rule leaving {START_STATE!r}")
        if max_lines < 1:
            raise ConfigError("max_lines must be at least 1")

        self._max_lines = max_lines
        self.state = START_STATE
        self._pending: list[str] = []
        self.fallbacks = 0

    @property
    def pending(self) -> bool:
        return bool(self._pending)

    def _match(self, line: str, state: str) -> str | None:
        for rule_state, next_state, pattern in self._rules:
            if rule_state == state and pattern.search(line):
                return next_state
        return None

    def transition(self, line: str, state: str) -> tuple[Action, str]:
        """Decide what *line* does to the record given the active *state*."""
        next_state = self._match(line, state)
        if next_state is not None:
            action = Action.START if state == START_STATE else Action.APPEND
            return action, next_state

        if state != START_STATE:
            next_state = self._match(line, START_STATE)
            if next_state is not None:
                return Action.START, next_state

        self.fallbacks += 1
        logger.debug("No multiline rule matched in state %s, starting new record", state)
        return Action.START, state

    def feed(self, line: str) -> list[str]:
        """Consume one physical line and return the records it closed."""
        action, self.state = self.transition(line, self.state)
        closed = []
        if action is Action.START:
            closed.extend(self.flush(reset_state=False))
        self._pending.append(line)
        if len(self._pending) >= self._max_lines:
            logger.debug("Pending record reached %d lines, closing it", self._max_lines)
            closed.extend(self.flush(reset_state=False))
        return closed

    def flush(self, reset_state: bool = True) -> list[str]:
        """Close the pending record, if any, and return it."""
        if reset_state:
            self.state = START_STATE
        if not self._pending:
            return []
        record = LINE_SEPARATOR.join(self._pending)
        self._pending = []
        return [record]
