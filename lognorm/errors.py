"""Exceptions raised by the normalization engine."""


class ConfigError(Exception):
    """Raised at startup when a rule set or the agent config is invalid."""


class TimeParseError(ValueError):
    """Raised when a timestamp does not match its format template."""
