"""Integration definition shared by the application rule sets."""

from dataclasses import dataclass, field

from lognorm.extractor import JsonExtractor, RegexExtractor
from lognorm.models import (
    INSTRUMENTATION_SOURCE_LABEL,
    ExtractionRule,
    FieldRule,
    JsonRule,
    MultilineRule,
    NestWildcard,
)


def instrumentation_source(app_type: str) -> FieldRule:
    return FieldRule(
        dest=INSTRUMENTATION_SOURCE_LABEL,
        static_value=f"agent.googleapis.com/{app_type}",
    )


@dataclass(frozen=True)
class Integration:
    """Everything the engine needs to normalize one application's logs.

    Exactly one of ``extraction_rules`` and ``json_rule`` is used; regex
    rules take precedence when both are given.
    """
    type: str
    include_paths: tuple[str, ...]
    extraction_rules: tuple[ExtractionRule, ...] = ()
    json_rule: JsonRule | None = None
    multiline_rules: tuple[MultilineRule, ...] = ()
    modifiers: tuple[FieldRule | NestWildcard, ...] = field(default_factory=tuple)

    def make_extractor(self) -> RegexExtractor | JsonExtractor:
        if self.extraction_rules:
            return RegexExtractor(self.extraction_rules)
        return JsonExtractor(self.json_rule)

    def with_include_paths(self, paths) -> "Integration":
        """Return a copy watching *paths* instead of the defaults."""
        if not paths:
            return self
        return Integration(
            type=self.type,
            include_paths=tuple(paths),
            extraction_rules=self.extraction_rules,
            json_rule=self.json_rule,
            multiline_rules=self.multiline_rules,
            modifiers=self.modifiers,
        )
