"""Elasticsearch log rules: JSON server/audit logs and the JVM GC log.

JSON layout: https://artifacts.elastic.co/javadoc/org/elasticsearch/elasticsearch/7.16.2/org/elasticsearch/common/logging/ESJsonLayout.html
Audit attributes: https://www.elastic.co/guide/en/elasticsearch/reference/7.16/audit-event-types.html#audit-event-attributes
"""

from lognorm.apps.common import Integration, instrumentation_source
from lognorm.models import ExtractionRule, FieldRule, JsonRule, MultilineRule, NestWildcard

JSON_TYPE = "elasticsearch_json"
GC_TYPE = "elasticsearch_gc"

JSON_PATHS = (
    "/var/log/elasticsearch/*_server.json",
    "/var/log/elasticsearch/*_deprecation.json",
    "/var/log/elasticsearch/*_index_search_slowlog.json",
    "/var/log/elasticsearch/*_index_indexing_slowlog.json",
    "/var/log/elasticsearch/*_audit.json",
)
GC_PATHS = ("/var/log/elasticsearch/gc.log",)

# {"type": "server", "timestamp": "2022-01-17T18:31:47,365Z", "level": "INFO", "component": "o.e.n.Node", ...}
JSON_RULE = JsonRule(time_field="timestamp", time_format="%Y-%m-%dT%H:%M:%S,%L%z")

# Stack traces spread one JSON object over several lines:
# {"type": "server", ..., "message": "uncaught exception in thread [main]",
# "stacktrace": ["org.elasticsearch.bootstrap.StartupException: ...",
# "... 6 more"] }
JSON_MULTILINE = (
    MultilineRule(state="start_state", next_state="cont", pattern=r"^{.*"),
    MultilineRule(state="cont", next_state="cont", pattern=r"^[^{].*[,}]$"),
)

JSON_SEVERITY_MAP = {
    "TRACE": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARN": "WARNING",
    "DEPRECATION": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "ERROR",
    "FATAL": "FATAL",
}

# Longer prefixes come first so "user.run_by.*" is grouped before "user.*".
NESTED_PREFIXES = (
    "user.run_by",
    "user.run_as",
    "authentication.token",
    "node",
    "event",
    "authentication",
    "user",
    "origin",
    "request",
    "url",
    "host",
    "apikey",
    "cluster",
)

# [2022-01-17T18:31:37.240+0000][652141][gc,start    ] GC(0) Pause Young (Normal) (G1 Evacuation Pause)
GC_RULE = ExtractionRule(
    pattern=(
        r"\[(?<time>\d+-\d+-\d+T\d+:\d+:\d+.\d+\+\d+)\]\[\d+\]\[(?<type>[A-z,]+)\s*\]"
        r"\s*(?:GC\((?<gc_run>\d+)\))?\s*(?<message>.*)"
    ),
    time_field="time",
    time_format="%Y-%m-%dT%H:%M:%S.%L%z",
    types={"gc_run": "integer"},
)


def elasticsearch_json() -> Integration:
    modifiers = [
        FieldRule(
            dest="severity",
            copy_from="jsonPayload.level",
            map_values=JSON_SEVERITY_MAP,
            map_values_exclusive=True,
        ),
        instrumentation_source(JSON_TYPE),
    ]
    modifiers.extend(
        NestWildcard(
            wildcard=f"{prefix}.*",
            nest_under=prefix,
            remove_prefix=f"{prefix}.",
            parent="jsonPayload",
        )
        for prefix in NESTED_PREFIXES
    )
    return Integration(
        type=JSON_TYPE,
        include_paths=JSON_PATHS,
        json_rule=JSON_RULE,
        multiline_rules=JSON_MULTILINE,
        modifiers=tuple(modifiers),
    )


def elasticsearch_gc() -> Integration:
    return Integration(
        type=GC_TYPE,
        include_paths=GC_PATHS,
        extraction_rules=(GC_RULE,),
        modifiers=(instrumentation_source(GC_TYPE),),
    )
