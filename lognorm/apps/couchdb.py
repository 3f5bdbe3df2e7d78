"""CouchDB log rules.

Line layout: https://github.com/apache/couchdb/blob/main/src/couch_log/src/couch_log_writer_syslog.erl
"""

from lognorm.apps.common import Integration, instrumentation_source
from lognorm.models import ExtractionRule, FieldRule, MultilineRule

APP_TYPE = "couchdb"

DEFAULT_PATHS = ("/var/log/couchdb/couchdb.log",)

TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%L%z"

# [notice] 2021-12-02T23:36:42.555157Z nonode@nohost <0.17165.1> a5f585a0d3 localhost:5984 127.0.0.1 otelu PUT /oteld 201 ok 16
HTTP_ACCESS = ExtractionRule(
    pattern=(
        r"^\[(?<level>\w*)\] (?<timestamp>[\d\-\.:TZ]+) (?<node>\S+)@(?<host>[^\s]+) "
        r"\<(?<pid>[^ ]*)\> [\w-]+ (?<http_request_serverIp>[^ ]*) (?<http_request_remoteIp>[^ ]*) "
        r"(?<message>(?<remote_user>[^ ]*) (?<http_request_requestMethod>[^ ]*) (?<path>[^ ]*) "
        r"(?<http_request_status>[^ ]*) (?<status_message>[^ ]*) (?<http_request_responseSize>[\d]*)$)"
    ),
    time_field="timestamp",
    time_format=TIME_FORMAT,
    types={"http_request_status": "integer"},
)

# [error] 2022-01-12T16:53:03.094488Z nonode@nohost emulator -------- Error in process <0.463.0> with exit value:
# {database_does_not_exist,[{mem3_shards,load_shards_from_db,...}]}
GENERAL = ExtractionRule(
    pattern=(
        r"^\[(?<level>\w*)\] (?<timestamp>[\d\-\.:TZ]+) (?<node>\S+)@(?<host>[^\s]+) "
        r"(?<message>[\s\S]*(\<(?<pid>[^>]+)\>)[\s\S]*)"
    ),
    time_field="timestamp",
    time_format=TIME_FORMAT,
)

MULTILINE = (
    MultilineRule(state="start_state", next_state="cont", pattern=r"^\[\w+\]"),
    MultilineRule(state="cont", next_state="cont", pattern=r"^(?!\[\w+\])"),
)

# https://docs.couchdb.org/en/stable/config/logging.html#log/level
SEVERITY_MAP = {
    "emerg": "EMERGENCY",
    "emergency": "EMERGENCY",
    "alert": "ALERT",
    "crit": "CRITICAL",
    "critical": "CRITICAL",
    "error": "ERROR",
    "err": "ERROR",
    "warn": "WARNING",
    "warning": "WARNING",
    "notice": "NOTICE",
    "info": "INFO",
    "debug": "DEBUG",
}

HTTP_REQUEST_FIELDS = ("serverIp", "remoteIp", "requestMethod", "status", "responseSize")


def couchdb() -> Integration:
    modifiers = [
        FieldRule(
            dest="severity",
            copy_from="jsonPayload.level",
            map_values=SEVERITY_MAP,
            map_values_exclusive=True,
        ),
        instrumentation_source(APP_TYPE),
    ]
    modifiers.extend(
        FieldRule(dest=f"httpRequest.{name}", move_from=f"jsonPayload.http_request_{name}")
        for name in HTTP_REQUEST_FIELDS
    )
    return Integration(
        type=APP_TYPE,
        include_paths=DEFAULT_PATHS,
        extraction_rules=(HTTP_ACCESS, GENERAL),
        multiline_rules=MULTILINE,
        modifiers=tuple(modifiers),
    )
