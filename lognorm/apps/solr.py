"""Solr system log rules.

Logging setup: https://solr.apache.org/guide/6_6/configuring-logging.html
"""

from lognorm.apps.common import Integration, instrumentation_source
from lognorm.models import ExtractionRule, FieldRule, MultilineRule

APP_TYPE = "solr_system"

DEFAULT_PATHS = ("/var/solr/logs/solr.log",)

# 2022-01-06 04:16:08.794 INFO  (qtp1489933928-64) [   x:gettingstarted] o.a.s.c.S.Request [gettingstarted]  webapp=/solr path=/get params={q=*:*&_=1641440398872} status=0 QTime=2
SYSTEM = ExtractionRule(
    pattern=(
        r"^(?<timestamp>\d{4}-\d{2}-\d{2}\s\d{2}:\d{2}:\d{2}\.\d{3,6})\s(?<level>[A-z]+)\s{1,5}"
        r"\((?<thread>[^\)]+)\)\s\[c?:?(?<collection>[^\s]*)\ss?:?(?<shard>[^\s]*)\sr?:?(?<replica>[^\s]*)"
        r"\sx?:?(?<core>[^\]]*)\]\s(?<source>[^\s]+)\s(?<message>(?:(?!\s\=\>)[\s\S])+)\s?=?>?(?<exception>[\s\S]*)"
    ),
    time_field="timestamp",
    time_format="%Y-%m-%d %H:%M:%S.%L",
)

_LINE_START = r"\d{4}-\d{2}-\d{2}\s\d{2}:\d{2}:\d{2}\.\d{3}\s[A-z]+\s{1,5}"

MULTILINE = (
    MultilineRule(state="start_state", next_state="cont", pattern=f"^{_LINE_START}"),
    MultilineRule(state="cont", next_state="cont", pattern=f"^(?!{_LINE_START})"),
)

SEVERITY_MAP = {
    "TRACE": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARN": "WARNING",
    "ERROR": "ERROR",
    "FATAL": "CRITICAL",
}


def solr_system() -> Integration:
    return Integration(
        type=APP_TYPE,
        include_paths=DEFAULT_PATHS,
        extraction_rules=(SYSTEM,),
        multiline_rules=MULTILINE,
        modifiers=(
            FieldRule(
                dest="severity",
                copy_from="jsonPayload.level",
                map_values=SEVERITY_MAP,
                map_values_exclusive=True,
            ),
            instrumentation_source(APP_TYPE),
        ),
    )
