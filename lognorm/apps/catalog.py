"""Closed table of the application integrations the agent knows about."""

from enum import Enum
from typing import Callable

from lognorm.apps.common import Integration
from lognorm.apps.couchdb import couchdb
from lognorm.apps.elasticsearch import elasticsearch_gc, elasticsearch_json
from lognorm.apps.solr import solr_system
from lognorm.errors import ConfigError


class AppType(str, Enum):
    COUCHDB = "couchdb"
    ELASTICSEARCH_JSON = "elasticsearch_json"
    ELASTICSEARCH_GC = "elasticsearch_gc"
    SOLR_SYSTEM = "solr_system"


INTEGRATIONS: dict[AppType, Callable[[], Integration]] = {
    AppType.COUCHDB: couchdb,
    AppType.ELASTICSEARCH_JSON: elasticsearch_json,
    AppType.ELASTICSEARCH_GC: elasticsearch_gc,
    AppType.SOLR_SYSTEM: solr_system,
}


def get_integration(type_name: str) -> Integration:
    try:
        app_type = AppType(type_name)
    except ValueError:
        known = ", ".join(t.value for t in AppType)
        raise ConfigError(f"unknown integration type {type_name!r} (known: {known})") from None
    return INTEGRATIONS[app_type]()
