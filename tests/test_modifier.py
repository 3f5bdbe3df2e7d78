"""Tests for lognorm/modifier.py"""

import pytest

from lognorm.apps.elasticsearch import elasticsearch_json
from lognorm.errors import ConfigError
from lognorm.models import FieldRule, NestWildcard
from lognorm.modifier import FieldModifier, nest_wildcard

LEVELS = {"notice": "NOTICE", "err": "ERROR"}


def _apply(record: dict, *rules) -> dict:
    return FieldModifier(rules).apply(record)


# ── copy / move / static ────────────────────────────────────────────


class TestSources:
    def test_copy_keeps_source(self):
        out = _apply({"jsonPayload": {"level": "err"}},
                     FieldRule(dest="severity", copy_from="jsonPayload.level"))
        assert out == {"jsonPayload": {"level": "err"}, "severity": "err"}

    def test_move_removes_source(self):
        out = _apply(
            {"jsonPayload": {"http_request_status": 201, "other": 1}},
            FieldRule(dest="httpRequest.status", move_from="jsonPayload.http_request_status"),
        )
        assert out == {"jsonPayload": {"other": 1}, "httpRequest": {"status": 201}}

    def test_absent_source_is_noop(self):
        record = {"jsonPayload": {}}
        out = _apply(
            record,
            FieldRule(dest="severity", copy_from="jsonPayload.level"),
            FieldRule(dest="httpRequest.status", move_from="jsonPayload.status"),
        )
        assert out == record

    def test_static_value(self):
        out = _apply({}, FieldRule(dest='labels."example.com/source"', static_value="app"))
        assert out == {"labels": {"example.com/source": "app"}}

    def test_input_record_is_untouched(self):
        record = {"jsonPayload": {"status": 1}}
        _apply(record, FieldRule(dest="httpRequest.status", move_from="jsonPayload.status"))
        assert record == {"jsonPayload": {"status": 1}}


# ── value mapping ───────────────────────────────────────────────────


class TestMapValues:
    def test_hit_is_replaced(self):
        out = _apply({"jsonPayload": {"level": "notice"}},
                     FieldRule(dest="severity", copy_from="jsonPayload.level",
                               map_values=LEVELS, map_values_exclusive=True))
        assert out["severity"] == "NOTICE"

    def test_exclusive_miss_removes_field(self):
        out = _apply({"jsonPayload": {"level": "chatty"}},
                     FieldRule(dest="severity", copy_from="jsonPayload.level",
                               map_values=LEVELS, map_values_exclusive=True))
        assert "severity" not in out
        assert out["jsonPayload"]["level"] == "chatty"

    def test_inclusive_miss_keeps_value(self):
        out = _apply({"jsonPayload": {"level": "chatty"}},
                     FieldRule(dest="severity", copy_from="jsonPayload.level",
                               map_values=LEVELS))
        assert out["severity"] == "chatty"

    def test_maps_existing_destination_in_place(self):
        out = _apply({"level": "err"}, FieldRule(dest="level", map_values=LEVELS))
        assert out == {"level": "ERROR"}

    def test_non_string_values_are_looked_up_as_text(self):
        out = _apply({"code": 5}, FieldRule(dest="code", map_values={"5": "NOTICE"}))
        assert out == {"code": "NOTICE"}


# ── wildcard nesting ────────────────────────────────────────────────


class TestNestWildcard:
    def test_groups_matching_keys(self):
        record = {"request.method": "GET", "other": 1}
        nest_wildcard(record, NestWildcard("request.*", "request", "request."))
        assert record == {"request": {"method": "GET"}, "other": 1}

    def test_under_parent(self):
        out = _apply(
            {"jsonPayload": {"cluster.name": "es", "cluster.uuid": "u1", "msg": "x"}},
            NestWildcard("cluster.*", "cluster", "cluster.", parent="jsonPayload"),
        )
        assert out == {"jsonPayload": {"cluster": {"name": "es", "uuid": "u1"}, "msg": "x"}}

    def test_merges_into_existing_dict(self):
        record = {"node": {"id": "n1"}, "node.name": "a"}
        nest_wildcard(record, NestWildcard("node.*", "node", "node."))
        assert record == {"node": {"id": "n1", "name": "a"}}

    def test_scalar_target_leaves_keys_flat(self):
        record = {"host": "h1", "host.ip": "10.0.0.1"}
        nest_wildcard(record, NestWildcard("host.*", "host", "host."))
        assert record == {"host": "h1", "host.ip": "10.0.0.1"}

    def test_no_match_adds_nothing(self):
        record = {"other": 1}
        nest_wildcard(record, NestWildcard("request.*", "request", "request."))
        assert record == {"other": 1}

    def test_declared_order_builds_deeper_groups_first(self):
        modifier = FieldModifier(
            r for r in elasticsearch_json().modifiers if isinstance(r, NestWildcard)
        )
        out = modifier.apply({"jsonPayload": {
            "user.run_by.name": "admin",
            "user.name": "alice",
            "origin.type": "rest",
        }})
        assert out["jsonPayload"] == {
            "user": {"name": "alice", "run_by": {"name": "admin"}},
            "origin": {"type": "rest"},
        }


# ── configuration errors ────────────────────────────────────────────


class TestConfiguration:
    def test_duplicate_destination(self):
        with pytest.raises(ConfigError):
            FieldModifier([
                FieldRule(dest="severity", copy_from="a"),
                FieldRule(dest="severity", copy_from="b"),
            ])

    def test_copy_and_move_are_exclusive(self):
        with pytest.raises(ConfigError):
            FieldModifier([FieldRule(dest="x", copy_from="a", move_from="b")])

    def test_unknown_rule(self):
        with pytest.raises(ConfigError):
            FieldModifier(["not a rule"])
