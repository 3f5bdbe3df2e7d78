"""Tests for lognorm/fieldpath.py"""

import pytest

from lognorm.fieldpath import MISSING, get_path, has_path, pop_path, set_path, split_path


class TestSplitPath:
    def test_plain(self):
        assert split_path("a.b.c") == ["a", "b", "c"]

    def test_quoted_segment(self):
        assert split_path('labels."a.b/c"') == ["labels", "a.b/c"]


class TestGetPath:
    def test_nested(self):
        record = {"jsonPayload": {"level": "info"}}
        assert get_path(record, "jsonPayload.level") == "info"

    def test_literal_dotted_key(self):
        record = {"jsonPayload": {"cluster.name": "es"}}
        assert get_path(record, "jsonPayload.cluster.name") == "es"

    def test_missing_returns_default(self):
        assert get_path({"a": {}}, "a.b", "dflt") == "dflt"
        assert get_path({"a": 1}, "a.b") is None

    def test_has_path(self):
        record = {"a": {"b": None}}
        assert has_path(record, "a.b")
        assert not has_path(record, "a.c")


class TestSetPath:
    def test_creates_branches(self):
        record = {}
        set_path(record, "httpRequest.status", 201)
        assert record == {"httpRequest": {"status": 201}}

    def test_extends_existing_branch(self):
        record = {"httpRequest": {"status": 201}}
        set_path(record, "httpRequest.remoteIp", "1.2.3.4")
        assert record == {"httpRequest": {"status": 201, "remoteIp": "1.2.3.4"}}

    def test_quoted_key_stays_whole(self):
        record = {}
        set_path(record, 'labels."logging.googleapis.com/source"', "x")
        assert record == {"labels": {"logging.googleapis.com/source": "x"}}

    def test_scalar_in_the_way_is_replaced(self):
        record = {"a": 1}
        set_path(record, "a.b", 2)
        assert record == {"a": {"b": 2}}


class TestPopPath:
    def test_pop(self):
        record = {"a": {"b": 1, "c": 2}}
        assert pop_path(record, "a.b") == 1
        assert record == {"a": {"c": 2}}

    def test_pop_missing_with_default(self):
        assert pop_path({}, "a.b", None) is None

    def test_pop_missing_returns_missing_sentinel(self):
        assert pop_path({"a": {}}, "a.b", MISSING) is MISSING

    def test_pop_missing_raises(self):
        with pytest.raises(KeyError):
            pop_path({}, "a.b")
