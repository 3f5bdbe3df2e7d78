"""Tests for lognorm/extractor.py"""

from datetime import datetime, timezone

import pytest

from lognorm.apps.couchdb import GENERAL, HTTP_ACCESS
from lognorm.apps.elasticsearch import GC_RULE, JSON_RULE
from lognorm.errors import ConfigError
from lognorm.extractor import JsonExtractor, RegexExtractor, compile_pattern
from lognorm.models import ExtractionRule, JsonRule


class TestRulePrecedence:
    def test_fields_come_from_first_matching_rule_only(self):
        extractor = RegexExtractor([
            ExtractionRule(pattern=r"(?P<a>x+)"),
            ExtractionRule(pattern=r"(?P<b>\w+) (?P<c>\w+)"),
            ExtractionRule(pattern=r"(?P<whole>.*)"),
        ])
        result = extractor.extract("hello world")
        assert result.matched
        assert result.rule_index == 1
        assert result.fields == {"b": "hello", "c": "world"}

    def test_earlier_rule_wins_when_both_match(self):
        extractor = RegexExtractor([
            ExtractionRule(pattern=r"(?P<specific>GET) .*"),
            ExtractionRule(pattern=r"(?P<general>.*)"),
        ])
        result = extractor.extract("GET /index")
        assert result.rule_index == 0
        assert result.fields == {"specific": "GET"}

    def test_match_is_anchored_to_whole_record(self):
        extractor = RegexExtractor([ExtractionRule(pattern=r"(?P<word>foo)")])
        assert not extractor.extract("foobar").matched


class TestRegexExtraction:
    def test_couch_access_line(self, couch_access_line):
        result = RegexExtractor([HTTP_ACCESS, GENERAL]).extract(couch_access_line)
        assert result.matched
        assert result.rule_index == 0
        assert result.fields["level"] == "notice"
        assert result.fields["http_request_status"] == 201
        assert result.fields["http_request_remoteIp"] == "1.2.3.4"
        assert result.fields["http_request_serverIp"] == "127.0.0.1"
        assert result.fields["message"] == "user GET /path 201 ok 16"
        assert result.timestamp == datetime(2021, 12, 2, 23, 36, 42, 555157, tzinfo=timezone.utc)
        assert "timestamp" not in result.fields

    def test_failed_integer_coercion_keeps_string(self):
        rule = ExtractionRule(pattern=r"(?P<status>\S+)", types={"status": "integer"})
        result = RegexExtractor([rule]).extract("ok")
        assert result.fields == {"status": "ok"}

    def test_bad_timestamp_keeps_raw_field(self):
        rule = ExtractionRule(
            pattern=r"(?P<ts>\S+) (?P<msg>.*)",
            time_field="ts",
            time_format="%Y-%m-%dT%H:%M:%S.%L%z",
        )
        result = RegexExtractor([rule]).extract("yesterday hello")
        assert result.matched
        assert result.timestamp is None
        assert result.fields == {"ts": "yesterday", "msg": "hello"}

    def test_unmatched_record_keeps_text(self):
        extractor = RegexExtractor([HTTP_ACCESS, GENERAL])
        result = extractor.extract("random noise")
        assert not result.matched
        assert result.fields == {"message": "random noise"}
        assert result.timestamp is None
        assert extractor.unmatched == 1

    def test_optional_group_is_omitted(self):
        line = "[2022-01-17T18:31:37.231+0000][652141][gc,init] Version: 17.0.1+12 (release)"
        result = RegexExtractor([GC_RULE]).extract(line)
        assert result.matched
        assert "gc_run" not in result.fields
        assert result.fields["message"] == "Version: 17.0.1+12 (release)"

    def test_multiline_record(self):
        record = (
            "[error] 2022-01-12T16:53:03.094488Z nonode@nohost emulator -------- "
            "Error in process <0.463.0> with exit value:\n"
            '{database_does_not_exist,[{mem3_shards,load_shards_from_db,"_users"}]}'
        )
        result = RegexExtractor([HTTP_ACCESS, GENERAL]).extract(record)
        assert result.rule_index == 1
        assert result.fields["pid"] == "0.463.0"
        assert result.fields["message"].endswith('"_users"}]}')


class TestCompilePattern:
    def test_angle_bracket_group_names(self):
        pattern = compile_pattern(r"(?<first>\w+) (?<second>\w+)")
        assert set(pattern.groupindex) == {"first", "second"}

    def test_lookbehind_untouched(self):
        pattern = compile_pattern(r"(?<=a)(?<!b)(?<x>c)")
        assert pattern.search("ac").group("x") == "c"


class TestConfiguration:
    def test_invalid_regex(self):
        with pytest.raises(ConfigError):
            RegexExtractor([ExtractionRule(pattern=r"(?<x>unclosed")])

    def test_time_field_must_be_a_group(self):
        with pytest.raises(ConfigError):
            RegexExtractor([ExtractionRule(
                pattern=r"(?<a>.*)", time_field="ts", time_format="%Y",
            )])

    def test_time_field_needs_format(self):
        with pytest.raises(ConfigError):
            RegexExtractor([ExtractionRule(pattern=r"(?<ts>.*)", time_field="ts")])

    def test_unknown_type(self):
        with pytest.raises(ConfigError):
            RegexExtractor([ExtractionRule(pattern=r"(?<a>.*)", types={"a": "decimal"})])

    def test_needs_rules(self):
        with pytest.raises(ConfigError):
            RegexExtractor([])


class TestJsonExtraction:
    def test_elasticsearch_line(self):
        line = (
            '{"type": "server", "timestamp": "2022-01-17T18:31:47,365Z", "level": "INFO", '
            '"component": "o.e.n.Node", "cluster.name": "elasticsearch", "message": "initialized" }'
        )
        result = JsonExtractor(JSON_RULE).extract(line)
        assert result.matched
        assert result.timestamp == datetime(2022, 1, 17, 18, 31, 47, 365000, tzinfo=timezone.utc)
        assert result.fields["cluster.name"] == "elasticsearch"
        assert "timestamp" not in result.fields

    def test_typed_json_field(self):
        extractor = JsonExtractor(JsonRule(types={"took": "integer"}))
        assert extractor.extract('{"took": "12"}').fields == {"took": 12}

    def test_invalid_json(self):
        extractor = JsonExtractor(JSON_RULE)
        result = extractor.extract('{"broken": ')
        assert not result.matched
        assert result.fields == {"message": '{"broken": '}
        assert extractor.unmatched == 1

    def test_non_object_json(self):
        result = JsonExtractor().extract("[1, 2]")
        assert not result.matched
