"""
Tests for response envelope normalization.

Both envelope families must collapse to the same plain entity dicts, with
ids recovered from storage keys and empty collections always yielding [].
"""

import pytest

from apisix_bridge.core.normalizer import ResponseFormat, ResponseNormalizer, id_from_key


@pytest.fixture
def normalizer():
    return ResponseNormalizer()


class TestExtractValue:
    """Single-entity responses."""

    def test_legacy_and_wrapped_envelopes_yield_equal_entities(self, normalizer):
        """The same route in either envelope normalizes to the same dict."""
        legacy = {
            "action": "get",
            "node": {"key": "/apisix/routes/1", "value": {"uri": "/hello", "upstream_id": "u1"}},
        }
        wrapped = {
            "key": "/apisix/routes/1",
            "value": {"id": "1", "uri": "/hello", "upstream_id": "u1"},
            "createdIndex": 7,
            "modifiedIndex": 9,
        }

        assert normalizer.extract_value(legacy) == normalizer.extract_value(wrapped)
        assert normalizer.extract_value(legacy) == {
            "id": "1",
            "uri": "/hello",
            "upstream_id": "u1",
        }

    def test_id_is_backfilled_from_key(self, normalizer):
        raw = {"key": "/apisix/upstreams/backend", "value": {"type": "roundrobin"}}

        assert normalizer.extract_value(raw)["id"] == "backend"

    def test_bare_entity_passes_through(self, normalizer):
        assert normalizer.extract_value({"id": "7", "uri": "/x"}) == {"id": "7", "uri": "/x"}

    def test_empty_body_yields_empty_dict(self, normalizer):
        assert normalizer.extract_value({}) == {}
        assert normalizer.extract_value(None) == {}

    def test_does_not_mutate_raw_response(self, normalizer):
        value = {"uri": "/hello"}
        normalizer.extract_value({"key": "/apisix/routes/1", "value": value})

        assert "id" not in value


class TestExtractList:
    """Collection responses."""

    @pytest.mark.parametrize(
        "raw",
        [
            {"total": 0, "list": []},
            {"total": 0, "list": {}},
            {"action": "get", "node": {"dir": True, "key": "/apisix/routes", "nodes": {}}},
            {"action": "get", "node": {"dir": True, "key": "/apisix/routes"}},
            {"action": "get", "node": {"key": "/apisix/routes", "nodes": []}},
            [],
        ],
    )
    def test_empty_collections_yield_empty_list(self, normalizer, raw):
        """Every empty-collection encoding normalizes to [] (never None)."""
        assert normalizer.extract_list(raw) == []

    def test_wrapped_list_items_are_unwrapped(self, normalizer):
        raw = {
            "total": 2,
            "list": [
                {"key": "/apisix/routes/1", "value": {"uri": "/a"}, "createdIndex": 1},
                {"key": "/apisix/routes/2", "value": {"id": "2", "uri": "/b"}},
            ],
        }

        assert normalizer.extract_list(raw) == [
            {"uri": "/a", "id": "1"},
            {"id": "2", "uri": "/b"},
        ]

    def test_legacy_nodes_are_unwrapped(self, normalizer):
        raw = {
            "action": "get",
            "count": 1,
            "node": {
                "dir": True,
                "key": "/apisix/services",
                "nodes": [{"key": "/apisix/services/s1", "value": {"name": "billing"}}],
            },
        }

        assert normalizer.extract_list(raw) == [{"name": "billing", "id": "s1"}]

    def test_bare_array_of_entities(self, normalizer):
        assert normalizer.extract_list([{"id": "1"}, {"id": "2"}]) == [{"id": "1"}, {"id": "2"}]

    def test_non_object_items_are_skipped(self, normalizer):
        raw = {"total": 3, "list": [{"id": "1"}, "garbage", 42]}

        assert normalizer.extract_list(raw) == [{"id": "1"}]


class TestFormatDetection:
    def test_detects_wrapped_collection(self, normalizer):
        assert normalizer.detect_format({"total": 0, "list": []}) is ResponseFormat.WRAPPED

    def test_detects_wrapped_entity(self, normalizer):
        raw = {"key": "/apisix/routes/1", "value": {}}

        assert normalizer.detect_format(raw) is ResponseFormat.WRAPPED

    def test_detects_legacy(self, normalizer):
        raw = {"node": {"key": "/apisix/routes/1", "value": {"uri": "/"}}}

        assert normalizer.detect_format(raw) is ResponseFormat.LEGACY

    def test_bare_body_has_no_format(self, normalizer):
        assert normalizer.detect_format({"uri": "/"}) is None
        assert normalizer.detect_format([]) is None


class TestPaginationInfo:
    def test_reads_total_and_has_more(self, normalizer):
        raw = {"total": 25, "has_more": True, "list": []}

        assert normalizer.extract_pagination_info(raw) == (25, True)

    def test_missing_values_are_none(self, normalizer):
        assert normalizer.extract_pagination_info({"list": []}) == (None, None)


@pytest.mark.parametrize(
    "key,expected",
    [
        ("/apisix/routes/1", "1"),
        ("/apisix/consumers/jack/credentials/cred-1", "cred-1"),
        ("/apisix/routes/1/", "1"),
        ("", None),
    ],
)
def test_id_from_key(key, expected):
    assert id_from_key(key) == expected
