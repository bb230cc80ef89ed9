"""Tests for provisioners/patch.py (RFC 7386 merge patch)."""

import pytest

from scorekit.provisioners.patch import merge_patch


class TestMergePatch:
    """Tests for merge_patch."""

    @pytest.mark.parametrize(
        "current,patch,expected",
        [
            ({"a": "b"}, {"a": "c"}, {"a": "c"}),
            ({"a": "b"}, {"b": "c"}, {"a": "b", "b": "c"}),
            ({"a": "b"}, {"a": None}, {}),
            ({"a": "b", "b": "c"}, {"a": None}, {"b": "c"}),
            ({"a": ["b"]}, {"a": "c"}, {"a": "c"}),
            ({"a": "c"}, {"a": ["b"]}, {"a": ["b"]}),
            ({"a": {"b": "c"}}, {"a": {"b": "d", "c": None}}, {"a": {"b": "d"}}),
            ({"a": [{"b": "c"}]}, {"a": [1]}, {"a": [1]}),
            ({"e": None}, {"a": 1}, {"e": None, "a": 1}),
            ({}, {"a": {"bb": {"ccc": None}}}, {"a": {"bb": {}}}),
        ],
    )
    def test_rfc_examples(self, current, patch, expected):
        assert merge_patch(current, patch) == expected

    def test_mapping_replaces_non_mapping(self):
        assert merge_patch({"a": "scalar"}, {"a": {"b": 1, "c": None}}) == {"a": {"b": 1}}

    def test_empty_patch_is_identity(self):
        assert merge_patch({"a": 1}, {}) == {"a": 1}
        assert merge_patch({"a": 1}, None) == {"a": 1}

    def test_missing_current(self):
        assert merge_patch(None, {"a": 1}) == {"a": 1}

    def test_deleting_absent_key(self):
        assert merge_patch({"a": 1}, {"b": None}) == {"a": 1}

    def test_inputs_not_modified(self):
        current = {"a": {"b": 1}, "keep": [1, 2]}
        patch = {"a": {"c": 2}, "keep": None}

        result = merge_patch(current, patch)

        assert result == {"a": {"b": 1, "c": 2}}
        assert current == {"a": {"b": 1}, "keep": [1, 2]}
        assert patch == {"a": {"c": 2}, "keep": None}

    def test_result_does_not_alias_patch(self):
        patch = {"list": [1, 2]}

        result = merge_patch({}, patch)
        result["list"].append(3)

        assert patch == {"list": [1, 2]}
