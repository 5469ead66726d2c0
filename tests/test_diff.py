"""
Tests for canonical maps, item changes and the differ.
"""

import pytest

from modbundler.core.diff import (
    ItemChange,
    apply_to_map,
    diff,
    extend_prefixed,
    format_path,
    key_path,
    parse_path,
    sorted_map,
)
from modbundler.core.values import GameDataValue


def _map(**entries):
    return sorted_map((tuple(name.split("__")), GameDataValue.from_python(value)) for name, value in entries.items())


class TestItemChange:
    """Test item change construction and helpers."""

    def test_set_wraps_python_values(self):
        """Test that Set accepts plain Python scalars."""
        assert ItemChange.set(3) == ItemChange.set(GameDataValue.int_(3))
        assert ItemChange.set(3).into_option() == GameDataValue.int_(3)

    def test_removed(self):
        """Test Removed helpers."""
        change = ItemChange.removed()

        assert change.is_removed
        assert change.into_option() is None
        assert str(change) == "<REMOVED>"
        with pytest.raises(TypeError):
            change.unwrap_set()

    def test_structural_equality(self):
        """Test that equality is structural, not by identity."""
        assert ItemChange.set("a") == ItemChange.set("a")
        assert ItemChange.set("a") != ItemChange.set("b")
        assert ItemChange.set("a") != ItemChange.removed()


class TestPaths:
    """Test key path helpers."""

    def test_key_path_converts_segments(self):
        """Test that segments are converted to strings."""
        assert key_path("weapons", 2, "crit") == ("weapons", "2", "crit")

    def test_format_and_parse_are_inverse(self):
        """Test path formatting round trip."""
        path = ("skills", "smite", "0", "effects")

        assert format_path(path) == "skills / smite / 0 / effects"
        assert parse_path(format_path(path)) == path
        assert parse_path("") == ()

    def test_duplicate_paths_rejected(self):
        """Test that canonical maps refuse duplicate paths."""
        with pytest.raises(ValueError):
            sorted_map([(("a",), GameDataValue.int_(1)), (("a",), GameDataValue.int_(2))])

        out = {("tags",): GameDataValue.next_(None)}
        with pytest.raises(ValueError):
            extend_prefixed(out, "tags", {(): GameDataValue.next_(None)})


class TestDiff:
    """Test the two-record differ."""

    def test_diff_of_identical_maps_is_empty(self):
        """Test diff minimality."""
        data = _map(a=1, b__c="x", d=0.5)

        assert diff(data, data) == {}

    def test_diff_detects_set_added_and_removed(self):
        """Test every kind of change."""
        original = _map(a=1, b=2, c=3)
        modified = _map(a=1, b=5, d=4)

        assert diff(original, modified) == {
            ("b",): ItemChange.set(5),
            ("c",): ItemChange.removed(),
            ("d",): ItemChange.set(4),
        }

    def test_diff_with_empty_sides(self):
        """Test diffing against an empty map."""
        data = _map(a=1, b=2)

        assert diff({}, data) == {("a",): ItemChange.set(1), ("b",): ItemChange.set(2)}
        assert diff(data, {}) == {("a",): ItemChange.removed(), ("b",): ItemChange.removed()}

    def test_diff_apply_inverse(self):
        """Test that applying the diff reproduces the target map."""
        original = _map(a=1, b__x="old", b__y=True, c=0.25)
        target = _map(a=2, b__x="new", c=0.25, e__f="added")

        assert apply_to_map(original, diff(original, target)) == target

    def test_diff_output_is_sorted(self):
        """Test that the patch is in key-path order."""
        original = _map(z=1, a=1)
        modified = _map(m=1)

        assert list(diff(original, modified)) == [("a",), ("m",), ("z",)]

    def test_type_change_is_a_set(self):
        """Test that a kind change at the same path is reported."""
        assert diff(_map(a=1), _map(a="1")) == {("a",): ItemChange.set("1")}
