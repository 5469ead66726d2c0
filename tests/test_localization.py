"""
Tests for localization string tables and their merge rule.
"""

import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from fixtures.game_data import STRING_TABLE
from modbundler.core.diff import ItemChange, diff
from modbundler.core.errors import ApplyError, ExtractionError, StructuralMismatchError
from modbundler.core.values import GameDataValue
from modbundler.data_types.localization import StringsTable


def make_table(text: str = STRING_TABLE) -> StringsTable:
    return StringsTable.from_element("heroes", ET.fromstring(text))


class TestStringsTable:
    """Test parsing, flattening and patching string tables."""

    def setup_method(self):
        """Set up test fixtures."""
        self.table = make_table()

    def test_canonical_map(self):
        """Test that paths are (language, entry id)."""
        assert self.table.to_map() == {
            ("english", "hero_class_name_crusader"): GameDataValue.string("Crusader"),
            ("english", "str_intro"): GameDataValue.string("Welcome home"),
            ("french", "hero_class_name_crusader"): GameDataValue.string("Croisé"),
        }

    def test_render_round_trip(self):
        """Test that rendered XML parses back to an equal table."""
        rendered = self.table.render()

        assert rendered.startswith('<?xml version="1.0" encoding="utf-8"?>')
        assert make_table(rendered) == self.table

    def test_load_from_file(self):
        """Test loading and record id."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "heroes.string_table.xml"
            path.write_text(STRING_TABLE, encoding="utf-8")

            table = StringsTable.load(path)

        assert table.record_id == "heroes"
        assert table == self.table

    def test_load_invalid(self):
        """Test malformed XML and unexpected elements."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "bad.string_table.xml"
            path.write_text("<root><language id='english'>", encoding="utf-8")
            with pytest.raises(ExtractionError):
                StringsTable.load(path)

            path.write_text("<root><text/></root>", encoding="utf-8")
            with pytest.raises(ExtractionError, match="unexpected element"):
                StringsTable.load(path)

    def test_diff_apply_inverse(self):
        """Test apply(B, diff(B, T)) == T."""
        target = make_table(
            STRING_TABLE.replace("Welcome home", "Welcome back")
            .replace('<entry id="hero_class_name_crusader">Croisé</entry>', "")
            .replace("</root>", '<language id="german"><entry id="x">Hallo</entry></language></root>')
        )

        patched = self.table.patched(diff(self.table.to_map(), target.to_map()))

        assert patched == target
        assert patched.languages["german"] == {"x": "Hallo"}

    def test_apply_errors(self):
        """Test that malformed patches are rejected."""
        with pytest.raises(ApplyError):
            self.table.patched({("english",): ItemChange.set("x")})
        with pytest.raises(ApplyError):
            self.table.patched({("english", "missing"): ItemChange.removed()})
        with pytest.raises(StructuralMismatchError):
            self.table.patched({("english", "str_intro"): ItemChange.set(5)})


class TestLocalizationMerge:
    """Test the localization merge rule."""

    def setup_method(self):
        """Set up test fixtures."""
        self.table = make_table()
        self.path = ("english", "str_intro")

    def test_single_source_accepted(self):
        """Test that a single contributor is accepted, even a removal."""
        merged, conflicts = self.table.try_merge_patches([("a", {self.path: ItemChange.removed()})])

        assert merged == {self.path: ItemChange.removed()}
        assert conflicts == {}

    def test_identical_additions_merge(self):
        """Test that two sources adding the same text agree."""
        path = ("english", "7")
        patch = {path: ItemChange.set("Hello")}

        merged, conflicts = self.table.try_merge_patches([("a", patch), ("b", dict(patch))])

        assert merged == {path: ItemChange.set("Hello")}
        assert conflicts == {}

    def test_majority_of_sets_merges(self):
        """Test that a strict majority of identical sets wins."""
        merged, conflicts = self.table.try_merge_patches([
            ("a", {self.path: ItemChange.set("Hi")}),
            ("b", {self.path: ItemChange.set("Hi")}),
            ("c", {self.path: ItemChange.set("Hey")}),
        ])

        assert merged == {self.path: ItemChange.set("Hi")}
        assert conflicts == {}

    def test_tie_is_conflict(self):
        """Test that two different sets without majority conflict."""
        merged, conflicts = self.table.try_merge_patches([
            ("a", {self.path: ItemChange.set("Hi")}),
            ("b", {self.path: ItemChange.set("Hey")}),
        ])

        assert merged == {}
        assert len(conflicts[self.path]) == 2

    def test_set_against_removal_is_conflict(self):
        """Test that a removal never silently loses against a set, or wins."""
        _, conflicts = self.table.try_merge_patches([
            ("a", {self.path: ItemChange.set("Hi")}),
            ("b", {self.path: ItemChange.set("Hi")}),
            ("c", {self.path: ItemChange.removed()}),
        ])

        assert self.path in conflicts

    def test_removal_by_every_source_is_conflict(self):
        """Test that all-sources-removed entries go to the resolver."""
        _, conflicts = self.table.try_merge_patches([
            ("a", {self.path: ItemChange.removed()}),
            ("b", {self.path: ItemChange.removed()}),
        ])

        assert self.path in conflicts
