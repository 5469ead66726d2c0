"""
Tests for the Darkest file format parser.
"""

import pytest

from modbundler.file_types.darkest import (
    DarkestEntry,
    DarkestParseError,
    format_entry,
    parse_darkest,
    split_values,
)


class TestParseDarkest:
    """Test parsing Darkest text."""

    def test_entries_and_subkeys(self):
        """Test the basic grammar."""
        entries = parse_darkest("tag: .id religious\nweapon: .dmg 6 12 .spd 1\n")

        assert entries == [
            ("tag", {"id": ["religious"]}),
            ("weapon", {"dmg": ["6", "12"], "spd": ["1"]}),
        ]

    def test_quoted_values_keep_quotes(self):
        """Test that quoted strings are one value, quotes included."""
        entries = parse_darkest('combat_skill: .effect "Stun 1" "Mark Target"')

        assert entries[0][1]["effect"] == ['"Stun 1"', '"Mark Target"']

    def test_comments_ignored(self):
        """Test line comments."""
        entries = parse_darkest("// header\ntag: .id tank // trailing\n")

        assert entries == [("tag", {"id": ["tank"]})]

    def test_entries_may_span_lines(self):
        """Test that line breaks inside an entry are plain whitespace."""
        entries = parse_darkest("deaths_door: .buffs A B\n  .recovery_buffs C")

        assert entries[0][1] == {"buffs": ["A", "B"], "recovery_buffs": ["C"]}

    def test_repeated_keys_are_kept(self):
        """Test that the same key may appear many times."""
        entries = parse_darkest("tag: .id a\ntag: .id b")

        assert [entry.first("id") for _, entry in entries] == ["a", "b"]

    def test_subkey_without_values(self):
        """Test empty subkeys."""
        entries = parse_darkest("death_reaction: .target_allies .chance 50%")

        assert entries[0][1] == {"target_allies": [], "chance": ["50%"]}

    def test_value_before_subkey(self):
        """Test the error position for a value outside any subkey."""
        with pytest.raises(DarkestParseError) as exc_info:
            parse_darkest("tag: .id a\nweapon: 12 .spd 1")

        assert exc_info.value.line == 2
        assert exc_info.value.column == 9

    def test_value_before_key(self):
        """Test that text must start with a key."""
        with pytest.raises(DarkestParseError, match="Expected key"):
            parse_darkest(".id a")

    def test_entry_without_subkeys(self):
        """Test that an entry needs at least one subkey."""
        with pytest.raises(DarkestParseError, match="without subkeys"):
            parse_darkest("tag:\nweapon: .spd 1")

    def test_unterminated_string(self):
        """Test unterminated quotes."""
        with pytest.raises(DarkestParseError, match="Unterminated"):
            parse_darkest('tag: .id "open')

    def test_empty_text(self):
        """Test that an empty file has no entries."""
        assert parse_darkest("// nothing here\n") == []


class TestFormatting:
    """Test writing entries back."""

    def test_format_entry_round_trip(self):
        """Test that formatted entries parse back to the same entry."""
        entry = DarkestEntry({"id": ["smite"], "effect": ['"Stun 1"'], "flag": []})
        line = format_entry("combat_skill", entry)

        assert line == 'combat_skill: .id smite .effect "Stun 1" .flag'
        assert parse_darkest(line) == [("combat_skill", entry)]

    def test_first_missing_subkey(self):
        """Test first() on a missing subkey."""
        with pytest.raises(KeyError):
            DarkestEntry({"id": []}).first("id")

    def test_split_values(self):
        """Test splitting a value line."""
        assert split_values('"Stun 1" Bleed') == ['"Stun 1"', "Bleed"]

        with pytest.raises(DarkestParseError):
            split_values(".subkey value")
