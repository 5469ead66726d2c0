"""
Tests for the bundling pipeline.
"""

import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from fixtures.game_data import HERO_INFO, STRING_TABLE, hero_text, write_mod, write_tree
from modbundler.core.bundle import Bundler, apply_patches, load_and_bundle
from modbundler.core.conflict_report import BINARY_CHOICE, CONFLICT, RESOLVED
from modbundler.core.diff import ItemChange
from modbundler.core.errors import (
    ApplyError,
    MalformedChainError,
    ResolutionAborted,
    SourceKindMismatchError,
)
from modbundler.core.loader import discover_mods
from modbundler.core.records import BinaryRef
from modbundler.core.resolve import PolicyResolver, ScriptedResolver
from modbundler.core.values import to_f32
from modbundler.data_types.hero_info import HeroInfo
from modbundler.data_types.localization import StringsTable
from modbundler.file_types.darkest import parse_darkest

HERO_PATH = "heroes/crusader/crusader.info.darkest"
TABLE_PATH = "localization/heroes.string_table.xml"
IMAGE_PATH = "heroes/crusader/crusader_portrait.png"


def make_hero(text: str = HERO_INFO) -> HeroInfo:
    return HeroInfo.from_entries("crusader", parse_darkest(text))


def make_table(text: str, record_id: str = "heroes") -> StringsTable:
    return StringsTable.from_element(record_id, ET.fromstring(text))


def binary(digest: str) -> BinaryRef:
    return BinaryRef(digest, Path(f"/data/{digest}.png"))


def game_data():
    return {
        HERO_PATH: make_hero(),
        TABLE_PATH: make_table(STRING_TABLE),
        IMAGE_PATH: binary("vanilla"),
    }


class TestBundler:
    """Test the merge pipeline on in-memory data."""

    def setup_method(self):
        """Set up test fixtures."""
        self.game = game_data()

    def test_crit_conflict_resolved_by_script(self):
        """Test the typical scenario: two mods change the same crit, the user picks a third value."""
        mods = {
            "a": {HERO_PATH: make_hero(hero_text((".crit 10%", ".crit 15%")))},
            "b": {HERO_PATH: make_hero(hero_text((".crit 10%", ".crit 20%")))},
        }
        resolver = ScriptedResolver({HERO_PATH: {"weapons / 2 / crit": 0.18}})

        result = Bundler(resolver).bundle(self.game, mods)

        assert result.ok
        assert result.files[HERO_PATH].weapons[2].values["crit"] == to_f32(0.18)
        assert [e["action_type"] for e in result.report.filter_entries(file_pattern=HERO_PATH)] == [
            CONFLICT, RESOLVED
        ]

    def test_independent_changes_merge(self):
        """Test that non-overlapping changes from two mods are both kept."""
        mods = {
            "a": {HERO_PATH: make_hero(hero_text((".stun 40%", ".stun 50%")))},
            "b": {HERO_PATH: make_hero(hero_text((".hp 33", ".hp 35")))},
        }

        result = Bundler(ScriptedResolver({})).bundle(self.game, mods)

        hero = result.files[HERO_PATH]
        assert hero.resistances["stun"] == to_f32(0.5)
        assert hero.armours[0].values["hp"] == 35
        assert self.game[HERO_PATH].resistances["stun"] == to_f32(0.4)

    def test_identical_changes_agree(self):
        """Test that the same change from every mod is not a conflict."""
        text = hero_text((".crit 10%", ".crit 15%"))
        mods = {"a": {HERO_PATH: make_hero(text)}, "b": {HERO_PATH: make_hero(text)}}

        result = Bundler(ScriptedResolver({})).bundle(self.game, mods)

        assert result.files[HERO_PATH].weapons[2].values["crit"] == to_f32(0.15)
        assert not result.report.filter_entries(action_type=CONFLICT)

    def test_unchanged_files_left_out(self):
        """Test that files identical to the game are not part of the bundle."""
        mods = {"a": {HERO_PATH: make_hero(), IMAGE_PATH: binary("vanilla")}}

        result = Bundler(ScriptedResolver({})).bundle(self.game, mods)

        assert result.files == {}

    def test_binary_arbitration(self):
        """Test that differing binaries go to the resolver, identical ones do not."""
        mods = {
            "a": {IMAGE_PATH: binary("red"), "shared/icon.png": binary("icon")},
            "b": {IMAGE_PATH: binary("blue"), "shared/icon.png": binary("icon")},
        }

        result = Bundler(PolicyResolver("first")).bundle(self.game, mods)

        assert result.files[IMAGE_PATH].digest == "red"
        assert result.files["shared/icon.png"].digest == "icon"
        choices = result.report.filter_entries(action_type=BINARY_CHOICE)
        assert [entry["file"] for entry in choices] == [IMAGE_PATH]

    def test_added_text_arbitration(self):
        """Test that the chosen base absorbs the other mod's version as a patch."""
        new_path = "localization/new.string_table.xml"
        version_a = ('<root><language id="english"><entry id="x">Hello</entry>'
                     '<entry id="y">Extra</entry></language></root>')
        version_b = '<root><language id="english"><entry id="x">Hello</entry></language></root>'
        mods = {
            "a": {new_path: make_table(version_a, "new")},
            "b": {new_path: make_table(version_b, "new")},
        }
        resolver = ScriptedResolver({new_path: {"_base": "b"}})

        result = Bundler(resolver).bundle(self.game, mods)

        assert result.files[new_path].languages == {"english": {"x": "Hello", "y": "Extra"}}

    def test_identical_additions(self):
        """Test that equal added files need no decision."""
        new_path = "localization/new.string_table.xml"
        text = '<root><language id="english"><entry id="x">Hello</entry></language></root>'
        mods = {"a": {new_path: make_table(text, "new")}, "b": {new_path: make_table(text, "new")}}

        result = Bundler(ScriptedResolver({})).bundle(self.game, mods)

        assert result.files[new_path].languages["english"]["x"] == "Hello"

    def test_kind_mismatch_against_game(self):
        """Test that a mod replacing a structured file with a binary fails that file only."""
        mods = {
            "a": {HERO_PATH: binary("broken")},
            "b": {IMAGE_PATH: binary("blue")},
        }

        result = Bundler(ScriptedResolver({})).bundle(self.game, mods)

        assert isinstance(result.errors[HERO_PATH], SourceKindMismatchError)
        assert HERO_PATH not in result.files
        assert IMAGE_PATH in result.files
        assert not result.ok

    def test_kind_mismatch_between_mods(self):
        """Test a new file that is binary in one mod and structured in another."""
        new_path = "localization/extra.string_table.xml"
        mods = {
            "a": {new_path: binary("extra")},
            "b": {new_path: make_table('<root><language id="english"/></root>', "extra")},
        }

        result = Bundler(ScriptedResolver({})).bundle(self.game, mods)

        assert isinstance(result.errors[new_path], SourceKindMismatchError)
        assert "binary in a" in str(result.errors[new_path])
        assert result.files == {}

    def test_broken_chain_fails_file(self):
        """Test that a resolution producing an unreachable chain element fails the file."""
        mods = {
            "a": {HERO_PATH: make_hero(hero_text(("tag: .id tank\n", "tag: .id tank\ntag: .id holy\n")))},
            "b": {HERO_PATH: make_hero(hero_text(("tag: .id tank\n", "tag: .id tank\ntag: .id brave\n")))},
        }

        result = Bundler(PolicyResolver("first")).bundle(self.game, mods)

        assert isinstance(result.errors[HERO_PATH], MalformedChainError)
        assert HERO_PATH not in result.files

    def test_duplicate_tag_fails_only_that_file(self):
        """Test that a hero listing a tag twice fails while the mod's string table still merges."""
        mods = {
            "a": {
                HERO_PATH: make_hero(hero_text(("tag: .id tank\n", "tag: .id tank\ntag: .id tank\n"))),
                TABLE_PATH: make_table(STRING_TABLE.replace("Welcome home", "Welcome back")),
            },
        }

        result = Bundler(ScriptedResolver({})).bundle(self.game, mods)

        assert isinstance(result.errors[HERO_PATH], MalformedChainError)
        assert HERO_PATH not in result.files
        assert result.files[TABLE_PATH].languages["english"]["str_intro"] == "Welcome back"

    def test_duplicate_tag_in_added_file(self):
        """Test that comparing two versions of a new hero with a duplicated tag fails that file only."""
        new_path = "heroes/zealot/zealot.info.darkest"
        mods = {
            "a": {
                new_path: make_hero(hero_text(("tag: .id tank\n", "tag: .id tank\ntag: .id tank\n"))),
                IMAGE_PATH: binary("red"),
            },
            "b": {new_path: make_hero()},
        }

        result = Bundler(ScriptedResolver({})).bundle(self.game, mods)

        assert isinstance(result.errors[new_path], MalformedChainError)
        assert new_path not in result.files
        assert result.files[IMAGE_PATH] == binary("red")

    def test_aborted_resolution_propagates(self):
        """Test that a resolver giving up stops the whole bundle."""
        mods = {"a": {IMAGE_PATH: binary("red")}, "b": {IMAGE_PATH: binary("blue")}}

        with pytest.raises(ResolutionAborted):
            Bundler(ScriptedResolver({})).bundle(self.game, mods)


class TestApplyPatches:
    """Test applying final patches."""

    def test_collects_errors(self):
        """Test that errors are collected when a dict is given, raised otherwise."""
        base = {HERO_PATH: make_hero()}
        patches = {HERO_PATH: {("weapons", "9", "crit"): ItemChange.set(0.5)}}

        errors = {}
        assert apply_patches(base, patches, errors) == {}
        assert isinstance(errors[HERO_PATH], ApplyError)

        with pytest.raises(ApplyError):
            apply_patches(base, patches)


class TestLoadAndBundle:
    """Test bundling straight from directories."""

    def test_bundle_from_disk(self):
        """Test loading a game and two mods and merging them."""
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            game_dir = write_tree(root / "game", {
                HERO_PATH: HERO_INFO,
                TABLE_PATH: STRING_TABLE,
                IMAGE_PATH: b"vanilla",
            })
            write_mod(root / "mods", "100", "Stronger Crusader", {
                HERO_PATH: hero_text((".stun 40%", ".stun 60%")),
            })
            write_mod(root / "mods", "200", "Better Intro", {
                TABLE_PATH: STRING_TABLE.replace("Welcome home", "Welcome back"),
                IMAGE_PATH: b"new portrait",
            })

            result = load_and_bundle(game_dir, discover_mods(root / "mods"), ScriptedResolver({}))

            assert result.ok
            assert sorted(result.files) == [HERO_PATH, IMAGE_PATH, TABLE_PATH]
            assert result.files[HERO_PATH].resistances["stun"] == to_f32(0.6)
            assert result.files[TABLE_PATH].languages["english"]["str_intro"] == "Welcome back"
            assert result.files[IMAGE_PATH].source.read_bytes() == b"new portrait"
