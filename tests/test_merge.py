"""
Tests for the generic N-way merger and the resolution round trip.
"""

import pytest

from modbundler.core.diff import ItemChange
from modbundler.core.errors import UnresolvedConflictError
from modbundler.core.merge import (
    MERGED_SOURCE,
    RESOLVED_SOURCE,
    agreed_change,
    check_resolved,
    merge_patches,
    merge_resolved,
    regroup,
)


class TestMergePatches:
    """Test the per-path merge rule."""

    def setup_method(self):
        """Set up test fixtures."""
        self.patch_a = {
            ("weapons", "2", "crit"): ItemChange.set(0.15),
            ("tags", "a"): ItemChange.set("x"),
        }
        self.patch_b = {
            ("weapons", "2", "crit"): ItemChange.set(0.20),
            ("resistances", "stun"): ItemChange.set(0.5),
        }

    def test_single_contributor_accepted(self):
        """Test that a path touched by one source is accepted."""
        merged, conflicts = merge_patches([("a", self.patch_a)])

        assert merged == self.patch_a
        assert conflicts == {}

    def test_disagreement_is_conflict(self):
        """Test conflict completeness."""
        merged, conflicts = merge_patches([("a", self.patch_a), ("b", self.patch_b)])

        assert ("weapons", "2", "crit") not in merged
        assert conflicts[("weapons", "2", "crit")] == [
            ("a", ItemChange.set(0.15)),
            ("b", ItemChange.set(0.20)),
        ]
        assert merged[("tags", "a")] == ItemChange.set("x")
        assert merged[("resistances", "stun")] == ItemChange.set(0.5)

    def test_identical_edits_auto_merge(self):
        """Test that identical changes from many sources are not a conflict."""
        patch = {("entry",): ItemChange.set("Hello")}

        merged, conflicts = merge_patches([("a", patch), ("b", dict(patch)), ("c", dict(patch))])

        assert merged == patch
        assert conflicts == {}

    def test_identical_removals_auto_merge(self):
        """Test that two removals of the same path agree."""
        patch = {("entry",): ItemChange.removed()}

        merged, conflicts = merge_patches([("a", patch), ("b", patch)])

        assert merged == patch
        assert conflicts == {}

    def test_set_versus_remove_conflicts(self):
        """Test that a set and a removal disagree."""
        _, conflicts = merge_patches([
            ("a", {("x",): ItemChange.set(1)}),
            ("b", {("x",): ItemChange.removed()}),
        ])

        assert list(conflicts) == [("x",)]

    def test_merge_is_commutative(self):
        """Test that supplying sources in another order gives the same result."""
        forward = merge_patches([("a", self.patch_a), ("b", self.patch_b)])
        backward = merge_patches([("b", self.patch_b), ("a", self.patch_a)])

        assert forward == backward

    def test_conflict_lists_hold_distinct_changes(self):
        """Test the conflict list invariant."""
        _, conflicts = merge_patches([
            ("a", {("x",): ItemChange.set(1)}),
            ("b", {("x",): ItemChange.set(2)}),
            ("c", {("x",): ItemChange.set(1)}),
        ])

        changes = conflicts[("x",)]
        assert len(changes) == 3
        assert [source for source, _ in changes] == ["a", "b", "c"]

    def test_regroup_orders_by_path_and_source(self):
        """Test regrouping order."""
        grouped = regroup([
            ("z", {("b",): ItemChange.set(1)}),
            ("a", {("b",): ItemChange.set(2), ("a",): ItemChange.set(3)}),
        ])

        assert list(grouped) == [("a",), ("b",)]
        assert [source for source, _ in grouped[("b",)]] == ["a", "z"]

    def test_agreed_change(self):
        """Test the all-equal check."""
        assert agreed_change([("a", ItemChange.set(1)), ("b", ItemChange.set(1))]) == ItemChange.set(1)
        assert agreed_change([("a", ItemChange.set(1)), ("b", ItemChange.set(2))]) is None


class TestResolution:
    """Test folding resolver output back in."""

    def test_resolver_round_trip(self):
        """Test that merged + resolved re-merge without conflicts."""
        merged, conflicts = merge_patches([
            ("a", {("x",): ItemChange.set(1), ("y",): ItemChange.set("only a")}),
            ("b", {("x",): ItemChange.set(2)}),
        ])
        resolved = {("x",): ItemChange.set(3)}

        check_resolved("file", conflicts, resolved)
        final = merge_resolved(merged, resolved, "file")

        assert final == {("x",): ItemChange.set(3), ("y",): ItemChange.set("only a")}

    def test_missing_decision_fails(self):
        """Test that the resolver may not skip a conflicted path."""
        conflicts = {("x",): [("a", ItemChange.set(1)), ("b", ItemChange.set(2))]}

        with pytest.raises(UnresolvedConflictError, match="x"):
            check_resolved("file", conflicts, {})

    def test_leftover_conflict_fails(self):
        """Test that a resolution disagreeing with an auto-merged path is a defect."""
        with pytest.raises(UnresolvedConflictError):
            merge_resolved({("x",): ItemChange.set(1)}, {("x",): ItemChange.set(2)}, "file")

    def test_pseudo_source_names(self):
        """Test the names of the pseudo sources."""
        assert MERGED_SOURCE == "auto-merged"
        assert RESOLVED_SOURCE == "resolved"
