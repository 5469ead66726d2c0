"""
Canonical maps, patches and the two-record differ.

A canonical map is a dict from key path (tuple of strings) to GameDataValue,
kept in key-path order. A patch maps key paths to ItemChange entries. The
differ walks two canonical maps in order and emits the minimal patch.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .values import GameDataValue
from ..utils.logging import get_logger

logger = get_logger("core.diff")

KeyPath = Tuple[str, ...]
DataMap = Dict[KeyPath, GameDataValue]

PATH_SEPARATOR = " / "


class ChangeKind(Enum):
    """Kinds of per-path changes."""

    SET = "SET"
    REMOVED = "REMOVED"


@dataclass(frozen=True)
class ItemChange:
    """Change to a single path: set it to a value, or remove it."""

    kind: ChangeKind
    value: Optional[GameDataValue] = None

    @classmethod
    def set(cls, value: GameDataValue) -> "ItemChange":
        return cls(ChangeKind.SET, GameDataValue.from_python(value))

    @classmethod
    def removed(cls) -> "ItemChange":
        return cls(ChangeKind.REMOVED)

    @property
    def is_removed(self) -> bool:
        return self.kind is ChangeKind.REMOVED

    def into_option(self) -> Optional[GameDataValue]:
        """Return the value for Set, None for Removed."""
        if self.kind is ChangeKind.SET:
            return self.value
        return None

    def unwrap_set(self) -> GameDataValue:
        if self.kind is not ChangeKind.SET:
            raise TypeError("Expected a Set change, got Removed")
        return self.value

    def __str__(self) -> str:
        if self.kind is ChangeKind.REMOVED:
            return "<REMOVED>"
        return str(self.value)


Patch = Dict[KeyPath, ItemChange]
Conflict = List[Tuple[str, ItemChange]]
Conflicts = Dict[KeyPath, Conflict]
ModFileChange = Tuple[str, Patch]


def key_path(*segments: object) -> KeyPath:
    """Build a key path from segments, converting each to a string."""
    return tuple(str(segment) for segment in segments)


def format_path(path: Iterable[str]) -> str:
    """Human-readable rendering of a key path."""
    return PATH_SEPARATOR.join(path)


def parse_path(text: str) -> KeyPath:
    """Inverse of format_path."""
    if not text:
        return ()
    return tuple(text.split(PATH_SEPARATOR))


def sorted_map(items: Iterable[Tuple[KeyPath, GameDataValue]]) -> DataMap:
    """Build a canonical map, rejecting duplicate paths."""
    out: DataMap = {}
    for path, value in items:
        if path in out:
            raise ValueError(f"Duplicate key path in canonical map: {format_path(path)}")
        out[path] = value
    return dict(sorted(out.items()))


def extend_prefixed(out: DataMap, prefix: Iterable[str], data: Mapping[KeyPath, GameDataValue]) -> None:
    """Insert every entry of data into out with prefix prepended to the path.

    Args:
        out: Map being built.
        prefix: Segment (str) or segments to prepend.
        data: Entries with paths relative to the prefix.
    """
    prefix = (prefix,) if isinstance(prefix, str) else tuple(prefix)
    for path, value in data.items():
        full = prefix + path
        if full in out:
            raise ValueError(f"Duplicate key path in canonical map: {format_path(full)}")
        out[full] = value


def diff(original: Mapping[KeyPath, GameDataValue], modified: Mapping[KeyPath, GameDataValue]) -> Patch:
    """Compute the minimal patch turning original into modified.

    Both maps are walked in key-path order simultaneously (a merge-join), so the
    cost is linear in the total number of entries.

    Args:
        original: Canonical map of the baseline record.
        modified: Canonical map of the changed record.

    Returns:
        Patch with Set for added or changed paths and Removed for dropped paths.
    """
    patch: Patch = {}
    orig_items = sorted(original.items())
    mod_items = sorted(modified.items())
    i = j = 0
    while i < len(orig_items) and j < len(mod_items):
        orig_path, orig_value = orig_items[i]
        mod_path, mod_value = mod_items[j]
        if orig_path == mod_path:
            if orig_value != mod_value:
                patch[mod_path] = ItemChange.set(mod_value)
            i += 1
            j += 1
        elif orig_path < mod_path:
            patch[orig_path] = ItemChange.removed()
            i += 1
        else:
            patch[mod_path] = ItemChange.set(mod_value)
            j += 1
    for orig_path, _ in orig_items[i:]:
        patch[orig_path] = ItemChange.removed()
    for mod_path, mod_value in mod_items[j:]:
        patch[mod_path] = ItemChange.set(mod_value)

    logger.debug(f"Diff: {len(patch)} entries changed out of {len(orig_items)}")
    return dict(sorted(patch.items()))


def apply_to_map(data: Mapping[KeyPath, GameDataValue], patch: Mapping[KeyPath, ItemChange]) -> DataMap:
    """Apply a patch directly to a canonical map, returning a new map."""
    out = dict(data)
    for path, change in patch.items():
        if change.is_removed:
            out.pop(path, None)
        else:
            out[path] = change.value
    return dict(sorted(out.items()))
