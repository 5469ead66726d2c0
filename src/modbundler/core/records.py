"""
Record interface shared by every file type taking part in the bundle.

A game or mod file is either an opaque binary (BinaryRef) or a structured
record (a Structured subclass). Structured records expose themselves to the
engine only through their canonical map, and take changes back only through
patches.
"""

import copy
import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Tuple, Union

from .diff import Conflicts, DataMap, ModFileChange, Patch
from .merge import check_resolved, merge_file, merge_patches

HASH_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class BinaryRef:
    """Reference to a whole-file payload, compared by content digest."""

    digest: str
    source: Path = field(compare=False)

    @classmethod
    def from_file(cls, path: Path) -> "BinaryRef":
        """Hash a file on disk."""
        sha = hashlib.sha256()
        with open(path, "rb") as file:
            for chunk in iter(lambda: file.read(HASH_CHUNK_SIZE), b""):
                sha.update(chunk)
        return cls(sha.hexdigest(), Path(path))


class Structured(ABC):
    """Base class for structured records.

    Subclasses provide the flattening (``to_map``), patch application
    (``apply_patch``), loading and rendering. Merging and resolution default
    to the generic per-path rules and may be overridden.
    """

    record_id: str

    @classmethod
    @abstractmethod
    def load(cls, path: Path) -> "Structured":
        """Read and parse a record from disk."""

    @abstractmethod
    def to_map(self) -> DataMap:
        """Flatten the record into its canonical map."""

    @abstractmethod
    def apply_patch(self, patch: Patch) -> None:
        """Apply a patch in place.

        Raises:
            ApplyError: If the patch names a path this record does not know.
        """

    @abstractmethod
    def render(self) -> str:
        """Serialize the record back into its on-disk text format."""

    def patched(self, patch: Patch) -> "Structured":
        """Return a patched copy, leaving this record untouched."""
        result = copy.deepcopy(self)
        result.apply_patch(patch)
        return result

    def try_merge_patches(self, contributions: Iterable[ModFileChange]) -> Tuple[Patch, Conflicts]:
        """Merge contributions using the generic per-path rule."""
        return merge_patches(contributions)

    def resolve_conflicts(self, file_path: str, conflicts: Conflicts, resolver) -> Patch:
        """Ask the resolver for a decision on every conflicted path."""
        resolved = resolver.resolve(file_path, conflicts, self.to_map())
        check_resolved(file_path, conflicts, resolved)
        return resolved

    def merge_contributions(
        self, file_path: str, contributions: Iterable[ModFileChange], resolver, report=None
    ) -> Patch:
        """Merge, resolve and re-merge, producing one conflict-free patch."""
        return merge_file(self, file_path, contributions, resolver, report)

    def deploy(self, path: Path) -> None:
        """Write the record to path."""
        path.write_text(self.render(), encoding="utf-8")

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return self.record_id == other.record_id and self.to_map() == other.to_map()

    __hash__ = None


GameDataItem = Union[BinaryRef, Structured]
GameData = Dict[str, GameDataItem]


def is_binary(item: GameDataItem) -> bool:
    return isinstance(item, BinaryRef)
