"""
Per-source classification of mod files against the baseline.

Every file a mod ships ends up in exactly one bucket: a binary replacement,
an added structured record, or a patch against the baseline record. Files
identical to the baseline are dropped.
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping

from ..utils.logging import get_logger
from .diff import Patch, diff
from .errors import PER_FILE_ERRORS, BundlerError, SourceKindMismatchError
from .records import BinaryRef, GameData, Structured, is_binary

logger = get_logger("core.classify")


@dataclass
class ModContent:
    """Everything one mod contributes, sorted into binary, added and modified files."""

    name: str
    binary: Dict[str, BinaryRef] = field(default_factory=dict)
    text_added: Dict[str, Structured] = field(default_factory=dict)
    text_modified: Dict[str, Patch] = field(default_factory=dict)
    errors: Dict[str, BundlerError] = field(default_factory=dict)

    def touched(self) -> Dict[str, str]:
        """Map every path this mod contributes to its bucket name."""
        kinds = {path: "binary" for path in self.binary}
        kinds.update({path: "added" for path in self.text_added})
        kinds.update({path: "modified" for path in self.text_modified})
        return kinds

    def added_to_modified(self, base: Mapping[str, Structured]) -> None:
        """Re-diff added files against the chosen base versions.

        Once one version of an added file is accepted as the base, every
        other source's version of it is a modification of that base.

        Args:
            base: Chosen base record per added path.
        """
        for path in [path for path in self.text_added if path in base]:
            record = self.text_added.pop(path)
            try:
                patch = diff(base[path].to_map(), record.to_map())
            except PER_FILE_ERRORS as e:
                logger.error(f"{self.name}: {path}: {e}")
                self.errors[path] = e
                continue
            if patch:
                logger.debug(f"{self.name}: {path} becomes a patch of {len(patch)} paths")
                self.text_modified[path] = patch


def classify_mod(name: str, baseline: GameData, content: GameData) -> ModContent:
    """Sort a mod's loaded files against the baseline.

    Args:
        name: Mod name, used as the source name in merges.
        baseline: Game data with DLCs applied.
        content: Files loaded from the mod.

    Returns:
        The classified ModContent. Files whose kind differs from the baseline, or
        whose records cannot be flattened, are put into ``errors`` instead of
        failing the whole mod.
    """
    result = ModContent(name)
    for path, item in content.items():
        original = baseline.get(path)
        if original is None:
            if is_binary(item):
                result.binary[path] = item
            else:
                result.text_added[path] = item
            continue

        if is_binary(item) and is_binary(original):
            if item == original:
                logger.debug(f"{name}: {path} is identical to the game file, skipping")
            else:
                result.binary[path] = item
        elif not is_binary(item) and not is_binary(original) and type(item) is type(original):
            try:
                patch = diff(original.to_map(), item.to_map())
            except PER_FILE_ERRORS as e:
                logger.error(f"{name}: {path}: {e}")
                result.errors[path] = e
                continue
            if patch:
                result.text_modified[path] = patch
            else:
                logger.debug(f"{name}: {path} has no changes, skipping")
        else:
            error = SourceKindMismatchError(
                path, f"{name} provides {type(item).__name__}, game has {type(original).__name__}"
            )
            logger.error(str(error))
            result.errors[path] = error

    logger.info(
        f"Mod {name}: {len(result.binary)} binary, {len(result.text_added)} added, "
        f"{len(result.text_modified)} modified files"
    )
    return result
