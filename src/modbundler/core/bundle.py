"""
The bundling pipeline.

Mods are classified against the baseline, then processed in three passes:
binary files (one source wins per path), added structured files (one version
becomes the base, the others are re-diffed against it) and modified
structured files (N-way merge per file, conflicts handed to the resolver).
Final patches are applied to the baseline records to produce the bundle.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..utils.logging import get_logger
from .classify import ModContent, classify_mod
from .conflict_report import BASE_CHOICE, BINARY_CHOICE, BundleReport
from .diff import ModFileChange, Patch
from .errors import PER_FILE_ERRORS, BundlerError, SourceKindMismatchError
from .loader import Mod, OnLoad, load_game, load_mod
from .records import BinaryRef, GameData, Structured, is_binary
from .resolve import ADDED_REASON, BINARY_REASON, Resolver

logger = get_logger("core.bundle")


@dataclass
class BundleResult:
    """Outcome of a bundling run.

    Attributes:
        files: Deployable items by relative path.
        errors: Per-file errors; these files are left out of ``files``.
        report: Every decision taken during the run.
    """

    files: GameData = field(default_factory=dict)
    errors: Dict[str, BundlerError] = field(default_factory=dict)
    report: BundleReport = field(default_factory=BundleReport)

    @property
    def ok(self) -> bool:
        return not self.errors


def apply_patches(
    base: Mapping[str, Structured],
    patches: Mapping[str, Patch],
    errors: Optional[Dict[str, BundlerError]] = None,
) -> Dict[str, Structured]:
    """Apply final patches to their baseline records.

    Args:
        base: Baseline record per path.
        patches: Final patch per path.
        errors: If given, per-file errors are collected here instead of raised.

    Returns:
        Patched copies of the records; the baseline is left untouched.
    """
    patched: Dict[str, Structured] = {}
    for path, patch in patches.items():
        try:
            patched[path] = base[path].patched(patch)
        except PER_FILE_ERRORS as e:
            if errors is None:
                raise
            logger.error(f"Cannot apply patch to {path}: {e}")
            errors[path] = e
    return patched


class Bundler:
    """Runs the merge pipeline over a baseline and a set of mods."""

    def __init__(self, resolver: Resolver, report: Optional[BundleReport] = None) -> None:
        self.resolver = resolver
        self.report = report if report is not None else BundleReport()

    def bundle(self, game: GameData, mods: Mapping[str, GameData]) -> BundleResult:
        """Bundle loaded mod data on top of the loaded game data.

        Args:
            game: Baseline game data (DLCs applied).
            mods: Loaded files per mod name. Mods are processed in name order.

        Returns:
            BundleResult with the deployable files and per-file errors.

        Raises:
            UnresolvedConflictError: If the resolver left a conflict undecided.
            ResolutionAborted: If the resolver gave up; nothing must be deployed.
        """
        contents = [classify_mod(name, game, mods[name]) for name in sorted(mods)]
        errors: Dict[str, BundlerError] = {}
        for content in contents:
            for path, error in content.errors.items():
                self._fail(errors, path, error)
        self._check_kinds(contents, errors)

        binaries = self._resolve_binaries(contents)
        added = self._resolve_added(contents, errors)
        for content in contents:
            content.added_to_modified(added)
        for content in contents:
            for path, error in content.errors.items():
                if path not in errors:
                    self._fail(errors, path, error)
                    added.pop(path, None)
        self._drop_failed(contents, errors)

        base: Dict[str, Structured] = {
            path: item for path, item in game.items() if not is_binary(item)
        }
        base.update(added)
        patches = self._merge_modified(base, contents, errors)

        apply_errors: Dict[str, BundlerError] = {}
        files: GameData = {}
        files.update(binaries)
        files.update(added)
        files.update(apply_patches(base, patches, apply_errors))
        for path, error in apply_errors.items():
            self._fail(errors, path, error)
        for path in errors:
            files.pop(path, None)

        logger.info(f"Bundle ready: {len(files)} files, {len(errors)} failed")
        return BundleResult(dict(sorted(files.items())), errors, self.report)

    def _fail(self, errors: Dict[str, BundlerError], path: str, error: BundlerError) -> None:
        logger.error(f"{path}: {error}")
        errors[path] = error
        self.report.record_error(path, error)

    def _check_kinds(self, contents: List[ModContent], errors: Dict[str, BundlerError]) -> None:
        """Fail paths that are binary in one mod and structured in another."""
        kinds: Dict[str, Dict[str, str]] = {}
        for content in contents:
            for path, kind in content.touched().items():
                kinds.setdefault(path, {})[content.name] = kind
        for path, by_mod in sorted(kinds.items()):
            binary = sorted(name for name, kind in by_mod.items() if kind == "binary")
            if not binary or len(binary) == len(by_mod):
                continue
            text = sorted(name for name in by_mod if name not in binary)
            self._fail(errors, path, SourceKindMismatchError(
                path, f"binary in {', '.join(binary)}, structured in {', '.join(text)}"
            ))
        self._drop_failed(contents, errors)

    def _drop_failed(self, contents: List[ModContent], errors: Dict[str, BundlerError]) -> None:
        """Leave every failed file out of the bundle entirely."""
        for content in contents:
            for path in errors:
                content.binary.pop(path, None)
                content.text_added.pop(path, None)
                content.text_modified.pop(path, None)

    def _resolve_binaries(self, contents: List[ModContent]) -> Dict[str, BinaryRef]:
        by_path: Dict[str, Dict[str, BinaryRef]] = {}
        for content in contents:
            for path, ref in content.binary.items():
                by_path.setdefault(path, {})[content.name] = ref

        chosen: Dict[str, BinaryRef] = {}
        for path, refs in sorted(by_path.items()):
            names = sorted(refs)
            if len(set(refs.values())) == 1:
                chosen[path] = refs[names[0]]
                continue
            logger.info(f"[binary] {path}: {len(names)} different versions")
            source = self.resolver.choose_source(path, names, BINARY_REASON)
            self.report.record_choice(path, BINARY_CHOICE, names, source)
            chosen[path] = refs[source]
        return chosen

    def _resolve_added(
        self, contents: List[ModContent], errors: Dict[str, BundlerError]
    ) -> Dict[str, Structured]:
        by_path: Dict[str, Dict[str, Structured]] = {}
        for content in contents:
            for path, record in content.text_added.items():
                by_path.setdefault(path, {})[content.name] = record

        chosen: Dict[str, Structured] = {}
        for path, records in sorted(by_path.items()):
            names = sorted(records)
            first = records[names[0]]
            try:
                identical = all(records[name] == first for name in names[1:])
            except PER_FILE_ERRORS as e:
                self._fail(errors, path, e)
                continue
            if identical:
                chosen[path] = first
                continue
            logger.info(f"[added] {path}: {len(names)} different versions")
            source = self.resolver.choose_source(path, names, ADDED_REASON)
            self.report.record_choice(path, BASE_CHOICE, names, source)
            chosen[path] = records[source]
        return chosen

    def _merge_modified(
        self,
        base: Mapping[str, Structured],
        contents: List[ModContent],
        errors: Dict[str, BundlerError],
    ) -> Dict[str, Patch]:
        by_path: Dict[str, List[ModFileChange]] = {}
        for content in contents:
            for path, patch in content.text_modified.items():
                by_path.setdefault(path, []).append((content.name, patch))

        patches: Dict[str, Patch] = {}
        for path, contributions in sorted(by_path.items()):
            record = base.get(path)
            if record is None:
                self._fail(errors, path, SourceKindMismatchError(path, "modified file has no structured base"))
                continue
            try:
                patch = record.merge_contributions(path, contributions, self.resolver, self.report)
            except PER_FILE_ERRORS as e:
                self._fail(errors, path, e)
                continue
            if patch:
                patches[path] = patch
            else:
                logger.debug(f"{path}: merged patch is empty, keeping the base file")
        return patches


def load_and_bundle(
    game_path: Path,
    mods: List[Mod],
    resolver: Resolver,
    report: Optional[BundleReport] = None,
    on_load: Optional[OnLoad] = None,
) -> BundleResult:
    """Load the game and the selected mods from disk and bundle them."""
    game = load_game(game_path, on_load)
    logger.info("Vanilla game data extracted")
    loaded = {mod.name: load_mod(mod, on_load) for mod in sorted(mods, key=lambda mod: mod.name)}
    return Bundler(resolver, report).bundle(game, loaded)
