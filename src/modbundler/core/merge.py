"""
N-way merge of per-source patches touching one file.

The merger regroups every source's patch by key path, accepts paths touched
by a single source or changed identically by all of them, and reports every
other path as a conflict. Resolved conflicts are folded back in by merging
exactly two pseudo-sources, "auto-merged" and "resolved".
"""

from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .diff import Conflict, Conflicts, ItemChange, KeyPath, ModFileChange, Patch, format_path
from .errors import UnresolvedConflictError
from ..utils.logging import get_logger

logger = get_logger("core.merge")

MERGED_SOURCE = "auto-merged"
RESOLVED_SOURCE = "resolved"

MergeFunction = Callable[[Iterable[ModFileChange]], Tuple[Patch, Conflicts]]


def regroup(contributions: Iterable[ModFileChange]) -> Dict[KeyPath, Conflict]:
    """Collect, for every touched path, the (source, change) pairs touching it.

    Paths come out in key-path order and each list is ordered by source name,
    so the result does not depend on the order contributions are supplied in.
    """
    grouped: Dict[KeyPath, Conflict] = {}
    for source, patch in contributions:
        for path, change in patch.items():
            grouped.setdefault(path, []).append((source, change))
    return {
        path: sorted(changes, key=lambda pair: pair[0])
        for path, changes in sorted(grouped.items())
    }


def agreed_change(changes: Conflict) -> Optional[ItemChange]:
    """Return the common change if every source made the same one, else None."""
    first = changes[0][1]
    if all(change == first for _, change in changes[1:]):
        return first
    return None


def merge_patches(contributions: Iterable[ModFileChange]) -> Tuple[Patch, Conflicts]:
    """Merge per-source patches for one file.

    Args:
        contributions: (source name, patch) pairs.

    Returns:
        Tuple of (merged patch, conflicts). A path appears in exactly one of them.
    """
    merged: Patch = {}
    conflicts: Conflicts = {}
    for path, changes in regroup(contributions).items():
        change = agreed_change(changes)
        if change is not None:
            if len(changes) > 1:
                logger.debug(f"{format_path(path)}: {len(changes)} sources agree")
            merged[path] = change
        else:
            sources = ", ".join(source for source, _ in changes)
            logger.debug(f"{format_path(path)}: conflict between {sources}")
            conflicts[path] = changes
    return merged, conflicts


def merge_resolved(
    merged: Patch,
    resolved: Patch,
    file_path: str = "",
    merge_fn: Optional[MergeFunction] = None,
) -> Patch:
    """Fold the resolver's answer back into the automatically merged patch.

    Raises:
        UnresolvedConflictError: If the two pseudo-sources still conflict.
    """
    merge_fn = merge_fn or merge_patches
    final, leftover = merge_fn([(MERGED_SOURCE, merged), (RESOLVED_SOURCE, resolved)])
    if leftover:
        paths = ", ".join(format_path(path) for path in leftover)
        raise UnresolvedConflictError(file_path, f"conflicts remain after resolution: {paths}")
    return final


def check_resolved(file_path: str, conflicts: Conflicts, resolved: Patch) -> None:
    """Ensure the resolver returned a decision for every conflicted path.

    Raises:
        UnresolvedConflictError: Naming the first path left without a decision.
    """
    missing: List[KeyPath] = [path for path in conflicts if path not in resolved]
    if missing:
        raise UnresolvedConflictError(
            file_path, f"no decision for {format_path(missing[0])}"
        )


def merge_file(
    record,
    file_path: str,
    contributions: Iterable[ModFileChange],
    resolver,
    report=None,
) -> Patch:
    """Run the full merge for one structured file.

    The record supplies the merge rule (generic or specialized) and the
    conflict resolution protocol; the resolver supplies decisions.

    Args:
        record: Baseline structured record for the file.
        file_path: Relative path of the file, for logging and the resolver.
        contributions: (source name, patch) pairs.
        resolver: Resolver implementation.
        report: Optional BundleReport receiving every decision.

    Returns:
        Final conflict-free patch for the file.
    """
    contributions = list(contributions)
    merged, conflicts = record.try_merge_patches(contributions)
    logger.info(
        f"[merge] {file_path}: {len(contributions)} sources, "
        f"{len(merged)} paths merged, {len(conflicts)} conflicts"
    )
    if report is not None:
        sources = {path: [source for source, _ in changes] for path, changes in regroup(contributions).items()}
        report.record_merge(file_path, sources, merged)
        report.record_conflicts(file_path, conflicts)
    if not conflicts:
        return merged

    resolved = record.resolve_conflicts(file_path, conflicts, resolver)
    if report is not None:
        report.record_resolution(file_path, resolved)
    if not resolved:
        logger.warning(f"[merge] {file_path}: {len(conflicts)} conflicts resolved to the game values")
    return merge_resolved(merged, resolved, file_path, record.try_merge_patches)
