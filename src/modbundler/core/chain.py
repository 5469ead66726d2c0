"""
Ordered-collection codec.

An ordered list of strings is stored as successor facts rather than indexed
positions. The head fact lives at the field prefix itself and points at the
first element; every element X lives at ``prefix + (X,)`` and points at its
successor, or at nothing if X is last. Independent insertions at different
places then touch different keys and merge without conflict, while two
insertions after the same element collide on that element's key.

Unordered lists use the simpler set encoding: ``prefix + (X,) -> String(X)``.
"""

from typing import Dict, Iterable, List, Mapping, Sequence

from .diff import DataMap, KeyPath, Patch, apply_to_map, format_path
from .errors import ApplyError, MalformedChainError
from .values import GameDataValue, ValueKind
from ..utils.logging import get_logger

logger = get_logger("core.chain")


def sub_map(data: Mapping[KeyPath, object], prefix: KeyPath) -> Dict[KeyPath, object]:
    """Return entries under prefix, with the prefix stripped from their paths.

    Works for canonical maps and patches alike. The entry at the prefix itself,
    if any, appears under the empty path.
    """
    size = len(prefix)
    return {path[size:]: value for path, value in data.items() if path[:size] == prefix}


def encode_chain(items: Sequence[str], record_id: str = "", field: str = "") -> DataMap:
    """Encode an ordered list as successor facts relative to the field prefix.

    Args:
        items: Ordered, duplicate-free list of elements.
        record_id: Owning record, used in error messages.
        field: Field name, used in error messages.

    Returns:
        Relative canonical map; an empty list still yields the head fact.

    Raises:
        MalformedChainError: If an element appears twice.
    """
    out: DataMap = {}
    previous: KeyPath = ()
    for item in items:
        if (item,) in out or (item,) == previous:
            raise MalformedChainError(record_id, field, f"duplicate element {item!r}")
        out[previous] = GameDataValue.next_(item)
        previous = (item,)
    out[previous] = GameDataValue.next_(None)
    return dict(sorted(out.items()))


def decode_chain(facts: Mapping[KeyPath, GameDataValue], record_id: str = "", field: str = "") -> List[str]:
    """Rebuild the ordered list from its successor facts.

    A fact set with no entries at all decodes to an empty list, which is how an
    absent optional field looks after every fact was removed.

    Raises:
        MalformedChainError: On a missing head, cycle, dangling successor,
            unreachable facts or a value that is not a next-pointer.
    """
    if not facts:
        return []
    for path, value in facts.items():
        if len(path) > 1:
            raise MalformedChainError(record_id, field, f"unexpected nested path {format_path(path)}")
        if value.kind is not ValueKind.NEXT:
            raise MalformedChainError(record_id, field, f"{value!r} is not a successor pointer")
    if () not in facts:
        raise MalformedChainError(record_id, field, "no head element")

    out: List[str] = []
    seen = set()
    current = facts[()].unwrap_next()
    while current is not None:
        if current in seen:
            raise MalformedChainError(record_id, field, f"cycle detected at {current!r}")
        if (current,) not in facts:
            raise MalformedChainError(record_id, field, f"dangling successor {current!r}")
        seen.add(current)
        out.append(current)
        current = facts[(current,)].unwrap_next()

    unreachable = sorted(path[0] for path in facts if path and path[0] not in seen)
    if unreachable:
        raise MalformedChainError(
            record_id, field, f"elements not reachable from head: {', '.join(unreachable)}"
        )
    return out


def patch_chain(items: Sequence[str], patch: Patch, record_id: str = "", field: str = "") -> List[str]:
    """Apply a relative patch to an ordered list and decode the result."""
    facts = apply_to_map(encode_chain(items, record_id, field), patch)
    result = decode_chain(facts, record_id, field)
    logger.debug(f"Patched chain {record_id}/{field}: {len(items)} -> {len(result)} elements")
    return result


def encode_set(items: Iterable[str]) -> DataMap:
    """Encode an unordered collection of strings."""
    return {(item,): GameDataValue.string(item) for item in sorted(set(items))}


def patch_set(items: Iterable[str], patch: Patch, record_id: str = "", prefix: KeyPath = ()) -> List[str]:
    """Apply a relative patch to an unordered collection.

    Raises:
        ApplyError: If the patch path is not a single element, or removes an
            element that is not present.
    """
    result = list(dict.fromkeys(items))
    for path, change in patch.items():
        if len(path) != 1:
            raise ApplyError(record_id, prefix + path, "set elements must be one segment deep")
        element = path[0]
        if change.is_removed:
            if element not in result:
                raise ApplyError(record_id, prefix + path, "removing an element that is not present")
            result.remove(element)
        else:
            value = change.unwrap_set()
            if value.kind is not ValueKind.STRING or value.raw != element:
                raise ApplyError(record_id, prefix + path, f"set element stores {value!r}")
            if element not in result:
                result.append(element)
    return result
