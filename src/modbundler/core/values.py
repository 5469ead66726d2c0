"""
Scalar values stored in canonical maps.

Every leaf of a flattened record is a GameDataValue: one of a closed set of
kinds (bool, 32-bit int, 32-bit float, string, next-pointer). Values are
immutable, hashable and totally ordered, so they can live in sorted
containers and be compared structurally by the merger.
"""

import math
import struct
from enum import Enum
from functools import total_ordering
from typing import Any, Optional, Tuple

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class ValueKind(Enum):
    """Kinds of scalar values, in their sort order."""

    BOOL = 0
    INT = 1
    FLOAT = 2
    STRING = 3
    NEXT = 4


def to_f32(value: float) -> float:
    """Round a Python float to the nearest 32-bit float."""
    return struct.unpack("f", struct.pack("f", value))[0]


@total_ordering
class GameDataValue:
    """A single scalar value at a key path."""

    __slots__ = ("kind", "raw")

    def __init__(self, kind: ValueKind, raw: Any) -> None:
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "raw", raw)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("GameDataValue is immutable")

    @classmethod
    def bool_(cls, value: bool) -> "GameDataValue":
        return cls(ValueKind.BOOL, bool(value))

    @classmethod
    def int_(cls, value: int) -> "GameDataValue":
        if not INT32_MIN <= value <= INT32_MAX:
            raise ValueError(f"Integer {value} does not fit into 32 bits")
        return cls(ValueKind.INT, int(value))

    @classmethod
    def float_(cls, value: float) -> "GameDataValue":
        return cls(ValueKind.FLOAT, to_f32(float(value)))

    @classmethod
    def string(cls, value: str) -> "GameDataValue":
        return cls(ValueKind.STRING, str(value))

    @classmethod
    def next_(cls, value: Optional[str]) -> "GameDataValue":
        """Next-pointer used by ordered chains; None marks the last element."""
        return cls(ValueKind.NEXT, value)

    @classmethod
    def from_python(cls, value: Any) -> "GameDataValue":
        """Wrap a plain Python scalar, picking the kind from its type."""
        if isinstance(value, GameDataValue):
            return value
        if isinstance(value, bool):
            return cls.bool_(value)
        if isinstance(value, int):
            return cls.int_(value)
        if isinstance(value, float):
            return cls.float_(value)
        if isinstance(value, str):
            return cls.string(value)
        raise TypeError(f"Unsupported scalar type: {type(value).__name__}")

    def sort_key(self) -> Tuple:
        """Total-order key: kind first, then value; NaN sorts above every float."""
        if self.kind is ValueKind.FLOAT:
            if math.isnan(self.raw):
                return (self.kind.value, 1, 0.0)
            return (self.kind.value, 0, self.raw)
        if self.kind is ValueKind.NEXT:
            # None (end of chain) sorts before any successor.
            if self.raw is None:
                return (self.kind.value, 0, "")
            return (self.kind.value, 1, self.raw)
        return (self.kind.value, self.raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GameDataValue):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other: "GameDataValue") -> bool:
        if not isinstance(other, GameDataValue):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __hash__(self) -> int:
        return hash(self.sort_key())

    def __repr__(self) -> str:
        return f"{self.kind.name.capitalize()}({self.raw!r})"

    def __str__(self) -> str:
        if self.kind is ValueKind.BOOL:
            return "true" if self.raw else "false"
        if self.kind is ValueKind.NEXT:
            return self.raw or ""
        return str(self.raw)

    def _expect(self, kind: ValueKind) -> Any:
        if self.kind is not kind:
            raise TypeError(f"Expected {kind.name.lower()}, got {self!r}")
        return self.raw

    def unwrap_bool(self) -> bool:
        return self._expect(ValueKind.BOOL)

    def unwrap_int(self) -> int:
        return self._expect(ValueKind.INT)

    def unwrap_float(self) -> float:
        return self._expect(ValueKind.FLOAT)

    def unwrap_string(self) -> str:
        return self._expect(ValueKind.STRING)

    def unwrap_next(self) -> Optional[str]:
        return self._expect(ValueKind.NEXT)

    def parse_replace(self, text: str) -> "GameDataValue":
        """Parse user input into a new value of the same kind.

        Args:
            text: Textual representation, e.g. from a resolution prompt.

        Returns:
            New value with this value's kind.

        Raises:
            ValueError: If the text cannot be parsed into this kind.
        """
        text = text.strip() if self.kind is not ValueKind.STRING else text
        if self.kind is ValueKind.BOOL:
            lowered = text.lower()
            if lowered not in ("true", "false"):
                raise ValueError(f"Not a boolean: {text!r}")
            return GameDataValue.bool_(lowered == "true")
        if self.kind is ValueKind.INT:
            return GameDataValue.int_(int(text))
        if self.kind is ValueKind.FLOAT:
            return GameDataValue.float_(float(text))
        if self.kind is ValueKind.STRING:
            return GameDataValue.string(text)
        raise ValueError("Next-pointer values cannot be parsed from text")
