"""
Parser and writer for the Darkest key/subkey/value text format.

A file is a sequence of entries::

    key: .subkey value value .other_subkey "quoted value"  // comment

Keys and subkeys are identifiers (a letter followed by letters, digits or
underscores). Values are double-quoted strings, kept with their quotes, or
runs of non-whitespace characters. ``//`` starts a comment running to the end
of the line.
"""

import re
from typing import Dict, Iterator, List, Tuple

KEY_RE = re.compile(r"[A-Za-z][A-Za-z0-9_]*:")
SUBKEY_RE = re.compile(r"\.[A-Za-z][A-Za-z0-9_]*")
TOKEN_RE = re.compile(
    r'(?P<space>\s+)|(?P<comment>//[^\r\n]*)|(?P<string>"[^"]*")|(?P<word>[^\s"]+)|(?P<unterminated>")'
)


class DarkestParseError(ValueError):
    """Syntax error in a Darkest file, with its position."""

    def __init__(self, message: str, line: int, column: int) -> None:
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, column {column}")


class DarkestEntry(Dict[str, List[str]]):
    """Values of one entry, by subkey, in file order."""

    def first(self, subkey: str) -> str:
        """Return the first value of a subkey.

        Raises:
            KeyError: If the subkey is missing or has no values.
        """
        values = self.get(subkey)
        if not values:
            raise KeyError(subkey)
        return values[0]

    def __str__(self) -> str:
        return " ".join(
            " ".join([f".{subkey}"] + values) for subkey, values in self.items()
        )


def _position(text: str, offset: int) -> Tuple[int, int]:
    line = text.count("\n", 0, offset) + 1
    column = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, column


def _tokens(text: str) -> Iterator[Tuple[str, str, int]]:
    """Yield (kind, token, offset) for every meaningful token."""
    for match in TOKEN_RE.finditer(text):
        kind = match.lastgroup
        if kind in ("space", "comment"):
            continue
        if kind == "unterminated":
            raise DarkestParseError("Unterminated string", *_position(text, match.start()))
        token = match.group()
        if kind == "word" and KEY_RE.fullmatch(token):
            kind = "key"
        elif kind == "word" and SUBKEY_RE.fullmatch(token):
            kind = "subkey"
        else:
            kind = "value"
        yield kind, token, match.start()


def parse_darkest(text: str) -> List[Tuple[str, DarkestEntry]]:
    """Parse a Darkest file into (key, entry) pairs, in file order.

    Args:
        text: Whole file content.

    Returns:
        List of entries; the same key may appear many times.

    Raises:
        DarkestParseError: On a value outside any subkey, a value before the
            first key, an entry without subkeys or an unterminated string.
    """
    entries: List[Tuple[str, DarkestEntry]] = []
    current = None
    subkey = None
    key_offset = 0
    for kind, token, offset in _tokens(text):
        if kind == "key":
            if current is not None and not current[1]:
                raise DarkestParseError("Entry without subkeys", *_position(text, key_offset))
            current = (token[:-1], DarkestEntry())
            entries.append(current)
            subkey = None
            key_offset = offset
        elif current is None:
            raise DarkestParseError(f"Expected key, found {token!r}", *_position(text, offset))
        elif kind == "subkey":
            subkey = token[1:]
            current[1][subkey] = []
        elif subkey is None:
            raise DarkestParseError(f"Expected subkey, found value {token!r}", *_position(text, offset))
        else:
            current[1][subkey].append(token)
    if current is not None and not current[1]:
        raise DarkestParseError("Entry without subkeys", *_position(text, key_offset))
    return entries


def split_values(text: str) -> List[str]:
    """Split a line of values the way the parser would, keeping quotes."""
    values = []
    for kind, token, offset in _tokens(text):
        if kind != "value":
            raise DarkestParseError(f"Expected value, found {token!r}", *_position(text, offset))
        values.append(token)
    return values


def format_entry(key: str, entry: DarkestEntry) -> str:
    """Render one entry as a single line."""
    return f"{key}: {entry}"
