"""
Localization string tables (``localization/**/*.string_table.xml``).

File layout::

    <root>
      <language id="english">
        <entry id="str_key">Text</entry>
      </language>
    </root>

Canonical paths are (language, entry id). Merging gives a set from any
source priority over a removal: mixed set/remove edits always go to the
resolver, while distinct sets auto-merge when a strict majority agrees.
"""

import xml.etree.ElementTree as ET
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Tuple

from ..core.diff import Conflicts, DataMap, ModFileChange, Patch, format_path, sorted_map
from ..core.errors import ApplyError, ExtractionError, StructuralMismatchError
from ..core.merge import regroup
from ..core.records import Structured
from ..core.values import GameDataValue, ValueKind
from ..utils.logging import get_logger

logger = get_logger("data_types.localization")


@dataclass(eq=False)
class StringsTable(Structured):
    """Localized strings by language and entry id."""

    record_id: str
    languages: Dict[str, Dict[str, str]] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "StringsTable":
        try:
            tree = ET.parse(path)
        except (OSError, ET.ParseError) as e:
            raise ExtractionError(str(path), str(e)) from e
        return cls.from_element(path.name.split(".")[0], tree.getroot(), str(path))

    @classmethod
    def from_element(cls, record_id: str, root: ET.Element, source: str = "<string>") -> "StringsTable":
        """Build the table from a parsed ``<root>`` element."""
        if root.tag != "root":
            raise ExtractionError(source, f"expected <root>, found <{root.tag}>")
        languages: Dict[str, Dict[str, str]] = {}
        for language in root:
            if language.tag != "language" or "id" not in language.attrib:
                raise ExtractionError(source, f"unexpected element <{language.tag}> in string table")
            table = languages.setdefault(language.attrib["id"], {})
            for entry in language:
                if entry.tag != "entry" or "id" not in entry.attrib:
                    raise ExtractionError(source, f"unexpected element <{entry.tag}> in language")
                if entry.attrib["id"] in table:
                    logger.debug(f"{source}: duplicate entry {entry.attrib['id']}, keeping the last one")
                table[entry.attrib["id"]] = entry.text or ""
        return cls(record_id, languages)

    def to_map(self) -> DataMap:
        return sorted_map(
            ((language, entry_id), GameDataValue.string(text))
            for language, entries in self.languages.items()
            for entry_id, text in entries.items()
        )

    def apply_patch(self, patch: Patch) -> None:
        for path, change in patch.items():
            if len(path) != 2:
                raise ApplyError(self.record_id, path, "expected language / entry id")
            language, entry_id = path
            if change.is_removed:
                if entry_id not in self.languages.get(language, {}):
                    raise ApplyError(self.record_id, path, "removing an entry that does not exist")
                del self.languages[language][entry_id]
                continue
            value = change.unwrap_set()
            if value.kind is not ValueKind.STRING:
                raise StructuralMismatchError(self.record_id, path, f"expected string, got {value!r}")
            self.languages.setdefault(language, {})[entry_id] = value.raw

    def try_merge_patches(self, contributions: Iterable[ModFileChange]) -> Tuple[Patch, Conflicts]:
        merged: Patch = {}
        conflicts: Conflicts = {}
        for path, changes in regroup(contributions).items():
            if len(changes) == 1:
                merged[path] = changes[0][1]
                continue
            sets = [change for _, change in changes if not change.is_removed]
            if not sets:
                # Removal by every touching source still needs a decision.
                conflicts[path] = changes
            elif len(sets) < len(changes):
                conflicts[path] = changes
            else:
                value, votes = Counter(sets).most_common(1)[0]
                if votes * 2 > len(changes):
                    merged[path] = value
                    if votes < len(changes):
                        logger.debug(f"{format_path(path)}: majority of {votes}/{len(changes)} sources")
                else:
                    conflicts[path] = changes
        return merged, conflicts

    def render(self) -> str:
        root = ET.Element("root")
        for language in sorted(self.languages):
            language_element = ET.SubElement(root, "language", id=language)
            for entry_id in sorted(self.languages[language]):
                entry = ET.SubElement(language_element, "entry", id=entry_id)
                entry.text = self.languages[language][entry_id]
        ET.indent(root)
        body = ET.tostring(root, encoding="unicode")
        return f'<?xml version="1.0" encoding="utf-8"?>\n{body}\n'
