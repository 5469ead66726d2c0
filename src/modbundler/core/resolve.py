"""
Resolver boundary.

The engine never decides a genuine conflict on its own. It hands conflicts to
a Resolver and folds the answer back in. Implementations here are
deterministic: a policy that prefers one source by name, and a scripted
resolver reading answers from a YAML file. The interactive console resolver
lives in the CLI package.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq

from .diff import Conflict, Conflicts, DataMap, ItemChange, KeyPath, Patch, format_path, parse_path
from .errors import ResolutionAborted
from .values import GameDataValue, ValueKind
from ..utils.logging import get_logger

logger = get_logger("core.resolve")

REMOVED_MARKER = "<REMOVED>"
BINARY_KEY = "_binary"
BASE_KEY = "_base"
POLICIES = ("last", "first")
BINARY_REASON = "different binary files"
ADDED_REASON = "different versions of an added file"

SequenceValue = Union[List[str], str]
LevelValues = Dict[str, Optional[SequenceValue]]


@dataclass
class SequenceConflict:
    """A grouped conflict decided as one unit across several levels.

    Attributes:
        record_id: Record the conflict belongs to.
        group: Display path of the group, e.g. ("skills", "smite", "effects").
        levels: Level keys in display order.
        original: Baseline value per level (None if absent).
        options: Per source, the value per level that source would produce.
    """

    record_id: str
    group: KeyPath
    levels: List[str]
    original: LevelValues
    options: Dict[str, LevelValues] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return format_path(self.group)


class Resolver(ABC):
    """Turns conflicts into decisions."""

    @abstractmethod
    def resolve(self, file_path: str, conflicts: Conflicts, original: DataMap) -> Patch:
        """Return a change for every conflicted path.

        Args:
            file_path: File the conflicts belong to.
            conflicts: Conflicted paths with the disagreeing changes.
            original: Canonical map of the baseline record.
        """

    @abstractmethod
    def resolve_sequence(self, file_path: str, conflict: SequenceConflict) -> LevelValues:
        """Choose the value of a grouped conflict for every level.

        Levels missing from the answer keep their baseline value; None removes
        the value on that level.
        """

    @abstractmethod
    def choose_source(self, file_path: str, sources: List[str], reason: str) -> str:
        """Pick which source's version of a whole file is used."""


def _pick(names: List[str], policy: str) -> str:
    ordered = sorted(names)
    return ordered[-1] if policy == "last" else ordered[0]


class PolicyResolver(Resolver):
    """Resolve every conflict in favour of one source chosen by name order."""

    def __init__(self, policy: str = "last") -> None:
        if policy not in POLICIES:
            raise ValueError(f"Unknown resolution policy: {policy}")
        self.policy = policy

    def _choose(self, changes: Conflict) -> ItemChange:
        source = _pick([name for name, _ in changes], self.policy)
        return next(change for name, change in changes if name == source)

    def resolve(self, file_path: str, conflicts: Conflicts, original: DataMap) -> Patch:
        resolved: Patch = {}
        for path, changes in conflicts.items():
            resolved[path] = self._choose(changes)
            logger.debug(f"[resolve] {file_path}: {format_path(path)} -> {resolved[path]}")
        return resolved

    def resolve_sequence(self, file_path: str, conflict: SequenceConflict) -> LevelValues:
        source = _pick(list(conflict.options), self.policy)
        logger.debug(f"[resolve] {file_path}: {conflict.title} taken from {source}")
        return dict(conflict.options[source])

    def choose_source(self, file_path: str, sources: List[str], reason: str) -> str:
        source = _pick(sources, self.policy)
        logger.debug(f"[resolve] {file_path}: using {source} ({reason})")
        return source


def value_from_answer(answer: Any, template: Optional[GameDataValue]) -> ItemChange:
    """Convert a scripted answer into an item change.

    The template (baseline value, or one of the conflicting values) decides
    the kind the answer is parsed into. Without a template the answer is
    wrapped according to its Python type.
    """
    if answer == REMOVED_MARKER:
        return ItemChange.removed()
    if template is None:
        return ItemChange.set(GameDataValue.from_python(answer))
    if template.kind is ValueKind.NEXT:
        return ItemChange.set(GameDataValue.next_(str(answer) if answer else None))
    if template.kind is ValueKind.BOOL and isinstance(answer, bool):
        return ItemChange.set(GameDataValue.bool_(answer))
    return ItemChange.set(template.parse_replace(str(answer)))


class ScriptedResolver(Resolver):
    """Resolver answering from a prepared mapping, usually loaded from YAML.

    The mapping goes from file path to a mapping of formatted key path to
    answer. An answer is a value, ``<REMOVED>``, ``{"source": name}`` to take
    one source's change, or for grouped conflicts a mapping from level to
    value. ``_binary`` and ``_base`` select the source of a whole file.
    Anything without an answer goes to the fallback resolver, if one is set.
    """

    def __init__(self, answers: Mapping[str, Mapping[str, Any]], fallback: Optional[Resolver] = None) -> None:
        self.answers: Dict[str, Dict[KeyPath, Any]] = {
            str(path): {parse_path(str(key)): answer for key, answer in (entries or {}).items()}
            for path, entries in answers.items()
        }
        self.fallback = fallback

    @classmethod
    def from_file(cls, path: Path, fallback: Optional[Resolver] = None) -> "ScriptedResolver":
        """Load answers from a YAML file."""
        yaml = YAML(typ="rt")
        with open(path, "r", encoding="utf-8") as file:
            data = yaml.load(file) or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"Resolutions file {path} must contain a mapping")
        logger.info(f"Loaded scripted resolutions for {len(data)} files from {path}")
        return cls(data, fallback)

    def _file_answers(self, file_path: str) -> Dict[KeyPath, Any]:
        return self.answers.get(file_path, {})

    def resolve(self, file_path: str, conflicts: Conflicts, original: DataMap) -> Patch:
        answers = self._file_answers(file_path)
        resolved: Patch = {}
        unanswered: Conflicts = {}
        for path, changes in conflicts.items():
            if path not in answers:
                unanswered[path] = changes
                continue
            answer = answers[path]
            if isinstance(answer, Mapping) and "source" in answer:
                chosen = [change for name, change in changes if name == answer["source"]]
                if not chosen:
                    raise ValueError(f"{file_path}: {format_path(path)}: source {answer['source']!r} is not in conflict")
                resolved[path] = chosen[0]
                continue
            template = original.get(path)
            if template is None:
                template = next((change.value for _, change in changes if not change.is_removed), None)
            resolved[path] = value_from_answer(answer, template)

        if unanswered and self.fallback is not None:
            resolved.update(self.fallback.resolve(file_path, unanswered, original))
        return resolved

    def resolve_sequence(self, file_path: str, conflict: SequenceConflict) -> LevelValues:
        answers = self._file_answers(file_path)
        answer = answers.get(conflict.group)
        if answer is None:
            if self.fallback is None:
                raise ResolutionAborted(f"No scripted answer for {file_path}: {conflict.title}")
            return self.fallback.resolve_sequence(file_path, conflict)
        if isinstance(answer, Mapping) and "source" in answer:
            if answer["source"] not in conflict.options:
                raise ValueError(f"{file_path}: {conflict.title}: source {answer['source']!r} is not in conflict")
            return dict(conflict.options[answer["source"]])
        if not isinstance(answer, Mapping):
            raise ValueError(f"{file_path}: {conflict.title}: expected a mapping from level to value")
        result: LevelValues = {}
        for level, value in answer.items():
            if value == REMOVED_MARKER:
                result[str(level)] = None
            elif isinstance(value, list):
                result[str(level)] = [str(item) for item in value]
            else:
                result[str(level)] = str(value)
        return result

    def choose_source(self, file_path: str, sources: List[str], reason: str) -> str:
        answers = self._file_answers(file_path)
        key = BINARY_KEY if reason == BINARY_REASON else BASE_KEY
        if (key,) in answers:
            choice = answers[(key,)]
            if choice not in sources:
                raise ValueError(f"{file_path}: {key} names unknown source {choice!r}")
            return choice
        if self.fallback is None:
            raise ResolutionAborted(f"No scripted source choice for {file_path}")
        return self.fallback.choose_source(file_path, sources, reason)


def answer_for(change: ItemChange) -> Any:
    """Render an item change as a scripted answer."""
    if change.is_removed:
        return REMOVED_MARKER
    value = change.value
    if value.kind is ValueKind.FLOAT:
        return float(format(value.raw, ".7g"))
    if value.kind is ValueKind.NEXT:
        return value.raw or ""
    return value.raw


def _level_answer(value: Optional[SequenceValue]) -> Any:
    if value is None:
        return REMOVED_MARKER
    if isinstance(value, list):
        seq = CommentedSeq(value)
        seq.fa.set_flow_style()
        return seq
    return value


class RecordingResolver(Resolver):
    """Resolver that records every pending decision instead of making one.

    Used for dry runs: decisions are delegated to the inner resolver so the
    run can continue, while every conflict is kept for the template writer.
    """

    def __init__(self, inner: Resolver) -> None:
        self.inner = inner
        self.conflicts: Dict[str, Conflicts] = {}
        self.sequences: Dict[str, List[SequenceConflict]] = {}
        self.choices: Dict[str, Tuple[List[str], str]] = {}

    def resolve(self, file_path: str, conflicts: Conflicts, original: DataMap) -> Patch:
        self.conflicts.setdefault(file_path, {}).update(conflicts)
        return self.inner.resolve(file_path, conflicts, original)

    def resolve_sequence(self, file_path: str, conflict: SequenceConflict) -> LevelValues:
        self.sequences.setdefault(file_path, []).append(conflict)
        return self.inner.resolve_sequence(file_path, conflict)

    def choose_source(self, file_path: str, sources: List[str], reason: str) -> str:
        self.choices[file_path] = (list(sources), reason)
        return self.inner.choose_source(file_path, sources, reason)

    @property
    def pending(self) -> int:
        return (
            sum(len(conflicts) for conflicts in self.conflicts.values())
            + sum(len(groups) for groups in self.sequences.values())
            + len(self.choices)
        )

    def to_template(self) -> CommentedMap:
        """Build a resolutions document answering every recorded decision.

        Each answer is pre-filled with the alphabetically last source's
        option; the options of every source are listed in a comment.
        """
        template = CommentedMap()
        files = sorted(set(self.conflicts) | set(self.sequences) | set(self.choices))
        for file_path in files:
            entries = CommentedMap()
            if file_path in self.choices:
                sources, reason = self.choices[file_path]
                key = BINARY_KEY if reason == BINARY_REASON else BASE_KEY
                entries[key] = _pick(sources, "last")
                entries.yaml_add_eol_comment(f"one of: {', '.join(sources)}", key)
            for conflict in self.sequences.get(file_path, []):
                source = _pick(list(conflict.options), "last")
                levels = CommentedMap()
                for level in conflict.levels:
                    levels[level] = _level_answer(conflict.options[source].get(level))
                entries[conflict.title] = levels
                entries.yaml_add_eol_comment(
                    f"from {source}; options: {', '.join(conflict.options)}", conflict.title
                )
            for path, changes in self.conflicts.get(file_path, {}).items():
                key = format_path(path)
                if key in entries:
                    continue
                entries[key] = answer_for(changes[-1][1])
                entries.yaml_add_eol_comment(
                    "; ".join(f"{source}: {change}" for source, change in changes), key
                )
            template[file_path] = entries
        return template

    def write_template(self, path: Path) -> None:
        """Write the resolutions template as YAML."""
        yaml = YAML(typ="rt")
        yaml.indent(mapping=2, sequence=4, offset=2)
        with open(path, "w", encoding="utf-8") as file:
            yaml.dump(self.to_template(), file)
        logger.info(f"Wrote {self.pending} pending decisions to {path}")
