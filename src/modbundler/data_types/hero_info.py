"""
Hero information records (``heroes/<id>/<id>.info.darkest``).

The record is flattened into sections, one per top-level path segment.
Patches are applied section by section: the section's canonical map is
patched and the section is rebuilt from it, which validates every path and
value kind on the way.

Combat skills get a grouped merge rule: every (skill, field) pair is decided
once across all of the skill's levels, so a conflict on one level pulls the
same field on every level into the conflict set.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.chain import decode_chain, encode_chain, encode_set, patch_chain, patch_set, sub_map
from ..core.diff import (
    Conflicts,
    DataMap,
    KeyPath,
    ModFileChange,
    Patch,
    apply_to_map,
    diff,
    extend_prefixed,
    format_path,
    key_path,
    sorted_map,
)
from ..core.errors import ApplyError, ExtractionError, StructuralMismatchError
from ..core.merge import agreed_change, check_resolved, regroup
from ..core.records import Structured
from ..core.resolve import LevelValues, SequenceConflict
from ..core.values import GameDataValue, ValueKind, to_f32
from ..file_types.darkest import DarkestEntry, DarkestParseError, format_entry, parse_darkest, split_values
from ..utils.logging import get_logger

logger = get_logger("data_types.hero_info")

RESISTANCES = ("stun", "poison", "bleed", "disease", "move", "debuff", "death_blow", "trap")
DEATHS_DOOR_FIELDS = ("buffs", "recovery_buffs", "recovery_heart_attack_buffs")
UNPARSED_KEYS = ("death_reaction", "hp_reaction", "overstressed_modifier", "extra_battle_loot")
EQUIPMENT_LEVELS = 5
CHAIN_SECTIONS = ("tags", "extra_stack_limit")
SET_SECTIONS = ("incompatible_party_member", "unparsed")

# (map key, attribute, kind)
WEAPON_FIELDS = (
    ("atk", "atk", ValueKind.FLOAT),
    ("crit", "crit", ValueKind.FLOAT),
    ("dmg max", "dmg_max", ValueKind.INT),
    ("dmg min", "dmg_min", ValueKind.INT),
    ("spd", "spd", ValueKind.INT),
)
ARMOUR_FIELDS = (
    ("def", "defense", ValueKind.FLOAT),
    ("hp", "hp", ValueKind.INT),
    ("prot", "prot", ValueKind.FLOAT),
    ("spd", "spd", ValueKind.INT),
)

SkillGroup = Tuple[str, KeyPath]


def parse_percent(value: str) -> float:
    """Parse ``"15%"`` as 0.15; plain numbers are taken as they are."""
    if value.endswith("%"):
        return to_f32(float(value[:-1]) / 100.0)
    return to_f32(float(value))


def percent_to_string(value: float) -> str:
    return f"{value * 100:.2f}%"


def _wrap(kind: ValueKind, raw) -> GameDataValue:
    if kind is ValueKind.FLOAT:
        return GameDataValue.float_(raw)
    if kind is ValueKind.INT:
        return GameDataValue.int_(raw)
    return GameDataValue.string(raw)


def _expect(record_id: str, path: KeyPath, value: GameDataValue, kind: ValueKind):
    if value.kind is not kind:
        raise StructuralMismatchError(
            record_id, path, f"expected {kind.name.lower()}, got {value!r}"
        )
    return value.raw


@dataclass
class Equipment:
    """One weapon or armour level; attributes depend on the field table."""

    values: Dict[str, object]

    def to_map(self, fields) -> DataMap:
        return {(key,): _wrap(kind, self.values[attr]) for key, attr, kind in fields}

    @classmethod
    def from_map(cls, record_id: str, prefix: KeyPath, data: DataMap, fields) -> "Equipment":
        known = {key for key, _, _ in fields}
        for path in data:
            if len(path) != 1 or path[0] not in known:
                raise ApplyError(record_id, prefix + path, "unknown equipment field")
        values = {}
        for key, attr, kind in fields:
            if (key,) not in data:
                raise StructuralMismatchError(record_id, prefix + (key,), "mandatory value removed")
            values[attr] = _expect(record_id, prefix + (key,), data[(key,)], kind)
        return cls(values)


@dataclass
class Skill:
    """One level of a skill: ordered effects plus every other subkey as text."""

    skill_id: str
    level: int
    effects: List[str] = field(default_factory=list)
    other: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_entries(cls, entries: Iterable[DarkestEntry]) -> "Skill":
        effects: List[str] = []
        other: Dict[str, str] = {}
        for entry in entries:
            for subkey, values in entry.items():
                if subkey == "effect":
                    effects.extend(values)
                else:
                    other[subkey] = " ".join(values)
        skill_id = other.pop("id")
        level = int(other.pop("level"))
        return cls(skill_id, level, effects, other)

    def body_map(self, record_id: str, field_name: str) -> DataMap:
        out: DataMap = {}
        extend_prefixed(out, "effects", encode_chain(self.effects, record_id, field_name))
        for key, value in self.other.items():
            out[("other", key)] = GameDataValue.string(value)
        return out

    def to_map(self, record_id: str, field_name: str) -> DataMap:
        """Standalone form used by riposte and move skills."""
        out = self.body_map(record_id, field_name)
        out[("id",)] = GameDataValue.string(self.skill_id)
        out[("level",)] = GameDataValue.int_(self.level)
        return out

    @classmethod
    def body_from_map(cls, record_id: str, prefix: KeyPath, skill_id: str, level: int, data: DataMap) -> "Skill":
        effects_facts = {}
        other = {}
        for path, value in data.items():
            if path and path[0] == "effects":
                effects_facts[path[1:]] = value
            elif len(path) == 2 and path[0] == "other":
                other[path[1]] = _expect(record_id, prefix + path, value, ValueKind.STRING)
            else:
                raise ApplyError(record_id, prefix + path, "unknown skill field")
        effects = decode_chain(effects_facts, record_id, format_path(prefix + ("effects",)))
        return cls(skill_id, level, effects, other)

    @classmethod
    def from_map(cls, record_id: str, prefix: KeyPath, data: DataMap) -> "Skill":
        body = {path: value for path, value in data.items() if path not in (("id",), ("level",))}
        for key in ("id", "level"):
            if (key,) not in data:
                raise StructuralMismatchError(record_id, prefix + (key,), "mandatory value removed")
        skill_id = _expect(record_id, prefix + ("id",), data[("id",)], ValueKind.STRING)
        level = _expect(record_id, prefix + ("level",), data[("level",)], ValueKind.INT)
        return cls.body_from_map(record_id, prefix, skill_id, level, body)

    def render(self) -> str:
        parts = [f".id {self.skill_id}", f".level {self.level}"]
        parts.extend(f".{key} {value}" for key, value in self.other.items())
        if self.effects:
            parts.append(".effect " + " ".join(self.effects))
        return " ".join(parts)


def skill_group(path: KeyPath) -> Optional[SkillGroup]:
    """Return the (skill id, field) group of a combat skill path, if it is one."""
    if len(path) >= 4 and path[0] == "skills":
        if path[3] == "effects":
            return path[1], ("effects",)
        if path[3] == "other" and len(path) == 5:
            return path[1], ("other", path[4])
    return None


@dataclass(eq=False)
class HeroInfo(Structured):
    """Parsed hero info file."""

    record_id: str
    resistances: Dict[str, float]
    weapons: List[Equipment]
    armours: List[Equipment]
    skills: Dict[str, Dict[int, Skill]]
    move_skill: Skill
    riposte_skill: Optional[Skill] = None
    tags: List[str] = field(default_factory=list)
    extra_stack_limit: List[str] = field(default_factory=list)
    deaths_door: Dict[str, List[str]] = field(default_factory=dict)
    modes: Dict[str, Dict[str, str]] = field(default_factory=dict)
    incompatible_party_member: Dict[str, List[str]] = field(default_factory=dict)
    unparsed: Dict[str, List[str]] = field(default_factory=dict)
    other: Dict[Tuple[str, str], str] = field(default_factory=dict)

    SECTIONS = (
        "resistances",
        "weapons",
        "armours",
        "skills",
        "riposte_skill",
        "move_skill",
        "tags",
        "extra_stack_limit",
        "deaths_door",
        "modes",
        "incompatible_party_member",
        "unparsed",
        "other",
    )

    @classmethod
    def load(cls, path: Path) -> "HeroInfo":
        record_id = path.name.split(".")[0]
        try:
            entries = parse_darkest(path.read_text(encoding="utf-8"))
            return cls.from_entries(record_id, entries)
        except (OSError, DarkestParseError) as e:
            raise ExtractionError(str(path), str(e)) from e
        except (KeyError, IndexError, ValueError) as e:
            raise ExtractionError(str(path), f"malformed hero info: {e}") from e

    @classmethod
    def from_entries(cls, record_id: str, entries: List[Tuple[str, DarkestEntry]]) -> "HeroInfo":
        """Build the record from parsed Darkest entries."""
        resistances = None
        weapons: List[Equipment] = []
        armours: List[Equipment] = []
        skill_entries: Dict[str, Dict[int, List[DarkestEntry]]] = {}
        riposte: List[DarkestEntry] = []
        move: List[DarkestEntry] = []
        tags: List[str] = []
        extra_stack_limit: List[str] = []
        deaths_door = None
        modes: Dict[str, Dict[str, str]] = {}
        incompatible: Dict[str, List[str]] = {}
        unparsed: Dict[str, List[str]] = {}
        other: Dict[Tuple[str, str], str] = {}

        for key, entry in entries:
            if key == "resistances":
                if resistances is not None:
                    raise ValueError("resistances defined twice")
                resistances = {name: parse_percent(entry.first(name)) for name in RESISTANCES}
            elif key == "weapon":
                weapons.append(Equipment({
                    "atk": parse_percent(entry.first("atk")),
                    "dmg_min": int(entry["dmg"][0]),
                    "dmg_max": int(entry["dmg"][1]),
                    "crit": parse_percent(entry.first("crit")),
                    "spd": int(entry.first("spd")),
                }))
            elif key == "armour":
                armours.append(Equipment({
                    "defense": parse_percent(entry.first("def")),
                    "prot": parse_percent(entry.first("prot")),
                    "hp": int(entry.first("hp")),
                    "spd": int(entry.first("spd")),
                }))
            elif key == "combat_skill":
                level = int(entry.first("level"))
                skill_entries.setdefault(entry.first("id"), {}).setdefault(level, []).append(entry)
            elif key == "riposte_skill":
                riposte.append(entry)
            elif key == "combat_move_skill":
                move.append(entry)
            elif key == "tag":
                tags.extend(entry["id"])
            elif key == "extra_stack_limit":
                extra_stack_limit.extend(entry["id"])
            elif key == "deaths_door":
                deaths_door = {name: list(entry.get(name, [])) for name in DEATHS_DOOR_FIELDS}
            elif key == "mode":
                mode = DarkestEntry(entry)
                mode_id = mode.pop("id")[0]
                modes[mode_id] = {subkey: " ".join(values) for subkey, values in mode.items()}
            elif key == "incompatible_party_member":
                incompatible.setdefault(entry.first("id"), []).append(entry.first("hero_tag"))
            elif key in UNPARSED_KEYS:
                text = str(entry)
                if text not in unparsed.setdefault(key, []):
                    unparsed[key].append(text)
            else:
                for subkey, values in entry.items():
                    if (key, subkey) in other:
                        logger.warning(f"{record_id}: duplicate entry {key}.{subkey}, keeping the last one")
                    other[(key, subkey)] = " ".join(values)

        if resistances is None:
            raise ValueError("no resistances entry")
        if len(weapons) != EQUIPMENT_LEVELS or len(armours) != EQUIPMENT_LEVELS:
            raise ValueError(
                f"expected {EQUIPMENT_LEVELS} weapons and armours, "
                f"found {len(weapons)} and {len(armours)}"
            )
        if not move:
            raise ValueError("no combat_move_skill entry")
        if deaths_door is None:
            raise ValueError("no deaths_door entry")

        skills = {
            skill_id: {level: Skill.from_entries(parts) for level, parts in sorted(levels.items())}
            for skill_id, levels in skill_entries.items()
        }
        return cls(
            record_id=record_id,
            resistances=resistances,
            weapons=weapons,
            armours=armours,
            skills=skills,
            move_skill=Skill.from_entries(move),
            riposte_skill=Skill.from_entries(riposte) if riposte else None,
            tags=tags,
            extra_stack_limit=extra_stack_limit,
            deaths_door=deaths_door,
            modes=modes,
            incompatible_party_member=incompatible,
            unparsed=unparsed,
            other=other,
        )

    # Flattening

    def _section_map(self, section: str) -> DataMap:
        rid = self.record_id
        out: DataMap = {}
        if section == "resistances":
            for name, value in self.resistances.items():
                out[(name,)] = GameDataValue.float_(value)
        elif section in ("weapons", "armours"):
            fields = WEAPON_FIELDS if section == "weapons" else ARMOUR_FIELDS
            for index, item in enumerate(getattr(self, section)):
                extend_prefixed(out, key_path(index), item.to_map(fields))
        elif section == "skills":
            for skill_id, levels in self.skills.items():
                for level, skill in levels.items():
                    extend_prefixed(out, key_path(skill_id, level), skill.body_map(rid, f"skills / {skill_id}"))
        elif section == "riposte_skill":
            if self.riposte_skill is not None:
                out.update(self.riposte_skill.to_map(rid, section))
        elif section == "move_skill":
            out.update(self.move_skill.to_map(rid, section))
        elif section in ("tags", "extra_stack_limit"):
            out.update(encode_chain(getattr(self, section), rid, section))
        elif section == "deaths_door":
            for name, buffs in self.deaths_door.items():
                extend_prefixed(out, name, encode_chain(buffs, rid, f"deaths_door / {name}"))
        elif section == "modes":
            for mode_id, subkeys in self.modes.items():
                for subkey, value in subkeys.items():
                    out[(mode_id, subkey)] = GameDataValue.string(value)
        elif section in ("incompatible_party_member", "unparsed"):
            for key, items in getattr(self, section).items():
                extend_prefixed(out, key, encode_set(items))
        elif section == "other":
            for (key, subkey), value in self.other.items():
                out[(key, subkey)] = GameDataValue.string(value)
        return out

    def to_map(self) -> DataMap:
        out: DataMap = {}
        for section in self.SECTIONS:
            extend_prefixed(out, section, self._section_map(section))
        return sorted_map(out.items())

    # Patching

    def _rebuild_section(self, section: str, data: DataMap) -> None:
        rid = self.record_id
        prefix = (section,)
        if section == "resistances":
            resistances = {}
            for path in data:
                if len(path) != 1 or path[0] not in RESISTANCES:
                    raise ApplyError(rid, prefix + path, "unknown resistance")
            for name in RESISTANCES:
                if (name,) not in data:
                    raise StructuralMismatchError(rid, prefix + (name,), "mandatory value removed")
                resistances[name] = _expect(rid, prefix + (name,), data[(name,)], ValueKind.FLOAT)
            self.resistances = resistances
        elif section in ("weapons", "armours"):
            fields = WEAPON_FIELDS if section == "weapons" else ARMOUR_FIELDS
            indices = list(key_path(*range(EQUIPMENT_LEVELS)))
            for path in data:
                if path[0] not in indices:
                    raise ApplyError(rid, prefix + path, "equipment level out of range")
            setattr(self, section, [
                Equipment.from_map(rid, prefix + (index,), sub_map(data, (index,)), fields)
                for index in indices
            ])
        elif section == "skills":
            by_level: Dict[Tuple[str, str], DataMap] = {}
            for path, value in data.items():
                if len(path) < 3:
                    raise ApplyError(rid, prefix + path, "incomplete skill path")
                by_level.setdefault(path[:2], {})[path[2:]] = value
            skills: Dict[str, Dict[int, Skill]] = {}
            for (skill_id, level_text), body in sorted(by_level.items()):
                try:
                    level = int(level_text)
                except ValueError as e:
                    raise ApplyError(rid, prefix + (skill_id, level_text), "skill level is not a number") from e
                skill = Skill.body_from_map(rid, prefix + (skill_id, level_text), skill_id, level, body)
                skills.setdefault(skill_id, {})[level] = skill
            self.skills = {skill_id: dict(sorted(levels.items())) for skill_id, levels in skills.items()}
        elif section == "riposte_skill":
            self.riposte_skill = Skill.from_map(rid, prefix, data) if data else None
        elif section == "move_skill":
            self.move_skill = Skill.from_map(rid, prefix, data)
        elif section in ("modes", "other"):
            result: Dict = {}
            for path, value in data.items():
                if len(path) != 2:
                    raise ApplyError(rid, prefix + path, "expected entry / subkey")
                text = _expect(rid, prefix + path, value, ValueKind.STRING)
                if section == "modes":
                    result.setdefault(path[0], {})[path[1]] = text
                else:
                    result[path] = text
            setattr(self, section, result)

    def _patch_deaths_door(self, patch: Patch) -> None:
        rid = self.record_id
        by_name: Dict[str, Patch] = {}
        for path, change in patch.items():
            if path[0] not in DEATHS_DOOR_FIELDS:
                raise ApplyError(rid, ("deaths_door",) + path, "unknown death's door field")
            by_name.setdefault(path[0], {})[path[1:]] = change
        deaths_door = dict(self.deaths_door)
        for name, name_patch in by_name.items():
            deaths_door[name] = patch_chain(self.deaths_door.get(name, []), name_patch, rid, f"deaths_door / {name}")
        self.deaths_door = deaths_door

    def _patch_sets(self, section: str, patch: Patch) -> None:
        current: Dict[str, List[str]] = getattr(self, section)
        by_key: Dict[str, Patch] = {}
        for path, change in patch.items():
            by_key.setdefault(path[0], {})[path[1:]] = change
        result = dict(current)
        for key, key_patch in by_key.items():
            items = patch_set(current.get(key, []), key_patch, self.record_id, (section, key))
            if items:
                result[key] = items
            else:
                result.pop(key, None)
        setattr(self, section, result)

    def apply_patch(self, patch: Patch) -> None:
        """Apply a relative patch section by section.

        Raises:
            ApplyError: If a path names an unknown section, addresses a whole
                section, or removes a value the record does not hold.
        """
        rid = self.record_id
        by_section: Dict[str, Patch] = {}
        for path, change in patch.items():
            if not path or path[0] not in self.SECTIONS:
                raise ApplyError(rid, path, "unknown hero info section")
            by_section.setdefault(path[0], {})[path[1:]] = change
        for section, section_patch in by_section.items():
            current = self._section_map(section)
            for path, change in section_patch.items():
                if not path and section not in CHAIN_SECTIONS:
                    raise ApplyError(rid, (section,), "a whole section cannot be set or removed")
                if change.is_removed and path not in current:
                    raise ApplyError(rid, (section,) + path, "removing a value that does not exist")
            if section in CHAIN_SECTIONS:
                setattr(self, section, patch_chain(getattr(self, section), section_patch, rid, section))
            elif section == "deaths_door":
                self._patch_deaths_door(section_patch)
            elif section in SET_SECTIONS:
                self._patch_sets(section, section_patch)
            else:
                self._rebuild_section(section, apply_to_map(current, section_patch))
            logger.debug(f"{rid}: patched {len(section_patch)} paths in {section}")

    # Merging

    def try_merge_patches(self, contributions: Iterable[ModFileChange]) -> Tuple[Patch, Conflicts]:
        merged: Patch = {}
        conflicts: Conflicts = {}
        groups: Dict[SkillGroup, List[KeyPath]] = {}
        grouped = regroup(contributions)
        for path, changes in grouped.items():
            group = skill_group(path)
            if group is not None:
                groups.setdefault(group, []).append(path)
                continue
            change = agreed_change(changes)
            if change is None:
                conflicts[path] = changes
            else:
                merged[path] = change

        # A conflict on any level sends the field on every level to the resolver.
        for (skill_id, field_path), paths in groups.items():
            if all(agreed_change(grouped[path]) is not None for path in paths):
                for path in paths:
                    merged[path] = agreed_change(grouped[path])
            else:
                logger.debug(
                    f"{self.record_id}: skill {skill_id} / {format_path(field_path)} "
                    f"conflicts, grouping {len(paths)} paths"
                )
                for path in paths:
                    conflicts[path] = grouped[path]
        return dict(sorted(merged.items())), dict(sorted(conflicts.items()))

    def _group_values(self, data: DataMap, skill_id: str, field_path: KeyPath, levels: List[str]) -> LevelValues:
        values: LevelValues = {}
        for level in levels:
            prefix = ("skills", skill_id, level) + field_path
            if field_path[0] == "effects":
                facts = sub_map(data, prefix)
                values[level] = decode_chain(facts, self.record_id, format_path(prefix)) if facts else None
            else:
                value = data.get(prefix)
                values[level] = None if value is None else value.unwrap_string()
        return values

    def _group_map(self, skill_id: str, field_path: KeyPath, values: LevelValues) -> DataMap:
        out: DataMap = {}
        for level, value in values.items():
            if value is None:
                continue
            prefix = key_path("skills", skill_id, level) + field_path
            if field_path[0] == "effects":
                items = split_values(value) if isinstance(value, str) else list(value)
                extend_prefixed(out, prefix, encode_chain(items, self.record_id, format_path(prefix)))
            else:
                out[prefix] = GameDataValue.string(value if isinstance(value, str) else " ".join(value))
        return out

    def _resolve_skill_group(
        self,
        file_path: str,
        group: SkillGroup,
        group_conflicts: Conflicts,
        original: DataMap,
        resolver,
    ) -> Patch:
        skill_id, field_path = group
        group_original = {path: value for path, value in original.items() if skill_group(path) == group}
        levels = {str(level) for level in self.skills.get(skill_id, {})}
        levels.update(path[2] for path in group_conflicts)
        levels = sorted(levels, key=lambda level: (len(level), level))

        sources = sorted({name for changes in group_conflicts.values() for name, _ in changes})
        options = {}
        for source in sources:
            source_patch = {
                path: change
                for path, changes in group_conflicts.items()
                for name, change in changes
                if name == source
            }
            options[source] = self._group_values(
                apply_to_map(group_original, source_patch), skill_id, field_path, levels
            )

        conflict = SequenceConflict(
            record_id=self.record_id,
            group=("skills", skill_id, "<levels>") + field_path,
            levels=levels,
            original=self._group_values(group_original, skill_id, field_path, levels),
            options=options,
        )
        chosen = dict(conflict.original)
        chosen.update({str(level): value for level, value in resolver.resolve_sequence(file_path, conflict).items()})
        return diff(group_original, self._group_map(skill_id, field_path, chosen))

    def resolve_conflicts(self, file_path: str, conflicts: Conflicts, resolver) -> Patch:
        original = self.to_map()
        plain: Conflicts = {}
        groups: Dict[SkillGroup, Conflicts] = {}
        for path, changes in conflicts.items():
            group = skill_group(path)
            if group is None:
                plain[path] = changes
            else:
                groups.setdefault(group, {})[path] = changes

        resolved: Patch = {}
        for group, group_conflicts in sorted(groups.items()):
            resolved.update(self._resolve_skill_group(file_path, group, group_conflicts, original, resolver))
        if plain:
            answer = resolver.resolve(file_path, plain, original)
            check_resolved(file_path, plain, answer)
            resolved.update(answer)
        return dict(sorted(resolved.items()))

    # Deployment

    def _equipment_lines(self, kind: str, items: List[Equipment]) -> List[str]:
        lines = []
        for index, item in enumerate(items):
            v = item.values
            if kind == "weapon":
                stats = (
                    f".atk {percent_to_string(v['atk'])} .dmg {v['dmg_min']} {v['dmg_max']} "
                    f".crit {percent_to_string(v['crit'])} .spd {v['spd']}"
                )
            else:
                stats = (
                    f".def {percent_to_string(v['defense'])} .prot {percent_to_string(v['prot'])} "
                    f".hp {v['hp']} .spd {v['spd']}"
                )
            line = f'{kind}: .name "{self.record_id}_{kind}_{index}" {stats}'
            if index > 0:
                line += f" .upgradeRequirementCode {index - 1}"
            lines.append(line)
        return lines

    def render(self) -> str:
        lines = ["// Deployed by Darkest Dungeon Mod Bundler", ""]
        lines.append(
            "resistances: "
            + " ".join(f".{name} {percent_to_string(self.resistances[name])}" for name in RESISTANCES)
        )
        lines.append("")
        lines.append("// Weapons")
        lines.extend(self._equipment_lines("weapon", self.weapons))
        lines.append("")
        lines.append("// Armours")
        lines.extend(self._equipment_lines("armour", self.armours))
        lines.append("")
        for skill_id, levels in self.skills.items():
            lines.append(f"// Skill: {skill_id}")
            lines.extend(f"combat_skill: {skill.render()}" for skill in levels.values())
            lines.append("")
        if self.riposte_skill is not None:
            lines.append("// Riposte skill")
            lines.append(f"riposte_skill: {self.riposte_skill.render()}")
            lines.append("")
        lines.append("// Move skill")
        lines.append(f"combat_move_skill: {self.move_skill.render()}")
        lines.append("")
        if self.tags:
            lines.append("// Hero tags")
            lines.extend(f"tag: .id {tag}" for tag in self.tags)
            lines.append("")
        if self.extra_stack_limit:
            lines.append("// Extra stack limits provided by hero")
            lines.extend(f"extra_stack_limit: .id {limit}" for limit in self.extra_stack_limit)
            lines.append("")
        lines.append("// Death's Door effects")
        lines.append(
            "deaths_door: "
            + " ".join(f".{name} {' '.join(self.deaths_door.get(name, []))}".rstrip() for name in DEATHS_DOOR_FIELDS)
        )
        lines.append("")
        if self.modes:
            lines.append("// Hero combat modes")
            for mode_id, subkeys in self.modes.items():
                rest = " ".join(f".{subkey} {value}" for subkey, value in subkeys.items())
                lines.append(f"mode: .id {mode_id} {rest}".rstrip())
            lines.append("")
        if self.incompatible_party_member:
            lines.append("// Rules for party incompatibilities")
            for party_id, tags in self.incompatible_party_member.items():
                lines.extend(f"incompatible_party_member: .id {party_id} .hero_tag {tag}" for tag in tags)
            lines.append("")
        if self.unparsed:
            lines.append("// Unparsed entries")
            for key, texts in self.unparsed.items():
                lines.extend(f"{key}: {text}" for text in texts)
            lines.append("")
        if self.other:
            lines.append("// Unclassified hero info")
            by_key: Dict[str, DarkestEntry] = {}
            for (key, subkey), value in self.other.items():
                by_key.setdefault(key, DarkestEntry())[subkey] = [value]
            lines.extend(format_entry(key, entry) for key, entry in by_key.items())
            lines.append("")
        return "\n".join(lines)
