"""
Game and mod data loading.

Every file under a data root becomes a GameDataItem keyed by its relative
POSIX path: hero info files and string tables are parsed into structured
records, everything else is hashed as an opaque binary. DLC directories are
loaded on top of the data they extend.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Type

from ..data_types.hero_info import HeroInfo
from ..data_types.localization import StringsTable
from ..utils.logging import get_logger
from .errors import ExtractionError
from .records import BinaryRef, GameData, GameDataItem, Structured

logger = get_logger("core.loader")

PROJECT_FILE = "project.xml"
DLC_DIR = "dlc"

OnLoad = Callable[[str], None]


@dataclass
class Mod:
    """A mod directory with its project title."""

    title: str
    path: Path

    @property
    def name(self) -> str:
        return self.title


def structured_type(rel_path: str) -> Optional[Type[Structured]]:
    """Return the record type handling a relative path, or None for binaries."""
    if rel_path.startswith("heroes/") and rel_path.endswith(".info.darkest"):
        return HeroInfo
    if rel_path.startswith("localization/") and rel_path.endswith(".string_table.xml"):
        return StringsTable
    return None


def load_item(root: Path, full_path: Path) -> GameDataItem:
    rel_path = full_path.relative_to(root).as_posix()
    record_type = structured_type(rel_path)
    if record_type is not None:
        return record_type.load(full_path)
    try:
        return BinaryRef.from_file(full_path)
    except OSError as e:
        raise ExtractionError(str(full_path), str(e)) from e


def load_data(root: Path, on_load: Optional[OnLoad] = None) -> GameData:
    """Load every file under root, except the DLC folder and project file.

    Args:
        root: Game or mod directory.
        on_load: Called with each relative path before it is read.

    Returns:
        Mapping from relative path to loaded item, in path order.

    Raises:
        ExtractionError: If a file cannot be read or parsed.
    """
    root = Path(root)
    data: GameData = {}
    if not root.is_dir():
        raise ExtractionError(str(root), "not a directory")
    for full_path in sorted(root.rglob("*")):
        if not full_path.is_file():
            continue
        rel = full_path.relative_to(root)
        if rel.parts[0] == DLC_DIR or rel.as_posix() == PROJECT_FILE:
            continue
        if on_load is not None:
            on_load(rel.as_posix())
        data[rel.as_posix()] = load_item(root, full_path)
    logger.debug(f"Loaded {len(data)} files from {root}")
    return data


def load_dlcs(dlc_path: Path, data: GameData, on_load: Optional[OnLoad] = None) -> None:
    """Load each DLC directory on top of data, in name order."""
    for entry in sorted(Path(dlc_path).iterdir()):
        if entry.is_dir():
            logger.info(f"Reading DLC: {entry.name}")
            data.update(load_data(entry, on_load))
        else:
            logger.warning(f"Found non-directory item in DLC folder: {entry}")


def load_game(game_path: Path, on_load: Optional[OnLoad] = None) -> GameData:
    """Load the baseline: the game data plus every installed DLC."""
    game_path = Path(game_path)
    logger.info(f"Extracting data from game directory {game_path}")
    data = load_data(game_path, on_load)
    if (game_path / DLC_DIR).is_dir():
        load_dlcs(game_path / DLC_DIR, data, on_load)
    return dict(sorted(data.items()))


def load_mod(mod: Mod, on_load: Optional[OnLoad] = None) -> GameData:
    """Load a mod's files, including DLC-mapped files it ships."""
    logger.info(f"Extracting data from mod {mod.name}")
    data = load_data(mod.path, on_load)
    if (mod.path / DLC_DIR).is_dir():
        logger.warning(f"Mod {mod.name} contains DLC-mapped data; loading")
        load_dlcs(mod.path / DLC_DIR, data, on_load)
    return dict(sorted(data.items()))


def read_project_title(mod_dir: Path) -> str:
    """Read ``<Title>`` from a mod's project.xml."""
    project_path = mod_dir / PROJECT_FILE
    try:
        root = ET.parse(project_path).getroot()
    except (OSError, ET.ParseError) as e:
        raise ExtractionError(str(project_path), str(e)) from e
    title = root.findtext("Title")
    if not title or not title.strip():
        raise ExtractionError(str(project_path), "no <Title> element")
    return title.strip()


def discover_mods(mods_dir: Path) -> List[Mod]:
    """Find mod directories (those with a project.xml), sorted by title."""
    mods_dir = Path(mods_dir)
    if not mods_dir.is_dir():
        raise ExtractionError(str(mods_dir), "mods directory does not exist")
    mods = []
    for entry in sorted(mods_dir.iterdir()):
        if not entry.is_dir():
            continue
        if not (entry / PROJECT_FILE).is_file():
            logger.debug(f"Skipping {entry}: no {PROJECT_FILE}")
            continue
        mod = Mod(read_project_title(entry), entry)
        logger.info(f"Found mod \"{mod.title}\" in {entry}")
        mods.append(mod)
    return sorted(mods, key=lambda mod: mod.title)


def select_mods(mods: List[Mod], titles: List[str]) -> List[Mod]:
    """Pick mods by title; an empty selection means every mod.

    Raises:
        ValueError: If a title does not match any discovered mod.
    """
    if not titles:
        return list(mods)
    by_title: Dict[str, Mod] = {mod.title: mod for mod in mods}
    missing = [title for title in titles if title not in by_title]
    if missing:
        raise ValueError(f"Unknown mods: {', '.join(missing)}")
    return sorted((by_title[title] for title in set(titles)), key=lambda mod: mod.title)
