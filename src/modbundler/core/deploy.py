"""Writing a finished bundle to a mods directory."""

import shutil
from pathlib import Path
from typing import Mapping

from ..utils.logging import get_logger
from .errors import DeploymentError
from .records import GameDataItem, is_binary

logger = get_logger("core.deploy")

BUNDLE_TITLE = "Generated mods bundle"

PROJECT_XML = f"""<?xml version="1.0" encoding="utf-8"?>
<project>
    <Title>{BUNDLE_TITLE}</Title>
</project>
"""


def deploy(output: Path, files: Mapping[str, GameDataItem], overwrite: bool = False) -> int:
    """Write the bundle as a mod directory.

    Args:
        output: Target mod directory; it must not exist unless overwrite is set.
        files: Deployable items by relative path.
        overwrite: Remove an existing target directory first.

    Returns:
        Number of files written, not counting project.xml.

    Raises:
        DeploymentError: If the target exists or a file cannot be written.
    """
    output = Path(output)
    logger.info(f"Mod is being deployed to {output}")
    if output.exists():
        if not overwrite:
            raise DeploymentError(str(output), "target directory already exists")
        logger.info("Overwriting existing mod bundle")
        try:
            shutil.rmtree(output)
        except OSError as e:
            raise DeploymentError(str(output), str(e)) from e

    try:
        output.mkdir(parents=True)
        (output / "project.xml").write_text(PROJECT_XML, encoding="utf-8")
    except OSError as e:
        raise DeploymentError(str(output), str(e)) from e
    logger.info("Written project.xml")

    for rel_path, item in files.items():
        target = output / rel_path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if is_binary(item):
                logger.debug(f"Copying binary file {item.source} to {rel_path}")
                shutil.copyfile(item.source, target)
            else:
                logger.debug(f"Writing text file {rel_path}")
                item.deploy(target)
        except OSError as e:
            raise DeploymentError(str(target), str(e)) from e
    logger.info(f"Deployed {len(files)} files to {output}")
    return len(files)
