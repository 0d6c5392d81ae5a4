"""
Outdated baseline tracking

Every baseline consulted during a session is recorded as "touched".
Baselines under a project root that no test touched are outdated and can be
listed or removed.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from image_snapshot.core.paths import SNAPSHOTS_DIR

logger = logging.getLogger(__name__)

TOUCHED_FILES_NAME = ".image-snapshot-touched-files"


def write_touched_files(path: Path, files: Iterable[Path]) -> None:
    """Persist touched baseline paths, one absolute path per line"""
    lines = sorted(str(Path(f).resolve()) for f in files)
    path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    logger.debug(f"Recorded {len(lines)} touched baselines in {path}")


def read_touched_files(path: Path) -> set[Path]:
    if not path.exists():
        return set()
    return {
        Path(line.strip())
        for line in path.read_text(encoding="utf-8").splitlines()
        if line.strip()
    }


def find_baselines(root: Path) -> list[Path]:
    """All baseline images stored below ``root``"""
    return sorted(p.resolve() for p in root.rglob("*.png") if SNAPSHOTS_DIR in p.parts)


def find_outdated(root: Path, touched: Iterable[Path]) -> list[Path]:
    """
    List baselines below ``root`` that were not touched.

    Args:
        root: Project directory to scan
        touched: Baseline paths used during the session

    Returns:
        Sorted list of outdated baseline paths
    """
    touched_set = {Path(p).resolve() for p in touched}
    return [p for p in find_baselines(root) if p not in touched_set]


def remove_outdated(paths: Iterable[Path]) -> int:
    """Delete outdated baselines and return how many were removed"""
    removed = 0
    for path in paths:
        path.unlink(missing_ok=True)
        removed += 1
        logger.info(f"Removed outdated baseline: {path}")
    return removed
