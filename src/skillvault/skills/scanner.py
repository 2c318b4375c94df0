"""
Unit Discovery -- Finds skill units (folders containing SKILL.md) in a tree.

The walk is depth-first from the scan root, root included, children in
sorted order so the result is deterministic for a given tree. Hidden
directories (``.git``, ``.github``...) are not entered and symlinked
directories are not followed.
"""

from dataclasses import dataclass
from pathlib import Path

import structlog

from ..address import MARKER_FILE
from ..errors import InvalidPathError

logger = structlog.get_logger()

__all__ = ["DiscoveredUnit", "scan_units"]


@dataclass(frozen=True)
class DiscoveredUnit:
    """A skill unit found during a scan."""

    relative_path: str  # relative to the scan root, "." for the root itself
    unit_name: str

    @property
    def folder_path(self) -> str:
        """Alias of relative_path."""
        return self.relative_path


def scan_units(root: str | Path) -> list[DiscoveredUnit]:
    """Scan a directory tree for SKILL.md files.

    Args:
        root: Directory to scan.

    Returns:
        One DiscoveredUnit per directory that contains SKILL.md
        (exact, case-sensitive name).

    Raises:
        InvalidPathError: if root does not exist or is not a directory.
    """
    if root is None:
        raise InvalidPathError("Scan root cannot be None")
    base = Path(root)
    if not base.exists():
        raise InvalidPathError(f"Path does not exist: {base}")
    if not base.is_dir():
        raise InvalidPathError(f"Path is not a directory: {base}")

    units: list[DiscoveredUnit] = []
    _walk(base, base, units)
    logger.debug(
        "skills.scanned",
        root=str(base),
        count=len(units),
        names=[u.unit_name for u in units],
    )
    return units


def _walk(current: Path, base: Path, units: list[DiscoveredUnit]) -> None:
    try:
        entries = sorted(current.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.warning("skills.scan_unreadable", path=str(current), error=str(e))
        return

    # exact name match: "skill.md" or "Skill.md" do not count
    if any(entry.name == MARKER_FILE and entry.is_file() for entry in entries):
        if current == base:
            rel = "."
            name = base.resolve().name
        else:
            rel = current.relative_to(base).as_posix()
            name = current.name
        units.append(DiscoveredUnit(relative_path=rel, unit_name=name))

    for entry in entries:
        if entry.name.startswith(".") or entry.is_symlink():
            continue
        if entry.is_dir():
            _walk(entry, base, units)
