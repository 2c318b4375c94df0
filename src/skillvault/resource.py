"""
Resource -- The persisted entity tracked by a vault.

A Resource is a repository, a folder or a single file fetched from a
remote source, plus the outcome of the last SKILL.md validation. The
catalog owns the records; the vault only works on transient copies and
writes them back through Catalog.update / Catalog.add.

Records on disk are flat JSON objects (see ``to_record``). Reading is
lenient: ``from_record`` accepts the on-disk keys, the Python attribute
names and a few legacy spellings, and states every default once.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from .address import DEFAULT_BRANCH, GITHUB_HOST, MARKER_FILE, ResourceKind
from .errors import CatalogError

__all__ = [
    "Resource",
    "ValidationStatus",
    "parse_timestamp",
    "update_resource",
    "utc_now",
]


class ValidationStatus(str, Enum):
    """Outcome of the last validation pass over a resource."""

    UNVALIDATED = "unvalidated"
    VALID_SKILL = "valid_skill"
    INVALID_SKILL = "invalid_skill"
    NOT_A_SKILL = "not_a_skill"


def utc_now() -> datetime:
    """Current UTC time with second precision (the precision stored on disk)."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime).

    Naive values are taken as UTC. Sub-second precision is dropped.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise CatalogError(f"Invalid timestamp: {value!r}") from e
    else:
        raise CatalogError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.replace(microsecond=0)


# Record key -> accepted spellings, first one is what to_record writes.
_KEYS: dict[str, tuple[str, ...]] = {
    "label": ("label",),
    "source_url": ("url", "source_url"),
    "owner": ("username", "owner"),
    "repo_name": ("repo", "repo_name"),
    "folder_hint": ("folder", "folder_hint"),
    "kind": ("type", "kind", "resource_kind"),
    "branch": ("branch",),
    "relative_path": ("relative_path", "path_in_repo"),
    "added_at": ("added_at",),
    "last_synced_at": ("synced_at", "last_synced_at"),
    "validation_status": ("validation_status",),
    "validation_errors": ("validation_errors",),
    "unit_name": ("skill_name", "unit_name"),
    "is_unit": ("is_skill", "is_unit"),
}


def _pick(record: dict[str, Any], attr: str) -> Any:
    """First non-null value among the accepted spellings of an attribute."""
    for key in _KEYS[attr]:
        for candidate in (key, f":{key}"):
            value = record.get(candidate)
            if value is not None:
                return value
    return None


def _enum_value(enum_cls: type[Enum], value: Any, attr: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().lstrip(":").lower()
    try:
        return enum_cls(text)
    except ValueError as e:
        raise CatalogError(f"Invalid value for '{attr}': {value!r}") from e


@dataclass(frozen=True)
class Resource:
    """A resource tracked in the vault.

    ``is_unit`` defaults to "has a unit_name". It can be forced to True for
    a unit whose name is not known yet, but a resource that has a
    unit_name is always a unit.
    """

    label: str
    source_url: str
    owner: str
    repo_name: str
    kind: ResourceKind
    branch: str = DEFAULT_BRANCH
    relative_path: str | None = None
    folder_hint: str | None = None
    added_at: datetime = field(default_factory=utc_now)
    last_synced_at: datetime = field(default_factory=utc_now)
    validation_status: ValidationStatus = ValidationStatus.UNVALIDATED
    validation_errors: tuple[str, ...] = ()
    unit_name: str | None = None
    is_unit: bool | None = None

    def __post_init__(self) -> None:
        # frozen: normalise through object.__setattr__
        if self.is_unit is None or self.unit_name is not None:
            object.__setattr__(self, "is_unit", bool(self.is_unit) or self.unit_name is not None)
        object.__setattr__(self, "validation_errors", tuple(self.validation_errors))
        object.__setattr__(self, "branch", self.branch or DEFAULT_BRANCH)

    # ── Paths ────────────────────────────────────────────────────────────

    def repo_path(self, storage_root: str | Path) -> Path:
        """Local checkout of the repository this resource comes from."""
        return Path(storage_root) / self.owner / self.repo_name

    def local_path(self, storage_root: str | Path) -> Path:
        """Resolved local path of the resource (never stored)."""
        if self.kind is ResourceKind.REPO:
            return self.repo_path(storage_root)
        return self.repo_path(storage_root) / (self.relative_path or self.folder_hint or "")

    def unit_path(self, storage_root: str | Path) -> Path:
        """Directory holding this resource's SKILL.md.

        Units discovered inside a full repository live below the repo
        root at relative_path; folder and file resources already point at
        the unit folder.
        """
        if self.kind is ResourceKind.REPO:
            if self.relative_path and self.relative_path != ".":
                return self.repo_path(storage_root) / self.relative_path
            return self.repo_path(storage_root)
        return self.local_path(storage_root)

    def marker_path(self, storage_root: str | Path) -> Path:
        return self.unit_path(storage_root) / MARKER_FILE

    def fetch_paths(self) -> list[str]:
        """Paths to request from a sparse fetch to restore this resource."""
        if self.kind is ResourceKind.REPO:
            return []
        if self.kind is ResourceKind.FILE and not self.is_unit:
            parent = self.folder_hint or str(Path(self.relative_path or "").parent)
            if parent in ("", "."):
                return [f"/{self.relative_path}"]
            return [parent]
        path = self.relative_path or self.folder_hint or "."
        return [f"/{MARKER_FILE}"] if path == "." else [path]

    # ── Serialization ────────────────────────────────────────────────────

    def to_record(self) -> dict[str, Any]:
        """Convert to the flat JSON record stored in the catalog."""
        return {
            "label": self.label,
            "url": self.source_url,
            "username": self.owner,
            "repo": self.repo_name,
            "folder": self.folder_hint,
            "type": self.kind.value,
            "branch": self.branch,
            "relative_path": self.relative_path,
            "added_at": self.added_at.isoformat(),
            "synced_at": self.last_synced_at.isoformat(),
            "validation_status": self.validation_status.value,
            "validation_errors": list(self.validation_errors),
            "skill_name": self.unit_name,
            "is_skill": self.is_unit,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any], host: str = GITHUB_HOST) -> "Resource":
        """Build a Resource from a catalog record.

        ``host`` builds the fallback ``source_url`` for records without one.

        Raises:
            CatalogError: if a required key is missing or a value is malformed.
        """
        if not isinstance(record, dict):
            raise CatalogError(f"Resource record must be an object, got {type(record).__name__}")

        missing = [
            attr for attr in ("label", "owner", "repo_name", "kind")
            if _pick(record, attr) in (None, "")
        ]
        if missing:
            raise CatalogError(f"Resource record is missing fields: {', '.join(missing)}")

        owner = _pick(record, "owner")
        repo_name = _pick(record, "repo_name")
        errors = _pick(record, "validation_errors") or []
        if isinstance(errors, str):
            errors = [errors]

        added_at = parse_timestamp(_pick(record, "added_at")) or utc_now()
        synced_at = parse_timestamp(_pick(record, "last_synced_at")) or added_at

        return cls(
            label=_pick(record, "label"),
            source_url=_pick(record, "source_url") or f"https://{host}/{owner}/{repo_name}",
            owner=owner,
            repo_name=repo_name,
            kind=_enum_value(ResourceKind, _pick(record, "kind"), "type"),
            branch=_pick(record, "branch") or DEFAULT_BRANCH,
            relative_path=_pick(record, "relative_path"),
            folder_hint=_pick(record, "folder_hint"),
            added_at=added_at,
            last_synced_at=synced_at,
            validation_status=_enum_value(
                ValidationStatus,
                _pick(record, "validation_status") or ValidationStatus.UNVALIDATED,
                "validation_status",
            ),
            validation_errors=tuple(str(e) for e in errors),
            unit_name=_pick(record, "unit_name"),
            # a stored False still lets unit_name decide
            is_unit=bool(_pick(record, "is_unit")) or None,
        )


def update_resource(existing: Resource, **changes: Any) -> Resource:
    """Return a copy of ``existing`` with ``changes`` applied.

    Pure: nothing is persisted. Pair it with Catalog.update.
    """
    if "validation_errors" in changes:
        changes["validation_errors"] = tuple(changes["validation_errors"] or ())
    return dataclasses.replace(existing, **changes)
