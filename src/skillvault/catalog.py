"""
Catalog -- JSON persistence of the resources tracked by a vault.

The document is a single JSON file:

    {"version": "1.0", "resources": [<record>, ...]}

Every mutating call does a full load-modify-save cycle. The catalog is
not safe for concurrent writers; one vault per process is expected.
Label uniqueness is checked here, at write time, and nowhere else.
"""

import json
from pathlib import Path
from typing import Any, Iterable

import structlog

from .address import GITHUB_HOST
from .errors import CatalogError, DuplicateLabelError
from .resource import Resource

logger = structlog.get_logger()

__all__ = ["CATALOG_VERSION", "Catalog", "decode_document"]

CATALOG_VERSION = "1.0"


def _empty_document() -> dict[str, Any]:
    return {"version": CATALOG_VERSION, "resources": []}


def decode_document(text: str, source: str = "<catalog>") -> dict[str, Any]:
    """Decode a catalog document from JSON text.

    Raises:
        CatalogError: if the text is not JSON or has no resources list.
    """
    try:
        data = json.loads(text) if text.strip() else _empty_document()
    except json.JSONDecodeError as e:
        raise CatalogError(f"Invalid catalog document {source}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogError(f"Invalid catalog document {source}: expected an object")

    resources = data.get("resources")
    if resources is None:
        resources = []
    if not isinstance(resources, list):
        raise CatalogError(f"Invalid catalog document {source}: 'resources' must be a list")

    return {"version": data.get("version") or CATALOG_VERSION, "resources": resources}


class Catalog:
    """Reads and writes the vault catalog file.

    Records are kept in their on-disk shape; ``resources()`` and ``find()``
    decode them into Resource objects.
    """

    def __init__(self, path: str | Path, host: str = GITHUB_HOST):
        """Initialize the catalog.

        Args:
            path: Path of the JSON catalog file.
            host: Git host used for records stored without a source URL.
        """
        self.path = Path(path)
        self.host = host

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> dict[str, Any]:
        """Load the document. A missing file is an empty catalog."""
        if not self.path.exists():
            return _empty_document()
        return decode_document(self.path.read_text(encoding="utf-8"), str(self.path))

    def save(self, data: dict[str, Any]) -> None:
        """Write the document to disk (pretty-printed JSON)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "version": data.get("version") or CATALOG_VERSION,
            "resources": list(data.get("resources") or []),
        }
        self.path.write_text(
            json.dumps(document, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        logger.debug("catalog.saved", path=str(self.path), resources=len(document["resources"]))

    # ── Reads ────────────────────────────────────────────────────────────

    def records(self) -> list[dict[str, Any]]:
        return self.load()["resources"]

    def resources(self) -> list[Resource]:
        """All resources, in catalog order."""
        return [Resource.from_record(r, host=self.host) for r in self.records()]

    def labels(self) -> list[str]:
        return [r.get("label") for r in self.records()]

    def find(self, label: str) -> Resource | None:
        """Find a resource by label, or None."""
        for record in self.records():
            if record.get("label") == label:
                return Resource.from_record(record, host=self.host)
        return None

    # ── Writes ───────────────────────────────────────────────────────────

    def add(self, resource: Resource) -> None:
        """Append a resource.

        Raises:
            DuplicateLabelError: if the label already exists. The file is
                left untouched.
        """
        self.add_many([resource])

    def add_many(self, resources: Iterable[Resource]) -> None:
        """Append several resources in one write, all or nothing.

        Labels are checked against the catalog and against each other
        before anything is written.

        Raises:
            DuplicateLabelError: on the first conflicting label.
        """
        batch = list(resources)
        data = self.load()
        seen = {r.get("label") for r in data["resources"]}
        for resource in batch:
            if resource.label in seen:
                logger.warning("catalog.duplicate_label", label=resource.label)
                raise DuplicateLabelError(resource.label)
            seen.add(resource.label)

        data["resources"].extend(r.to_record() for r in batch)
        self.save(data)

    def update(self, resource: Resource) -> bool:
        """Replace the record with the same label.

        Returns:
            True if the label existed and was updated, False otherwise.
        """
        data = self.load()
        for index, record in enumerate(data["resources"]):
            if record.get("label") == resource.label:
                data["resources"][index] = resource.to_record()
                self.save(data)
                return True
        return False

    def remove(self, label: str) -> bool:
        """Remove the record with ``label``.

        Returns:
            True if something was removed.
        """
        data = self.load()
        kept = [r for r in data["resources"] if r.get("label") != label]
        removed = len(kept) != len(data["resources"])
        data["resources"] = kept
        self.save(data)
        return removed

    def merge(self, imported: Iterable[Resource]) -> tuple[int, int]:
        """Merge resources by label: replace wholesale, else append.

        Returns:
            (replaced, appended) counts.
        """
        data = self.load()
        merged = list(data["resources"])
        index_by_label = {r.get("label"): i for i, r in enumerate(merged)}
        replaced = appended = 0

        for resource in imported:
            record = resource.to_record()
            if resource.label in index_by_label:
                merged[index_by_label[resource.label]] = record
                replaced += 1
            else:
                index_by_label[resource.label] = len(merged)
                merged.append(record)
                appended += 1

        self.save({"version": CATALOG_VERSION, "resources": merged})
        return replaced, appended

    def clear(self) -> None:
        self.save(_empty_document())
