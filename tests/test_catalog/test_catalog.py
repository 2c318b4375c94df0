"""
Tests para Catalog (persistencia JSON del vault).

Cubre:
- Documento vacío / inexistente, formato en disco
- add / add_many atómico con etiquetas duplicadas
- update / remove / merge / clear
- Documentos inválidos -> CatalogError
"""

import json
from pathlib import Path

import pytest

from skillvault.address import ResourceKind
from skillvault.catalog import CATALOG_VERSION, Catalog, decode_document
from skillvault.errors import CatalogError, DuplicateLabelError
from skillvault.resource import Resource, ValidationStatus, update_resource


@pytest.fixture
def catalog(tmp_path: Path) -> Catalog:
    return Catalog(tmp_path / "manifest.json")


def _resource(label: str, **overrides) -> Resource:
    values = dict(
        label=label,
        source_url="https://github.com/acme/tools",
        owner="acme",
        repo_name="tools",
        kind=ResourceKind.REPO,
    )
    values.update(overrides)
    return Resource(**values)


# ── Tests: Lectura ───────────────────────────────────────────────────


class TestLoad:
    def test_missing_file_is_empty(self, catalog: Catalog):
        assert not catalog.exists()
        assert catalog.load() == {"version": CATALOG_VERSION, "resources": []}
        assert catalog.resources() == []

    def test_empty_file_is_empty(self, catalog: Catalog):
        catalog.path.write_text("")
        assert catalog.records() == []

    def test_invalid_json(self, catalog: Catalog):
        catalog.path.write_text("{not json")
        with pytest.raises(CatalogError, match="Invalid catalog document"):
            catalog.load()

    def test_resources_not_a_list(self):
        with pytest.raises(CatalogError, match="'resources' must be a list"):
            decode_document('{"resources": {}}')

    def test_top_level_not_object(self):
        with pytest.raises(CatalogError):
            decode_document("[]")


# ── Tests: Escritura ─────────────────────────────────────────────────


class TestWrite:
    def test_add_persists_pretty_json(self, catalog: Catalog):
        catalog.add(_resource("a"))
        text = catalog.path.read_text(encoding="utf-8")
        assert text.endswith("\n")
        data = json.loads(text)
        assert data["version"] == CATALOG_VERSION
        assert data["resources"][0]["label"] == "a"
        assert '\n  "resources"' in text

    def test_duplicate_label_leaves_file_unchanged(self, catalog: Catalog):
        catalog.add(_resource("a"))
        before = catalog.path.read_bytes()
        with pytest.raises(DuplicateLabelError) as exc:
            catalog.add(_resource("a"))
        assert exc.value.label == "a"
        assert catalog.path.read_bytes() == before

    def test_add_many_is_atomic(self, catalog: Catalog):
        catalog.add(_resource("b"))
        with pytest.raises(DuplicateLabelError):
            catalog.add_many([_resource("a"), _resource("b")])
        assert catalog.labels() == ["b"]

    def test_add_many_rejects_duplicates_within_batch(self, catalog: Catalog):
        with pytest.raises(DuplicateLabelError):
            catalog.add_many([_resource("a"), _resource("a")])
        assert catalog.labels() == []

    def test_update(self, catalog: Catalog):
        catalog.add(_resource("a"))
        changed = update_resource(catalog.find("a"), validation_status=ValidationStatus.VALID_SKILL)
        assert catalog.update(changed)
        assert catalog.find("a").validation_status is ValidationStatus.VALID_SKILL

    def test_update_unknown_label(self, catalog: Catalog):
        assert catalog.update(_resource("ghost")) is False

    def test_remove(self, catalog: Catalog):
        catalog.add_many([_resource("a"), _resource("b")])
        assert catalog.remove("a")
        assert not catalog.remove("a")
        assert catalog.labels() == ["b"]

    def test_merge_replaces_and_appends(self, catalog: Catalog):
        catalog.add_many([_resource("a"), _resource("b")])
        replacement = _resource("a", owner="other", repo_name="repo")
        replaced, appended = catalog.merge([replacement, _resource("c")])
        assert (replaced, appended) == (1, 1)
        assert catalog.labels() == ["a", "b", "c"]
        assert catalog.find("a").owner == "other"

    def test_clear(self, catalog: Catalog):
        catalog.add(_resource("a"))
        catalog.clear()
        assert catalog.exists()
        assert catalog.resources() == []

    def test_find_missing(self, catalog: Catalog):
        assert catalog.find("nope") is None
