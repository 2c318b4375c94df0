"""
Vault -- Resource resolution and reconciliation engine.

A Vault keeps repositories, folders and files fetched from GitHub under a
storage root and tracks them in a JSON catalog (manifest.json):

    {storage_root}/
        manifest.json
        {owner}/{repo}/...        <- clone or sparse checkout

Adding a URL resolves it to an Address, fetches it, discovers SKILL.md
units inside the fetched tree, validates each one and records one
Resource per unit (or a single NOT_A_SKILL resource when there are none).
Syncing refreshes the working copy and reconciles the catalog with what
is on disk: existing units are re-validated in place (legacy records get
their unit_name backfilled), new units are added, vanished units are
kept.

Sync never raises for transport or validation problems; it returns a
SyncResult so that one failing resource does not abort a batch.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

import structlog

from .address import GITHUB_HOST, MARKER_FILE, Address, ResourceKind, resolve_address
from .catalog import Catalog, decode_document
from .errors import CatalogError, NotFoundError, VaultError
from .git import FetchBackend, GitOperations
from .logging.human import HumanLog
from .resource import Resource, ValidationStatus, update_resource, utc_now
from .skills import DiscoveredUnit, scan_units, validate_descriptor

logger = structlog.get_logger()

__all__ = ["DEFAULT_MANIFEST_FILE", "SyncResult", "Vault"]

DEFAULT_MANIFEST_FILE = "manifest.json"


@dataclass(frozen=True)
class SyncResult:
    """Outcome of syncing one resource."""

    success: bool
    changes: bool = False
    error: str | None = None


def _status_for(valid: bool) -> ValidationStatus:
    return ValidationStatus.VALID_SKILL if valid else ValidationStatus.INVALID_SKILL


def _join_relative(base: str, rel: str) -> str:
    """Join a unit's scan-relative path onto the address path ("." collapses)."""
    if rel in ("", "."):
        return base
    return f"{base.rstrip('/')}/{rel}"


def _delete_path(path: Path) -> None:
    """Remove a file or directory tree. A missing path is fine."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path, ignore_errors=True)
    elif path.exists() or path.is_symlink():
        path.unlink()


class Vault:
    """Manages a vault of fetched resources and its catalog."""

    def __init__(
        self,
        storage_root: str | Path,
        manifest_file: str = DEFAULT_MANIFEST_FILE,
        git: FetchBackend | None = None,
        host: str = GITHUB_HOST,
        validate_on_open: bool = True,
    ):
        """Open (or create) a vault.

        Args:
            storage_root: Directory where resources and the catalog live.
            manifest_file: Catalog file name inside storage_root.
            git: Fetch collaborator. Defaults to GitOperations().
            host: Accepted source host.
            validate_on_open: Validate UNVALIDATED resources right away.

        Raises:
            GitNotInstalledError: git is not available.
            GitVersionError: git is too old for sparse checkout.
        """
        self.storage_root = Path(storage_root).expanduser().resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.manifest_path = self.storage_root / manifest_file
        self.catalog = Catalog(self.manifest_path, host=host)
        if not self.catalog.exists():
            self.catalog.clear()

        self.host = host
        self.git = git if git is not None else GitOperations()
        self.git.ensure_available()

        self.log = logger.bind(component="vault", storage=str(self.storage_root))
        self.hlog = HumanLog(self.log)

        if validate_on_open and self.list_unvalidated():
            self.validate_all()

    # ── Queries ──────────────────────────────────────────────────────────

    def list(self) -> list[Resource]:
        """All resources in catalog order."""
        return self.catalog.resources()

    def find_by_label(self, label: str) -> Resource | None:
        return self.catalog.find(label)

    def fetch(self, label: str) -> Resource:
        """Return the resource with ``label``.

        Raises:
            NotFoundError: if there is no such resource.
        """
        resource = self.catalog.find(label)
        if resource is None:
            available = ", ".join(self.catalog.labels()) or "(none)"
            raise NotFoundError(
                f"Resource '{label}' not found in vault at {self.storage_root}. "
                f"Available labels: {available}"
            )
        return resource

    def filter_by_owner(self, owner: str) -> list[Resource]:
        return [r for r in self.list() if r.owner == owner]

    def filter_by_repo(self, repo_name: str) -> list[Resource]:
        return [r for r in self.list() if r.repo_name == repo_name]

    def filter_by_skill_name(self, name: str) -> list[Resource]:
        return [r for r in self.list() if r.unit_name == name]

    def list_by_validation_status(self, status: ValidationStatus | str) -> list[Resource]:
        wanted = ValidationStatus(status)
        return [r for r in self.list() if r.validation_status is wanted]

    def list_valid_skills(self) -> list[Resource]:
        return self.list_by_validation_status(ValidationStatus.VALID_SKILL)

    def list_invalid_skills(self) -> list[Resource]:
        return self.list_by_validation_status(ValidationStatus.INVALID_SKILL)

    def list_non_skills(self) -> list[Resource]:
        return self.list_by_validation_status(ValidationStatus.NOT_A_SKILL)

    def list_unvalidated(self) -> list[Resource]:
        return self.list_by_validation_status(ValidationStatus.UNVALIDATED)

    def local_path(self, resource: Resource) -> Path:
        return resource.local_path(self.storage_root)

    # ── Add ──────────────────────────────────────────────────────────────

    def add(self, url: str, label: str | None = None) -> Resource | list[Resource]:
        """Fetch a URL into the vault and record it.

        Args:
            url: Repository, tree or blob URL.
            label: Custom label. For multi-unit results it becomes a prefix.

        Returns:
            A list for repository URLs and for folders with several units,
            a single Resource otherwise.

        Raises:
            InvalidAddressError: the URL cannot be resolved.
            DuplicateLabelError: a label is already taken (catalog unchanged).
            ExternalOperationError: the fetch failed.
        """
        address = resolve_address(url, host=self.host)
        self.hlog.add_start(url=url, kind=address.kind.value)

        if address.kind is ResourceKind.REPO:
            created: list[Resource] = self._add_repository(address, label)
            result: Resource | list[Resource] = created
        elif address.kind is ResourceKind.FOLDER:
            created = self._add_folder(address, label)
            result = created if len(created) > 1 else created[0]
        else:
            created = [self._add_file(address, label)]
            result = created[0]

        self.catalog.add_many(created)
        for resource in created:
            self.hlog.resource_added(resource.label, resource.validation_status.value)
        return result

    def _new_resource(self, address: Address, label: str, kind: ResourceKind, **attrs) -> Resource:
        now = utc_now()
        return Resource(
            label=label,
            source_url=address.remote_url,
            owner=address.owner,
            repo_name=address.repo_name,
            kind=kind,
            branch=address.branch,
            added_at=now,
            last_synced_at=now,
            **attrs,
        )

    def _validated_unit(
        self,
        address: Address,
        label: str,
        kind: ResourceKind,
        unit: DiscoveredUnit,
        marker: Path,
        relative_path: str,
        folder_hint: str | None,
    ) -> Resource:
        result = validate_descriptor(marker)
        return self._new_resource(
            address,
            label,
            kind,
            relative_path=relative_path,
            folder_hint=folder_hint,
            validation_status=_status_for(result.valid),
            validation_errors=result.errors,
            unit_name=unit.unit_name,
            is_unit=True,
        )

    def _add_repository(self, address: Address, label: str | None) -> list[Resource]:
        repo_path = self.storage_root / address.owner / address.repo_name
        self.git.fetch(address.remote_url, repo_path, address.branch)
        units = scan_units(repo_path)

        if not units:
            return [
                self._new_resource(
                    address,
                    label or address.label,
                    ResourceKind.REPO,
                    validation_status=ValidationStatus.NOT_A_SKILL,
                    is_unit=False,
                )
            ]

        created = []
        for unit in units:
            unit_label = (
                f"{label}-{unit.unit_name}"
                if label
                else f"{address.owner}/{address.repo_name}/{unit.unit_name}"
            )
            created.append(
                self._validated_unit(
                    address,
                    unit_label,
                    ResourceKind.REPO,
                    unit,
                    repo_path / unit.relative_path / MARKER_FILE,
                    relative_path=unit.relative_path,
                    folder_hint=unit.folder_path,
                )
            )
        return created

    def _add_folder(self, address: Address, label: str | None) -> list[Resource]:
        repo_path = self.storage_root / address.owner / address.repo_name
        folder = address.relative_path or ""
        self.git.sparse_fetch(address.remote_url, repo_path, address.branch, [folder])
        target = repo_path / folder
        units = scan_units(target)

        if not units:
            return [
                self._new_resource(
                    address,
                    label or address.label,
                    ResourceKind.FOLDER,
                    relative_path=folder,
                    folder_hint=folder,
                    validation_status=ValidationStatus.NOT_A_SKILL,
                    is_unit=False,
                )
            ]

        def unit_label(unit: DiscoveredUnit) -> str:
            if len(units) == 1:
                return label or f"{address.owner}/{address.repo_name}/{unit.unit_name}"
            if label:
                return f"{label}/{unit.unit_name}"
            return f"{address.owner}/{address.repo_name}/{unit.unit_name}"

        return [
            self._validated_unit(
                address,
                unit_label(unit),
                ResourceKind.FOLDER,
                unit,
                target / unit.relative_path / MARKER_FILE,
                relative_path=_join_relative(folder, unit.relative_path),
                folder_hint=folder,
            )
            for unit in units
        ]

    def _add_file(self, address: Address, label: str | None) -> Resource:
        repo_path = self.storage_root / address.owner / address.repo_name

        if address.is_unit_file:
            unit_folder = address.unit_folder_path or "."
            paths = [f"/{MARKER_FILE}"] if unit_folder == "." else [unit_folder]
            self.git.sparse_fetch(address.remote_url, repo_path, address.branch, paths)
            result = validate_descriptor(repo_path / unit_folder / MARKER_FILE)
            return self._new_resource(
                address,
                label or address.label,
                ResourceKind.FILE,
                relative_path=unit_folder,
                folder_hint=unit_folder,
                validation_status=_status_for(result.valid),
                validation_errors=result.errors,
                unit_name=address.unit_name,
                is_unit=True,
            )

        file_path = address.relative_path or ""
        parent = file_path.rsplit("/", 1)[0] if "/" in file_path else ""
        paths = [parent] if parent else [f"/{file_path}"]
        self.git.sparse_fetch(address.remote_url, repo_path, address.branch, paths)
        return self._new_resource(
            address,
            label or address.label,
            ResourceKind.FILE,
            relative_path=file_path,
            folder_hint=parent or None,
            validation_status=ValidationStatus.NOT_A_SKILL,
            is_unit=False,
        )

    # ── Sync ─────────────────────────────────────────────────────────────

    def sync(self, label: str) -> SyncResult:
        """Pull the latest changes for a resource and reconcile the catalog.

        Raises:
            NotFoundError: if the label is unknown. Everything else is
                reported through the returned SyncResult.
        """
        return self._sync_resource(self.fetch(label))

    def sync_all(self) -> dict[str, SyncResult]:
        """Sync every resource; failures do not stop the batch."""
        results: dict[str, SyncResult] = {}
        for resource in self.list():
            results[resource.label] = self._sync_resource(resource)
        return results

    def _sync_resource(self, resource: Resource) -> SyncResult:
        self.hlog.sync_start(resource.label)
        local_path = self.local_path(resource)
        if not local_path.exists():
            error = f"Path does not exist: {local_path}"
            self.hlog.sync_failed(resource.label, error)
            return SyncResult(success=False, error=error)

        try:
            changes = bool(self.git.refresh(local_path))
            if resource.kind is ResourceKind.REPO:
                self._reconcile_repository(resource, local_path)
            else:
                self.validate_resource(resource.label)
            self._stamp_synced(resource.owner, resource.repo_name)
        except (VaultError, OSError) as e:
            self.log.warning("vault.sync_error", label=resource.label, error=str(e))
            self.hlog.sync_failed(resource.label, str(e))
            return SyncResult(success=False, error=str(e))

        self.hlog.sync_complete(resource.label, changes)
        return SyncResult(success=True, changes=changes)

    def _reconcile_repository(self, resource: Resource, repo_path: Path) -> None:
        """Re-discover units of a full repository and upsert them."""
        units = scan_units(repo_path)
        # any kind: a folder added on its own may already own owner/repo/<unit>
        siblings = [
            r for r in self.list()
            if r.owner == resource.owner and r.repo_name == resource.repo_name
        ]

        for unit in units:
            unit_label = f"{resource.owner}/{resource.repo_name}/{unit.unit_name}"
            existing = next((r for r in siblings if r.unit_name == unit.unit_name), None)
            if existing is None:
                existing = next((r for r in siblings if r.label == unit_label), None)

            result = validate_descriptor(repo_path / unit.relative_path / MARKER_FILE)

            if existing is not None:
                updated = update_resource(
                    existing,
                    validation_status=_status_for(result.valid),
                    validation_errors=result.errors,
                    unit_name=existing.unit_name or unit.unit_name,
                    is_unit=True,
                    relative_path=existing.relative_path or unit.relative_path,
                    folder_hint=existing.folder_hint or unit.folder_path,
                )
                self.catalog.update(updated)
                if existing.unit_name is None:
                    self.log.info("vault.legacy_upgraded", label=existing.label, unit=unit.unit_name)
                continue

            now = utc_now()
            new_resource = Resource(
                label=unit_label,
                source_url=resource.source_url,
                owner=resource.owner,
                repo_name=resource.repo_name,
                kind=ResourceKind.REPO,
                branch=resource.branch,
                relative_path=unit.relative_path,
                folder_hint=unit.folder_path,
                added_at=now,
                last_synced_at=now,
                validation_status=_status_for(result.valid),
                validation_errors=result.errors,
                unit_name=unit.unit_name,
                is_unit=True,
            )
            self.catalog.add(new_resource)
            siblings.append(new_resource)
            self.hlog.resource_added(new_resource.label, new_resource.validation_status.value)

    def _stamp_synced(self, owner: str, repo_name: str) -> None:
        """Set last_synced_at on every resource from the same repository."""
        now = utc_now()
        for r in self.list():
            if r.owner == owner and r.repo_name == repo_name:
                self.catalog.update(update_resource(r, last_synced_at=now))

    # ── Validation ───────────────────────────────────────────────────────

    def validate_resource(self, label: str) -> Resource:
        """Re-validate one resource and store the outcome.

        Raises:
            NotFoundError: if the label is unknown.
        """
        resource = self.fetch(label)

        if resource.is_unit:
            result = validate_descriptor(resource.marker_path(self.storage_root))
            updated = update_resource(
                resource,
                validation_status=_status_for(result.valid),
                validation_errors=result.errors,
            )
        else:
            updated = update_resource(
                resource,
                validation_status=ValidationStatus.NOT_A_SKILL,
                validation_errors=(),
            )

        self.catalog.update(updated)
        self.log.debug("vault.validated", label=label, status=updated.validation_status.value)
        return updated

    def validate_all(self) -> dict[str, int]:
        """Re-validate every resource.

        Returns:
            Counts keyed by valid, invalid, not_a_skill, unvalidated.
        """
        counts = {"valid": 0, "invalid": 0, "not_a_skill": 0, "unvalidated": 0}
        keys = {
            ValidationStatus.VALID_SKILL: "valid",
            ValidationStatus.INVALID_SKILL: "invalid",
            ValidationStatus.NOT_A_SKILL: "not_a_skill",
        }
        for resource in self.list():
            updated = self.validate_resource(resource.label)
            counts[keys.get(updated.validation_status, "unvalidated")] += 1

        self.hlog.validated(**counts)
        return counts

    def cleanup_invalid(self) -> int:
        """Remove INVALID_SKILL resources and delete their unit folders.

        Returns:
            Number of resources removed.
        """
        invalid = self.list_invalid_skills()
        for resource in invalid:
            _delete_path(resource.unit_path(self.storage_root))
            self.catalog.remove(resource.label)
            self.hlog.resource_removed(resource.label, deleted_files=True)
        return len(invalid)

    # ── Remove ───────────────────────────────────────────────────────────

    def remove(self, label: str, delete_files: bool = False) -> None:
        """Remove a resource from the catalog.

        Args:
            label: Resource label.
            delete_files: Also delete the resource's local path.

        Raises:
            NotFoundError: if the label is unknown.
        """
        resource = self.fetch(label)
        if delete_files:
            _delete_path(self.local_path(resource))
        self.catalog.remove(label)
        self.hlog.resource_removed(label, deleted_files=delete_files)

    # ── Manifest transfer ────────────────────────────────────────────────

    def export_manifest(self, export_path: str | Path) -> Path:
        """Copy the catalog file byte for byte."""
        dest = Path(export_path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.manifest_path, dest)
        self.log.info("vault.exported", path=str(dest))
        return dest

    def import_manifest(self, import_path: str | Path) -> tuple[int, int]:
        """Merge another catalog into this one. Nothing is fetched.

        Imported records replace existing ones with the same label and
        are appended otherwise. Records are normalised on the way in.

        Returns:
            (replaced, appended) counts.

        Raises:
            FileNotFoundError: import_path does not exist.
            CatalogError: the document or one of its records is malformed.
        """
        source = Path(import_path)
        if not source.exists():
            raise FileNotFoundError(f"Manifest not found: {source}")

        document = decode_document(source.read_text(encoding="utf-8"), str(source))
        imported = [Resource.from_record(record, host=self.host) for record in document["resources"]]
        labels = [r.label for r in imported]
        if len(set(labels)) != len(labels):
            raise CatalogError(f"Imported manifest has duplicate labels: {source}")

        replaced, appended = self.catalog.merge(imported)
        self.hlog.imported(path=str(source), replaced=replaced, appended=appended)
        return replaced, appended

    def redownload_all(self) -> None:
        """Delete and re-fetch every resource, then stamp last_synced_at.

        Full repositories shared by several unit resources are cloned once.
        """
        cloned: set[tuple[str, str]] = set()
        for resource in self.list():
            repo_key = (resource.owner, resource.repo_name)
            if resource.kind is ResourceKind.REPO:
                if repo_key not in cloned:
                    repo_path = resource.repo_path(self.storage_root)
                    _delete_path(repo_path)
                    self.git.fetch(resource.source_url, repo_path, resource.branch)
                    cloned.add(repo_key)
            else:
                target = self.local_path(resource)
                if target == resource.repo_path(self.storage_root):
                    # unit at the repository root: the checkout is shared
                    target = resource.marker_path(self.storage_root)
                _delete_path(target)
                self.git.sparse_fetch(
                    resource.source_url,
                    resource.repo_path(self.storage_root),
                    resource.branch,
                    resource.fetch_paths(),
                )

            self.catalog.update(update_resource(resource, last_synced_at=utc_now()))
            self.hlog.redownloaded(resource.label)
