"""
Error taxonomy for skillvault.

Every error raised on purpose by the vault derives from VaultError, so
callers (the CLI, sync batches) can catch the whole family at once.
Validation problems in a SKILL.md are never raised: they travel as data
inside ValidationResult.errors.
"""

__all__ = [
    "CatalogError",
    "DuplicateLabelError",
    "ExternalOperationError",
    "GitNotInstalledError",
    "GitVersionError",
    "InvalidAddressError",
    "InvalidPathError",
    "NotFoundError",
    "VaultError",
]


class VaultError(Exception):
    """Base class for all vault errors."""


class InvalidAddressError(VaultError, ValueError):
    """The source URL is not a supported repository/tree/blob URL."""


class DuplicateLabelError(VaultError):
    """A resource with the same label already exists in the catalog."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(
            f"Resource with label '{label}' already exists. "
            f"Use a custom label with: add(url, label='custom-label')"
        )


class NotFoundError(VaultError, LookupError):
    """No resource with the requested label."""


class InvalidPathError(VaultError, ValueError):
    """A path handed to unit discovery is missing or not a directory."""


class ExternalOperationError(VaultError):
    """A fetch/refresh collaborator command returned a failure."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        self.command = command or []
        self.stderr = stderr
        super().__init__(message)


class GitNotInstalledError(ExternalOperationError):
    """git is not installed or not on PATH."""


class GitVersionError(ExternalOperationError):
    """The installed git is too old for sparse checkout."""


class CatalogError(VaultError):
    """The catalog document (or an imported one) cannot be decoded."""
