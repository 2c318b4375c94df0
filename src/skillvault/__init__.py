"""
skillvault - Local vault of Agent Skills fetched from GitHub.
"""

__version__ = "0.1.0"

from .address import Address, ResourceKind, resolve_address
from .errors import (
    CatalogError,
    DuplicateLabelError,
    ExternalOperationError,
    GitNotInstalledError,
    GitVersionError,
    InvalidAddressError,
    InvalidPathError,
    NotFoundError,
    VaultError,
)
from .resource import Resource, ValidationStatus
from .skills import DiscoveredUnit, ValidationResult, scan_units, validate_descriptor
from .vault import SyncResult, Vault

__all__ = [
    "Address",
    "CatalogError",
    "DiscoveredUnit",
    "DuplicateLabelError",
    "ExternalOperationError",
    "GitNotInstalledError",
    "GitVersionError",
    "InvalidAddressError",
    "InvalidPathError",
    "NotFoundError",
    "Resource",
    "ResourceKind",
    "SyncResult",
    "ValidationResult",
    "ValidationStatus",
    "Vault",
    "VaultError",
    "resolve_address",
    "scan_units",
    "validate_descriptor",
    "__version__",
]
