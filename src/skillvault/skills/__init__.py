"""
Skills -- discovery of SKILL.md units in a fetched tree and validation
of their frontmatter.
"""

from .scanner import DiscoveredUnit, scan_units
from .validator import ValidationResult, validate_descriptor

__all__ = [
    "DiscoveredUnit",
    "ValidationResult",
    "scan_units",
    "validate_descriptor",
]
