"""
Configuration module for skillvault.
"""

from .loader import deep_merge, load_config
from .schema import AppConfig, GitConfig, LoggingConfig, StorageConfig

__all__ = [
    "AppConfig",
    "GitConfig",
    "LoggingConfig",
    "StorageConfig",
    "deep_merge",
    "load_config",
]
