"""
Schemas Pydantic para la configuración de skillvault.

Cada sección del YAML tiene su modelo. Las claves desconocidas se
rechazan (extra="forbid") para detectar errores tipográficos pronto.

Ejemplo de YAML:

    storage:
      root: ~/.skillvault
      manifest_file: manifest.json
    git:
      timeout: 120
    logging:
      level: human
      file: ~/.skillvault/logs/vault.jsonl
    validate_on_open: true
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from ..address import GITHUB_HOST
from ..git import MIN_GIT_VERSION


class StorageConfig(BaseModel):
    """Where the vault keeps its resources and catalog."""

    root: Path = Path("~/.skillvault")
    manifest_file: str = "manifest.json"

    model_config = {"extra": "forbid"}


class GitConfig(BaseModel):
    """Fetch collaborator configuration."""

    host: str = GITHUB_HOST
    timeout: int = Field(default=120, ge=1)
    min_version: str = MIN_GIT_VERSION

    model_config = {"extra": "forbid"}


class LoggingConfig(BaseModel):
    """Logging system configuration."""

    level: Literal["debug", "info", "human", "warn", "error"] = "human"
    file: Path | None = None
    verbose: int = 0

    model_config = {"extra": "forbid"}


class AppConfig(BaseModel):
    """Complete application configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    validate_on_open: bool = True

    model_config = {"extra": "forbid"}
