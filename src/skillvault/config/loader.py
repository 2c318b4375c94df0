"""
Cargador de configuración con deep merge.

Orden de precedencia (de menor a mayor):
1. Defaults (definidos en los schemas Pydantic)
2. Archivo YAML
3. Variables de entorno (SKILLVAULT_*)
4. Argumentos CLI
"""

import os
from pathlib import Path
from typing import Any

import yaml

from .schema import AppConfig


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge recursivo de diccionarios.

    Args:
        base: Diccionario base
        override: Diccionario que sobreescribe valores del base

    Returns:
        Nuevo diccionario. Override gana en conflictos de hojas.

    Example:
        >>> deep_merge({"git": {"timeout": 60, "host": "github.com"}}, {"git": {"timeout": 5}})
        {'git': {'timeout': 5, 'host': 'github.com'}}
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_config(config_path: Path | None) -> dict[str, Any]:
    """Carga configuración desde archivo YAML.

    Args:
        config_path: Path al archivo YAML, o None para omitir

    Returns:
        Diccionario con la configuración, o dict vacío si no hay archivo

    Raises:
        FileNotFoundError: Si config_path no existe
    """
    if not config_path:
        return {}

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
        return data if data else {}


def load_env_overrides() -> dict[str, Any]:
    """Carga overrides desde variables de entorno.

    Variables soportadas:
        SKILLVAULT_STORAGE: sobreescribe storage.root
        SKILLVAULT_MANIFEST: sobreescribe storage.manifest_file
        SKILLVAULT_GIT_TIMEOUT: sobreescribe git.timeout
        SKILLVAULT_LOG_LEVEL: sobreescribe logging.level
    """
    overrides: dict[str, Any] = {}

    if storage := os.environ.get("SKILLVAULT_STORAGE"):
        overrides.setdefault("storage", {})["root"] = storage

    if manifest := os.environ.get("SKILLVAULT_MANIFEST"):
        overrides.setdefault("storage", {})["manifest_file"] = manifest

    # pydantic convierte y valida el entero
    if timeout := os.environ.get("SKILLVAULT_GIT_TIMEOUT"):
        overrides.setdefault("git", {})["timeout"] = timeout

    if log_level := os.environ.get("SKILLVAULT_LOG_LEVEL"):
        overrides.setdefault("logging", {})["level"] = log_level.lower()

    return overrides


def apply_cli_overrides(config_dict: dict[str, Any], cli_args: dict[str, Any]) -> dict[str, Any]:
    """Aplica overrides desde argumentos CLI.

    Args:
        config_dict: Configuración base (ya merged con YAML y env)
        cli_args: Diccionario con argumentos CLI

    Returns:
        Configuración con overrides de CLI aplicados
    """
    overrides: dict[str, Any] = {}

    if cli_args.get("storage"):
        overrides.setdefault("storage", {})["root"] = cli_args["storage"]

    if cli_args.get("manifest"):
        overrides.setdefault("storage", {})["manifest_file"] = cli_args["manifest"]

    if cli_args.get("git_timeout"):
        overrides.setdefault("git", {})["timeout"] = cli_args["git_timeout"]

    if cli_args.get("log_level"):
        overrides.setdefault("logging", {})["level"] = cli_args["log_level"]

    if cli_args.get("log_file"):
        overrides.setdefault("logging", {})["file"] = cli_args["log_file"]

    if cli_args.get("verbose") is not None:
        overrides.setdefault("logging", {})["verbose"] = cli_args["verbose"]

    if cli_args.get("no_validate"):
        overrides["validate_on_open"] = False

    return deep_merge(config_dict, overrides)


def load_config(
    config_path: Path | None = None,
    cli_args: dict[str, Any] | None = None,
) -> AppConfig:
    """Carga y valida la configuración completa.

    Args:
        config_path: Path al archivo YAML de configuración
        cli_args: Diccionario con argumentos de la CLI

    Returns:
        AppConfig validado y completo

    Raises:
        FileNotFoundError: Si config_path no existe
        ValidationError: Si la configuración final no es válida
    """
    cli_args = cli_args or {}

    merged = deep_merge(load_yaml_config(config_path), load_env_overrides())
    merged = apply_cli_overrides(merged, cli_args)

    return AppConfig(**merged)
