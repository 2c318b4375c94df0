"""
Descriptor Validator -- Checks a SKILL.md against the Agent Skills schema.

A SKILL.md starts with a YAML frontmatter block:

    ---
    name: pdf-tools
    description: Extract text and tables from PDF files.
    license: MIT
    allowed-tools: Read Bash
    ---

    # Body...

Content problems are never raised. They come back as the ordered list
``ValidationResult.errors``, with every applicable error reported (no
short-circuit after the first one).
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger()

__all__ = [
    "COMPATIBILITY_MAX_LENGTH",
    "DESCRIPTION_MAX_LENGTH",
    "NAME_MAX_LENGTH",
    "NAME_PATTERN",
    "ValidationResult",
    "decode_frontmatter",
    "extract_frontmatter",
    "validate_descriptor",
]

NAME_MAX_LENGTH = 64
DESCRIPTION_MAX_LENGTH = 1024
COMPATIBILITY_MAX_LENGTH = 500
NAME_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

_DELIMITER = "---"


@dataclass
class ValidationResult:
    """Outcome of validating one SKILL.md."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    fields: dict[str, Any] = field(default_factory=dict)


def extract_frontmatter(content: str) -> str | None:
    """Return the text between the opening and closing ``---`` lines.

    The first line must be the delimiter. Returns None when either
    delimiter is missing.
    """
    lines = content.splitlines()
    if not lines or lines[0].rstrip() != _DELIMITER:
        return None
    for index in range(1, len(lines)):
        if lines[index].rstrip() == _DELIMITER:
            return "\n".join(lines[1:index])
    return None


def decode_frontmatter(text: str) -> tuple[dict[str, Any] | None, str | None]:
    """Decode a frontmatter block.

    Returns:
        (mapping, None) on success, (None, error message) otherwise.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return None, f"Invalid YAML syntax: {e}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return None, "Frontmatter must be a YAML mapping"
    return data, None


def validate_descriptor(path: str | Path) -> ValidationResult:
    """Validate a SKILL.md file.

    Args:
        path: Path to the SKILL.md file.

    Returns:
        ValidationResult. ``fields`` holds name, description, license,
        compatibility, metadata and allowed_tools whenever the
        frontmatter decoded, and is empty otherwise.
    """
    file_path = Path(path)
    if not file_path.is_file():
        return ValidationResult(valid=False, errors=[f"File does not exist: {file_path}"])
    if not os.access(file_path, os.R_OK):
        return ValidationResult(valid=False, errors=[f"File is not readable: {file_path}"])

    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("skill.read_error", path=str(file_path), error=str(e))
        return ValidationResult(valid=False, errors=[f"File is not readable: {file_path} ({e})"])

    block = extract_frontmatter(content)
    if block is None:
        return ValidationResult(
            valid=False,
            errors=["No YAML frontmatter found (missing '---' delimiters)"],
        )

    data, decode_error = decode_frontmatter(block)
    if decode_error is not None:
        return ValidationResult(valid=False, errors=[decode_error])

    errors: list[str] = []
    _check_name(data.get("name"), errors)
    _check_description(data.get("description"), errors)
    _check_optional(data, errors)

    fields = {
        "name": data.get("name"),
        "description": data.get("description"),
        "license": data.get("license"),
        "compatibility": data.get("compatibility"),
        "metadata": data.get("metadata"),
        "allowed_tools": data.get("allowed-tools"),
    }

    result = ValidationResult(valid=not errors, errors=errors, fields=fields)
    logger.debug(
        "skill.validated",
        path=str(file_path),
        valid=result.valid,
        errors=len(errors),
    )
    return result


def _check_name(name: Any, errors: list[str]) -> None:
    if name is None:
        errors.append("Required field 'name' is missing")
        return
    if not isinstance(name, str):
        errors.append("Field 'name' must be a string")
        return
    if not name:
        errors.append("Field 'name' cannot be empty")
        return
    if len(name) > NAME_MAX_LENGTH:
        errors.append(f"Field 'name' exceeds maximum length of {NAME_MAX_LENGTH} characters")
    if not NAME_PATTERN.match(name):
        errors.append(
            "Field 'name' must contain only lowercase letters, numbers, and hyphens "
            "(no consecutive or leading/trailing hyphens)"
        )


def _check_description(description: Any, errors: list[str]) -> None:
    if description is None:
        errors.append("Required field 'description' is missing")
        return
    if not isinstance(description, str):
        errors.append("Field 'description' must be a string")
        return
    if not description:
        errors.append("Field 'description' cannot be empty")
        return
    if len(description) > DESCRIPTION_MAX_LENGTH:
        errors.append(
            f"Field 'description' exceeds maximum length of {DESCRIPTION_MAX_LENGTH} characters"
        )


def _check_optional(data: dict[str, Any], errors: list[str]) -> None:
    compatibility = data.get("compatibility")
    if compatibility is not None:
        if not isinstance(compatibility, str):
            errors.append("Field 'compatibility' must be a string")
        elif len(compatibility) > COMPATIBILITY_MAX_LENGTH:
            errors.append(
                f"Field 'compatibility' exceeds maximum length of "
                f"{COMPATIBILITY_MAX_LENGTH} characters"
            )

    metadata = data.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        errors.append("Field 'metadata' must be a hash/object")

    allowed_tools = data.get("allowed-tools")
    if allowed_tools is not None and not isinstance(allowed_tools, str):
        errors.append("Field 'allowed-tools' must be a string")
