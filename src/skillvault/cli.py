"""
Main CLI for skillvault using Click.

Every command opens the vault described by the configuration (YAML file,
SKILLVAULT_* env vars and the global flags below), runs one operation and
exits with one of the EXIT_* codes.
"""

import json
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
from pydantic import ValidationError

from . import __version__
from .config.loader import load_config
from .errors import (
    DuplicateLabelError,
    GitNotInstalledError,
    GitVersionError,
    NotFoundError,
    VaultError,
)
from .git import GitOperations
from .logging import configure_logging
from .resource import Resource, ValidationStatus
from .vault import Vault

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 3
EXIT_NOT_FOUND = 4
EXIT_DUPLICATE = 5

_STATUS_CHOICES = [s.value for s in ValidationStatus]


@click.group()
@click.version_option(version=__version__, prog_name="skillvault")
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to the YAML configuration file",
)
@click.option(
    "-s",
    "--storage",
    type=click.Path(file_okay=False, path_type=Path),
    help="Vault storage directory (default: ~/.skillvault)",
)
@click.option("--manifest", help="Catalog file name inside the storage directory")
@click.option("--git-timeout", type=int, help="Seconds allowed for each git command")
@click.option(
    "--no-validate",
    is_flag=True,
    help="Do not validate unvalidated resources when opening the vault",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Verbosity level (-v, -vv for more detail)",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "human", "warn", "error"]),
    help="Explicit logging level",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="File to save structured logs (JSON)",
)
@click.option("--quiet", is_flag=True, help="Only print command output")
@click.pass_context
def main(ctx: click.Context, config: Path | None, quiet: bool, **cli_args: Any) -> None:
    """skillvault - Keep a local vault of Agent Skills fetched from GitHub.

    Add repositories, folders or single SKILL.md files by URL, keep them
    in sync and validate their frontmatter.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["quiet"] = quiet
    ctx.obj["cli_args"] = cli_args


def _open_vault(ctx: click.Context, json_output: bool = False) -> Vault:
    """Load configuration, set up logging and open the vault.

    Exits with EXIT_CONFIG_ERROR when configuration or git is not usable.
    """
    obj = ctx.ensure_object(dict)
    try:
        config = load_config(config_path=obj.get("config_path"), cli_args=obj.get("cli_args", {}))
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except ValidationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    configure_logging(config.logging, json_output=json_output, quiet=obj.get("quiet", False))

    # ctx.obj["git"] replaces the fetch backend (CliRunner tests)
    git = obj.get("git")
    if git is None:
        git = GitOperations(timeout=config.git.timeout, min_version=config.git.min_version)

    try:
        return Vault(
            config.storage.root,
            manifest_file=config.storage.manifest_file,
            git=git,
            host=config.git.host,
            validate_on_open=config.validate_on_open,
        )
    except (GitNotInstalledError, GitVersionError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except VaultError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)


def _fail(e: Exception) -> NoReturn:
    """Print a vault error and exit with its code."""
    click.echo(f"Error: {e}", err=True)
    if isinstance(e, NotFoundError):
        sys.exit(EXIT_NOT_FOUND)
    if isinstance(e, DuplicateLabelError):
        sys.exit(EXIT_DUPLICATE)
    sys.exit(EXIT_FAILED)


def _format_row(resource: Resource) -> str:
    status = resource.validation_status.value
    return f"  {resource.label:<40} {resource.kind.value:<7} {status}"


# ── Commands ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("url")
@click.option("-l", "--label", help="Custom label (prefix when several units are found)")
@click.pass_context
def add(ctx: click.Context, url: str, label: str | None) -> None:
    """Add a repository, folder or file by URL."""
    vault = _open_vault(ctx)
    try:
        result = vault.add(url, label=label)
    except VaultError as e:
        _fail(e)

    resources = result if isinstance(result, list) else [result]
    for resource in resources:
        click.echo(_format_row(resource))


@main.command()
@click.argument("label", required=False)
@click.option("--all", "sync_all", is_flag=True, help="Sync every resource")
@click.pass_context
def sync(ctx: click.Context, label: str | None, sync_all: bool) -> None:
    """Pull the latest changes for one resource (or all with --all)."""
    if not label and not sync_all:
        click.echo("Error: Specify a LABEL or use --all", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    vault = _open_vault(ctx)
    if sync_all:
        results = vault.sync_all()
    else:
        try:
            results = {label: vault.sync(label)}
        except NotFoundError as e:
            _fail(e)

    failed = 0
    for name, outcome in results.items():
        if outcome.success:
            click.echo(f"  {name}: {'updated' if outcome.changes else 'up to date'}")
        else:
            failed += 1
            click.echo(f"  {name}: FAILED ({outcome.error})")
    sys.exit(EXIT_FAILED if failed else EXIT_SUCCESS)


@main.command("list")
@click.option("--owner", help="Only resources from this GitHub owner")
@click.option("--repo", help="Only resources from this repository name")
@click.option("--skill", "skill_name", help="Only resources with this skill name")
@click.option("--status", type=click.Choice(_STATUS_CHOICES), help="Only this validation status")
@click.option("--json", "json_output", is_flag=True, help="Print catalog records as JSON")
@click.pass_context
def list_cmd(
    ctx: click.Context,
    owner: str | None,
    repo: str | None,
    skill_name: str | None,
    status: str | None,
    json_output: bool,
) -> None:
    """List resources in the vault."""
    vault = _open_vault(ctx, json_output=json_output)
    resources = vault.list()
    filters = [
        (owner, vault.filter_by_owner),
        (repo, vault.filter_by_repo),
        (skill_name, vault.filter_by_skill_name),
        (status, vault.list_by_validation_status),
    ]
    for value, query in filters:
        if value:
            matched = {r.label for r in query(value)}
            resources = [r for r in resources if r.label in matched]

    if json_output:
        click.echo(json.dumps([r.to_record() for r in resources], indent=2, ensure_ascii=False))
        return

    if not resources:
        click.echo("  No resources in the vault.")
        return
    for resource in resources:
        click.echo(_format_row(resource))


@main.command()
@click.argument("label")
@click.option("--json", "json_output", is_flag=True, help="Print the catalog record as JSON")
@click.pass_context
def show(ctx: click.Context, label: str, json_output: bool) -> None:
    """Show one resource."""
    vault = _open_vault(ctx, json_output=json_output)
    try:
        resource = vault.fetch(label)
    except NotFoundError as e:
        _fail(e)

    if json_output:
        click.echo(json.dumps(resource.to_record(), indent=2, ensure_ascii=False))
        return

    click.echo(f"Label:      {resource.label}")
    click.echo(f"Source:     {resource.source_url}")
    click.echo(f"Type:       {resource.kind.value}")
    click.echo(f"Branch:     {resource.branch}")
    if resource.relative_path:
        click.echo(f"Path:       {resource.relative_path}")
    if resource.unit_name:
        click.echo(f"Skill:      {resource.unit_name}")
    click.echo(f"Local path: {vault.local_path(resource)}")
    click.echo(f"Added:      {resource.added_at.isoformat()}")
    click.echo(f"Synced:     {resource.last_synced_at.isoformat()}")
    click.echo(f"Status:     {resource.validation_status.value}")
    for error in resource.validation_errors:
        click.echo(f"   - {error}")


@main.command()
@click.argument("label")
@click.option("--delete-files", is_flag=True, help="Also delete the local files")
@click.pass_context
def remove(ctx: click.Context, label: str, delete_files: bool) -> None:
    """Remove a resource from the vault."""
    vault = _open_vault(ctx)
    try:
        vault.remove(label, delete_files=delete_files)
    except VaultError as e:
        _fail(e)
    click.echo(f"Removed '{label}'")


@main.command()
@click.argument("label", required=False)
@click.pass_context
def validate(ctx: click.Context, label: str | None) -> None:
    """Re-validate one resource, or every resource when no LABEL is given."""
    vault = _open_vault(ctx)
    if label:
        try:
            resource = vault.validate_resource(label)
        except VaultError as e:
            _fail(e)
        click.echo(_format_row(resource))
        for error in resource.validation_errors:
            click.echo(f"   - {error}")
        return

    counts = vault.validate_all()
    click.echo(
        f"valid: {counts['valid']}  invalid: {counts['invalid']}  "
        f"not a skill: {counts['not_a_skill']}  unvalidated: {counts['unvalidated']}"
    )


@main.command()
@click.pass_context
def cleanup(ctx: click.Context) -> None:
    """Remove invalid skills and delete their folders."""
    vault = _open_vault(ctx)
    removed = vault.cleanup_invalid()
    click.echo(f"Removed {removed} invalid skill(s)")


@main.command("export")
@click.argument("destination", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def export_cmd(ctx: click.Context, destination: Path) -> None:
    """Copy the catalog to DESTINATION."""
    vault = _open_vault(ctx)
    path = vault.export_manifest(destination)
    click.echo(f"Exported catalog to {path}")


@main.command("import")
@click.argument("source", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def import_cmd(ctx: click.Context, source: Path) -> None:
    """Merge the catalog at SOURCE into this vault (nothing is fetched)."""
    vault = _open_vault(ctx)
    try:
        replaced, appended = vault.import_manifest(source)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_NOT_FOUND)
    except VaultError as e:
        _fail(e)
    click.echo(f"Imported {replaced + appended} resource(s): {replaced} replaced, {appended} added")


@main.command()
@click.confirmation_option(prompt="Delete and re-fetch every resource?")
@click.pass_context
def redownload(ctx: click.Context) -> None:
    """Delete and re-fetch every resource in the vault."""
    vault = _open_vault(ctx)
    try:
        vault.redownload_all()
    except VaultError as e:
        _fail(e)
    click.echo(f"Re-downloaded {len(vault.list())} resource(s)")


if __name__ == "__main__":
    main()
