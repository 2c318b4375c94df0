"""
Git Operations -- The fetch collaborator of the vault.

Wraps the ``git`` executable with subprocess:

- fetch:        full clone of a repository (optionally a branch)
- sparse_fetch: narrow checkout of a list of paths (git >= 2.25)
- refresh:      fetch + hard reset of a working copy to its remote branch

Any non-zero exit or timeout becomes an ExternalOperationError carrying
the command and the first part of stderr.
"""

import re
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

import structlog

from .errors import ExternalOperationError, GitNotInstalledError, GitVersionError

logger = structlog.get_logger()

__all__ = [
    "MIN_GIT_VERSION",
    "FetchBackend",
    "GitOperations",
]

MIN_GIT_VERSION = "2.25.0"


class FetchBackend(Protocol):
    """Interface the vault needs from a fetch collaborator."""

    def ensure_available(self) -> None: ...

    def fetch(self, url: str, local_path: Path, branch: str | None = None) -> None: ...

    def sparse_fetch(self, url: str, local_path: Path, branch: str, paths: list[str]) -> None: ...

    def refresh(self, local_path: Path) -> bool: ...


def _version_tuple(text: str) -> tuple[int, ...]:
    return tuple(int(p) for p in text.split("."))


class GitOperations:
    """Runs git commands for the vault."""

    def __init__(self, timeout: int = 120, min_version: str = MIN_GIT_VERSION):
        """Initialize the git wrapper.

        Args:
            timeout: Seconds allowed for each git command.
            min_version: Minimum git version (sparse-checkout support).
        """
        self.timeout = timeout
        self.min_version = min_version
        self.log = logger.bind(component="git")

    # ── Availability ─────────────────────────────────────────────────────

    def ensure_available(self) -> None:
        """Check that git is installed and recent enough.

        Raises:
            GitNotInstalledError: git is not on PATH.
            GitVersionError: git is older than min_version.
        """
        if shutil.which("git") is None:
            raise GitNotInstalledError("Git is not installed or not available in PATH")

        version = self.version()
        if _version_tuple(version) < _version_tuple(self.min_version):
            raise GitVersionError(
                f"Git version {version} is too old. Minimum required: {self.min_version}"
            )

    def version(self) -> str:
        """Installed git version as "X.Y.Z"."""
        stdout = self._run(["git", "--version"])
        match = re.search(r"git version (\d+\.\d+\.\d+)", stdout)
        if not match:
            raise ExternalOperationError(f"Cannot parse git version from: {stdout.strip()}")
        return match.group(1)

    # ── Fetch collaborator ───────────────────────────────────────────────

    def fetch(self, url: str, local_path: Path, branch: str | None = None) -> None:
        """Clone ``url`` into ``local_path``.

        An existing working copy (for example a sparse checkout left by a
        folder resource of the same repository) is widened to the full
        tree and reset to the remote branch instead.
        """
        target = Path(local_path)
        if (target / ".git").exists():
            cwd = str(target)
            self._run(["git", "sparse-checkout", "disable"], cwd=cwd)
            self._run(["git", "fetch", "origin", *([branch] if branch else [])], cwd=cwd)
            self._run(["git", "reset", "--hard", f"origin/{branch}" if branch else "FETCH_HEAD"], cwd=cwd)
            self.log.info("git.widened", url=url, path=cwd, branch=branch)
            return

        target.parent.mkdir(parents=True, exist_ok=True)
        cmd = ["git", "clone"]
        if branch:
            cmd += ["--branch", branch]
        cmd += [url, str(target)]
        self._run(cmd)
        self.log.info("git.cloned", url=url, path=str(target), branch=branch)

    def sparse_fetch(self, url: str, local_path: Path, branch: str, paths: list[str]) -> None:
        """Check out only ``paths`` of ``url`` into ``local_path``.

        A fresh directory is initialised as a sparse repository. When the
        directory already is a sparse repository (another folder of the same
        repo was added before) the paths are appended to its sparse set. A
        full clone already holds every path and is only fetched and reset.
        """
        target = Path(local_path)
        target.mkdir(parents=True, exist_ok=True)
        cwd = str(target)

        if (target / ".git").exists():
            if self._is_sparse(cwd):
                self._run(["git", "sparse-checkout", "add", *paths], cwd=cwd)
            self._run(["git", "fetch", "origin", branch], cwd=cwd)
            self._run(["git", "reset", "--hard", f"origin/{branch}"], cwd=cwd)
        else:
            self._run(["git", "init", cwd])
            self._run(["git", "remote", "add", "origin", url], cwd=cwd)
            self._run(["git", "sparse-checkout", "init", "--no-cone"], cwd=cwd)
            self._run(["git", "sparse-checkout", "set", *paths], cwd=cwd)
            self._run(["git", "fetch", "origin", branch], cwd=cwd)
            self._run(["git", "checkout", branch], cwd=cwd)

        self.log.info("git.sparse_checkout", url=url, path=cwd, branch=branch, paths=paths)

    def refresh(self, local_path: Path) -> bool:
        """Fetch and hard-reset a working copy to its remote branch.

        ``local_path`` may be any file or folder inside the working copy.

        Returns:
            True if HEAD moved.
        """
        path = Path(local_path)
        cwd = str(path if path.is_dir() else path.parent)

        before = self._run(["git", "rev-parse", "HEAD"], cwd=cwd).strip()
        branch = self._run(["git", "branch", "--show-current"], cwd=cwd).strip()
        self._run(["git", "fetch", "origin"], cwd=cwd)
        if branch:
            self._run(["git", "reset", "--hard", f"origin/{branch}"], cwd=cwd)
        after = self._run(["git", "rev-parse", "HEAD"], cwd=cwd).strip()

        changed = before != after
        self.log.info("git.refreshed", path=cwd, branch=branch, changed=changed)
        return changed

    # ── Internals ────────────────────────────────────────────────────────

    def _is_sparse(self, cwd: str) -> bool:
        """Whether the working copy at ``cwd`` is a sparse checkout."""
        value = self._run(["git", "config", "--bool", "core.sparseCheckout"], cwd=cwd, check=False)
        return value.strip() == "true"

    def _run(self, cmd: list[str], cwd: str | None = None, check: bool = True) -> str:
        """Run a git command and return stdout.

        With ``check=False`` a non-zero exit returns whatever stdout holds.

        Raises:
            ExternalOperationError: non-zero exit, timeout or missing binary.
        """
        self.log.debug("git.command", cmd=cmd, cwd=cwd)
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=cwd,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            self.log.error("git.command_timeout", cmd=cmd, timeout=self.timeout)
            raise ExternalOperationError(
                f"Command timed out after {self.timeout}s: {' '.join(cmd)}", command=cmd
            ) from e
        except OSError as e:
            self.log.error("git.command_error", cmd=cmd, error=str(e))
            raise ExternalOperationError(
                f"Command could not run: {' '.join(cmd)}: {e}", command=cmd
            ) from e

        if check and proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            self.log.error("git.command_failed", cmd=cmd, stderr=stderr[:200])
            raise ExternalOperationError(
                f"Command failed: {' '.join(cmd)}\n{stderr}", command=cmd, stderr=stderr
            )
        return proc.stdout or ""
