"""
Address Resolver -- Parses repository URLs into typed addresses.

Three shapes of URL are understood:

    https://github.com/<owner>/<repo>                          -> REPO
    https://github.com/<owner>/<repo>/tree/<branch>/<path>     -> FOLDER
    https://github.com/<owner>/<repo>/blob/<branch>/<path>     -> FILE

A blob URL that ends in SKILL.md is a "unit file": it also carries the
name of the skill and the folder that contains it.

Any other literal in the third segment falls back to a REPO address on
"main". That leniency is intentional (URLs such as ``/owner/repo/issues``
or ``/owner/repo/pulls`` still name the repository) and is covered by tests.
"""

from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote, urlsplit

import structlog

from .errors import InvalidAddressError

logger = structlog.get_logger()

__all__ = [
    "DEFAULT_BRANCH",
    "GITHUB_HOST",
    "MARKER_FILE",
    "Address",
    "ResourceKind",
    "resolve_address",
]

GITHUB_HOST = "github.com"
DEFAULT_BRANCH = "main"
MARKER_FILE = "SKILL.md"

_TREE = "tree"
_BLOB = "blob"


class ResourceKind(str, Enum):
    """What a URL (and the resource created from it) points at."""

    REPO = "repo"
    FOLDER = "folder"
    FILE = "file"


@dataclass(frozen=True)
class Address:
    """Immutable parse result of a source URL."""

    owner: str
    repo_name: str
    kind: ResourceKind
    branch: str = DEFAULT_BRANCH
    relative_path: str | None = None
    unit_name: str | None = None
    unit_folder_path: str | None = None
    host: str = GITHUB_HOST

    @property
    def is_unit_file(self) -> bool:
        """True when the address points at a SKILL.md file."""
        return self.kind is ResourceKind.FILE and bool(self.unit_name)

    @property
    def remote_url(self) -> str:
        """Clone URL of the repository behind this address."""
        return f"https://{self.host}/{self.owner}/{self.repo_name}"

    @property
    def label(self) -> str:
        """Default label for a resource created from this address.

        REPO        -> owner/repo
        unit file   -> owner/repo/<unit name>
        other       -> owner/repo/<last path segment>
        """
        if self.kind is ResourceKind.REPO:
            return f"{self.owner}/{self.repo_name}"
        if self.is_unit_file:
            return f"{self.owner}/{self.repo_name}/{self.unit_name}"
        last = (self.relative_path or "").split("/")[-1]
        return f"{self.owner}/{self.repo_name}/{last}"


def resolve_address(url: str, host: str = GITHUB_HOST) -> Address:
    """Parse a source URL into an Address.

    Args:
        url: Repository, tree or blob URL.
        host: Expected source host.

    Returns:
        The parsed Address.

    Raises:
        InvalidAddressError: wrong host or scheme, or fewer than two
            path segments (owner and repository).
    """
    parts = urlsplit((url or "").strip())
    if parts.scheme not in ("http", "https") or (parts.hostname or "") != host:
        raise InvalidAddressError(
            f"Invalid {host} URL: {url}. "
            f"Expected format: https://{host}/owner/repo[/tree/branch/path]"
        )

    # Decode segment by segment so an encoded "/" or space stays inside
    # its own segment.
    segments = [unquote(s) for s in parts.path.lstrip("/").split("/")]
    while segments and segments[-1] == "":
        segments.pop()

    if len(segments) < 2 or not segments[0] or not segments[1]:
        raise InvalidAddressError(
            f"Invalid {host} URL: {url}. Expected at least owner and repository"
        )

    owner = segments[0]
    repo_name = segments[1]
    if repo_name.endswith(".git") and len(repo_name) > 4:
        repo_name = repo_name[:-4]

    address = _interpret_segments(owner, repo_name, segments, host)
    logger.debug(
        "address.resolved",
        url=url,
        kind=address.kind.value,
        label=address.label,
    )
    return address


def _interpret_segments(
    owner: str, repo_name: str, segments: list[str], host: str
) -> Address:
    """Decide kind/branch/path from the segments after owner and repo."""
    if len(segments) <= 2:
        return Address(owner=owner, repo_name=repo_name, kind=ResourceKind.REPO, host=host)

    marker = segments[2]
    branch = segments[3] if len(segments) > 3 and segments[3] else DEFAULT_BRANCH
    path_parts = segments[4:]

    if marker == _TREE:
        if not path_parts:
            return Address(
                owner=owner,
                repo_name=repo_name,
                kind=ResourceKind.REPO,
                branch=branch,
                host=host,
            )
        return Address(
            owner=owner,
            repo_name=repo_name,
            kind=ResourceKind.FOLDER,
            branch=branch,
            relative_path="/".join(path_parts),
            host=host,
        )

    if marker == _BLOB:
        unit_name = None
        unit_folder_path = None
        if path_parts and path_parts[-1] == MARKER_FILE:
            if len(path_parts) >= 2:
                unit_name = path_parts[-2]
                unit_folder_path = "/".join(path_parts[:-1])
            else:
                # SKILL.md at the repository root: the repo is the unit
                unit_name = repo_name
                unit_folder_path = "."
        return Address(
            owner=owner,
            repo_name=repo_name,
            kind=ResourceKind.FILE,
            branch=branch,
            relative_path="/".join(path_parts),
            unit_name=unit_name,
            unit_folder_path=unit_folder_path,
            host=host,
        )

    # Unknown marker (issues, pulls, wiki...): lenient fallback to the repo
    return Address(owner=owner, repo_name=repo_name, kind=ResourceKind.REPO, host=host)
