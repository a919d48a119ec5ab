"""
Marketplace source locations.

A marketplace (or a plugin hosted outside its marketplace) is fetched
from one of:
- local: a directory on disk, copied without its .git directory
- github: "owner/repo" shorthand, cloned from github.com
- git: any git URL (https, ssh, git@, file://)
"""

from __future__ import annotations

import pathlib as _pathlib
import re as _re
import shutil as _shutil
import subprocess as _subprocess
import typing as _typing

import pydantic as _pydantic

import bazaar.constants as constants

SourceKind = _typing.Literal["local", "github", "git"]

_GITHUB_SHORTHAND_RE = _re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_GIT_URL_PREFIXES = ("http://", "https://", "ssh://", "git://", "git@", "file://")


class SourceFetchError(Exception):
    """Raised when a source cannot be copied, cloned or refreshed."""

    pass


class MarketplaceSource(_pydantic.BaseModel):
    """Where a marketplace or plugin is fetched from."""

    model_config = _pydantic.ConfigDict(frozen=True)

    kind: SourceKind
    location: str = _pydantic.Field(..., min_length=1)
    ref: str | None = None

    @property
    def url(self) -> str:
        """Clone URL (git/github) or directory path (local)."""
        if self.kind == "github":
            return f"https://github.com/{self.location}.git"
        return self.location

    def __str__(self) -> str:
        text = self.location
        if self.ref:
            text += f"#{self.ref}"
        return text


def parse_source(text: str, ref: str | None = None) -> MarketplaceSource:
    """
    Classify a user-supplied marketplace location.

    Args:
        text: Directory path, "owner/repo" shorthand or git URL.
        ref: Optional branch or tag to check out (git sources only).

    Returns:
        MarketplaceSource describing the location.

    Raises:
        ValueError: If the location is not recognized.
    """
    text = text.strip()
    if not text:
        raise ValueError("Empty marketplace source")

    path = _pathlib.Path(text).expanduser()
    if path.is_dir():
        return MarketplaceSource(kind="local", location=str(path.resolve()))

    if text.startswith(_GIT_URL_PREFIXES) or text.endswith(".git"):
        return MarketplaceSource(kind="git", location=text, ref=ref)

    if _GITHUB_SHORTHAND_RE.match(text):
        return MarketplaceSource(kind="github", location=text, ref=ref)

    raise ValueError(f"Unrecognized marketplace source: {text}")


def _run_git(
    args: list[str],
    *,
    cwd: _pathlib.Path | None = None,
    timeout: int = constants.DEFAULT_GIT_TIMEOUT,
) -> str:
    """Run a git command and return its stdout."""
    try:
        result = _subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            cwd=cwd,
            timeout=timeout,
            check=True,
        )
    except FileNotFoundError as e:
        raise SourceFetchError("git executable not found") from e
    except _subprocess.TimeoutExpired as e:
        raise SourceFetchError(f"git {args[0]} timed out after {timeout}s") from e
    except _subprocess.CalledProcessError as e:
        detail = (e.stderr or e.stdout or "").strip()
        raise SourceFetchError(f"git {args[0]} failed: {detail}") from e
    return result.stdout


def _copy_tree(source: _pathlib.Path, target: _pathlib.Path) -> None:
    if not source.is_dir():
        raise SourceFetchError(f"Source directory not found: {source}")
    try:
        _shutil.copytree(source, target, ignore=_shutil.ignore_patterns(".git"))
    except OSError as e:
        raise SourceFetchError(f"Failed to copy {source}: {e}") from e


def fetch_source(
    source: MarketplaceSource,
    target: _pathlib.Path,
    *,
    timeout: int = constants.DEFAULT_GIT_TIMEOUT,
) -> None:
    """
    Copy or clone a source into a new directory.

    Args:
        source: Where to fetch from.
        target: Destination directory (must not exist).
        timeout: Timeout for git commands, in seconds.

    Raises:
        SourceFetchError: If the target exists or the fetch fails.
    """
    if target.exists():
        raise SourceFetchError(f"Target already exists: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)

    if source.kind == "local":
        _copy_tree(_pathlib.Path(source.location), target)
        return

    args = ["clone", "--depth", "1"]
    if source.ref:
        args += ["--branch", source.ref]
    args += [source.url, str(target)]
    _run_git(args, timeout=timeout)


def refresh_source(
    source: MarketplaceSource,
    target: _pathlib.Path,
    *,
    timeout: int = constants.DEFAULT_GIT_TIMEOUT,
) -> None:
    """
    Bring an existing copy up to date with its source.

    Local sources are copied again; git checkouts are fast-forwarded.

    Raises:
        SourceFetchError: If the copy is missing or the refresh fails.
    """
    if source.kind == "local":
        origin = _pathlib.Path(source.location)
        if not origin.is_dir():
            raise SourceFetchError(f"Source directory not found: {origin}")
        if target.exists():
            _shutil.rmtree(target)
        _copy_tree(origin, target)
        return

    if not (target / ".git").exists():
        raise SourceFetchError(f"Not a git checkout: {target}")
    _run_git(["pull", "--ff-only"], cwd=target, timeout=timeout)
