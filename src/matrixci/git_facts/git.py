# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes all Git interactions so the rest of the codebase
# never needs to call subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


def _git(
    args: list[str],
    cwd: Optional[str | Path] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    This is the single low-level entry point for all Git operations in this file.
    Every other function builds on top of this to ensure:
    - consistent invocation of git
    - consistent text output (not bytes)
    - stderr captured so failures carry git's own message

    Args:
        args: List of git arguments (e.g. ["status", "--porcelain"])
        cwd: Optional working directory in which to run the git command.
        timeout: Optional limit in seconds; git is killed when it runs longer.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: If git exits non-zero
        FileNotFoundError: If git is not installed
        subprocess.TimeoutExpired: If git outlives `timeout`
    """
    out = subprocess.run(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        check=True,
        capture_output=True,
        text=True,  # return output as str instead of bytes
        timeout=timeout,
    )

    # Strip trailing newlines so callers can do clean string comparisons
    return out.stdout.strip()


def is_repo(path: str | Path) -> bool:
    """
    Return True if `path` is inside a Git work tree.

    Missing directories and a missing git binary both count as "not a repo".
    """
    if not Path(path).is_dir():
        return False
    try:
        return _git(["rev-parse", "--is-inside-work-tree"], cwd=path) == "true"
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def repo_root(cwd: Optional[str | Path] = None) -> Path:
    """
    Return the absolute path to the root of the current Git repository.

    This uses git itself as the source of truth rather than guessing based
    on filesystem layout.
    """
    # `git rev-parse --show-toplevel` prints the repo root directory
    # regardless of where the command is run from inside the repo.
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd))


def head_sha(cwd: Optional[str | Path] = None) -> str:
    """
    Return the full SHA hash of the current HEAD commit.

    The checkout action pins this SHA so every job in a run builds the
    same revision.
    """
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def current_ref(cwd: Optional[str | Path] = None) -> str:
    """
    Return the current branch name, or "HEAD" when detached.
    """
    # --abbrev-ref prints "HEAD" for a detached checkout
    return _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)


def clone(url: str, dest: str | Path, timeout: Optional[float] = None) -> None:
    """
    Clone `url` into `dest`.

    `dest` may already exist as long as it is empty, which is the case for
    a freshly provisioned workspace.
    """
    _git(["clone", "--quiet", url, str(dest)], timeout=timeout)


def checkout(revision: str, cwd: str | Path, timeout: Optional[float] = None) -> None:
    """
    Check out a branch, tag or commit SHA in an existing clone.

    A SHA that is not reachable from the cloned refs (e.g. a pull request
    head from a fork) is fetched explicitly first.
    """
    try:
        _git(["checkout", "--quiet", revision], cwd=cwd, timeout=timeout)
    except subprocess.CalledProcessError:
        _git(["fetch", "--quiet", "origin", revision], cwd=cwd, timeout=timeout)
        _git(["checkout", "--quiet", "FETCH_HEAD"], cwd=cwd, timeout=timeout)
