"""Git clone transport - fallback for when raw HTTP downloads fail.

Clones (or updates) the repository into the user cache directory, checks out
the requested revision and reads files straight from the working tree. This
is what makes private repositories work: git uses the user's own SSH keys or
credential helpers where an anonymous HTTP fetch gets a 404 or a login page.
"""

from __future__ import annotations

import logging
import os
import posixpath
import shutil
import subprocess
import tempfile
from pathlib import Path

from ..cache import cache_key
from ..cache import get_clone_dir
from ..cache import write_clone_metadata
from ..errors import CloneError
from ..errors import FetchError
from .base import NamedContent
from .giturls import RepoURL

logger = logging.getLogger(__name__)


def run_git(cwd: Path, *args: str) -> str:
    """Run a git command in the given directory and return its stdout.

    Raises:
        CloneError: git is missing or exited non-zero
    """
    cmd = ["git", *args]
    logger.debug(f"Running: {' '.join(cmd)} (in {cwd})")
    try:
        result = subprocess.run(cmd, cwd=cwd, check=True, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise CloneError(f"{' '.join(cmd)} failed: git executable not found") from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip() or f"exit status {e.returncode}"
        raise CloneError(f"{' '.join(cmd)} failed: {detail}") from e
    return result.stdout


def _has_remote_branch(checkout: Path, ref: str) -> bool:
    result = subprocess.run(
        ["git", "rev-parse", "--verify", "--quiet", f"refs/remotes/origin/{ref}"],
        cwd=checkout,
        capture_output=True,
        text=True,
    )
    return result.returncode == 0


def clone_or_update(url: str, checkout: Path, ref: str) -> None:
    """Make ``checkout`` a git working tree of ``url`` at ``ref``.

    An existing checkout is fetched and, for branches, fast-forwarded. A new
    one is cloned into a temporary sibling directory and renamed into place,
    so an interrupted clone never looks like a valid cache entry.
    """
    if (checkout / ".git").exists():
        logger.debug(f"Updating cached clone {checkout}")
        run_git(checkout, "fetch", "--tags", "--force", "origin")
    else:
        checkout.parent.mkdir(parents=True, exist_ok=True)
        tmp_checkout = Path(tempfile.mkdtemp(prefix=checkout.name + "-", dir=checkout.parent))
        try:
            logger.info(f"Cloning {url}")
            run_git(checkout.parent, "clone", "--quiet", url, str(tmp_checkout))
            try:
                os.rename(tmp_checkout, checkout)
            except OSError as e:
                # Another process finished the same clone first.
                if not (checkout / ".git").exists():
                    raise FetchError(f"cannot move clone into place at {checkout}: {e}") from e
                logger.debug(f"Clone {checkout} appeared concurrently, using it")
        finally:
            if tmp_checkout.exists():
                shutil.rmtree(tmp_checkout, ignore_errors=True)

    run_git(checkout, "checkout", "--quiet", ref)
    if _has_remote_branch(checkout, ref):
        run_git(checkout, "merge", "--quiet", "--ff-only", f"origin/{ref}")
    write_clone_metadata(checkout, url, ref)


class GitCloner:
    """Fetch single files from a cached git checkout."""

    def __init__(self, cache_dir: Path | None = None):
        self.cache_dir = cache_dir

    def checkout_path(self, url: RepoURL, commit: str) -> Path:
        name = posixpath.basename(url.path.rstrip("/")) or url.host
        return get_clone_dir(self.cache_dir) / f"{name}-{cache_key(url.geturl(), commit)}"

    def fetch(self, url: RepoURL, rel_path: str, commit: str) -> NamedContent:
        """Clone or update the repository and open ``rel_path`` from it.

        Raises:
            CloneError: A git command failed
            FetchError: The file is missing from the checkout
        """
        checkout = self.checkout_path(url, commit)
        clone_or_update(url.geturl(), checkout, commit)
        local_path = checkout / rel_path
        try:
            stream = open(local_path, "rb")
        except OSError as e:
            raise FetchError(f"{rel_path} not found in clone at {commit}: {e.strerror or e}") from e
        return NamedContent(f"{url} + {rel_path}", stream)

    def __repr__(self) -> str:
        return f"GitCloner({get_clone_dir(self.cache_dir)})"
