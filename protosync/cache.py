"""On-disk cache utilities - single source of truth for cache locations.

Layout under the per-user cache directory:

- ``<artifact>-<version>.jar``: downloaded archives, trusted by name
- ``protosync/<repo>-<hash>/``: git checkouts used by the clone fallback
- ``protosync/archives.json``: the archives protosync downloaded. The cache
  directory is shared with other tools, so only JARs listed here are ours.

The cache is a performance optimization only; deleting it is always safe.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from datetime import UTC
from datetime import datetime
from pathlib import Path

import platformdirs

logger = logging.getLogger(__name__)

CLONE_SUBDIR = "protosync"
CLONE_METADATA = "protosync-cache.json"
ARCHIVE_MANIFEST = "archives.json"


@dataclass
class CachedEntry:
    """Information about a cached clone or archive."""

    kind: str  # clone, archive
    name: str
    ref: str
    url: str
    is_mutable: bool
    cached_at: str
    cache_path: Path


def get_cache_dir() -> Path:
    """Get the per-user cache directory.

    ``PROTOSYNC_CACHE_DIR`` overrides the platform default from platformdirs
    (eg. ``~/.cache`` on Linux, ``~/Library/Caches`` on macOS).
    """
    if override := os.environ.get("PROTOSYNC_CACHE_DIR"):
        return Path(override).expanduser()
    return Path(platformdirs.user_cache_dir())


def get_clone_dir(cache_dir: Path | None = None) -> Path:
    """Directory holding git checkouts."""
    return (cache_dir or get_cache_dir()) / CLONE_SUBDIR


def cache_key(*values: object) -> str:
    """Deterministic hex digest of a sequence of JSON-serialisable values."""
    digest = hashlib.sha256()
    for value in values:
        digest.update(json.dumps(value).encode("utf-8"))
        digest.update(b"\n")
    return digest.hexdigest()


def write_clone_metadata(checkout: Path, url: str, ref: str) -> None:
    """Record where a checkout came from, inside its .git directory."""
    metadata = {
        "url": url,
        "ref": ref,
        "cached_at": datetime.now(UTC).isoformat(timespec="seconds"),
    }
    (checkout / ".git" / CLONE_METADATA).write_text(json.dumps(metadata, indent=2), encoding="utf-8")


def is_immutable_ref(ref: str) -> bool:
    """Check if ref is immutable (SHA or version tag)."""
    if re.match(r"^[0-9a-f]{7,40}$", ref):
        return True
    return bool(re.match(r"^v?\d+\.\d+", ref))


def _archive_manifest_path(cache_dir: Path) -> Path:
    return get_clone_dir(cache_dir) / ARCHIVE_MANIFEST


def read_archive_manifest(cache_dir: Path | None = None) -> dict[str, dict[str, str]]:
    """Archives protosync downloaded into ``cache_dir``, keyed by file name."""
    path = _archive_manifest_path(cache_dir or get_cache_dir())
    try:
        manifest = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"Could not read archive manifest {path}: {e}")
        return {}
    return manifest if isinstance(manifest, dict) else {}


def _write_archive_manifest(cache_dir: Path, manifest: dict[str, dict[str, str]]) -> None:
    path = _archive_manifest_path(cache_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2, sort_keys=True)
        os.replace(tmp_name, path)
    except BaseException:
        os.unlink(tmp_name)
        raise


def record_archive(archive: Path, artifact: str, version: str, url: str) -> None:
    """Register a downloaded archive so cache commands know it is ours.

    The manifest lives in the clone directory of the cache the archive was
    downloaded into (``archive.parent``).
    """
    cache_dir = archive.parent
    manifest = read_archive_manifest(cache_dir)
    manifest[archive.name] = {
        "artifact": artifact,
        "version": version,
        "url": url,
        "cached_at": datetime.now(UTC).isoformat(timespec="seconds"),
    }
    _write_archive_manifest(cache_dir, manifest)


def forget_archive(archive: Path) -> None:
    """Drop an archive from the manifest of the cache it lives in."""
    cache_dir = archive.parent
    manifest = read_archive_manifest(cache_dir)
    if manifest.pop(archive.name, None) is not None:
        _write_archive_manifest(cache_dir, manifest)


def scan_cache(cache_dir: Path | None = None) -> list[CachedEntry]:
    """Scan and return all cached clones and archives, sorted by name.

    Only archives recorded by :func:`record_archive` are returned; other JARs
    in the shared cache directory belong to other tools.
    """
    cache_dir = cache_dir or get_cache_dir()
    entries: list[CachedEntry] = []

    clone_dir = get_clone_dir(cache_dir)
    if clone_dir.is_dir():
        for checkout in clone_dir.iterdir():
            if not (checkout / ".git").is_dir():
                continue
            url = ""
            ref = "unknown"
            cached_at = ""
            metadata_file = checkout / ".git" / CLONE_METADATA
            if metadata_file.exists():
                try:
                    metadata = json.loads(metadata_file.read_text(encoding="utf-8"))
                    url = metadata.get("url", "")
                    ref = metadata.get("ref", "unknown")
                    cached_at = metadata.get("cached_at", "")
                except (OSError, json.JSONDecodeError) as e:
                    logger.debug(f"Could not read clone metadata from {metadata_file}: {e}")
            entries.append(
                CachedEntry(
                    kind="clone",
                    name=checkout.name,
                    ref=ref,
                    url=url,
                    is_mutable=not is_immutable_ref(ref),
                    cached_at=cached_at,
                    cache_path=checkout,
                )
            )

    for filename, info in read_archive_manifest(cache_dir).items():
        archive = cache_dir / filename
        if not archive.is_file():
            continue
        entries.append(
            CachedEntry(
                kind="archive",
                name=info.get("artifact", filename),
                ref=info.get("version", "unknown"),
                url=info.get("url", ""),
                is_mutable=False,
                cached_at=info.get("cached_at", ""),
                cache_path=archive,
            )
        )

    entries.sort(key=lambda e: (e.kind, e.name))
    return entries


def clear_cache(entries: list[CachedEntry]) -> tuple[int, list[tuple[CachedEntry, OSError]]]:
    """Delete the given cache entries.

    Returns:
        Tuple of (cleared_count, failures)
    """
    cleared = 0
    failures: list[tuple[CachedEntry, OSError]] = []
    for entry in entries:
        try:
            if entry.cache_path.is_dir():
                shutil.rmtree(entry.cache_path)
            else:
                entry.cache_path.unlink()
            if entry.kind == "archive":
                forget_archive(entry.cache_path)
            cleared += 1
            logger.debug(f"Cleared {entry.kind} {entry.name}@{entry.ref}")
        except OSError as e:
            failures.append((entry, e))
    return cleared, failures
