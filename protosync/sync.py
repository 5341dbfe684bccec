"""Synchronise the transitive import closure of .proto files into a directory.

Sources are either import paths (ending in ``.proto``), fetched through the
resolver, or local root directories, whose .proto files are scanned in place
for imports. Every import discovered is fetched exactly once per call and
written to ``dest`` under its import path, then parsed for further imports.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from .errors import ProtosyncError
from .errors import SyncError
from .errors import UnresolvedImportError
from .logging_setup import TRACE
from .parser import ProtoFile
from .parser import parse_file
from .resolver.base import NamedContent
from .resolver.base import NotFound
from .resolver.base import Resolver

logger = logging.getLogger(__name__)

PROTO_SUFFIX = ".proto"


@dataclass
class SyncState:
    """State for one sync call; never shared between calls."""

    dest: Path
    roots: list[str]
    resolver: Resolver
    logger: logging.Logger
    resolved: dict[str, bool] = field(default_factory=dict)

    def local_import(self, imp: str) -> str | None:
        """Path of ``imp`` under a local root, if any root provides it."""
        for root in self.roots:
            candidate = os.path.join(root, imp)
            if os.path.exists(candidate):
                return candidate
        return None


def sync(resolver: Resolver, dest: str | Path, *sources: str, log: logging.Logger | None = None) -> list[str]:
    """Sync a set of remote proto imports and/or local roots to ``dest``.

    Args:
        resolver: Resolver to fetch imports with, usually a ChainResolver
        dest: Destination root; files are written to ``dest/<import path>``
        sources: Import paths ("foo/bar.proto") and local root directories
        log: Logger for progress output, defaults to this module's logger

    Returns:
        Import paths synchronised into ``dest``, in the order they were fetched.
        Imports satisfied by a local root are not included.

    Raises:
        UnresolvedImportError: No resolver could provide an import
        SyncError: Fetching, writing or parsing a file failed
    """
    imports = [src for src in sources if src.endswith(PROTO_SUFFIX)]
    roots = [src for src in sources if not src.endswith(PROTO_SUFFIX)]
    state = SyncState(
        dest=Path(dest),
        roots=roots,
        resolver=resolver,
        logger=log or logger,
    )
    for imp in imports:
        resolve_recursive(state, imp)
    for root in roots:
        resolve_local_root(state, root)
    return list(state.resolved)


def resolve_local_root(state: SyncState, root: str) -> None:
    """Resolve the imports of every .proto file under a local root."""
    root_path = Path(root)
    if not root_path.is_dir():
        raise SyncError(f"local root {root!r} is not a directory")
    for path in sorted(root_path.rglob(f"*{PROTO_SUFFIX}")):
        if not path.is_file():
            continue
        state.logger.debug(f"Scanning {path}")
        resolve_imports(state, _parse(path))


def resolve_imports(state: SyncState, proto: ProtoFile) -> None:
    """Resolve every import of a parsed file that no local root provides."""
    pkg = ""
    for entry in proto.entries:
        if entry.package:
            pkg = entry.package
            continue
        if not entry.import_:
            continue
        imp = entry.import_
        if local := state.local_import(imp):
            state.logger.log(TRACE, f"{pkg} imports {imp} (local {local})")
            continue
        if state.resolved.get(imp):
            state.logger.log(TRACE, f"{pkg} imports {imp} (cached)")
        else:
            state.logger.log(TRACE, f"{pkg} imports {imp} (fetch)")
        try:
            resolve_recursive(state, imp)
        except SyncError as e:
            raise type(e)(f"{entry.pos}: {e}") from e


def resolve_recursive(state: SyncState, imp: str) -> None:
    """Fetch ``imp`` into the destination and recurse into its imports."""
    if state.resolved.get(imp):
        return
    try:
        result = state.resolver.resolve(imp)
    except ProtosyncError as e:
        raise SyncError(f"{imp}: {e}") from e
    if isinstance(result, NotFound):
        raise UnresolvedImportError(f"could not resolve {imp!r}, may need resolver config to be updated")

    # Mark before writing so re-discovery while this file is processed is a no-op.
    state.resolved[imp] = True
    dest_file = state.dest / imp
    with result:
        state.logger.info(f"{result.name} -> {dest_file}")
        _write_atomic(result, dest_file)

    resolve_imports(state, _parse(dest_file, imp))


def _write_atomic(content: NamedContent, dest_file: Path) -> None:
    """Copy content to ``dest_file`` via a temporary file and rename."""
    try:
        dest_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=dest_file.parent, prefix=f".{dest_file.name}-", suffix=".tmp")
    except OSError as e:
        raise SyncError(f"cannot write {dest_file}: {e}") from e
    try:
        with os.fdopen(fd, "wb") as w:
            shutil.copyfileobj(content, w)
        os.replace(tmp_name, dest_file)
    except OSError as e:
        _unlink(tmp_name)
        raise SyncError(f"cannot write {dest_file}: {e}") from e
    except BaseException:
        _unlink(tmp_name)
        raise


def _unlink(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def _parse(path: Path, filename: str | None = None) -> ProtoFile:
    try:
        return parse_file(path, filename)
    except ProtosyncError as e:
        raise SyncError(str(e)) from e
    except OSError as e:
        raise SyncError(f"cannot read {path}: {e}") from e
