"""Resolver protocol and chaining.

A resolver maps an import path to a :class:`NamedContent`, or to
:class:`NotFound` when the path is not one it can serve. Hard failures are
raised as :class:`~protosync.errors.ProtosyncError` subclasses.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import BinaryIO
from typing import Protocol
from typing import runtime_checkable

logger = logging.getLogger(__name__)


class NamedContent:
    """A readable byte stream tagged with where it came from.

    The name is provenance for logs and diagnostics only and is never parsed.
    """

    def __init__(self, name: str, stream: BinaryIO):
        self.name = name
        self._stream = stream

    def read(self, size: int = -1) -> bytes:
        return self._stream.read(size)

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> NamedContent:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"NamedContent({self.name})"


@dataclass(frozen=True)
class NotFound:
    """Outcome of a resolver that has no opinion on a path."""

    reason: str = ""


NOT_FOUND = NotFound()

Resolution = NamedContent | NotFound


@runtime_checkable
class Resolver(Protocol):
    """Anything that can resolve a proto import path to content."""

    def resolve(self, path: str) -> Resolution:
        """Resolve an import path.

        Args:
            path: Slash separated import path, eg. "google/protobuf/empty.proto"

        Returns:
            NamedContent on success, NotFound if this resolver cannot serve the path

        Raises:
            ProtosyncError: The resolver owns the path but failed to fetch it
        """
        ...


class ChainResolver:
    """Try a list of resolvers in order, first match wins.

    Errors are not treated as not-found: the first raised error aborts the
    chain and later resolvers are not consulted.
    """

    def __init__(self, resolvers: Iterable[Resolver]):
        self.resolvers = list(resolvers)

    def resolve(self, path: str) -> Resolution:
        for resolver in self.resolvers:
            result = resolver.resolve(path)
            if isinstance(result, NamedContent):
                logger.debug(f"[resolve] {path} -> {resolver!r}")
                return result
        return NOT_FOUND

    def __repr__(self) -> str:
        return f"ChainResolver({', '.join(repr(r) for r in self.resolvers)})"


def combine(*resolvers: Resolver) -> ChainResolver:
    """Combine a set of resolvers, trying each in turn."""
    return ChainResolver(resolvers)
