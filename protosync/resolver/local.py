"""Resolve imports from globbed local include roots."""

from __future__ import annotations

import glob
import logging
import os

from ..errors import FetchError
from ..errors import ResolverConfigError
from .base import NOT_FOUND
from .base import NamedContent
from .base import Resolution

logger = logging.getLogger(__name__)


def check_pattern(pattern: str) -> None:
    """Reject glob patterns with an unterminated character class."""
    i = 0
    while i < len(pattern):
        if pattern[i] == "[":
            j = i + 1
            if pattern[j : j + 1] == "!":
                j += 1
            # A leading "]" is a literal member of the class.
            if pattern[j : j + 1] == "]":
                j += 1
            end = pattern.find("]", j)
            if end == -1:
                raise ResolverConfigError(f"invalid glob pattern {pattern!r}: unterminated '['")
            i = end
        i += 1


def expand_roots(pattern: str) -> list[str]:
    """Expand a glob pattern to the sorted list of directories it matches."""
    check_pattern(pattern)
    return sorted(match for match in glob.glob(pattern) if os.path.isdir(match))


class LocalResolver:
    """Resolve imports against local include roots (eg. "apps/*/protos")."""

    def __init__(self, includes: list[str]):
        self.includes = list(includes)

    def resolve(self, path: str) -> Resolution:
        for include in self.includes:
            for root in expand_roots(include):
                local_path = os.path.join(root, path)
                try:
                    stream = open(local_path, "rb")
                except FileNotFoundError:
                    continue
                except OSError as e:
                    raise FetchError(f"{local_path}: {e}") from e
                logger.debug(f"Found {path} in local root {root}")
                return NamedContent(local_path, stream)
        return NOT_FOUND

    def __repr__(self) -> str:
        return f"LocalResolver({self.includes})"
