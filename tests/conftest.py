"""Pytest configuration for protosync tests."""

import io
import logging

import pytest

from protosync.resolver.base import NOT_FOUND
from protosync.resolver.base import NamedContent


class DictResolver:
    """In-memory resolver that records every path it is asked for."""

    def __init__(self, files: dict[str, str]):
        self.files = files
        self.calls: list[str] = []

    def resolve(self, path: str):
        self.calls.append(path)
        if path in self.files:
            return NamedContent(f"mem://{path}", io.BytesIO(self.files[path].encode("utf-8")))
        return NOT_FOUND


@pytest.fixture
def dict_resolver():
    """Factory for in-memory resolvers."""
    return DictResolver


@pytest.fixture(autouse=True)
def isolated_cache(tmp_path, monkeypatch):
    """Point the user cache directory at a per-test location."""
    cache_dir = tmp_path / "user-cache"
    monkeypatch.setenv("PROTOSYNC_CACHE_DIR", str(cache_dir))
    return cache_dir


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handlers the CLI installs on the protosync logger."""
    package_logger = logging.getLogger("protosync")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    propagate = package_logger.propagate
    yield
    for handler in list(package_logger.handlers):
        if handler not in handlers:
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.setLevel(level)
    package_logger.propagate = propagate
