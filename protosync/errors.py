"""Exception hierarchy for protosync.

Not-found is deliberately absent: a strategy that cannot serve a path returns
``NotFound`` (see ``protosync.resolver.base``) rather than raising.
"""


class ProtosyncError(Exception):
    """Base class for all protosync failures."""


class ConfigError(ProtosyncError):
    """Raised when the configuration file cannot be loaded or interpolated."""


class ResolverConfigError(ProtosyncError):
    """Raised for malformed repository URLs, unsupported hosts and bad globs."""


class FetchError(ProtosyncError):
    """Raised when content cannot be fetched from a source."""


class CloneError(FetchError):
    """Raised when a git subprocess (clone, fetch, checkout) fails."""


class MetadataError(ProtosyncError):
    """Raised when archive metadata does not yield a latest version."""


class ArchiveError(ProtosyncError):
    """Raised when a downloaded archive cannot be opened or read."""


class ProtoParseError(ProtosyncError):
    """Raised when a .proto file cannot be parsed."""


class SyncError(ProtosyncError):
    """Raised when the import closure cannot be synchronised."""


class UnresolvedImportError(SyncError):
    """Raised when no resolver can serve an import."""
