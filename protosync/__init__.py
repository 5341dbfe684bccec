"""protosync - sync the transitive import closure of .proto files.

Example:
    >>> from protosync import sync, combine, LocalResolver
    >>> synced = sync(combine(LocalResolver(["vendor/protos"])), "out", "foo/bar.proto")
"""

from .errors import ProtosyncError
from .errors import SyncError
from .errors import UnresolvedImportError
from .resolver import ArtifactoryResolver
from .resolver import ChainResolver
from .resolver import LocalResolver
from .resolver import NamedContent
from .resolver import NotFound
from .resolver import RemoteResolver
from .resolver import Resolver
from .resolver import combine
from .sync import sync

__all__ = [
    "ArtifactoryResolver",
    "ChainResolver",
    "LocalResolver",
    "NamedContent",
    "NotFound",
    "ProtosyncError",
    "RemoteResolver",
    "Resolver",
    "SyncError",
    "UnresolvedImportError",
    "combine",
    "sync",
]
