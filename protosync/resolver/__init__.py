"""Proto import resolvers.

Resolvers map an import path to file content:
- LocalResolver: Globbed local include roots
- RemoteResolver: Source repositories over HTTP, with git clone fallback
- ArtifactoryResolver: JAR files in an Artifactory repository
- ChainResolver: First match wins over a list of resolvers
"""

from .artifactory import ArtifactoryConfig
from .artifactory import ArtifactoryRepository
from .artifactory import ArtifactoryResolver
from .base import NOT_FOUND
from .base import ChainResolver
from .base import NamedContent
from .base import NotFound
from .base import Resolution
from .base import Resolver
from .base import combine
from .local import LocalResolver
from .remote import RemoteConfig
from .remote import RemoteResolver
from .remote import Repo

__all__ = [
    "NOT_FOUND",
    "ArtifactoryConfig",
    "ArtifactoryRepository",
    "ArtifactoryResolver",
    "ChainResolver",
    "LocalResolver",
    "NamedContent",
    "NotFound",
    "RemoteConfig",
    "RemoteResolver",
    "Repo",
    "Resolution",
    "Resolver",
    "combine",
]
