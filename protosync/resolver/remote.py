"""Resolve imports from their source repositories.

Each :class:`Repo` claims a set of import paths by prefix or by explicit
list. Files are fetched over HTTP from the hosting provider's raw-content
endpoint; when that reports not-found (missing file, private repository,
login page) the repository is cloned with git and the file read from the
checkout instead.
"""

from __future__ import annotations

import io
import logging
import posixpath
from typing import Protocol
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from ..errors import FetchError
from ..errors import ProtosyncError
from ..errors import ResolverConfigError
from .base import NOT_FOUND
from .base import NamedContent
from .base import Resolution
from .cloner import GitCloner
from .giturls import RepoURL
from .giturls import parse_repo_url

logger = logging.getLogger(__name__)

DEFAULT_REVISION = "master"
GITHUB_HOST = "github.com"
GITHUB_RAW_HOST = "raw.githubusercontent.com"


class Repo(BaseModel):
    """A source repository and where to retrieve protos from it."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., description="Git cloneable URL of repository.")
    root: str = Field("", description="Root path in remote repository to search for protos.")
    prefix: str = Field("", description="Prefix of proto path that will match this repository, eg. 'google/'.")
    protos: list[str] = Field(
        default_factory=list, description="A list of specific .proto files that this repository contains."
    )
    commit: str | None = Field(None, description="Specific commit, tag or branch to retrieve .proto files from.")

    @property
    def revision(self) -> str:
        """Revision to retrieve protos from."""
        return self.commit or DEFAULT_REVISION

    def matches(self, path: str) -> bool:
        if self.prefix and path.startswith(self.prefix):
            return True
        return path in self.protos


class RemoteConfig(BaseModel):
    """Configuration for remote repositories."""

    model_config = ConfigDict(extra="forbid")

    bitbucket_servers: list[str] = Field(
        default_factory=list, description="List of hostnames to treat as Bitbucket servers."
    )


class HTTPNotFound(Exception):
    """A raw HTTP fetch did not produce the file; the clone fallback may."""


class Transport(Protocol):
    def fetch(self, url: RepoURL, rel_path: str, commit: str) -> NamedContent: ...


def http_get(client: httpx.Client, src_url: str) -> NamedContent:
    """GET a raw file.

    Raises:
        HTTPNotFound: Non-2xx status, or an HTML page where a file was expected
        FetchError: The request itself failed (DNS, connection, timeout)
    """
    logger.debug(f"GET {src_url}")
    try:
        response = client.get(src_url)
    except httpx.HTTPError as e:
        raise FetchError(f"GET {src_url} failed: {e}") from e
    if not response.is_success:
        detail = f"{response.status_code} {response.reason_phrase}"
        if body := response.text.strip():
            detail += f": {body}"
        raise HTTPNotFound(f"GET {src_url}: {detail}")
    content_type = response.headers.get("content-type", "")
    if content_type.startswith("text/html"):
        raise HTTPNotFound(f"GET {src_url}: got an HTML page instead of a file")
    return NamedContent(src_url, io.BytesIO(response.content))


class GitHubTransport:
    """Fetch files from raw.githubusercontent.com."""

    def __init__(self, client: httpx.Client):
        self.client = client

    def fetch(self, url: RepoURL, rel_path: str, commit: str) -> NamedContent:
        url = url.replace(scheme="https")
        parts = url.path.strip("/").removesuffix(".git").split("/")
        if len(parts) != 2 or not all(parts):
            raise ResolverConfigError(f"expected GitHub URL path in the form /<user>/<repo>.git but got {url.path!r}")
        user, project = parts
        return http_get(self.client, f"https://{GITHUB_RAW_HOST}/{user}/{project}/{quote(commit)}/{rel_path}")

    def __repr__(self) -> str:
        return "GitHubTransport()"


class BitbucketTransport:
    """Fetch files from a self-hosted Bitbucket server's raw endpoint."""

    def __init__(self, client: httpx.Client):
        self.client = client

    def fetch(self, url: RepoURL, rel_path: str, commit: str) -> NamedContent:
        # eg. /scm/mycompany/myservice.git
        path = "/" + url.path.lstrip("/")
        parts = path.removesuffix(".git").split("/")
        if len(parts) != 4 or parts[1] != "scm":
            raise ResolverConfigError(
                f"expected Bitbucket URL path in the form /scm/<project>/<repo>.git but got {url.path!r}"
            )
        project, repo = parts[2], parts[3]
        # An SSH port says nothing about where HTTPS is served.
        port = url.port if url.scheme in ("http", "https") else None
        raw = url.replace(
            scheme="https",
            user=None,
            password=None,
            port=port,
            path=posixpath.join("/projects", project, "repos", repo, "raw", rel_path),
            query=f"at={quote(commit, safe='')}",
        )
        return http_get(self.client, raw.geturl())

    def __repr__(self) -> str:
        return "BitbucketTransport()"


def find_repo_for_import(repos: list[Repo], path: str) -> Repo | None:
    """Return the first repository, in declared order, that claims ``path``."""
    for repo in repos:
        if repo.matches(path):
            return repo
    return None


class RemoteResolver:
    """Resolve imports from their source repositories."""

    def __init__(
        self,
        config: RemoteConfig,
        repos: list[Repo],
        client: httpx.Client | None = None,
        cloner: GitCloner | None = None,
    ):
        self.config = config
        self.repos = list(repos)
        self.client = client or httpx.Client(timeout=30.0, follow_redirects=True)
        self.cloner = cloner or GitCloner()

    def resolve(self, path: str) -> Resolution:
        repo = find_repo_for_import(self.repos, path)
        if repo is None:
            return NOT_FOUND
        return self.fetch_proto(repo, path)

    def choose_transport(self, repo: Repo, repo_url: RepoURL) -> Transport:
        if repo_url.host == GITHUB_HOST:
            return GitHubTransport(self.client)
        if repo_url.host in self.config.bitbucket_servers:
            return BitbucketTransport(self.client)
        raise ResolverConfigError(f"unsupported repository source {repo.url!r}")

    def fetch_proto(self, repo: Repo, proto: str) -> NamedContent:
        """Fetch ``proto`` from ``repo``, falling back to a git clone.

        Raises:
            ResolverConfigError: The repository URL is malformed or its host unsupported
            FetchError: Both the HTTP fetch and the clone fallback failed
        """
        repo_url = parse_repo_url(repo.url)
        transport = self.choose_transport(repo, repo_url)
        rel_path = posixpath.join(repo.root.strip("/"), proto) if repo.root.strip("/") else proto
        try:
            try:
                return transport.fetch(repo_url, rel_path, repo.revision)
            except HTTPNotFound as not_found:
                logger.debug(f"{not_found}; trying git clone of {repo.url}")
                try:
                    return self.cloner.fetch(repo_url, rel_path, repo.revision)
                except ProtosyncError as e:
                    raise FetchError(f"clone fallback failed: {e} (after HTTP fetch: {not_found})") from e
        except ProtosyncError as e:
            raise type(e)(f"{repo.url}: {e}") from e

    def close(self) -> None:
        self.client.close()

    def __repr__(self) -> str:
        return f"RemoteResolver({len(self.repos)} repos)"
