"""Resolve imports from JAR files published to an Artifactory (Maven) repository.

On first use the resolver determines the artifact version (pinned, or the
latest one from ``maven-metadata.xml``), downloads the JAR into the user
cache directory and keeps it open; subsequent lookups are served from the
open archive.
"""

from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from xml.etree import ElementTree

import httpx
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from ..cache import get_cache_dir
from ..cache import record_archive
from ..errors import ArchiveError
from ..errors import FetchError
from ..errors import MetadataError
from .base import NOT_FOUND
from .base import NamedContent
from .base import Resolution

logger = logging.getLogger(__name__)


class ArtifactoryRepository(BaseModel):
    """A single repository within Artifactory."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        ...,
        description="Artifact repository path, eg. 'jar-releases/com/mycompany/protos/mycompany-protos'.",
    )
    version: str | None = Field(None, description="The artifact version to use. Latest if omitted.")


class ArtifactoryConfig(BaseModel):
    """How to talk to Artifactory and where to download artifacts from."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., description="Artifactory URL, eg. 'https://artifactory.mycompany.com/artifactory'.")
    download_url: str | None = Field(
        None, description="Optional URL to download artifacts from. If not provided Artifactory itself will be used."
    )
    repositories: list[ArtifactoryRepository] = Field(
        default_factory=list, description="Artifactory repositories to download the latest JAR from."
    )


@dataclass
class ArchiveState:
    """The archive a resolver has open, empty until the first lookup."""

    archive: zipfile.ZipFile | None = None
    path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self.archive is not None

    def close(self) -> None:
        if self.archive is not None:
            self.archive.close()
        self.archive = None
        self.path = None


def human_size(n: int | None) -> str:
    if n is None:
        return "unknown size"
    if n < 1024:
        return f"{n}B"
    if n < 1024 * 1024:
        return f"{n // 1024}KiB"
    return f"{n // 1024 // 1024}MiB"


def _content_length(response: httpx.Response) -> int | None:
    value = response.headers.get("content-length")
    return int(value) if value and value.isdigit() else None


def fetch_latest_version(client: httpx.Client, artifactory_url: str, repository_path: str) -> str:
    """Return the latest version listed in the repository's maven-metadata.xml.

    Artifactory can take tens of seconds to serve the whole metadata document,
    so it is parsed as it streams in and the request abandoned as soon as the
    first ``<latest>`` element closes. Nothing after that element is read.

    Raises:
        MetadataError: The request failed, the XML is invalid before the
            marker, or the document ends without a ``<latest>`` element
    """
    url = f"{artifactory_url.rstrip('/')}/{repository_path.strip('/')}/maven-metadata.xml"
    logger.debug(f"Syncing {repository_path} metadata.")
    parser = ElementTree.XMLPullParser(events=("end",))
    try:
        with client.stream("GET", url) as response:
            if not response.is_success:
                raise MetadataError(f"GET {url}: {response.status_code} {response.reason_phrase}")
            logger.debug(f"  <- {url} ({human_size(_content_length(response))})")
            for chunk in response.iter_bytes():
                parser.feed(chunk)
                for _event, element in parser.read_events():
                    if element.tag.rsplit("}", 1)[-1] != "latest":
                        continue
                    version = (element.text or "").strip()
                    if not version:
                        raise MetadataError(f"{url}: empty <latest> version")
                    return version
    except httpx.HTTPError as e:
        raise MetadataError(f"GET {url} failed: {e}") from e
    except ElementTree.ParseError as e:
        raise MetadataError(f"{url}: invalid metadata: {e}") from e
    raise MetadataError(f"{url}: could not find latest version")


def download_file(client: httpx.Client, url: str, dest: Path) -> None:
    """Download ``url`` to ``dest`` via a temporary file in the same directory.

    The file only appears under its final name once completely written.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.NamedTemporaryFile(dir=dest.parent, prefix=f".{dest.stem}-", suffix=".part", delete=False)
    try:
        with tmp:
            with client.stream("GET", url) as response:
                if not response.is_success:
                    raise FetchError(f"GET {url}: {response.status_code} {response.reason_phrase}")
                logger.debug(f"  <- {url} ({human_size(_content_length(response))})")
                logger.debug(f"  -> {dest}")
                for chunk in response.iter_bytes():
                    tmp.write(chunk)
        os.replace(tmp.name, dest)
    except httpx.HTTPError as e:
        _remove_quietly(tmp.name)
        raise FetchError(f"GET {url} failed: {e}") from e
    except BaseException:
        _remove_quietly(tmp.name)
        raise


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


class ArtifactoryResolver:
    """Resolve protos from a JAR file in Artifactory.

    Args:
        artifactory_url: Base Artifactory URL, eg. "https://artifactory.mycompany.com/artifactory"
        download_url: Base URL with the same layout to download JARs from, eg. an edge cache.
            Defaults to ``artifactory_url``.
        repository: Repository path and optional pinned version
        client: HTTP client, one is created if omitted
        cache_dir: Directory to cache JARs in, defaults to the user cache directory
    """

    def __init__(
        self,
        artifactory_url: str,
        download_url: str | None,
        repository: ArtifactoryRepository,
        client: httpx.Client | None = None,
        cache_dir: Path | None = None,
    ):
        self.artifactory_url = artifactory_url
        self.download_url = download_url or artifactory_url
        self.repository = repository
        self.client = client or httpx.Client(timeout=60.0, follow_redirects=True)
        self.cache_dir = cache_dir
        self.state = ArchiveState()

    @property
    def artifact_name(self) -> str:
        return self.repository.name.rstrip("/").rsplit("/", 1)[-1]

    def resolve(self, path: str) -> Resolution:
        if not self.state.is_open:
            self.open_archive()
        archive = self.state.archive
        assert archive is not None
        try:
            info = archive.getinfo(path)
        except KeyError:
            return NOT_FOUND
        try:
            stream = archive.open(info)
        except (zipfile.BadZipFile, OSError, RuntimeError) as e:
            raise ArchiveError(f"{self.state.path}: cannot read {path}: {e}") from e
        return NamedContent(f"{self.state.path}#{path}", stream)

    def open_archive(self) -> None:
        """Resolve the version, download the JAR if not cached, and open it."""
        cache_dir = self.cache_dir or get_cache_dir()
        version = self.repository.version
        if not version:
            version = fetch_latest_version(self.client, self.artifactory_url, self.repository.name)

        filename = f"{self.artifact_name}-{version}.jar"
        dest = cache_dir / filename
        if dest.exists():
            logger.debug(f"Using cached {dest}")
        else:
            logger.debug(f"Syncing {self.repository.name} version {version}")
            jar_url = f"{self.download_url.rstrip('/')}/{self.repository.name.strip('/')}/{version}/{filename}"
            download_file(self.client, jar_url, dest)
            record_archive(dest, self.artifact_name, version, jar_url)

        try:
            archive = zipfile.ZipFile(dest)
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveError(f"{dest}: {e} (remove it to force a fresh download)") from e
        self.state.archive = archive
        self.state.path = dest

    def close(self) -> None:
        self.state.close()
        self.client.close()

    def __repr__(self) -> str:
        return f"ArtifactoryResolver({self.repository.name})"
