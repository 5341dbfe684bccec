"""Configuration file loading for protosync.

The configuration is YAML, validated with pydantic::

    dest: protos
    sources:
      - mycompany/service/v1/api.proto
    include:
      - apps/*/protos
    remote:
      bitbucket_servers: [git.mycompany.com]
    repos:
      - url: https://github.com/protocolbuffers/protobuf.git
        prefix: google/protobuf/
        root: src
    artifactory:
      - url: https://artifactory.mycompany.com/artifactory
        repositories:
          - name: jar-releases/com/mycompany/protos/mycompany-protos

``$VAR`` and ``${VAR}`` references in string values are interpolated from
variables supplied at load time (``--set KEY=VALUE`` on the command line).
"""

from __future__ import annotations

import glob
import json
import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from .errors import ConfigError
from .errors import ResolverConfigError
from .resolver.artifactory import ArtifactoryConfig
from .resolver.artifactory import ArtifactoryResolver
from .resolver.base import Resolver
from .resolver.local import LocalResolver
from .resolver.local import check_pattern
from .resolver.remote import RemoteConfig
from .resolver.remote import RemoteResolver
from .resolver.remote import Repo

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "protosync.yaml"

BUILTIN_CONFIG = """\
repos:
  - url: https://github.com/protocolbuffers/protobuf.git
    prefix: google/protobuf/
    root: src

  - url: https://github.com/googleapis/googleapis.git
    prefix: google/

  - url: https://github.com/grpc-ecosystem/grpc-gateway.git
    prefix: protoc-gen-swagger/
    commit: v1.15.2
"""

_VARIABLE = re.compile(r"\$(?:\{(?P<braced>\w+)\}|(?P<bare>\w+))")


class Config(BaseModel):
    """protosync configuration format."""

    model_config = ConfigDict(extra="forbid")

    dest: str | None = Field(None, description="Destination where .proto files will be stored.")
    remote: RemoteConfig = Field(default_factory=RemoteConfig, description="Configuration for remote repositories.")
    sources: list[str] = Field(
        default_factory=list, description="List of remote imports or local root globs to resolve imports from."
    )
    include: list[str] = Field(
        default_factory=list, description="Globbed local include roots to search for proto files (eg. apps/*/protos)."
    )
    artifactory: list[ArtifactoryConfig] = Field(
        default_factory=list, description="Retrieve protos from JAR files in Artifactory."
    )
    repos: list[Repo] = Field(default_factory=list, description="Defines how to find protos in a source repository.")

    def with_defaults(self) -> Config:
        """Return a copy with the built-in repositories appended after our own."""
        builtin = builtin_config()
        return self.model_copy(update={"repos": [*self.repos, *builtin.repos]})

    def resolve(self) -> tuple[list[Resolver], list[str]]:
        """Build resolvers and glob-expand sources.

        Returns:
            Tuple of (resolvers, sources). Resolvers are ordered local includes,
            source repositories, then one per Artifactory repository.

        Raises:
            ConfigError: A source glob is malformed
        """
        resolvers: list[Resolver] = [
            LocalResolver(self.include),
            RemoteResolver(self.remote, self.repos),
        ]
        for artifactory in self.artifactory:
            download_url = artifactory.download_url or artifactory.url
            for repository in artifactory.repositories:
                resolvers.append(ArtifactoryResolver(artifactory.url, download_url, repository))

        sources: list[str] = []
        for source in self.sources:
            try:
                check_pattern(source)
            except ResolverConfigError as e:
                raise ConfigError(str(e)) from e
            matches = sorted(glob.glob(source))
            if matches:
                sources.extend(matches)
            else:
                sources.append(source)
        return resolvers, sources


def interpolate(data: Any, variables: dict[str, str], location: str = "") -> Any:
    """Recursively substitute ``$VAR``/``${VAR}`` in every string of ``data``.

    Raises:
        ConfigError: A referenced variable is not defined
    """
    if isinstance(data, str):

        def substitute(match: re.Match[str]) -> str:
            key = match.group("braced") or match.group("bare")
            if key not in variables:
                raise ConfigError(f"{location or '<root>'}: variable ${key} not defined")
            return variables[key]

        return _VARIABLE.sub(substitute, data)
    if isinstance(data, dict):
        return {k: interpolate(v, variables, f"{location}.{k}" if location else str(k)) for k, v in data.items()}
    if isinstance(data, list):
        return [interpolate(v, variables, f"{location}[{i}]") for i, v in enumerate(data)]
    return data


def parse_config(text: str, variables: dict[str, str] | None = None, source: str = "<config>") -> Config:
    """Parse configuration text.

    Args:
        text: YAML document
        variables: Values for ``$VAR`` interpolation
        source: Name of the document for error messages

    Raises:
        ConfigError: Invalid YAML, undefined variable or schema violation
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"{source}: invalid YAML: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: expected a mapping at the top level")
    try:
        data = interpolate(data, variables or {})
    except ConfigError as e:
        raise ConfigError(f"{source}: {e}") from e
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"{source}: {e}") from e


def load_config(path: str | Path, variables: dict[str, str] | None = None) -> Config:
    """Load a configuration file.

    Raises:
        FileNotFoundError: The file does not exist
        ConfigError: The file is invalid
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    logger.debug(f"Loaded configuration from {path}")
    return parse_config(text, variables, str(path))


def builtin_config() -> Config:
    """The default repositories for well-known public protos."""
    return parse_config(BUILTIN_CONFIG, source="<builtin>")


def config_schema() -> str:
    """JSON schema of the configuration format."""
    return json.dumps(Config.model_json_schema(), indent=2)
