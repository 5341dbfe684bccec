"""Tests for configuration loading, interpolation and resolver construction."""

import json
from textwrap import dedent

import pytest

from protosync.config import Config
from protosync.config import builtin_config
from protosync.config import config_schema
from protosync.config import interpolate
from protosync.config import load_config
from protosync.config import parse_config
from protosync.errors import ConfigError
from protosync.resolver.artifactory import ArtifactoryResolver
from protosync.resolver.local import LocalResolver
from protosync.resolver.remote import RemoteResolver

FULL_CONFIG = dedent("""\
    dest: $OUT
    sources:
      - acme/api/v1/service.proto
    include:
      - apps/*/protos
    remote:
      bitbucket_servers: [git.acme.com]
    repos:
      - url: ssh://git@git.acme.com:7999/scm/plat/protos.git
        prefix: acme/
        commit: ${BRANCH}
      - url: https://github.com/envoyproxy/protoc-gen-validate.git
        protos: [validate/validate.proto]
    artifactory:
      - url: https://artifactory.acme.com/artifactory
        download_url: https://edge.acme.com/artifactory
        repositories:
          - name: jar-releases/com/acme/acme-protos
          - name: jar-releases/com/acme/legacy-protos
            version: 0.9.0
""")


class TestParseConfig:
    """YAML parsing, validation and interpolation."""

    def test_full_config(self):
        config = parse_config(FULL_CONFIG, {"OUT": "protos", "BRANCH": "develop"})

        assert config.dest == "protos"
        assert config.sources == ["acme/api/v1/service.proto"]
        assert config.include == ["apps/*/protos"]
        assert config.remote.bitbucket_servers == ["git.acme.com"]
        assert config.repos[0].revision == "develop"
        assert config.repos[1].protos == ["validate/validate.proto"]
        assert config.repos[1].revision == "master"
        assert config.artifactory[0].repositories[1].version == "0.9.0"

    def test_empty_document(self):
        assert parse_config("") == Config()

    def test_undefined_variable_reports_location(self):
        with pytest.raises(ConfigError, match=r"acme.yaml: repos\[0\].commit: variable \$BRANCH not defined"):
            parse_config(FULL_CONFIG, {"OUT": "protos"}, source="acme.yaml")

    def test_unknown_key_is_rejected(self):
        with pytest.raises(ConfigError, match="reposs"):
            parse_config("reposs: []\n")

    def test_missing_required_field(self):
        with pytest.raises(ConfigError, match="url"):
            parse_config("repos:\n  - prefix: acme/\n")

    def test_invalid_yaml(self):
        with pytest.raises(ConfigError, match="invalid YAML"):
            parse_config("repos: [unclosed\n")

    def test_top_level_must_be_mapping(self):
        with pytest.raises(ConfigError, match="mapping"):
            parse_config("- a\n- b\n")


def test_interpolate_nested_structures():
    data = {"a": "$X-${Y}", "b": ["${X}", 3, {"c": "plain"}]}

    assert interpolate(data, {"X": "1", "Y": "2"}) == {"a": "1-2", "b": ["1", 3, {"c": "plain"}]}


def test_interpolate_does_not_recurse_into_values():
    assert interpolate("$A", {"A": "$B"}) == "$B"


def test_load_config(tmp_path):
    path = tmp_path / "protosync.yaml"
    path.write_text("dest: out\n")

    assert load_config(path).dest == "out"


def test_with_defaults_appends_builtin_repos():
    config = parse_config("repos:\n  - url: https://github.com/acme/google-fork.git\n    prefix: google/\n")

    merged = config.with_defaults()

    assert [r.url for r in merged.repos] == [
        "https://github.com/acme/google-fork.git",
        "https://github.com/protocolbuffers/protobuf.git",
        "https://github.com/googleapis/googleapis.git",
        "https://github.com/grpc-ecosystem/grpc-gateway.git",
    ]
    # The original is not modified.
    assert len(config.repos) == 1


def test_builtin_config():
    config = builtin_config()

    protobuf = config.repos[0]
    assert protobuf.prefix == "google/protobuf/"
    assert protobuf.root == "src"
    assert config.repos[2].commit == "v1.15.2"


def test_config_schema_is_json():
    schema = json.loads(config_schema())

    assert set(schema["properties"]) == {"dest", "remote", "sources", "include", "artifactory", "repos"}


class TestResolve:
    """Building resolvers and expanding sources."""

    def test_resolvers_in_order(self):
        config = parse_config(FULL_CONFIG, {"OUT": "protos", "BRANCH": "develop"})

        resolvers, _ = config.resolve()

        assert [type(r) for r in resolvers] == [LocalResolver, RemoteResolver, ArtifactoryResolver, ArtifactoryResolver]
        assert resolvers[2].download_url == "https://edge.acme.com/artifactory"
        assert resolvers[3].repository.version == "0.9.0"
        for resolver in resolvers[1:]:
            resolver.close()

    def test_sources_are_glob_expanded(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "apps" / "b" / "protos").mkdir(parents=True)
        (tmp_path / "apps" / "a" / "protos").mkdir(parents=True)
        config = Config(sources=["apps/*/protos", "acme/x.proto"])

        resolvers, sources = config.resolve()

        assert sources == ["apps/a/protos", "apps/b/protos", "acme/x.proto"]
        resolvers[1].close()

    def test_malformed_source_glob(self):
        with pytest.raises(ConfigError, match="invalid glob pattern"):
            Config(sources=["apps/[oops"]).resolve()
