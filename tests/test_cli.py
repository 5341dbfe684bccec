"""Tests for the protosync command line."""

import json

import pytest
from click.testing import CliRunner

from protosync.main import cli


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """A project with a local proto root importing a vendored dependency."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "src" / "protos" / "acme").mkdir(parents=True)
    (tmp_path / "src" / "protos" / "acme" / "x.proto").write_text('syntax = "proto3";\nimport "vendor/dep.proto";\n')
    (tmp_path / "third_party" / "protos" / "vendor").mkdir(parents=True)
    (tmp_path / "third_party" / "protos" / "vendor" / "dep.proto").write_text("message Dep {}\n")
    (tmp_path / "out").mkdir()
    (tmp_path / "protosync.yaml").write_text("include:\n  - third_party/*\n")
    return tmp_path


def test_sync_with_default_config_file(workspace):
    result = CliRunner().invoke(cli, ["sync", "--no-defaults", "-d", "out", "src/protos"])

    assert result.exit_code == 0, result.output
    assert "Synced 1 files" in result.output
    assert (workspace / "out" / "vendor" / "dep.proto").read_text() == "message Dep {}\n"


def test_sync_with_explicit_config_and_variables(workspace):
    (workspace / "custom.yaml").write_text("dest: $OUT\ninclude: [third_party/protos]\nsources: [src/*]\n")

    result = CliRunner().invoke(cli, ["sync", "-c", "custom.yaml", "--set", "OUT=out", "--no-defaults"])

    assert result.exit_code == 0, result.output
    assert (workspace / "out" / "vendor" / "dep.proto").exists()


def test_sync_writes_json_logs(workspace):
    log_file = workspace / "logs" / "sync.jsonl"

    result = CliRunner().invoke(
        cli,
        ["sync", "--no-defaults", "-d", "out", "--log-level", "debug", "--log-json", str(log_file), "src/protos"],
    )

    assert result.exit_code == 0, result.output
    records = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert any(r["lvl"] == "INFO" and r["message"].endswith("dep.proto") for r in records)


def test_unresolved_import_exits_with_error(workspace):
    (workspace / "src" / "protos" / "acme" / "y.proto").write_text('import "missing.proto";\n')

    result = CliRunner().invoke(cli, ["sync", "--no-defaults", "-d", "out", "src/protos"])

    assert result.exit_code == 1
    assert "Error" in result.output
    assert "missing.proto" in result.output
    assert "schema" in result.output


def test_missing_destination_is_a_usage_error(workspace):
    result = CliRunner().invoke(cli, ["sync", "--no-defaults", "src/protos"])

    assert result.exit_code == 2
    assert "destination" in result.output


def test_missing_sources_is_a_usage_error(workspace):
    result = CliRunner().invoke(cli, ["sync", "--no-defaults", "-d", "out"])

    assert result.exit_code == 2
    assert "sources" in result.output


def test_bad_set_value(workspace):
    result = CliRunner().invoke(cli, ["sync", "--set", "novalue", "-d", "out", "src/protos"])

    assert result.exit_code == 2
    assert "KEY=VALUE" in result.output


def test_undefined_config_variable(workspace):
    (workspace / "custom.yaml").write_text("dest: $OUT\n")

    result = CliRunner().invoke(cli, ["sync", "-c", "custom.yaml", "src/protos"])

    assert result.exit_code == 1
    assert "$OUT" in result.output


def test_schema_shows_defaults():
    result = CliRunner().invoke(cli, ["schema"])

    assert result.exit_code == 0
    assert "bitbucket_servers" in result.output
    assert "googleapis" in result.output


def test_help_lists_commands():
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("sync", "schema", "cache"):
        assert command in result.output
