"""Tests for package/import extraction from .proto source."""

from textwrap import dedent

import pytest

from protosync.errors import ProtoParseError
from protosync.parser import Position
from protosync.parser import parse
from protosync.parser import parse_file

SERVICE = dedent("""\
    syntax = "proto3";

    package mycompany.service.v1;

    import "google/protobuf/timestamp.proto";
    import public "mycompany/common/v1/money.proto";
    import weak "legacy/old.proto";

    option go_package = "github.com/mycompany/service/v1;{service}";

    message Order {
      string package = 1;
      google.protobuf.Timestamp created = 2;
    }
""")


def test_parse_extracts_package_and_imports_in_order():
    proto = parse(SERVICE, "service.proto")

    assert proto.package == "mycompany.service.v1"
    assert proto.imports == [
        "google/protobuf/timestamp.proto",
        "mycompany/common/v1/money.proto",
        "legacy/old.proto",
    ]
    assert [e.modifier for e in proto.entries if e.import_] == [None, "public", "weak"]


def test_parse_reports_positions():
    proto = parse(SERVICE, "service.proto")

    package, first_import = proto.entries[0], proto.entries[1]
    assert package.pos == Position("service.proto", 3, 1)
    assert first_import.pos == Position("service.proto", 5, 1)
    assert str(first_import.pos) == "service.proto:5:1"


def test_parse_ignores_fields_named_like_keywords():
    """A field called `package` inside a message is not a package statement."""
    proto = parse(SERVICE)

    assert [e.package for e in proto.entries if e.package] == ["mycompany.service.v1"]


def test_parse_ignores_commented_out_imports():
    text = dedent("""\
        // import "line/comment.proto";
        /* import "block/comment.proto";
           import "still/comment.proto"; */
        import "real.proto";
    """)

    proto = parse(text, "c.proto")

    assert proto.imports == ["real.proto"]
    assert proto.entries[0].pos.line == 4


def test_parse_braces_inside_strings_do_not_affect_nesting():
    text = 'option (x) = "{";\nimport "after.proto";\n'

    assert parse(text).imports == ["after.proto"]


def test_parse_concatenates_adjacent_strings_and_unescapes():
    text = 'import "foo/" \'bar\\x2eproto\';\n'

    assert parse(text).imports == ["foo/bar.proto"]


def test_parse_empty_file():
    proto = parse("")

    assert proto.entries == []
    assert proto.package is None


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ('import "unterminated.proto;\n', "unterminated string"),
        ("/* never closed\nimport \"a.proto\";\n", "unterminated block comment"),
        ("import foo;\n", "expected import path string"),
        ('import "a.proto"\nmessage M {}\n', "expected ';'"),
        ("package ;\n", "expected package name"),
        ("}\n", "unbalanced"),
    ],
)
def test_parse_errors(text, message):
    with pytest.raises(ProtoParseError, match=message):
        parse(text, "bad.proto")


def test_parse_error_includes_position():
    with pytest.raises(ProtoParseError) as exc_info:
        parse('syntax = "proto3";\nimport 42;\n', "bad.proto")

    assert str(exc_info.value).startswith("bad.proto:2:8:")


def test_parse_file_reads_utf8(tmp_path):
    path = tmp_path / "a.proto"
    path.write_text('// héllo\nimport "b.proto";\n', encoding="utf-8")

    proto = parse_file(path, "a.proto")

    assert proto.imports == ["b.proto"]
    assert proto.entries[0].pos.filename == "a.proto"


def test_parse_file_rejects_invalid_utf8(tmp_path):
    path = tmp_path / "a.proto"
    path.write_bytes(b'import "\xff.proto";\n')

    with pytest.raises(ProtoParseError, match="not valid UTF-8"):
        parse_file(path)
