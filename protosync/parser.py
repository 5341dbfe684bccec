"""Extract package and import declarations from .proto source.

Only the top-level ``package`` and ``import`` statements matter for
dependency resolution, so this is a tokenizer plus a statement scanner rather
than a full protobuf grammar. Comments and string literals are tokenized
properly, so commented-out imports are ignored and braces inside strings do
not confuse nesting.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from .errors import ProtoParseError

_TOKEN = re.compile(
    r"""
     (?P<newline>\n)
    |(?P<space>[ \t\r\f\v]+)
    |(?P<line_comment>//[^\n]*)
    |(?P<block_comment>/\*.*?\*/)
    |(?P<open_comment>/\*)
    |(?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
    |(?P<open_string>["'])
    |(?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<number>\.?[0-9][0-9A-Za-z_.]*)
    |(?P<punct>.)
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPES = {"a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t", "v": "\v"}
_ESCAPE = re.compile(r"\\(x[0-9A-Fa-f]{1,2}|[0-7]{1,3}|.)", re.DOTALL)


@dataclass(frozen=True)
class Position:
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    pos: Position


@dataclass(frozen=True)
class Entry:
    """A top-level declaration: either a package or an import."""

    pos: Position
    package: str | None = None
    import_: str | None = None
    modifier: str | None = None  # public, weak


@dataclass
class ProtoFile:
    entries: list[Entry] = field(default_factory=list)

    @property
    def package(self) -> str | None:
        for entry in self.entries:
            if entry.package:
                return entry.package
        return None

    @property
    def imports(self) -> list[str]:
        return [entry.import_ for entry in self.entries if entry.import_]


def _unescape(literal: str) -> str:
    def replace(match: re.Match[str]) -> str:
        esc = match.group(1)
        if esc[0] in "xX" and len(esc) > 1:
            return chr(int(esc[1:], 16))
        if esc[0].isdigit() and esc[0] < "8":
            return chr(int(esc, 8))
        return _ESCAPES.get(esc, esc)

    return _ESCAPE.sub(replace, literal[1:-1])


def tokenize(text: str, filename: str = "<input>") -> list[Token]:
    """Split proto source into significant tokens, dropping whitespace and comments.

    Raises:
        ProtoParseError: Unterminated string literal or block comment
    """
    tokens: list[Token] = []
    line = 1
    line_start = 0
    for match in _TOKEN.finditer(text):
        kind = match.lastgroup
        value = match.group()
        pos = Position(filename, line, match.start() - line_start + 1)
        if kind == "open_comment":
            raise ProtoParseError(f"{pos}: unterminated block comment")
        if kind == "open_string":
            raise ProtoParseError(f"{pos}: unterminated string literal")
        if kind in ("newline", "block_comment"):
            newlines = value.count("\n")
            if newlines:
                line += newlines
                line_start = match.start() + value.rfind("\n") + 1
            continue
        if kind in ("space", "line_comment"):
            continue
        tokens.append(Token(kind, value, pos))
    return tokens


class _Scanner:
    def __init__(self, tokens: list[Token], filename: str):
        self.tokens = tokens
        self.filename = filename
        self.index = 0

    def peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def next(self, what: str) -> Token:
        token = self.peek()
        if token is None:
            raise ProtoParseError(f"{self.filename}: unexpected end of file, expected {what}")
        self.index += 1
        return token

    def expect(self, kind: str, what: str, value: str | None = None) -> Token:
        token = self.next(what)
        if token.kind != kind or (value is not None and token.value != value):
            raise ProtoParseError(f"{token.pos}: expected {what} but got {token.value!r}")
        return token

    def package(self, start: Token) -> Entry:
        parts = [self.expect("ident", "package name").value]
        while (token := self.peek()) is not None and token.value == ".":
            self.index += 1
            parts.append(self.expect("ident", "package name component").value)
        self.expect("punct", "';'", ";")
        return Entry(pos=start.pos, package=".".join(parts))

    def import_(self, start: Token) -> Entry:
        modifier = None
        token = self.peek()
        if token is not None and token.kind == "ident" and token.value in ("public", "weak"):
            modifier = token.value
            self.index += 1
        path = _unescape(self.expect("string", "import path string").value)
        # Adjacent string literals concatenate.
        while (token := self.peek()) is not None and token.kind == "string":
            self.index += 1
            path += _unescape(token.value)
        self.expect("punct", "';'", ";")
        return Entry(pos=start.pos, import_=path, modifier=modifier)


def parse(text: str, filename: str = "<input>") -> ProtoFile:
    """Parse proto source text into its package and import entries.

    Raises:
        ProtoParseError: Malformed package/import statement or unterminated token
    """
    scanner = _Scanner(tokenize(text, filename), filename)
    proto = ProtoFile()
    depth = 0
    statement_start = True
    while (token := scanner.peek()) is not None:
        scanner.index += 1
        if depth == 0 and statement_start and token.kind == "ident":
            if token.value == "package":
                proto.entries.append(scanner.package(token))
                continue
            if token.value == "import":
                proto.entries.append(scanner.import_(token))
                continue
        if token.value == "{":
            depth += 1
        elif token.value == "}":
            if depth == 0:
                raise ProtoParseError(f"{token.pos}: unbalanced '}}'")
            depth -= 1
        statement_start = token.kind == "punct" and token.value in (";", "{", "}")
    return proto


def parse_file(path: str | Path, filename: str | None = None) -> ProtoFile:
    """Read and parse a .proto file.

    Args:
        path: File to read
        filename: Name to report in positions, defaults to ``path``
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ProtoParseError(f"{filename or path}: not valid UTF-8: {e}") from e
    return parse(text, filename or str(path))
