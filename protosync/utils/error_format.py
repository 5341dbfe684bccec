"""Error display for the CLI.

protosync's own errors already carry their context chain
("a.proto:3:1: b.proto: https://...: clone fallback failed: ...") and are
shown as-is. Anything else gets its type name, with a fallback text when
``str()`` is empty (e.g. TimeoutError()).
"""

from __future__ import annotations

from rich.markup import escape as _escape_markup

from ..errors import ArchiveError
from ..errors import CloneError
from ..errors import MetadataError
from ..errors import ProtosyncError
from ..errors import ResolverConfigError
from ..errors import UnresolvedImportError

FRIENDLY_MESSAGES: dict[type, str] = {
    TimeoutError: "Request timed out. The repository host or Artifactory may be slow or unreachable.",
    ConnectionResetError: "Connection was reset by the server.",
    KeyboardInterrupt: "Operation interrupted by user.",
}

# Checked in order, so subclasses must come before their bases.
HINTS: list[tuple[type[ProtosyncError], str]] = [
    (
        UnresolvedImportError,
        "Add a 'repos' or 'include' entry that provides this import, or run 'protosync schema' to see the defaults.",
    ),
    (CloneError, "Check that 'git clone' of the repository works with your credentials."),
    (MetadataError, "Pin a 'version' for the Artifactory repository to skip the latest-version lookup."),
    (ArchiveError, "Run 'protosync cache clean' to discard cached archives."),
    (ResolverConfigError, "Check the repository URLs and 'remote.bitbucket_servers' in the configuration."),
]


def format_error_message(e: BaseException, *, include_type: bool = True) -> str:
    """Format an exception into a useful display message.

    Examples:
        >>> format_error_message(ValueError("invalid input"))
        'ValueError: invalid input'

        >>> format_error_message(ValueError("invalid input"), include_type=False)
        'invalid input'
    """
    message = str(e)
    if isinstance(e, ProtosyncError) and message:
        return message

    error_type = type(e).__name__
    if not message:
        message = next(
            (text for exc_type, text in FRIENDLY_MESSAGES.items() if isinstance(e, exc_type)),
            "(no additional details)",
        )
        return f"{error_type}: {message}"
    if include_type and error_type not in message:
        return f"{error_type}: {message}"
    return message


def error_hint(e: BaseException) -> str | None:
    """Suggest what the user can change to get past ``e``, if anything."""
    for exc_type, hint in HINTS:
        if isinstance(e, exc_type):
            return hint
    return None


def escape_markup(value: object) -> str:
    """Escape a value for safe interpolation into Rich markup strings."""
    return _escape_markup(str(value))
