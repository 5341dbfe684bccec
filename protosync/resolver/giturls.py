"""Parsing of git repository URLs.

Git accepts two spellings for remote repositories: standard URLs
(``ssh://git@github.com/org/repo.git``, ``https://host/scm/proj/repo.git``)
and the scp-like shorthand (``git@github.com:org/repo.git``). Both parse to
the same immutable :class:`RepoURL`.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from ..errors import ResolverConfigError

_SCP_LIKE = re.compile(r"^(?:(?P<user>[^@/:]+)@)?(?P<host>[^@/:]+):(?P<path>.+)$")


@dataclass(frozen=True)
class RepoURL:
    """Parsed repository URL.

    Instances are immutable; transports derive modified copies with
    :meth:`replace`, so a descriptor's URL is never rewritten behind its back.
    """

    scheme: str
    host: str
    path: str
    user: str | None = None
    password: str | None = None
    port: int | None = None
    query: str = ""
    scp_like: bool = False

    def replace(self, **changes) -> RepoURL:
        # Any structural change means the shorthand spelling no longer applies.
        changes.setdefault("scp_like", False)
        return dataclasses.replace(self, **changes)

    @property
    def netloc(self) -> str:
        userinfo = ""
        if self.user:
            userinfo = self.user
            if self.password:
                userinfo += f":{self.password}"
            userinfo += "@"
        port = f":{self.port}" if self.port is not None else ""
        return f"{userinfo}{self.host}{port}"

    def geturl(self) -> str:
        if self.scp_like:
            user = f"{self.user}@" if self.user else ""
            return f"{user}{self.host}:{self.path}"
        path = self.path
        if path and not path.startswith("/"):
            path = "/" + path
        query = f"?{self.query}" if self.query else ""
        return f"{self.scheme}://{self.netloc}{path}{query}"

    def __str__(self) -> str:
        return self.geturl()


def parse_repo_url(raw: str) -> RepoURL:
    """Parse a git repository URL in standard or scp-like form.

    Examples:
        >>> parse_repo_url("git@github.com:org/repo.git").path
        'org/repo.git'
        >>> parse_repo_url("ssh://git@github.com/org/repo.git").scheme
        'ssh'

    Raises:
        ResolverConfigError: The URL cannot be parsed
    """
    if "://" not in raw:
        match = _SCP_LIKE.match(raw)
        if match:
            return RepoURL(
                scheme="ssh",
                host=match.group("host"),
                path=match.group("path"),
                user=match.group("user"),
                scp_like=True,
            )
        if raw.startswith("/"):
            return RepoURL(scheme="file", host="", path=raw)
        raise ResolverConfigError(f"invalid repository URL {raw!r}")

    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError as e:
        raise ResolverConfigError(f"invalid repository URL {raw!r}: {e}") from e
    if not parts.scheme:
        raise ResolverConfigError(f"invalid repository URL {raw!r}: missing scheme")
    return RepoURL(
        scheme=parts.scheme,
        host=parts.hostname or "",
        path=parts.path,
        user=parts.username,
        password=parts.password,
        port=port,
        query=parts.query,
    )
