"""
DSN parsing.

A DSN has the shape ``<protocol>://<public_key>@<host>[:<port>]/<project_id>``.
Parsing is a pure function: the same string always yields the same Dsn.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from sentrylite.errors import DsnError

logger = structlog.get_logger(__name__)

_DSN_PATTERN = re.compile(
    r"^(?P<protocol>\w+)://(?P<public_key>\w+)@(?P<host>[\w.\-]+)(?::(?P<port>\d+))?/(?P<project_id>\w+)$",
    re.ASCII,
)


@dataclass(frozen=True)
class Dsn:
    """Structural parts of a DSN."""
    raw: str
    protocol: str
    public_key: str
    host: str
    project_id: str
    port: Optional[int] = None

    @property
    def netloc(self) -> str:
        if self.port is not None:
            return f"{self.host}:{self.port}"
        return self.host

    @property
    def upstream(self) -> str:
        """Scheme and authority of the ingestion server."""
        return f"{self.protocol}://{self.netloc}"

    @property
    def envelope_url(self) -> str:
        return f"{self.upstream}/api/{self.project_id}/envelope/"

    def __str__(self) -> str:
        return self.raw


def parse_dsn(dsn: str) -> Dsn:
    """
    Parse a DSN string.

    Raises:
        DsnError: if the string is empty or malformed
    """
    if not dsn:
        raise DsnError(dsn or "", "is empty")

    match = _DSN_PATTERN.match(dsn.strip())
    if match is None:
        raise DsnError(dsn)

    port = match.group("port")
    return Dsn(
        raw=dsn.strip(),
        protocol=match.group("protocol"),
        public_key=match.group("public_key"),
        host=match.group("host"),
        project_id=match.group("project_id"),
        port=int(port) if port else None,
    )


def try_parse_dsn(dsn: Optional[str]) -> Optional[Dsn]:
    """Parse a DSN, returning None (with a warning) when it is invalid."""
    if dsn is None:
        return None
    try:
        return parse_dsn(dsn)
    except DsnError as e:
        logger.warning(
            "DSN does not fit the expected format, the SDK will not be enabled",
            dsn=dsn,
            reason=e.reason,
        )
        return None
