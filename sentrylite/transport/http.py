"""
HTTP transport for envelopes.

Builds the authenticated POST for one compressed envelope and interprets
the response. Never retries: a 429 opens a backoff window during which
envelopes are dropped without touching the network.
"""

from __future__ import annotations

import gzip
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

import httpx
import structlog

from sentrylite import __version__
from sentrylite.core.dsn import Dsn
from sentrylite.errors import TransportError
from sentrylite.transport.envelope import ENVELOPE_CONTENT_TYPE
from sentrylite.types import format_timestamp, utc_now

logger = structlog.get_logger(__name__)

SDK_NAME = "sentrylite"
PROTOCOL_VERSION = 7

DEFAULT_RETRY_AFTER = 60.0
MAX_RETRY_AFTER = 600.0


def client_name() -> str:
    return f"{SDK_NAME}/{__version__}"


def auth_header(public_key: str, now: Optional[datetime] = None) -> str:
    """Value of the X-Sentry-Auth header."""
    timestamp = format_timestamp(now or utc_now())
    return (
        f"Sentry sentry_version={PROTOCOL_VERSION}, "
        f"sentry_client={client_name()}, "
        f"sentry_timestamp={timestamp}, "
        f"sentry_key={public_key}"
    )


def parse_retry_after(value: Optional[str]) -> float:
    """Seconds to back off for a Retry-After header, capped."""
    if not value:
        return DEFAULT_RETRY_AFTER
    try:
        seconds = float(value)
    except ValueError:
        # HTTP-date form is not worth a parser here
        return DEFAULT_RETRY_AFTER
    return min(max(seconds, 0.0), MAX_RETRY_AFTER)


@dataclass
class EnvelopeRequest:
    """A fully built request, whether or not it was sent."""
    url: str
    headers: Dict[str, str]
    body: bytes
    sent: bool = False
    status_code: Optional[int] = None

    def decoded_body(self) -> str:
        return gzip.decompress(self.body).decode("utf-8")


class HttpTransport:
    """
    Sends compressed envelopes to the ingestion endpoint.

    Features:
    - Sentry auth header construction
    - Dry mode (request built and recorded, never sent)
    - 429 backoff keyed off Retry-After

    Args:
        dsn: Parsed DSN (may be None in dry mode)
        dry_mode: Build requests but skip the network call
        debug: Log request bodies and responses
        timeout: HTTP timeout in seconds
        client: Pre-built httpx client (tests inject a MockTransport one)
    """

    def __init__(
        self,
        dsn: Optional[Dsn],
        dry_mode: bool = False,
        debug: bool = False,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.dsn = dsn
        self.dry_mode = dry_mode
        self.debug = debug
        self.timeout = timeout

        self._client = client
        self._owns_client = client is None
        self._disabled_until = 0.0
        self._closed = False

        self.last_request: Optional[EnvelopeRequest] = None

        self._stats = {
            "sent": 0,
            "failed": 0,
            "dropped_rate_limited": 0,
            "dry_run": 0,
        }

    @property
    def url(self) -> str:
        return self.dsn.envelope_url if self.dsn else ""

    def build_headers(self, now: Optional[datetime] = None) -> Dict[str, str]:
        public_key = self.dsn.public_key if self.dsn else ""
        return {
            "Content-Type": ENVELOPE_CONTENT_TYPE,
            "Content-Encoding": "gzip",
            "User-Agent": client_name(),
            "X-Sentry-Auth": auth_header(public_key, now),
        }

    def build_request(self, body: bytes) -> EnvelopeRequest:
        return EnvelopeRequest(url=self.url, headers=self.build_headers(), body=body)

    def is_rate_limited(self) -> bool:
        return time.monotonic() < self._disabled_until

    def send(self, body: bytes) -> Optional[EnvelopeRequest]:
        """
        Send one compressed envelope.

        Returns:
            The built request, or None when dropped by rate limiting

        Raises:
            TransportError: on network failure, or after close()
        """
        request = self.build_request(body)
        self.last_request = request

        if self.debug:
            logger.debug(
                "Sending envelope",
                url=request.url,
                body=request.decoded_body(),
            )

        if self.dry_mode:
            self._stats["dry_run"] += 1
            return request

        if self.is_rate_limited():
            self._stats["dropped_rate_limited"] += 1
            if self.debug:
                logger.debug(
                    "Rate limited, dropping envelope",
                    retry_in=round(self._disabled_until - time.monotonic(), 1),
                )
            return None

        try:
            response = self._get_client().post(
                request.url,
                content=request.body,
                headers=request.headers,
            )
        except httpx.HTTPError as e:
            self._stats["failed"] += 1
            raise TransportError(f"Envelope request failed: {e}") from e

        request.sent = True
        request.status_code = response.status_code
        self._handle_response(response)
        return request

    def _handle_response(self, response: httpx.Response) -> None:
        if response.status_code == 200:
            self._stats["sent"] += 1
            if self.debug:
                logger.debug("Server response", status=200, body=response.text)
            return

        self._stats["failed"] += 1

        if response.status_code == 429:
            backoff = parse_retry_after(response.headers.get("Retry-After"))
            self._disabled_until = time.monotonic() + backoff
            if self.debug:
                logger.debug("Rate limited by server", backoff_seconds=backoff)
            return

        if self.debug:
            logger.debug(
                "Server returned unexpected status",
                status=response.status_code,
                body=response.text,
            )

    def _get_client(self) -> httpx.Client:
        if self._closed:
            raise TransportError("Transport is closed")
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def close(self) -> None:
        self._closed = True
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)
