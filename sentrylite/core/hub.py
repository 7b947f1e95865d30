"""
sentrylite Hub

Process-wide SDK state: resolved configuration, sampler, global tags and
the delivery pipeline (envelope builder, transport, background worker).
Configuration is written once by init(); later init() calls only warn.
"""

from __future__ import annotations

import atexit
import copy
import threading
from typing import Any, Dict, List, Optional, Union

import httpx
import structlog

from sentrylite.core.config import SDKSettings, load_settings
from sentrylite.core.dsn import Dsn, try_parse_dsn
from sentrylite.errors import EnvelopeError
from sentrylite.log import ensure_debug_logging
from sentrylite.stacktrace import normalize_exception
from sentrylite.tracing.sampling import NoSamples, Sampler, SamplingContext, create_sampler
from sentrylite.transport.envelope import EnvelopeBuilder
from sentrylite.transport.http import HttpTransport
from sentrylite.transport.worker import BackgroundWorker
from sentrylite.types import Event, Level, TaskPayload

logger = structlog.get_logger(__name__)

RESERVED_TAGS = frozenset({"release"})


class Hub:
    """
    Configuration and lifecycle state shared by every SDK component.

    Args:
        client: httpx client for the transport (tests inject a mock)
        server_name: Override the host identity sent with events
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        server_name: Optional[str] = None,
    ):
        self.initialised = False
        self.settings: Optional[SDKSettings] = None

        self.dsn: Optional[Dsn] = None
        self.release: Optional[str] = None
        self.debug = False
        self.dry_mode = False
        self.traces_sampler: Sampler = NoSamples()

        self.builder: Optional[EnvelopeBuilder] = None
        self.transport: Optional[HttpTransport] = None
        self.worker: Optional[BackgroundWorker] = None

        self._client = client
        self._server_name = server_name

        self._tags: Dict[str, str] = {}
        self._tags_lock = threading.Lock()

        self._atexit_registered = False
        self._closed = False

    # === DSN parts ===

    @property
    def upstream(self) -> str:
        return self.dsn.upstream if self.dsn else ""

    @property
    def project_id(self) -> str:
        return self.dsn.project_id if self.dsn else ""

    @property
    def public_key(self) -> str:
        return self.dsn.public_key if self.dsn else ""

    # === Lifecycle ===

    def init(
        self,
        dsn: Optional[str] = None,
        *,
        release: Optional[str] = None,
        environment: Optional[str] = None,
        traces_sample_rate: Optional[float] = None,
        traces_sampler: Any = None,
        debug: Optional[bool] = None,
        dry_mode: Optional[bool] = None,
        install_atexit: bool = True,
        **options: Any,
    ) -> bool:
        """
        Configure the hub. Effective once per hub.

        Args:
            dsn: Project DSN (falls back to SENTRY_DSN)
            release: Release identifier (falls back to SENTRY_RELEASE)
            environment: Stored as the ``environment`` tag
            traces_sample_rate: Fixed transaction sampling ratio
            traces_sampler: Sampler instance or predicate callable
            debug: Emit SDK diagnostics at debug level
            dry_mode: Build and serialize everything but never send
            install_atexit: Drain the queue at interpreter exit
            **options: max_queue_size, shutdown_timeout, http_timeout

        Returns:
            True if the hub is now active

        Raises:
            ConfigurationError: both sampling options given, or invalid values
        """
        if self.initialised:
            logger.warning("SDK must be initialized once, ignoring init()")
            return False

        # Fail fast on conflicting explicit options before reading the environment
        create_sampler(traces_sample_rate, traces_sampler)

        settings = load_settings(
            dsn=dsn,
            release=release,
            environment=environment,
            traces_sample_rate=traces_sample_rate,
            debug=debug,
            dry_mode=dry_mode,
            **options,
        )
        sampler = create_sampler(
            settings.traces_sample_rate if traces_sampler is None else None,
            traces_sampler,
        )

        self.settings = settings
        self.debug = settings.debug
        self.dry_mode = settings.dry_mode
        self.release = settings.release
        if self.debug:
            ensure_debug_logging()

        self.dsn = try_parse_dsn(settings.dsn)

        if self.release is None and self.debug:
            logger.debug("Release is not specified")

        if settings.environment:
            self.set_tag("environment", settings.environment)

        if self.dsn is None and not self.dry_mode:
            logger.warning("DSN is not specified, no event will be sent")
            return False

        if self.dry_mode:
            logger.warning("Dry mode is enabled, events will be built but not sent")

        self.traces_sampler = sampler
        self.builder = EnvelopeBuilder(
            dsn=self.dsn.raw if self.dsn else None,
            release=self.release,
            server_name=self._server_name,
            debug=self.debug,
        )
        self.transport = HttpTransport(
            self.dsn,
            dry_mode=self.dry_mode,
            debug=self.debug,
            timeout=settings.http_timeout,
            client=self._client,
        )
        self.worker = BackgroundWorker(
            self._deliver,
            max_queue_size=settings.max_queue_size,
            debug=self.debug,
        )
        self.worker.start()

        if install_atexit and not self._atexit_registered:
            atexit.register(self._atexit)
            self._atexit_registered = True

        self.initialised = True

        if self.debug:
            logger.debug(
                "SDK initialized",
                upstream=self.upstream,
                project_id=self.project_id,
                sampler=self.traces_sampler.description,
                dry_mode=self.dry_mode,
            )
        return True

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued payloads to be sent. True if the queue drained."""
        if self.worker is None:
            return True
        return self.worker.flush(self._timeout(timeout))

    def shutdown(self, timeout: Optional[float] = None) -> int:
        """
        Stop accepting payloads, drain for at most ``timeout`` seconds and
        release the HTTP client.

        Returns:
            Number of payloads left undelivered
        """
        if self._closed or self.worker is None:
            return 0
        self._closed = True

        undelivered = self.worker.shutdown(self._timeout(timeout))
        if self.transport is not None:
            self.transport.close()
        return undelivered

    def _timeout(self, timeout: Optional[float]) -> float:
        if timeout is not None:
            return timeout
        return self.settings.shutdown_timeout if self.settings else 2.0

    def _atexit(self) -> None:
        self.shutdown()

    # === Tags ===

    def set_tag(self, name: str, value: str) -> bool:
        """
        Set a process-wide tag applied to every event and transaction.

        The reserved ``release`` tag is rejected; use init(release=...).
        """
        if name in RESERVED_TAGS:
            logger.warning(
                "Tag is ignored by the server, set it through init() instead",
                tag=name,
            )
            return False

        with self._tags_lock:
            self._tags[name] = str(value)
        return True

    def get_tags(self) -> Dict[str, str]:
        """Snapshot of the global tags."""
        with self._tags_lock:
            return dict(self._tags)

    # === Capture ===

    def sample(self, context: SamplingContext) -> bool:
        """Run the sampler once for a new transaction."""
        if not self.initialised:
            return False
        try:
            return bool(self.traces_sampler.should_sample(context))
        except Exception as e:
            if self.debug:
                logger.debug("Sampler raised, not sampling", error=str(e))
            return False

    def capture_event(self, payload: TaskPayload) -> Optional[str]:
        """
        Enqueue a fully built Event or Transaction.

        Returns:
            The event id, or None if the payload was dropped
        """
        if not self.initialised or self.worker is None:
            return None
        if self.worker.submit(payload):
            return payload.event_id
        return None

    def capture_message(
        self,
        message: str,
        level: Union[Level, str, int] = Level.INFO,
        tags: Optional[Dict[str, str]] = None,
        attachments: Optional[List[Any]] = None,
    ) -> Optional[str]:
        if not self.initialised:
            return None
        return self.capture_event(Event(
            level=Level.coerce(level),
            message=str(message),
            tags={k: str(v) for k, v in (tags or {}).items()},
            attachments=copy.deepcopy(list(attachments or [])),
        ))

    def capture_exception(
        self,
        error: Any = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> Optional[str]:
        if not self.initialised:
            return None

        records = normalize_exception(error)
        if not records:
            if self.debug:
                logger.debug("Nothing to capture", error=repr(error))
            return None

        return self.capture_event(Event(
            level=Level.ERROR,
            exception=records,
            tags={k: str(v) for k, v in (tags or {}).items()},
        ))

    # === Delivery (worker thread) ===

    def _deliver(self, payload: TaskPayload) -> None:
        try:
            body = self.builder.serialize(payload, self.get_tags())
        except EnvelopeError as e:
            if self.debug:
                logger.debug("Error preparing envelope", error=str(e))
            return

        self.transport.send(body)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "initialised": self.initialised,
            "worker": self.worker.get_stats() if self.worker else None,
            "transport": self.transport.get_stats() if self.transport else None,
        }


# Global hub instance
_hub = Hub()


def get_hub() -> Hub:
    """Get the process hub."""
    return _hub


def set_hub(hub: Hub) -> Hub:
    """Replace the process hub, returning the previous one."""
    global _hub
    previous = _hub
    _hub = hub
    return previous
