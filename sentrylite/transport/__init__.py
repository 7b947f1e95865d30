"""
sentrylite Transport

Envelope serialization, HTTP delivery and the background worker.
"""

from sentrylite.transport.envelope import EnvelopeBuilder, parse_envelope
from sentrylite.transport.http import EnvelopeRequest, HttpTransport
from sentrylite.transport.worker import BackgroundWorker

__all__ = [
    "EnvelopeBuilder",
    "parse_envelope",
    "EnvelopeRequest",
    "HttpTransport",
    "BackgroundWorker",
]
