"""
Envelope serialization.

An envelope is newline-delimited JSON:

    {"event_id": ..., "sent_at": ..., "dsn": ...}              envelope header
    {"type": "event", "content_type": ..., "length": N}        item header
    {...}                                                      item payload
    ... more header/payload pairs (attachments) ...

``length`` is the UTF-8 byte length of the payload line, without the
trailing newline. The whole body is gzip-compressed before sending.
"""

from __future__ import annotations

import functools
import gzip
import json
import socket
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from sentrylite.errors import EnvelopeError
from sentrylite.types import (
    Event, Span, TaskPayload, Transaction, format_timestamp, utc_now,
)

logger = structlog.get_logger(__name__)

ENVELOPE_CONTENT_TYPE = "application/x-sentry-envelope"
ITEM_CONTENT_TYPE = "application/json"

Item = Tuple[Dict[str, Any], bytes]


def _dumps(obj: Any) -> bytes:
    return json.dumps(
        obj,
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    ).encode("utf-8")


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is absent."""
    return {k: v for k, v in data.items() if v is not None}


def merge_tags(*sources: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
    """Merge tag mappings left to right; later sources win. None if empty."""
    merged: Dict[str, str] = {}
    for source in sources:
        if source:
            merged.update(source)
    return merged or None


def _item(item_type: str, payload: Dict[str, Any]) -> Item:
    body = _dumps(payload)
    header = {
        "type": item_type,
        "content_type": ITEM_CONTENT_TYPE,
        "length": len(body),
    }
    return header, body


class EnvelopeBuilder:
    """
    Turns one TaskPayload into envelope bytes.

    Args:
        dsn: DSN string echoed in the envelope header (omitted if None)
        release: Release identifier added to every item
        server_name: Host identity (defaults to the machine hostname)
        debug: Log a warning for spans left open
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        release: Optional[str] = None,
        server_name: Optional[str] = None,
        debug: bool = False,
    ):
        self.dsn = dsn
        self.release = release
        self.server_name = server_name or socket.gethostname()
        self.debug = debug

    def build(
        self,
        payload: TaskPayload,
        global_tags: Optional[Mapping[str, str]] = None,
    ) -> bytes:
        """Serialize ``payload`` to uncompressed envelope bytes."""
        header = _compact({
            "event_id": payload.event_id,
            "sent_at": format_timestamp(utc_now()),
            "dsn": self.dsn,
        })

        lines = [_dumps(header)]
        for item_header, item_body in self._items(payload, global_tags or {}):
            lines.append(_dumps(item_header))
            lines.append(item_body)

        return b"".join(line + b"\n" for line in lines)

    def serialize(
        self,
        payload: TaskPayload,
        global_tags: Optional[Mapping[str, str]] = None,
    ) -> bytes:
        """
        Serialize and gzip ``payload``.

        Raises:
            EnvelopeError: if the payload cannot be encoded
        """
        try:
            return gzip.compress(self.build(payload, global_tags))
        except EnvelopeError:
            raise
        except (TypeError, ValueError, AttributeError) as e:
            raise EnvelopeError(
                f"Cannot serialize {type(payload).__name__}: {e}"
            ) from e

    # === Items ===

    @functools.singledispatchmethod
    def _items(self, payload: Any, global_tags: Mapping[str, str]) -> List[Item]:
        raise EnvelopeError(f"Unsupported payload type {type(payload).__name__}")

    @_items.register(Event)
    def _(self, payload: Event, global_tags: Mapping[str, str]) -> List[Item]:
        exception = None
        if payload.exception:
            exception = {"values": [record.to_dict() for record in payload.exception]}

        message = None
        if payload.message is not None:
            message = {"formatted": payload.message}

        body = _compact({
            "timestamp": format_timestamp(payload.timestamp),
            "platform": payload.platform,
            "server_name": self.server_name,
            "exception": exception,
            "message": message,
            "level": payload.level.value,
            "release": self.release,
            "tags": merge_tags(global_tags, payload.tags),
        })

        items = [_item("event", body)]
        for attachment in payload.attachments:
            items.append(_item("attachment", {"data": attachment}))
        return items

    @_items.register(Transaction)
    def _(self, payload: Transaction, global_tags: Mapping[str, str]) -> List[Item]:
        root = payload.root_span
        children = payload.child_spans()

        if self.debug and any(not span.is_finished for span in children):
            logger.debug(
                "At least one span did not finish before its transaction",
                transaction=payload.name,
                open_spans=sum(1 for span in children if not span.is_finished),
            )

        trace = _compact({
            "trace_id": payload.trace_id,
            "op": root.op or None,
            "description": root.description,
            "tags": root.tags or None,
            "span_id": root.span_id,
            "parent_span_id": root.parent_span_id,
        })

        body = _compact({
            "type": "transaction",
            "platform": "python",
            "server_name": self.server_name,
            "event_id": payload.event_id,
            "transaction": payload.name,
            "start_timestamp": format_timestamp(root.start_timestamp),
            "timestamp": format_timestamp(root.timestamp) if root.timestamp else None,
            "release": self.release,
            "tags": merge_tags(global_tags, root.tags),
            "contexts": {"trace": trace},
            "spans": [self._span(payload.trace_id, span) for span in children],
        })
        return [_item("transaction", body)]

    @staticmethod
    def _span(trace_id: str, span: Span) -> Dict[str, Any]:
        return _compact({
            "trace_id": trace_id,
            "parent_span_id": span.parent_span_id,
            "span_id": span.span_id,
            "tags": span.tags or None,
            "op": span.op or None,
            "description": span.description,
            "start_timestamp": format_timestamp(span.start_timestamp),
            "timestamp": format_timestamp(span.timestamp) if span.timestamp else None,
        })


def parse_envelope(data: bytes) -> Tuple[Dict[str, Any], List[Tuple[Dict[str, Any], Dict[str, Any]]]]:
    """
    Parse envelope bytes (gzip-compressed or not) back into JSON objects.

    Item payloads are read by their declared byte length.

    Raises:
        EnvelopeError: if the data is not a well-formed envelope
    """
    if data[:2] == b"\x1f\x8b":
        data = gzip.decompress(data)

    try:
        newline = data.index(b"\n")
        header = json.loads(data[:newline])
        pos = newline + 1

        items = []
        while pos < len(data):
            newline = data.index(b"\n", pos)
            item_header = json.loads(data[pos:newline])
            start = newline + 1
            end = start + item_header["length"]
            items.append((item_header, json.loads(data[start:end])))
            pos = end + 1
    except (ValueError, KeyError) as e:
        raise EnvelopeError(f"Malformed envelope: {e}") from e

    return header, items
