"""Server-sent events parsing for the gateway status stream.

The stream emits three named events:
- ``state``: full snapshot, sent once on connect
- ``state_change``: transition from one state to another
- ``complete``: terminal state reached, the server closes the stream after it

Unknown event names and malformed payloads are skipped.
"""

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from txflow.gateway.contracts import (
    CompleteEvent,
    StateChangeEvent,
    StateEvent,
    TxStatus,
)

logger = logging.getLogger(__name__)

KNOWN_EVENTS = ("state", "state_change", "complete")


@dataclass
class SSEEvent:
    """A single parsed stream event."""

    event: str
    data: dict


def _build_event(event_name: Optional[str], data_lines: list[str]) -> Optional[SSEEvent]:
    if not event_name or not data_lines:
        return None
    if event_name not in KNOWN_EVENTS:
        logger.debug(f"Ignoring unknown SSE event: {event_name}")
        return None

    raw = "\n".join(data_lines)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Malformed SSE data for {event_name}: {raw[:100]}")
        return None

    if not isinstance(data, dict):
        return None
    return SSEEvent(event=event_name, data=data)


def parse_sse_lines(lines: Iterable[str]) -> list[SSEEvent]:
    """Parse already-received lines into events."""
    events = []
    event_name: Optional[str] = None
    data_lines: list[str] = []

    for line in lines:
        line = line.rstrip("\r")
        if not line:
            parsed = _build_event(event_name, data_lines)
            if parsed:
                events.append(parsed)
            event_name, data_lines = None, []
            continue
        event_name, data_lines = _consume_line(line, event_name, data_lines)

    parsed = _build_event(event_name, data_lines)
    if parsed:
        events.append(parsed)
    return events


def parse_sse_chunk(text: str) -> list[SSEEvent]:
    """Parse a block of raw stream text into events."""
    return parse_sse_lines(text.split("\n"))


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[SSEEvent]:
    """Group an async line stream into events as they arrive."""
    event_name: Optional[str] = None
    data_lines: list[str] = []

    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            parsed = _build_event(event_name, data_lines)
            if parsed:
                yield parsed
            event_name, data_lines = None, []
            continue
        event_name, data_lines = _consume_line(line, event_name, data_lines)

    parsed = _build_event(event_name, data_lines)
    if parsed:
        yield parsed


def _consume_line(
    line: str, event_name: Optional[str], data_lines: list[str]
) -> tuple[Optional[str], list[str]]:
    # Comment lines (":keepalive") carry no data
    if line.startswith(":"):
        return event_name, data_lines
    if line.startswith("event:"):
        return line[len("event:"):].strip(), data_lines
    if line.startswith("data:"):
        return event_name, data_lines + [line[len("data:"):].strip()]
    return event_name, data_lines


def event_to_status(
    event: SSEEvent, tx_hash: str, previous: Optional[TxStatus] = None
) -> Optional[TxStatus]:
    """Map a stream event onto a status record.

    ``state_change`` events carry only the new state, so other fields are
    taken from the previous status when one is known.
    """
    base = previous.model_dump() if previous else {"tx_hash": tx_hash}
    base["tx_hash"] = tx_hash

    try:
        if event.event == "state":
            parsed = StateEvent.model_validate(event.data)
            base.update(
                state=parsed.state,
                tx_type=parsed.tx_type or base.get("tx_type") or "",
                retry_count=parsed.retry_count,
                confirmed_at=parsed.confirmed_at,
                last_error=parsed.last_error,
            )
        elif event.event == "state_change":
            change = StateChangeEvent.model_validate(event.data)
            base["state"] = change.new_state
        elif event.event == "complete":
            complete = CompleteEvent.model_validate(event.data)
            base["state"] = complete.final_state
            if complete.tx_type:
                base["tx_type"] = complete.tx_type
            if complete.confirmed_at:
                base["confirmed_at"] = complete.confirmed_at
            if complete.last_error:
                base["last_error"] = complete.last_error
        else:
            return None
        return TxStatus.model_validate(base)
    except PydanticValidationError as e:
        logger.warning(f"Invalid {event.event} event for {tx_hash}: {e}")
        return None
