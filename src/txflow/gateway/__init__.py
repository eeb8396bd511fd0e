"""Gateway boundary: contracts, HTTP client and status stream parsing."""

from txflow.gateway.client import GatewayClient
from txflow.gateway.contracts import (
    STATE_RANK,
    TERMINAL_STATES,
    RegisterResponse,
    TxState,
    TxStatus,
    UnsignedTransaction,
)
from txflow.gateway.sse import SSEEvent, event_to_status, parse_sse_chunk

__all__ = [
    "GatewayClient",
    "RegisterResponse",
    "SSEEvent",
    "STATE_RANK",
    "TERMINAL_STATES",
    "TxState",
    "TxStatus",
    "UnsignedTransaction",
    "event_to_status",
    "parse_sse_chunk",
]
