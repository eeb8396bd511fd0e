"""Mock gateway endpoints.

Serves the same paths the client uses, backed by ``MockTxStore``.
"""

import asyncio
import json
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from txflow.gateway.contracts import RegisterRequest, TxStatus
from txflow.hashing import blake2b_256, compute_hash
from txflow.mock_gateway.store import MockTxStore

router = APIRouter()

# Seconds between store checks while streaming
STREAM_CHECK_INTERVAL = 0.5


class FailRequest(BaseModel):
    """Body of ``POST /mock/fail/{tx_hash}``."""

    error: str = Field(
        default="Transaction not found on-chain after max retries",
        description="last_error reported once the transaction fails",
    )


def _store(request: Request) -> MockTxStore:
    return request.app.state.store


def _check_api_key(request: Request, x_api_key: Optional[str]) -> None:
    expected = request.app.state.api_key
    if expected and x_api_key != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def _user_id(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


@router.get("/health")
async def health_check(request: Request):
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "txflow-mock-gateway",
        "step_delay": _store(request).step_delay,
    }


@router.post("/tx/register")
async def register_transaction(
    body: RegisterRequest,
    request: Request,
    x_api_key: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    """Register a submitted transaction for confirmation tracking."""
    _check_api_key(request, x_api_key)
    if not body.tx_hash.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="tx_hash is required")

    store = _store(request)
    record = store.register(
        body.tx_hash,
        body.tx_type,
        metadata=body.metadata,
        instance_id=body.instance_id,
        user_id=_user_id(authorization),
    )
    return {
        "tx_hash": record.tx_hash,
        "tx_type": record.tx_type,
        "state": "pending",
        "requires_db_update": store.requires_db_update(record.tx_type),
        "requires_on_chain_confirmation": True,
    }


@router.get("/tx/status/{tx_hash}", response_model=TxStatus)
async def get_status(tx_hash: str, request: Request, x_api_key: Optional[str] = Header(None)):
    """Current status of a registered transaction."""
    _check_api_key(request, x_api_key)
    tx_status = _store(request).get(tx_hash)
    if tx_status is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return tx_status


@router.get("/tx/stream/{tx_hash}")
async def stream_status(tx_hash: str, request: Request, x_api_key: Optional[str] = Header(None)):
    """Stream status events until the transaction is terminal."""
    _check_api_key(request, x_api_key)
    store = _store(request)
    if store.get(tx_hash) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    async def events():
        current = store.get(tx_hash)
        yield _sse("state", {
            "tx_hash": tx_hash,
            "state": current.state.value,
            "tx_type": current.tx_type,
            "retry_count": current.retry_count,
            "confirmed_at": _iso(current.confirmed_at),
            "last_error": current.last_error,
        })

        while not current.is_terminal:
            await asyncio.sleep(min(STREAM_CHECK_INTERVAL, max(store.step_delay, 0.01)))
            latest = store.get(tx_hash)
            if latest.state != current.state:
                yield _sse("state_change", {
                    "tx_hash": tx_hash,
                    "previous_state": current.state.value,
                    "new_state": latest.state.value,
                })
            current = latest

        yield _sse("complete", {
            "tx_hash": tx_hash,
            "final_state": current.state.value,
            "tx_type": current.tx_type,
            "confirmed_at": _iso(current.confirmed_at),
            "last_error": current.last_error,
        })

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/tx/pending", response_model=list[TxStatus])
async def list_pending(
    request: Request,
    x_api_key: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    """Non-terminal transactions registered by the current user."""
    _check_api_key(request, x_api_key)
    user_id = _user_id(authorization)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    pending = _store(request).pending(user_id=user_id)
    if not pending:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return pending


@router.post("/mock/fail/{tx_hash}")
async def force_failure(tx_hash: str, request: Request, body: Optional[FailRequest] = None):
    """Make a transaction end in ``failed`` (before or after registration)."""
    error = body.error if body else FailRequest().error
    _store(request).fail(tx_hash, error)
    return {"tx_hash": tx_hash, "will_fail": True}


@router.post("/tx/{path:path}")
async def build_transaction(
    path: str,
    request: Request,
    x_api_key: Optional[str] = Header(None),
):
    """Build an unsigned transaction for any build endpoint.

    The payload is a deterministic stand-in derived from the endpoint and
    parameters; it is not a real Cardano transaction.
    """
    _check_api_key(request, x_api_key)
    try:
        params = await request.json()
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be JSON")
    if not isinstance(params, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be an object")
    if not params.get("alias"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="alias is required")

    digest = blake2b_256(f"{path}:{compute_hash(params)}".encode("utf-8"))
    return {"unsigned_tx": f"84a400{digest}", "endpoint": f"/tx/{path}"}
