"""Pytest configuration and fixtures."""

import asyncio
import json
import os
from typing import Callable, Optional

import httpx
import pytest

# Set test environment
os.environ["TXFLOW_ENVIRONMENT"] = "test"
os.environ["TXFLOW_GATEWAY_URL"] = "http://gateway.test/api/v2"
os.environ["TXFLOW_GATEWAY_API_KEY"] = "test-api-key"
os.environ["TXFLOW_POLL_INTERVAL"] = "0.01"
os.environ["TXFLOW_WATCH_TIMEOUT"] = "5"
os.environ["TXFLOW_DEBUG"] = "true"

from txflow.gateway.client import GatewayClient
from txflow.gateway.contracts import TxStatus
from txflow.mock_gateway import MockTxStore, create_app
from txflow.session import Session
from txflow.wallet.simulated import SimulatedWallet

MOCK_BASE_URL = "http://testserver/api/v2"

TX_HASH = "a" * 64
OTHER_HASH = "b" * 64
POLICY_ID = "c" * 56
SLT_HASH = "d" * 64


def make_status(tx_hash: str = TX_HASH, state: str = "pending", **extra) -> TxStatus:
    """Build a status record for tests."""
    return TxStatus(tx_hash=tx_hash, tx_type=extra.pop("tx_type", "course_create"), state=state, **extra)


def status_json(tx_hash: str = TX_HASH, state: str = "pending", **extra) -> dict:
    return {
        "tx_hash": tx_hash,
        "tx_type": extra.pop("tx_type", "course_create"),
        "state": state,
        "retry_count": extra.pop("retry_count", 0),
        "last_error": extra.pop("last_error", None),
        "confirmed_at": extra.pop("confirmed_at", None),
        **extra,
    }


def sse_body(*events: tuple[str, dict]) -> str:
    """Render (event, data) pairs as a server-sent events body."""
    return "".join(f"event: {name}\ndata: {json.dumps(data)}\n\n" for name, data in events)


@pytest.fixture
def session() -> Session:
    """Authenticated session."""
    return Session("test-jwt")


@pytest.fixture
def wallet() -> SimulatedWallet:
    """Connected simulated wallet."""
    return SimulatedWallet()


@pytest.fixture
def make_gateway(session: Session) -> Callable[..., GatewayClient]:
    """Create a gateway client whose requests are answered by a handler function."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        client_session: Optional[Session] = None,
    ) -> GatewayClient:
        return GatewayClient(
            session=client_session or session,
            transport=httpx.MockTransport(handler),
        )

    return factory


class FakeClock:
    """Manually advanced clock for the mock gateway store."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def eventually(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    """Wait until ``condition`` holds, failing the test after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_store(clock: FakeClock) -> MockTxStore:
    """Mock gateway store advancing one state every 10 fake seconds."""
    return MockTxStore(step_delay=10.0, clock=clock)


@pytest.fixture
def mock_app(mock_store: MockTxStore):
    """Mock gateway application."""
    return create_app(store=mock_store)


@pytest.fixture
def mock_gateway(mock_app, session: Session) -> GatewayClient:
    """Gateway client talking to the in-process mock gateway."""
    return GatewayClient(
        base_url=MOCK_BASE_URL,
        session=session,
        transport=httpx.ASGITransport(app=mock_app),
    )
