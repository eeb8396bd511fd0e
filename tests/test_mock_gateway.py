"""Tests for the mock gateway, including end-to-end runs against it."""

import httpx
import pytest

from conftest import MOCK_BASE_URL, OTHER_HASH, TX_HASH
from txflow.errors import ConfirmationError, GatewayError
from txflow.gateway import GatewayClient, TxState
from txflow.mock_gateway import MockTxStore, create_app
from txflow.session import Session
from txflow.transactions import (
    TransactionOrchestrator,
    TransactionRequest,
    TransactionState,
    TransactionType,
)
from txflow.wallet import SimulatedWallet
from txflow.watcher import create_watcher


def raw_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=MOCK_BASE_URL)


def live_gateway(step_delay: float = 0.02, session: Session = None) -> tuple[GatewayClient, MockTxStore]:
    """Gateway client on a mock whose states advance in real time."""
    store = MockTxStore(step_delay=step_delay)
    gateway = GatewayClient(
        base_url=MOCK_BASE_URL,
        session=session or Session("test-jwt"),
        transport=httpx.ASGITransport(app=create_app(store=store)),
    )
    return gateway, store


class TestMockEndpoints:
    """Tests for individual mock gateway endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, mock_app):
        """Test health check reports the step delay."""
        async with raw_client(mock_app) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["step_delay"] == 10.0

    @pytest.mark.asyncio
    async def test_register_and_advance(self, mock_gateway, clock):
        """Test a registered transaction moves pending → confirmed → updated."""
        registration = await mock_gateway.register_transaction(
            TX_HASH, "course_create", metadata={"title": "Intro"}
        )
        assert registration.requires_db_update is True
        assert registration.requires_on_chain_confirmation is True

        status = await mock_gateway.get_status(TX_HASH)
        assert status.state == TxState.PENDING
        assert status.user_id == "test-jwt"
        assert status.metadata == {"title": "Intro"}

        clock.advance(10)
        status = await mock_gateway.get_status(TX_HASH)
        assert status.state == TxState.CONFIRMED
        assert status.confirmed_at is not None

        clock.advance(10)
        assert (await mock_gateway.get_status(TX_HASH)).state == TxState.UPDATED

        clock.advance(100)
        assert (await mock_gateway.get_status(TX_HASH)).state == TxState.UPDATED

    @pytest.mark.asyncio
    async def test_access_token_no_db_update(self, mock_gateway):
        """Test access token registrations declare no DB update."""
        registration = await mock_gateway.register_transaction(TX_HASH, "access_token_mint")

        assert registration.requires_db_update is False

    @pytest.mark.asyncio
    async def test_register_idempotent(self, mock_gateway, mock_store, clock):
        """Test registering a hash again keeps the original record."""
        await mock_gateway.register_transaction(TX_HASH, "course_create")
        clock.advance(10)
        await mock_gateway.register_transaction(TX_HASH, "project_create")

        status = mock_store.get(TX_HASH)
        assert status.tx_type == "course_create"
        assert status.state == TxState.CONFIRMED

    @pytest.mark.asyncio
    async def test_unknown_hash(self, mock_gateway):
        """Test status of an unregistered hash is not found."""
        assert await mock_gateway.get_status(TX_HASH) is None

    @pytest.mark.asyncio
    async def test_forced_failure(self, mock_app, mock_gateway, clock):
        """Test a transaction marked to fail ends in failed with the error."""
        async with raw_client(mock_app) as client:
            response = await client.post(f"/mock/fail/{TX_HASH}", json={"error": "UTxO spent"})
        assert response.json() == {"tx_hash": TX_HASH, "will_fail": True}

        await mock_gateway.register_transaction(TX_HASH, "course_create")
        assert (await mock_gateway.get_status(TX_HASH)).state == TxState.PENDING

        clock.advance(10)
        status = await mock_gateway.get_status(TX_HASH)
        assert status.state == TxState.FAILED
        assert status.last_error == "UTxO spent"

    @pytest.mark.asyncio
    async def test_pending_per_user(self, mock_app, mock_gateway, clock):
        """Test the pending list is scoped to the bearer and empties when done."""
        other = GatewayClient(
            base_url=MOCK_BASE_URL,
            session=Session("other-jwt"),
            transport=httpx.ASGITransport(app=mock_app),
        )
        await mock_gateway.register_transaction(TX_HASH, "course_create")
        await other.register_transaction(OTHER_HASH, "course_create")

        pending = await mock_gateway.list_pending()
        assert [p.tx_hash for p in pending] == [TX_HASH]

        clock.advance(20)
        assert await mock_gateway.list_pending() == []
        await other.aclose()

    @pytest.mark.asyncio
    async def test_pending_requires_auth(self, mock_app):
        """Test the pending list rejects anonymous requests."""
        gateway = GatewayClient(
            base_url=MOCK_BASE_URL,
            session=Session(),
            transport=httpx.ASGITransport(app=mock_app),
        )

        with pytest.raises(GatewayError) as exc_info:
            await gateway.list_pending()
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_build(self, mock_gateway):
        """Test builds are deterministic and require an alias."""
        endpoint = "/tx/instance/owner/course/create"
        first = await mock_gateway.build_transaction(endpoint, {"alias": "alice", "teachers": ["alice"]})
        second = await mock_gateway.build_transaction(endpoint, {"teachers": ["alice"], "alias": "alice"})

        assert first.unsigned_tx.startswith("84a400")
        assert first.unsigned_tx == second.unsigned_tx
        assert first.extras() == {"endpoint": endpoint}

        with pytest.raises(GatewayError) as exc_info:
            await mock_gateway.build_transaction(endpoint, {"teachers": []})
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "alias is required"

    @pytest.mark.asyncio
    async def test_api_key_enforced(self, mock_store):
        """Test a configured API key rejects other keys."""
        app = create_app(store=mock_store, api_key="test-api-key")
        good = GatewayClient(base_url=MOCK_BASE_URL, transport=httpx.ASGITransport(app=app))
        bad = GatewayClient(
            base_url=MOCK_BASE_URL, api_key="wrong", transport=httpx.ASGITransport(app=app)
        )

        assert await good.get_status(TX_HASH) is None
        with pytest.raises(GatewayError) as exc_info:
            await bad.get_status(TX_HASH)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_stream(self):
        """Test the stream sends a snapshot, transitions and a final event."""
        gateway, store = live_gateway(step_delay=0.02)
        store.register(TX_HASH, "course_create")

        events = [event async for event in gateway.stream_status(TX_HASH)]

        assert events[0].event == "state"
        assert events[-1].event == "complete"
        assert events[-1].data["final_state"] == "updated"
        assert all(e.event == "state_change" for e in events[1:-1])
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_stream_unknown_hash(self, mock_gateway):
        """Test streaming an unregistered hash is not found."""
        with pytest.raises(GatewayError) as exc_info:
            async for _ in mock_gateway.stream_status(TX_HASH):
                pass
        assert exc_info.value.status_code == 404


class TestEndToEnd:
    """Full lifecycle runs against the mock gateway."""

    @staticmethod
    def request() -> TransactionRequest:
        return TransactionRequest(
            tx_type=TransactionType.INSTANCE_COURSE_CREATE,
            params={"alias": "alice", "teachers": ["alice"]},
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("streaming", [True, False])
    async def test_confirmed(self, streaming):
        """Test build → sign → submit → register → confirmed over each transport."""
        gateway, store = live_gateway()
        watcher = create_watcher(gateway, streaming=streaming)
        orchestrator = TransactionOrchestrator(gateway, SimulatedWallet(), watcher=watcher)

        await orchestrator.execute(self.request(), track_confirmation=True)

        assert orchestrator.is_success, orchestrator.error
        assert TransactionState.CONFIRMING in orchestrator.history
        assert orchestrator.watch.status.state == TxState.UPDATED
        assert store.get(orchestrator.result.tx_hash).state == TxState.UPDATED
        await watcher.aclose()
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_failed(self):
        """Test a transaction the gateway gives up on ends in a confirmation error."""
        gateway, store = live_gateway()
        store.fail(TX_HASH, "Transaction not found on-chain after max retries")
        watcher = create_watcher(gateway, streaming=False)
        orchestrator = TransactionOrchestrator(gateway, SimulatedWallet(tx_hash=TX_HASH), watcher=watcher)

        await orchestrator.execute(self.request(), track_confirmation=True)

        assert isinstance(orchestrator.error, ConfirmationError)
        assert orchestrator.error.status.state == TxState.FAILED
        assert orchestrator.result.tx_hash == TX_HASH
        await watcher.aclose()
        await gateway.aclose()
