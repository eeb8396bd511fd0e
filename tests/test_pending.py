"""Tests for the pending transaction registry."""

import asyncio

import httpx
import pytest

from conftest import eventually, status_json
from txflow.errors import GatewayError
from txflow.pending import PendingList, PendingTransactionRegistry
from txflow.session import Session


def pending_handler(*bodies):
    """Answer /tx/pending from a sequence; an int is a bare status code (last entry repeats)."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        body = bodies[min(len(calls), len(bodies)) - 1]
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, json=body)

    handler.calls = calls
    return handler


def items(count: int) -> list[dict]:
    return [status_json(f"{i:064x}", "pending") for i in range(count)]


class TestPendingList:
    """Tests for PendingList refreshes."""

    @pytest.mark.asyncio
    async def test_refresh_truncates(self, make_gateway, session):
        """Test items are capped at max_items."""
        gateway = make_gateway(pending_handler(items(5)))
        changes = []
        pending = PendingList(gateway, session, poll_interval=30, max_items=3, on_change=changes.append)

        await pending.refresh()

        assert pending.count == 3
        assert pending.has_pending
        assert len(changes) == 1 and len(changes[0]) == 3
        assert not pending.is_loading

    @pytest.mark.asyncio
    async def test_error_keeps_items(self, make_gateway, session):
        """Test a failed refresh keeps the last good list."""
        handler = pending_handler(items(2), 500)
        pending = PendingList(make_gateway(handler), session, poll_interval=30, max_items=10)

        await pending.refresh()
        await pending.refresh()

        assert pending.count == 2
        assert isinstance(pending.error, GatewayError)

    @pytest.mark.asyncio
    async def test_unauthenticated_skips_request(self, make_gateway):
        """Test nothing is fetched without a signed-in user."""
        handler = pending_handler(items(1))
        session = Session()
        pending = PendingList(make_gateway(handler, client_session=session), session, 30, 10)

        await pending.refresh()

        assert handler.calls == []
        assert pending.items == []

    @pytest.mark.asyncio
    async def test_polls_while_empty(self, make_gateway, session):
        """Test polling continues when nothing is pending."""
        handler = pending_handler(204)
        pending = PendingList(make_gateway(handler), session, poll_interval=0.01, max_items=10)

        pending.start()
        await eventually(lambda: len(handler.calls) >= 3)
        await pending.aclose()

        assert pending.items == []
        assert not pending.is_running

    @pytest.mark.asyncio
    async def test_logout_stops_and_clears(self, make_gateway, session):
        """Test signing out stops polling and empties the list."""
        handler = pending_handler(items(2))
        changes = []
        pending = PendingList(make_gateway(handler), session, 0.01, 10, on_change=changes.append)

        pending.start()
        await eventually(lambda: pending.count == 2)
        session.logout()

        assert not pending.is_running
        await eventually(lambda: pending.items == [])
        calls = len(handler.calls)
        await asyncio.sleep(0.05)

        assert len(handler.calls) == calls
        assert changes[-1] == []

    @pytest.mark.asyncio
    async def test_resumes_after_login(self, make_gateway, session):
        """Test polling picks up again when the user signs back in."""
        handler = pending_handler(items(2))
        pending = PendingList(make_gateway(handler), session, poll_interval=0.01, max_items=10)

        pending.start()
        await eventually(lambda: pending.count == 2)
        session.logout()
        await eventually(lambda: pending.items == [])
        calls = len(handler.calls)

        session.login("jwt-2")
        await eventually(lambda: len(handler.calls) > calls + 1)

        assert pending.is_running
        assert pending.count == 2
        assert handler.calls[-1].headers["Authorization"] == "Bearer jwt-2"
        await pending.aclose()

    @pytest.mark.asyncio
    async def test_starts_on_first_login(self, make_gateway):
        """Test a list started while signed out begins polling on login."""
        handler = pending_handler(items(1))
        session = Session()
        pending = PendingList(make_gateway(handler, client_session=session), session, 0.01, 10)

        pending.start()
        await asyncio.sleep(0.03)
        assert handler.calls == []
        assert not pending.is_running

        session.login("jwt")
        await eventually(lambda: pending.count == 1)
        await pending.aclose()

    @pytest.mark.asyncio
    async def test_login_after_stop_ignored(self, make_gateway, session):
        """Test a stopped list stays stopped across sign-out and sign-in."""
        handler = pending_handler(items(1))
        pending = PendingList(make_gateway(handler), session, 0.01, 10)

        pending.start()
        await eventually(lambda: pending.count == 1)
        await pending.aclose()
        calls = len(handler.calls)

        session.logout()
        session.login("jwt-2")
        await asyncio.sleep(0.03)

        assert not pending.is_running
        assert len(handler.calls) == calls
        assert pending.count == 1

    @pytest.mark.asyncio
    async def test_subscribe(self, make_gateway, session):
        """Test extra listeners receive refreshes until unsubscribed."""
        pending = PendingList(make_gateway(pending_handler(items(1))), session, 30, 10)
        seen = []
        unsubscribe = pending.subscribe(seen.append)

        await pending.refresh()
        unsubscribe()
        await pending.refresh()

        assert len(seen) == 1


class TestPendingTransactionRegistry:
    """Tests for the registry entry point."""

    @pytest.mark.asyncio
    async def test_list_starts_polling(self, make_gateway, session):
        """Test list() returns a running list using settings defaults."""
        registry = PendingTransactionRegistry(make_gateway(pending_handler(items(12))), session)

        pending = registry.list(poll_interval=0.01)
        await eventually(lambda: pending.count > 0)

        assert pending.is_running
        assert pending.count == 10
        await pending.aclose()

    @pytest.mark.asyncio
    async def test_fetch_once(self, make_gateway, session):
        """Test fetch() returns a single snapshot."""
        handler = pending_handler({"transactions": items(3)})
        registry = PendingTransactionRegistry(make_gateway(handler), session)

        result = await registry.fetch(max_items=2)

        assert len(result) == 2
        assert len(handler.calls) == 1

    @pytest.mark.asyncio
    async def test_fetch_signed_out(self, make_gateway):
        """Test fetch() without a user makes no request."""
        handler = pending_handler(items(1))
        session = Session()
        registry = PendingTransactionRegistry(make_gateway(handler, client_session=session), session)

        assert await registry.fetch() == []
        assert handler.calls == []
