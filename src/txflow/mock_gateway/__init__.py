"""Mock transaction gateway for development and tests."""

from txflow.mock_gateway.app import create_app
from txflow.mock_gateway.store import MockTxStore

__all__ = ["MockTxStore", "create_app"]
