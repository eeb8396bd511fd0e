"""FastAPI application factory for the mock gateway."""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from txflow.config import get_settings
from txflow.mock_gateway.store import MockTxStore

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v2"


def create_app(
    store: Optional[MockTxStore] = None,
    step_delay: Optional[float] = None,
    api_key: Optional[str] = None,
) -> FastAPI:
    """Create and configure the mock gateway application.

    Args:
        store: Transaction store (a new one is created if omitted)
        step_delay: Seconds per state advance (defaults to settings.mock_step_delay)
        api_key: Required X-API-Key value (None accepts any request)
    """
    settings = get_settings()

    app = FastAPI(
        title="txflow mock gateway",
        description="In-memory transaction gateway for development and tests",
        version="0.1.0",
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store or MockTxStore(
        step_delay=settings.mock_step_delay if step_delay is None else step_delay
    )
    app.state.api_key = api_key

    from txflow.mock_gateway import routes

    app.include_router(routes.router, prefix=API_PREFIX, tags=["Gateway"])

    logger.info(f"Mock gateway ready (step delay {app.state.store.step_delay}s)")
    return app
