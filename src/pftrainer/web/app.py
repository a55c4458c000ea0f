from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..data.storage import JsonStore, KeyValueStore
from ..features.session import SessionManager, create_session_routers
from ..features.session.concurrency import shutdown_executor

__all__ = ["create_app", "main"]

logger = logging.getLogger(__name__)


def create_app(store: KeyValueStore | None = None, *, manager: SessionManager | None = None) -> FastAPI:
    """Build the API app; ``store`` defaults to a :class:`JsonStore` under the data dir."""

    if manager is None:
        manager = SessionManager(store if store is not None else JsonStore())

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        shutdown_executor()

    app = FastAPI(title="Preflop Trainer", lifespan=lifespan)
    app.state.manager = manager

    sessions, insights = create_session_routers(manager)
    app.include_router(sessions)
    app.include_router(insights)

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app


def main() -> None:  # pragma: no cover - runner
    import uvicorn

    host = os.environ.get("BIND", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    log_level = os.environ.get("LOG_LEVEL", "info").lower()
    logger.info("starting preflop trainer on %s:%d", host, port)
    uvicorn.run(create_app, host=host, port=port, factory=True, log_level=log_level)


if __name__ == "__main__":  # pragma: no cover
    main()
