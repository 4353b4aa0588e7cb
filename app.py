from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from backend import SessionRegistry
from connection import ConnectionHandler
from constants import (
    ALLOWED_ORIGINS,
    KEEPALIVE_INTERVAL_SECONDS,
    LOG_FILE,
    LOG_LEVEL,
    SESSION_TTL_SECONDS,
    SWEEP_INTERVAL_SECONDS,
    VERSION,
)
from message_types import CLOSE_POLICY_VIOLATION
from relay import PresenceBroadcaster, RelayEngine
from routers.rooms import health_router, rooms_router
from sweeper import ExpirySweeper, KeepalivePinger
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def origin_allowed(origin: Optional[str], allowed_origins: List[str]) -> bool:
    if not origin or "*" in allowed_origins:
        return True
    return origin in allowed_origins


def create_app(
    registry: Optional[SessionRegistry] = None,
    allowed_origins: Optional[List[str]] = None,
    session_ttl: float = SESSION_TTL_SECONDS,
    sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
) -> FastAPI:
    registry = registry or SessionRegistry()
    allowed_origins = ALLOWED_ORIGINS if allowed_origins is None else allowed_origins

    relay = RelayEngine(registry)
    presence = PresenceBroadcaster(registry)
    handler = ConnectionHandler(registry, relay, presence)
    sweeper = ExpirySweeper(registry, ttl=session_ttl, interval=sweep_interval)
    pinger = KeepalivePinger(registry, interval=keepalive_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper.start()
        pinger.start()
        try:
            yield
        finally:
            await pinger.stop()
            await sweeper.stop()
            logger.info("Background tasks stopped")

    app = FastAPI(title="PairRelay", version=VERSION, lifespan=lifespan)

    app.state.registry = registry
    app.state.relay = relay
    app.state.presence = presence
    app.state.sweeper = sweeper
    app.state.pinger = pinger
    app.state.session_ttl = session_ttl
    app.state.version = VERSION

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(health_router)
    app.include_router(rooms_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, roomId: Optional[str] = None, role: Optional[str] = None):
        """Signaling endpoint.

        Query parameters:
        - roomId: session to join, created on first use
        - role: informational label, defaults to "guest"
        """
        origin = websocket.headers.get("origin")
        if not origin_allowed(origin, allowed_origins):
            logger.warning(f"WebSocket connection rejected: origin {origin} not allowed")
            await websocket.close(code=CLOSE_POLICY_VIOLATION)
            return
        await handler.serve(websocket, roomId, role)

    logger.info(f"FastAPI application initialized (version {VERSION}, origins {allowed_origins})")
    return app


app = create_app()
