import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from intrachat_backend.api.system import system_router
from intrachat_backend.repositories import RealtimeStore, build_sqlalchemy_store
from intrachat_backend.settings import settings
from intrachat_backend.websocket.auth import SessionAuthenticator
from intrachat_backend.websocket.connection_manager import ConnectionLimits, ConnectionManager
from intrachat_backend.websocket.router import ws_router

logger = logging.getLogger(__name__)


def build_connection_manager(store: Optional[RealtimeStore] = None) -> ConnectionManager:
    """Wire a ConnectionManager from settings. The store defaults to SQLAlchemy."""
    store = store or build_sqlalchemy_store()

    authenticator = SessionAuthenticator(
        store.users,
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        issuer=settings.JWT_ISSUER,
        audience=settings.JWT_AUDIENCE,
    )

    return ConnectionManager(
        store,
        authenticator,
        limits=ConnectionLimits(
            max_per_user=settings.WS_MAX_CONNECTIONS_PER_USER,
            max_total=settings.WS_MAX_TOTAL_CONNECTIONS,
        ),
        send_timeout=settings.WS_SEND_TIMEOUT,
        max_message_length=settings.MESSAGE_MAX_LENGTH,
    )


def create_app(
    store: Optional[RealtimeStore] = None,
    manager: Optional[ConnectionManager] = None,
) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.JWT_SECRET is None:
            logger.error("JWT_SECRET is not set; every websocket handshake will be rejected")
        yield
        await app.state.connection_manager.stop()

    app = FastAPI(title="intrachat realtime", lifespan=lifespan)

    # Repositories open their sessions lazily, so no engine exists until the first query
    app.state.connection_manager = manager or build_connection_manager(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(ws_router)

    app.include_router(
        system_router,
        prefix="/system",
        tags=["system"],
    )

    return app


app = create_app()
