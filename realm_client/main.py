"""
Realm client service. On startup: load realm configuration, start the token refresh and
observation dispatch jobs. Exposes only GET /health and GET /status (no token values).
Port 8100 by default (REALM_CLIENT_PORT).
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from apscheduler.schedulers.base import BaseScheduler
from fastapi import FastAPI

from realm_client.config import HTTP_TIMEOUT_SECONDS, LOG_LEVEL, REALMS_DIR, SERVICE_HOST, SERVICE_PORT
from realm_client.dispatcher import RequestDispatcher
from realm_client.errors import ConfigurationError
from realm_client.realms import RealmConfigStore
from realm_client.scheduler import build_scheduler
from realm_client.token_refresher import TokenRefresher
from realm_client.token_store import TokenCache

logger = logging.getLogger(__name__)


def create_app(
    store: RealmConfigStore,
    cache: TokenCache,
    scheduler: BaseScheduler | None = None,
    http_client: httpx.Client | None = None,
) -> FastAPI:
    """Build the service around an injected store, cache and (optionally) scheduler."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load realms once, run the scheduled jobs until shutdown."""
        try:
            store.ensure_loaded()
        except ConfigurationError as e:
            logger.error("Realm configuration unavailable: %s", e)
        if scheduler is not None:
            scheduler.start()
            logger.info("Scheduler started (%d jobs)", len(scheduler.get_jobs()))
        try:
            yield
        finally:
            if scheduler is not None and scheduler.running:
                scheduler.shutdown(wait=False)
            if http_client is not None:
                http_client.close()

    app = FastAPI(title="Realm Client", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "realm_client"}

    @app.get("/status")
    def status():
        """Configured realms and which client identities hold a token. Never returns token values."""
        try:
            configured = store.realms()
        except ConfigurationError as e:
            return {"realms": [], "error": str(e)}
        tokens = cache.snapshot()
        realms = []
        for realm in configured:
            held = tokens.get(realm.name, {})
            realms.append(
                {
                    "realm": realm.name,
                    "realm_id": realm.realm_id,
                    "clients": [
                        {
                            "client_id": client_id,
                            "has_token": client_id in held,
                            "issued_at": (
                                datetime.fromtimestamp(held[client_id].issued_at, timezone.utc).isoformat()
                                if client_id in held
                                else None
                            ),
                        }
                        for client_id in realm.client_identities
                    ],
                }
            )
        return {"realms": realms}

    return app


def build_service() -> FastAPI:
    """Wire the default service from environment configuration."""
    store = RealmConfigStore.from_directory(REALMS_DIR)
    cache = TokenCache()
    http_client = httpx.Client(timeout=HTTP_TIMEOUT_SECONDS)
    scheduler = build_scheduler(
        TokenRefresher(store, cache, http_client),
        RequestDispatcher(store, cache, http_client),
    )
    return create_app(store, cache, scheduler=scheduler, http_client=http_client)


app = build_service()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        app,
        host=SERVICE_HOST,
        port=SERVICE_PORT,
    )
