"""
Pytest fixtures for realm_client. A single FastAPI app stands in for both the authorization
server (token endpoint) and the resource server (/api/...); its TestClient is an httpx.Client,
so it is injected straight into the refresher and dispatcher.
"""
import base64
from urllib.parse import parse_qs

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.testclient import TestClient

from realm_client.realms import RealmConfigStore, parse_realm_properties
from realm_client.token_store import TokenCache

MASTER_PROPS = {
    "resource.endpoint": "host",
    "resource.port": "8080",
    "keycloak.endpoint": "kc",
    "keycloak.port": "8180",
    "realm.id": "master",
    "realm.clients": "ADS;VSAS",
    "target.client.id": "backend",
    "ADS.client.secret": "ads-secret",
    "VSAS.client.secret": "vsas-secret",
}

OPS_PROPS = {
    "resource.endpoint": "ops-host",
    "keycloak.endpoint": "kc-ops",
    "keycloak.port": "8280",
    "realm.id": "ops",
    "realm.clients": "ADS",
    "target.client.id": "ops-backend",
    "ADS.client.secret": "ops-ads-secret",
}


class FakeBackend:
    """Records every request; answers token requests and /api calls as configured."""

    def __init__(self):
        self.tokens: dict[tuple[str, str], str] = {}
        self.token_failures: dict[str, int] = {}
        self.resource_status = 200
        self.resource_body = '{"status": "accepted"}'
        self.token_requests: list[dict] = []
        self.resource_requests: list[dict] = []
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.post("/auth/realms/{realm_id}/protocol/openid-connect/token")
        async def token(realm_id: str, request: Request):
            auth = request.headers.get("authorization", "")
            decoded = base64.b64decode(auth[len("Basic "):]).decode("utf-8") if auth.startswith("Basic ") else ""
            client_id, _, secret = decoded.partition(":")
            form = {k: v[0] for k, v in parse_qs((await request.body()).decode("utf-8")).items()}
            self.token_requests.append(
                {
                    "host": request.url.hostname,
                    "port": request.url.port,
                    "realm_id": realm_id,
                    "client_id": client_id,
                    "client_secret": secret,
                    "form": form,
                    "content_type": request.headers.get("content-type"),
                }
            )
            if client_id in self.token_failures:
                return JSONResponse({"error": "invalid_client"}, status_code=self.token_failures[client_id])
            access_token = self.tokens.get((realm_id, client_id), f"{realm_id}-{client_id}-token")
            return {"access_token": access_token, "token_type": "Bearer", "expires_in": 300}

        @app.api_route("/api/{resource}", methods=["GET", "POST"])
        async def resource(resource: str, request: Request):
            self.resource_requests.append(
                {
                    "method": request.method,
                    "url": str(request.url),
                    "resource": resource,
                    "headers": dict(request.headers),
                    "body": (await request.body()).decode("utf-8"),
                }
            )
            return PlainTextResponse(self.resource_body, status_code=self.resource_status)

        return app


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def http_client(backend):
    with TestClient(backend.app) as c:
        yield c


@pytest.fixture
def store():
    return RealmConfigStore(
        realms={
            "master": parse_realm_properties("master", MASTER_PROPS),
            "ops": parse_realm_properties("ops", OPS_PROPS),
        }
    )


@pytest.fixture
def cache():
    return TokenCache()
