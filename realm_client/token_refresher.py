"""
Token refresher. For every realm and every client identity declared in it, run the OAuth2
client-credentials grant against the realm's authorization server and keep the resulting
bearer token in the TokenCache.
A failing realm or client is logged and skipped; the rest of the cycle still runs.
"""
import base64
import json
import logging

import httpx

from realm_client.config import TOKEN_PATH_TEMPLATE
from realm_client.errors import AuthError, RealmClientError
from realm_client.realms import RealmConfig, RealmConfigStore
from realm_client.token_store import TokenCache

logger = logging.getLogger(__name__)


def token_url(realm: RealmConfig) -> str:
    path = TOKEN_PATH_TEMPLATE.format(realm_id=realm.realm_id)
    return f"http://{realm.auth_host}:{realm.auth_port}{path}"


def basic_authorization(client_id: str, client_secret: str) -> str:
    """'Basic base64(client_id:client_secret)' (RFC 6749 §2.3.1)."""
    encoded = base64.b64encode(f"{client_id}:{client_secret}".encode("utf-8")).decode("ascii")
    return f"Basic {encoded}"


class TokenRefresher:
    def __init__(self, store: RealmConfigStore, cache: TokenCache, http_client: httpx.Client):
        self.store = store
        self.cache = cache
        self.http_client = http_client

    def fetch_token(self, realm: RealmConfig, client_id: str) -> str:
        """
        Exchange client_id's credentials for a token scoped to the realm's target audience.
        Raises AuthError on transport failure, non-2xx status, non-JSON body, or missing access_token.
        """
        secret = realm.secret_for(client_id)
        url = token_url(realm)
        try:
            r = self.http_client.post(
                url,
                data={"grant_type": "client_credentials", "audience": realm.target_audience},
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                    "Authorization": basic_authorization(client_id, secret),
                },
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Token request to {url} failed: {e}", realm=realm.name, client_id=client_id) from e

        if not r.is_success:
            raise AuthError(
                f"Token endpoint {url} returned {r.status_code}", realm=realm.name, client_id=client_id
            )
        try:
            data = r.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise AuthError(
                f"Token endpoint {url} returned invalid JSON", realm=realm.name, client_id=client_id
            ) from e
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token or not isinstance(access_token, str):
            raise AuthError(
                f"Token response from {url} has no access_token", realm=realm.name, client_id=client_id
            )
        return access_token

    def refresh_realm(self, realm: RealmConfig) -> int:
        """Refresh every client identity of one realm. Returns how many tokens were stored."""
        refreshed = 0
        for client_id in realm.client_identities:
            try:
                access_token = self.fetch_token(realm, client_id)
            except RealmClientError as e:
                # Previous token (if any) stays in the cache until the next cycle succeeds.
                logger.warning("Token refresh failed for realm=%s client=%s: %s", realm.name, client_id, e)
                continue
            self.cache.store(realm.name, client_id, access_token)
            logger.debug("Token refreshed for realm=%s client=%s", realm.name, client_id)
            refreshed += 1
        return refreshed

    def refresh_all(self) -> None:
        """One scheduled refresh cycle over every configured realm."""
        try:
            self.store.ensure_loaded()
        except RealmClientError as e:
            logger.error("Realm configuration unavailable: %s", e)
            return

        refreshed = failed = 0
        for realm in self.store.realms():
            try:
                count = self.refresh_realm(realm)
            except RealmClientError as e:
                logger.warning("Token refresh failed for realm=%s: %s", realm.name, e)
                failed += len(realm.client_identities)
                continue
            refreshed += count
            failed += len(realm.client_identities) - count
        logger.info("Access tokens gathered: %d refreshed, %d failed", refreshed, failed)
