"""
Request dispatcher. Sends one authenticated REST request per call to
http://<realm endpoint>:<master port>/api/<resource> and returns the response body.

All dispatch is funneled through the master realm: the port and the bearer token always
come from master, whichever realm is named. The token is the one cached for the client
identity named by the resource ("ADSData" -> "ADS").
"""
import logging

import httpx

from realm_client.config import GET_USER_AGENT, MASTER_REALM, TOKEN_KEY_SUFFIX, XML_RESOURCE
from realm_client.errors import DispatchError
from realm_client.realms import RealmConfigStore
from realm_client.token_store import TokenCache

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = ("GET", "POST", "PATCH")


def token_key(resource_name: str) -> str:
    """Client identity whose token authenticates resource_name: the trailing "Data" is dropped."""
    name = resource_name.strip()
    if name.endswith(TOKEN_KEY_SUFFIX):
        return name[: -len(TOKEN_KEY_SUFFIX)]
    return name


def content_type_for(resource_name: str) -> str:
    if resource_name.strip() == XML_RESOURCE:
        return "application/xml"
    return "application/json"


def join_lines(text: str) -> str:
    """Response body as one string: each line trimmed, no separators between lines."""
    return "".join(line.strip() for line in text.splitlines())


class RequestDispatcher:
    def __init__(self, store: RealmConfigStore, cache: TokenCache, http_client: httpx.Client):
        self.store = store
        self.cache = cache
        self.http_client = http_client

    def resolve_url(self, realm: str, resource_name: str) -> str:
        host = self.store.get(realm).endpoint_host
        port = self.store.get(MASTER_REALM).endpoint_port
        return f"http://{host}:{port}/api/{resource_name.strip()}"

    def bearer_token(self, resource_name: str) -> str:
        key = token_key(resource_name)
        access_token = self.cache.get(MASTER_REALM, key)
        if access_token is None:
            raise DispatchError(f"No cached token for client '{key}' in realm '{MASTER_REALM}'")
        return access_token

    def build_headers(self, resource_name: str, method: str) -> dict[str, str]:
        headers = {
            "Content-Type": content_type_for(resource_name),
            "Accept": "application/json",
            "Authorization": f"Bearer {self.bearer_token(resource_name)}",
        }
        if method == "GET":
            headers["User-Agent"] = GET_USER_AGENT
        elif method == "PATCH":
            # Transport only carries POST; the server dispatches on the override header.
            headers["X-HTTP-Method-Override"] = "PATCH"
        return headers

    def send(self, realm: str, resource_name: str, payload: str | None, method: str) -> str:
        """
        Send payload to resource_name and return the response body.
        GET carries no body; POST and PATCH go over the wire as POST with the UTF-8 payload.
        Raises DispatchError on transport failure, non-2xx status, encoding failure or missing token;
        ConfigurationError if realm or master is not configured. One attempt, no retry.
        """
        method = method.strip().upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported method {method!r}; expected one of {', '.join(SUPPORTED_METHODS)}")

        url = self.resolve_url(realm, resource_name)
        headers = self.build_headers(resource_name, method)
        content = None
        if method != "GET":
            try:
                content = (payload or "").encode("utf-8")
            except UnicodeEncodeError as e:
                raise DispatchError(f"Cannot encode payload for {resource_name}: {e}") from e

        wire_method = "GET" if method == "GET" else "POST"
        try:
            r = self.http_client.request(wire_method, url, content=content, headers=headers)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DispatchError(
                f"{method} {url} returned {e.response.status_code}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise DispatchError(f"{method} {url} failed: {e}") from e
        logger.info("Request sent: %s %s -> %s", method, url, r.status_code)

        try:
            body = r.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DispatchError(f"Response from {url} is not valid UTF-8") from e
        return join_lines(body)
