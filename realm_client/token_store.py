"""
In-memory bearer token cache: realm -> client identity -> most recent token.
Written only by the token refresher, read by the dispatcher and /status.
No expiry tracking; an entry stays until the next successful refresh overwrites it.
"""
import threading
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class StoredToken:
    access_token: str
    issued_at: float


class TokenCache:
    def __init__(self) -> None:
        self._tokens: dict[str, dict[str, StoredToken]] = {}
        self._lock = threading.Lock()

    def store(self, realm: str, client_id: str, access_token: str) -> None:
        entry = StoredToken(access_token=access_token, issued_at=time.time())
        with self._lock:
            self._tokens.setdefault(realm, {})[client_id] = entry

    def get_entry(self, realm: str, client_id: str) -> StoredToken | None:
        with self._lock:
            return self._tokens.get(realm, {}).get(client_id)

    def get(self, realm: str, client_id: str) -> str | None:
        entry = self.get_entry(realm, client_id)
        return entry.access_token if entry else None

    def snapshot(self) -> dict[str, dict[str, StoredToken]]:
        """Copy of the whole cache; safe to iterate while refreshes continue."""
        with self._lock:
            return {realm: dict(tokens) for realm, tokens in self._tokens.items()}

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()
