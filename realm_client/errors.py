"""
Error taxonomy. Every failure is isolated to its unit of work (realm, client identity,
dispatch call); callers log and carry on.
"""


class RealmClientError(Exception):
    """Base class for realm client failures."""


class ConfigurationError(RealmClientError):
    """Missing or malformed realm properties, or a realm that is not configured."""


class AuthError(RealmClientError):
    """Client-credentials token exchange failed."""

    def __init__(self, message: str, *, realm: str | None = None, client_id: str | None = None):
        super().__init__(message)
        self.realm = realm
        self.client_id = client_id


class DispatchError(RealmClientError, OSError):
    """Dispatch request failed (transport, non-2xx status, encoding, no cached token)."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
