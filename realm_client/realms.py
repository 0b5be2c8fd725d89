"""
Realm configuration store. One RealmConfig per realm name, parsed from a flat
key/value property set (resource.*, keycloak.*, realm.*, target.client.id,
<clientId>.client.secret). Loaded lazily on first use, then read-only.
"""
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping

from realm_client.config import MASTER_REALM
from realm_client.errors import ConfigurationError

logger = logging.getLogger(__name__)

_SECRET_SUFFIX = ".client.secret"


@dataclass(frozen=True)
class RealmConfig:
    name: str
    endpoint_host: str
    endpoint_port: int | None
    auth_host: str
    auth_port: int
    realm_id: str
    target_audience: str
    client_identities: tuple[str, ...] = ()
    client_secrets: dict[str, str] = field(default_factory=dict, compare=False)

    def secret_for(self, client_id: str) -> str:
        try:
            return self.client_secrets[client_id]
        except KeyError:
            raise ConfigurationError(f"Realm '{self.name}': no secret for client '{client_id}'") from None


def _required(name: str, props: Mapping[str, str], key: str) -> str:
    value = (props.get(key) or "").strip()
    if not value:
        raise ConfigurationError(f"Realm '{name}': missing required property '{key}'")
    return value


def _port(name: str, key: str, value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise ConfigurationError(f"Realm '{name}': property '{key}' is not a port number: {value!r}") from None
    if not 0 < port < 65536:
        raise ConfigurationError(f"Realm '{name}': property '{key}' out of range: {port}")
    return port


def parse_client_list(value: str) -> tuple[str, ...]:
    """Split 'a;b;c' into ordered unique client identities; blanks dropped."""
    seen: list[str] = []
    for item in value.split(";"):
        item = item.strip()
        if item and item not in seen:
            seen.append(item)
    return tuple(seen)


def parse_realm_properties(name: str, props: Mapping[str, str]) -> RealmConfig:
    """
    Build a RealmConfig from one realm's properties.
    resource.port is only required on the master realm (dispatch always uses master's port).
    Raises ConfigurationError on any missing or malformed value.
    """
    endpoint_host = _required(name, props, "resource.endpoint")
    raw_port = (props.get("resource.port") or "").strip()
    if raw_port:
        endpoint_port = _port(name, "resource.port", raw_port)
    elif name == MASTER_REALM:
        raise ConfigurationError(f"Realm '{name}': missing required property 'resource.port'")
    else:
        endpoint_port = None

    auth_host = _required(name, props, "keycloak.endpoint")
    auth_port = _port(name, "keycloak.port", _required(name, props, "keycloak.port"))
    realm_id = _required(name, props, "realm.id")
    target_audience = _required(name, props, "target.client.id")
    clients = parse_client_list(_required(name, props, "realm.clients"))

    secrets: dict[str, str] = {}
    for client_id in clients:
        secret = (props.get(client_id + _SECRET_SUFFIX) or "").strip()
        if not secret:
            raise ConfigurationError(
                f"Realm '{name}': client '{client_id}' has no '{client_id}{_SECRET_SUFFIX}' property"
            )
        secrets[client_id] = secret

    return RealmConfig(
        name=name,
        endpoint_host=endpoint_host,
        endpoint_port=endpoint_port,
        auth_host=auth_host,
        auth_port=auth_port,
        realm_id=realm_id,
        target_audience=target_audience,
        client_identities=clients,
        client_secrets=secrets,
    )


_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_SEPARATORS = "=: \t\f"
_WHITESPACE = " \t\f"


def _logical_lines(text: str):
    """Join backslash-continued lines; skip blank lines and # / ! comments."""
    pending = ""
    for raw in text.splitlines():
        line = raw.lstrip(_WHITESPACE)
        if not pending and (not line or line[0] in "#!"):
            continue
        # An odd number of trailing backslashes continues onto the next line.
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2:
            pending += line[:-1]
            continue
        yield pending + line
        pending = ""
    if pending:
        yield pending


def _unescape(value: str) -> str:
    out = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch != "\\" or i + 1 == len(value):
            out.append(ch)
            i += 1
            continue
        nxt = value[i + 1]
        if nxt == "u":
            digits = value[i + 2:i + 6]
            try:
                if len(digits) != 4:
                    raise ValueError(digits)
                out.append(chr(int(digits, 16)))
            except ValueError:
                raise ConfigurationError(f"Malformed \\uxxxx escape: {value[i:i + 6]!r}") from None
            i += 6
        else:
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
    return "".join(out)


def _split_entry(line: str) -> tuple[str, str]:
    """Key ends at the first unescaped '=', ':' or whitespace; one '=' or ':' may follow."""
    i = 0
    while i < len(line):
        if line[i] == "\\":
            i += 2
            continue
        if line[i] in _SEPARATORS:
            break
        i += 1
    rest = line[i:].lstrip(_WHITESPACE)
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(_WHITESPACE)
    return _unescape(line[:i]), _unescape(rest)


def parse_properties(text: str) -> dict[str, str]:
    """Java .properties text: key=value, key:value or key value; \\ escapes and continuations."""
    return dict(_split_entry(line) for line in _logical_lines(text))


def read_properties_file(path: str | Path) -> dict[str, str]:
    """Read a .properties file. ISO-8859-1, like java.util.Properties.load(InputStream)."""
    try:
        text = Path(path).read_text(encoding="latin-1")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    return parse_properties(text)


def load_realm_properties(directory: str | Path) -> dict[str, dict[str, str]]:
    """
    Read every *properties file in directory. Realm name is the file name up to the first dot
    (master.properties -> master). An unreadable or malformed file is logged and skipped.
    """
    folder = Path(directory)
    if not folder.is_dir():
        raise ConfigurationError(f"Realm configuration directory not found: {folder}")
    realms: dict[str, dict[str, str]] = {}
    for path in sorted(folder.iterdir()):
        if not path.is_file() or not path.name.endswith("properties"):
            continue
        logger.info("Realm configuration file %s", path.name)
        try:
            realms[path.name.split(".")[0]] = read_properties_file(path)
        except ConfigurationError as e:
            logger.warning("Skipping realm file %s: %s", path.name, e)
    return realms


RealmLoader = Callable[[], Mapping[str, Mapping[str, str]]]


class RealmConfigStore:
    """
    Realm name -> RealmConfig. Populated by the first successful ensure_loaded(); thereafter pure lookups.
    A malformed realm is logged and skipped; the others still load.
    """

    def __init__(self, loader: RealmLoader | None = None, realms: Mapping[str, RealmConfig] | None = None):
        self._loader = loader
        self._realms: dict[str, RealmConfig] = dict(realms or {})
        self._loaded = loader is None
        self._lock = threading.Lock()

    @classmethod
    def from_directory(cls, directory: str | Path) -> "RealmConfigStore":
        return cls(loader=lambda: load_realm_properties(directory))

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            # A loader failure leaves the store unloaded; the next call tries again.
            raw = self._loader()
            for name, props in raw.items():
                try:
                    self._realms[name] = parse_realm_properties(name, props)
                except ConfigurationError as e:
                    logger.warning("Skipping realm %s: %s", name, e)
                    continue
                logger.info(
                    "Loaded realm %s (clients: %s)", name, ", ".join(self._realms[name].client_identities)
                )
            self._loaded = True

    def get(self, name: str) -> RealmConfig:
        self.ensure_loaded()
        realm = self._realms.get(name)
        if realm is None:
            raise ConfigurationError(f"Realm '{name}' is not configured")
        return realm

    def realms(self) -> list[RealmConfig]:
        self.ensure_loaded()
        return list(self._realms.values())

    def names(self) -> list[str]:
        self.ensure_loaded()
        return list(self._realms)

    def __contains__(self, name: object) -> bool:
        self.ensure_loaded()
        return name in self._realms

    def __len__(self) -> int:
        self.ensure_loaded()
        return len(self._realms)
