"""
Realm client configuration. Process-level settings from the environment.
No secrets in this file; client secrets live in the realm properties files.
"""
import os

# Directory holding one <realm>.properties file per realm
REALMS_DIR = os.environ.get("REALM_CLIENT_REALMS_DIR", "realms")

# Realm whose resource port and token set every dispatch goes through
MASTER_REALM = os.environ.get("REALM_CLIENT_MASTER_REALM", "master")

# Token refresh cadence (seconds). Hourly.
TOKEN_REFRESH_SECONDS = int(os.environ.get("REALM_CLIENT_TOKEN_REFRESH_SECONDS", "3600"))

# Observation dispatch cadence and startup delay (seconds)
DISPATCH_INTERVAL_SECONDS = int(os.environ.get("REALM_CLIENT_DISPATCH_INTERVAL_SECONDS", "10"))
DISPATCH_INITIAL_DELAY_SECONDS = int(os.environ.get("REALM_CLIENT_DISPATCH_INITIAL_DELAY_SECONDS", "10"))

# Per-call timeout for token exchange and dispatch
HTTP_TIMEOUT_SECONDS = float(os.environ.get("REALM_CLIENT_HTTP_TIMEOUT_SECONDS", "10.0"))

LOG_LEVEL = os.environ.get("REALM_CLIENT_LOG_LEVEL", "INFO").upper()

# Status service bind address
SERVICE_HOST = os.environ.get("REALM_CLIENT_HOST", "127.0.0.1")
SERVICE_PORT = int(os.environ.get("REALM_CLIENT_PORT", "8100"))

# Resource whose payload is XML; every other resource carries JSON
XML_RESOURCE = "ADSData"

# Stripped from a resource name to find the client identity whose token it uses
TOKEN_KEY_SUFFIX = "Data"

GET_USER_AGENT = "Mozilla/5.0"

TOKEN_PATH_TEMPLATE = "/auth/realms/{realm_id}/protocol/openid-connect/token"
