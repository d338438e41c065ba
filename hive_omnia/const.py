"""Constants for the Hive Omnia API client."""

# Endpoint
DEFAULT_BASE_URL = "https://api-prod.bgchprod.info:443/omnia/"
DEFAULT_TIMEOUT = 4  # seconds

# Headers
MEDIA_TYPE = "application/vnd.alertme.zoo-6.5+json"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_ACCEPT = "Accept"
HEADER_CLIENT = "X-Omnia-Client"
HEADER_ACCESS_TOKEN = "X-Omnia-Access-Token"
CLIENT_NAME = "Hive Web Dashboard"

DEFAULT_HEADERS = {
    HEADER_CONTENT_TYPE: MEDIA_TYPE,
    HEADER_ACCEPT: MEDIA_TYPE,
    HEADER_CLIENT: CLIENT_NAME,
}

# Option keys accepted by HiveConfig.from_options
CONF_BASE = "base"
CONF_BASE_URL = "base_url"
CONF_TIMEOUT = "timeout"
CONF_HEADERS = "headers"
CONF_ENSURE_ASCII = "ensure_ascii"

# Paths, relative to the base URL
PATH_SESSIONS = "auth/sessions"
PATH_NODES = "nodes"
PATH_CHANNELS = "channels"

# Response keys
KEY_SESSIONS = "sessions"
KEY_NODES = "nodes"
KEY_CHANNELS = "channels"

CALLER = "WEB"

# Channel values query
DEFAULT_CHANNEL_METRICS = ("temperature", "battery", "targetTemperature", "signal")
LOOKBACK_DAYS = 7
WINDOW_DAYS = 10
TIME_UNIT = "SECONDS"
RATE = 1
