import os


def _env_int(name, default):
    value = os.environ.get(name, "").strip()
    return int(value) if value else default


def _env_float(name, default):
    value = os.environ.get(name, "").strip()
    return float(value) if value else default


def parse_relays(raw):
    """Parse a comma-separated list of `shape|template` relay entries.

    A bare template (no `shape|` prefix) is treated as a raw relay.
    """
    relays = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        shape, sep, template = entry.partition("|")
        if not sep:
            shape, template = "raw", entry
        relays.append((shape.strip().lower(), template.strip()))
    return relays


# upstream catalog
CATALOG_URL = os.environ.get("CATALOG_URL", "https://iptv-org.github.io/iptv/countries/tr.m3u")
CATALOG_PROFILE = os.environ.get("CATALOG_PROFILE", "sports")
CATALOG_REFRESH_INTERVAL = _env_int("CATALOG_REFRESH_INTERVAL", 60 * 60)
CATALOG_RETRIES = _env_int("CATALOG_RETRIES", 3)
CATALOG_RETRY_DELAY = _env_float("CATALOG_RETRY_DELAY", 2.0)

# optional legacy php backend exposing /api/channels and /api/proxy
BACKEND_ORIGIN = os.environ.get("BACKEND_ORIGIN", "").rstrip("/")

# the catalog host only serves the full list to player-looking clients
USER_AGENT = os.environ.get("USER_AGENT", "VLC/3.0.16 LibVLC/3.0.16")

DEFAULT_RELAYS = ",".join([
    "json|https://api.allorigins.win/get?url={url}",
    "raw|https://api.codetabs.com/v1/proxy?request={url}",
    "raw|https://corsproxy.io/?{url}",
    "raw|https://api.allorigins.win/raw?url={url}",
])
RELAY_ENDPOINTS = parse_relays(os.environ.get("RELAY_ENDPOINTS", DEFAULT_RELAYS))

# seconds
TEXT_TIMEOUT = _env_float("TEXT_TIMEOUT", 15)
BINARY_TIMEOUT = _env_float("BINARY_TIMEOUT", 30)
DOCUMENT_CACHE_TTL = _env_float("DOCUMENT_CACHE_TTL", 5 * 60)

PROXY_BASE = os.environ.get("PROXY_BASE", "/api/stream").rstrip("/")

HOST = os.environ.get("HOST", "127.0.0.1")
PORT = _env_int("PORT", 40006)
