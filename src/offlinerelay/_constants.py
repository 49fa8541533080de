"""Internal constants shared across the library."""

DEFAULT_CACHE_NAME = "v1"
DEFAULT_ASSETS: tuple[str, ...] = ("/application.js", "/worker.js", "/manifest.json")
FALLBACK_PATH = "/index.html"
RECONNECT_DELAY_S = 3.0
CONTEXT_PATH = "/_relay"

OFFLINE_STATUS = 503
OFFLINE_REASON = "Service Unavailable"
OFFLINE_BODY = "Offline - Content not available"
OFFLINE_CONTENT_TYPE = "text/plain"

NETWORK_SCHEMES: frozenset[str] = frozenset({"http", "https"})

# Headers aiohttp recomputes when a stored response is written back out.
HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "content-encoding",
        "content-length",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)
