"""Cross-origin and iframe framing setup for the Hub API."""

from urllib.parse import urlsplit

from flask_cors import CORS

# Flask-CORS treats these as regexes; both are anchored at each end.
REPLIT_ORIGIN = r"^https?://([\w-]+\.)*replit\.dev(:\d+)?$"
LOCAL_ORIGIN = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

ALLOW_HEADERS = ["Content-Type", "X-Correlation-Id", "X-API-Key"]
EXPOSE_HEADERS = ["X-Correlation-Id"]


def normalize_origin(value):
    """Lower-case ``scheme://host[:port]`` form of a URL, or "" if it has none."""
    if not value:
        return ""
    parts = urlsplit(value.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}".lower()


def build_allow_list(raw_list, *urls):
    """Collect allowed origins from a comma separated setting plus app URLs."""
    origins = set()
    for item in [*(raw_list or "").split(","), *urls]:
        origin = normalize_origin(item)
        if origin:
            origins.add(origin)
    return origins


def init_cors(app, allow_list):
    """Enable CORS on /api/* for the allow-list, replit.dev and localhost."""
    origins = sorted(allow_list) + [REPLIT_ORIGIN, LOCAL_ORIGIN]
    CORS(
        app,
        resources={r"/api/*": {"origins": origins}},
        allow_headers=ALLOW_HEADERS,
        expose_headers=EXPOSE_HEADERS,
    )
    return origins


def apply_frame_headers(response, production):
    """Outside production, let any parent page frame the Hub."""
    if production:
        return
    response.headers["Content-Security-Policy"] = "frame-ancestors *;"
    response.headers.pop("X-Frame-Options", None)
