import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "mirror-proxy")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8080"))

TARGET_ORIGIN = os.environ.get("TARGET_ORIGIN", "https://archiveofourown.org")


def _parse_name_list(raw: str) -> list:
    return [name.strip().lower() for name in raw.split(",") if name.strip()]


def _parse_static_headers(raw: str) -> dict:
    # Entries are separated by ";" because header values may contain commas
    mapping: dict = {}
    if not raw:
        return mapping
    for entry in raw.split(";"):
        entry = entry.strip()
        if not entry:
            continue
        if "=" in entry:
            key, val = entry.split("=", 1)
            key = key.strip()
            val = val.strip()
            if key and val:
                mapping[key] = val
    return mapping


REMOVE_REQUEST_HEADERS = _parse_name_list(
    os.environ.get(
        "REMOVE_REQUEST_HEADERS",
        "cf-connecting-ip,cf-ray,cf-ipcountry,x-forwarded-for,x-real-ip",
    )
)
REMOVE_REQUEST_HEADER_PREFIXES = _parse_name_list(
    os.environ.get("REMOVE_REQUEST_HEADER_PREFIXES", "cf-")
)
REMOVE_RESPONSE_HEADERS = _parse_name_list(
    os.environ.get("REMOVE_RESPONSE_HEADERS", "strict-transport-security")
)
STATIC_RESPONSE_HEADERS = _parse_static_headers(
    os.environ.get("STATIC_RESPONSE_HEADERS", "")
)

REDIRECT_MODE = os.environ.get("REDIRECT_MODE", "manual").lower()
REWRITE_HTML = os.environ.get("REWRITE_HTML", "true").lower() == "true"
# Empty means "derive from REDIRECT_MODE"
CACHE_CONTROL = os.environ.get("CACHE_CONTROL", "")
STRIP_SECURE_COOKIES = os.environ.get("STRIP_SECURE_COOKIES", "auto").lower()
PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "60"))

METRICS_PATH = os.environ.get("METRICS_PATH", "/-/metrics")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
