import logging
from urllib.parse import quote, unquote, urljoin, urlsplit

from mirror_proxy.errors import InvalidTargetError, RedirectParseError

logger = logging.getLogger("uvicorn.error")

# Matches JavaScript's encodeURIComponent
_ENCODE_URI_COMPONENT_SAFE = "!~*'()"


def validate_target_origin(origin: str) -> str:
    """Validate and normalize the configured target origin (scheme://host[:port])."""
    if not origin:
        raise InvalidTargetError("Target origin is empty")
    try:
        parsed = urlsplit(origin.strip())
        # Accessing .port validates it
        parsed.port
    except ValueError as e:
        raise InvalidTargetError(f"Target origin {origin!r} is not a valid URL: {e}")

    if parsed.scheme not in ("http", "https"):
        raise InvalidTargetError(
            f"Target origin {origin!r} must use http or https, got {parsed.scheme!r}"
        )
    if not parsed.hostname:
        raise InvalidTargetError(f"Target origin {origin!r} has no host")
    if parsed.username or parsed.password:
        raise InvalidTargetError(f"Target origin {origin!r} must not carry credentials")
    if parsed.path not in ("", "/") or parsed.query or parsed.fragment:
        raise InvalidTargetError(
            f"Target origin {origin!r} must not have a path, query or fragment"
        )
    return f"{parsed.scheme}://{parsed.netloc}"


def target_host(origin: str) -> str:
    """Host header value (host[:port]) for a validated origin."""
    return urlsplit(origin).netloc


def build_target_url(request_path: str, request_query: str, config) -> str:
    """
    Concatenate the target origin with the raw request path and query.

    Path and query are used verbatim so that percent-escapes reach the
    upstream exactly as the client sent them.
    """
    path = request_path or "/"
    if not path.startswith("/"):
        path = "/" + path
    url = f"{config.target_origin}{path}"
    if request_query:
        url = f"{url}?{request_query.lstrip('?')}"
    return url


def _is_bounce_path(location: str) -> bool:
    if not location.startswith("/") or location.startswith("//"):
        return False
    segment = location[1:]
    if not segment or "/" in segment:
        return False
    decoded = unquote(segment)
    return decoded.startswith(("http://", "https://"))


def _absolute_location(location: str, target_origin: str) -> str:
    try:
        absolute = urljoin(target_origin + "/", location)
        parsed = urlsplit(absolute)
        parsed.port
    except ValueError as e:
        raise RedirectParseError(f"Cannot parse Location {location!r}: {e}")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise RedirectParseError(f"Location {location!r} is not an http(s) URL")
    return absolute


def rewrite_redirect_location(location: str, target_origin: str) -> str:
    """
    Rewrite an upstream Location into a proxy-relative bounce path.

    The location is resolved against the target origin and the full absolute
    URL is percent-encoded into a single path segment, e.g.
    ``/login`` -> ``/https%3A%2F%2Forigin%2Flogin``. Values that are already
    bounce paths, empty, or unparseable are returned unchanged.
    """
    if not location or _is_bounce_path(location):
        return location
    try:
        absolute = _absolute_location(location.strip(), target_origin)
    except RedirectParseError as e:
        logger.warning(f"[Proxy] Leaving Location unchanged: {e.message}")
        return location
    return "/" + quote(absolute, safe=_ENCODE_URI_COMPONENT_SAFE)


def rewrite_relative_reference(path: str, proxy_scheme: str, proxy_host: str) -> str:
    """Qualify a root-relative reference with the proxy's scheme and host."""
    # A backslash after the slash (/\evil.example/x) still counts as root-relative
    # and gains the proxy prefix, so it stays on the proxy
    if not path.startswith("/") or path.startswith("//"):
        return path
    scheme = proxy_scheme.rstrip(":")
    return f"{scheme}://{proxy_host}{path}"
