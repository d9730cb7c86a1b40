from typing import Union

import httpx
from starlette.datastructures import Headers, MutableHeaders

from mirror_proxy.rewrite.urls import target_host

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}


def copy_headers(headers: Union[Headers, httpx.Headers]) -> MutableHeaders:
    """Return an independent, case-insensitive multimap copy of ``headers``."""
    if isinstance(headers, httpx.Headers):
        items = headers.multi_items()
    else:
        items = headers.items()
    return MutableHeaders(
        raw=[
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in items
        ]
    )


def _drop(headers: MutableHeaders, should_drop) -> MutableHeaders:
    return MutableHeaders(
        raw=[
            (name, value)
            for name, value in headers.raw
            if not should_drop(name.decode("latin-1"))
        ]
    )


def filter_inbound(headers: Headers, config, original_host: str) -> MutableHeaders:
    """
    Prepare client headers for the upstream request.

    Removes configured names, configured prefixes (``cf-`` by default) and
    hop-by-hop headers, then points Host at the target origin and records the
    original host in X-Forwarded-Host.
    """
    removable = config.removable_request_headers
    prefixes = config.removable_request_header_prefixes

    def should_drop(name: str) -> bool:
        return (
            name in removable
            or name in HOP_BY_HOP_HEADERS
            or any(name.startswith(prefix) for prefix in prefixes)
        )

    result = _drop(copy_headers(headers), should_drop)
    result["host"] = target_host(config.target_origin)
    if original_host:
        result["x-forwarded-host"] = original_host
    return result


def filter_outbound(headers: Union[Headers, httpx.Headers], config) -> MutableHeaders:
    """
    Prepare upstream response headers for the client.

    Removes configured and hop-by-hop names, then overlays the static
    response headers (the overlay wins on collision).
    """
    removable = config.removable_response_headers
    result = _drop(
        copy_headers(headers),
        lambda name: name in removable or name in HOP_BY_HOP_HEADERS,
    )
    overlay_static_headers(result, config)
    return result


def overlay_static_headers(headers: MutableHeaders, config) -> None:
    """Set the configured static response headers, replacing existing values."""
    for name, value in config.static_response_headers:
        headers[name] = value
