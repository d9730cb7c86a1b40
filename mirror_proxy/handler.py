import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from opentelemetry import trace
from starlette.datastructures import MutableHeaders

from mirror_proxy.config import ProxyConfig, RedirectMode
from mirror_proxy.errors import MalformedBodyError, ProxyError
from mirror_proxy.rewrite.cookies import rewrite_set_cookie_headers, should_strip_secure
from mirror_proxy.rewrite.headers import (
    filter_inbound,
    filter_outbound,
    overlay_static_headers,
)
from mirror_proxy.rewrite.html import is_html, rewrite_html_body
from mirror_proxy.rewrite.urls import build_target_url, rewrite_redirect_location
from mirror_proxy.upstream import UpstreamClient
from mirror_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

REDIRECT_STATUSES = {301, 302, 303, 307, 308}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}
PREFLIGHT_MAX_AGE = "86400"

# Encodings httpx can always decode without optional packages
REWRITABLE_ACCEPT_ENCODING = "gzip, deflate"


def preflight_response() -> Response:
    """Answer a CORS preflight without contacting the upstream."""
    return Response(
        status_code=204,
        headers={**CORS_HEADERS, "Access-Control-Max-Age": PREFLIGHT_MAX_AGE},
    )


def error_response(error: ProxyError, config: ProxyConfig) -> Response:
    response = JSONResponse(
        {"error": error.error, "message": error.message},
        status_code=error.status_code,
    )
    apply_common_headers(response.headers, config)
    return response


def internal_error_response(config: ProxyConfig) -> Response:
    response = PlainTextResponse("Internal Server Error", status_code=500)
    apply_common_headers(response.headers, config)
    return response


def apply_common_headers(headers: MutableHeaders, config: ProxyConfig) -> None:
    """CORS and cache directives set on every non-preflight response."""
    for name, value in CORS_HEADERS.items():
        headers[name] = value
    headers["Cache-Control"] = config.cache_control


def _request_body(request: Request) -> Optional[AsyncIterator[bytes]]:
    if "content-length" in request.headers or "transfer-encoding" in request.headers:
        return request.stream()
    return None


async def _relay_raw(response: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    finally:
        await response.aclose()


class ProxyHandler:
    """Runs one request through the rewrite pipeline against the upstream."""

    def __init__(self, config: ProxyConfig, upstream: UpstreamClient):
        self.config = config
        self.upstream = upstream

    async def handle(self, request: Request) -> Response:
        if request.method == "OPTIONS":
            return preflight_response()

        with tracer.start_as_current_span("proxy_request") as span:
            span.set_attribute("proxy.method", request.method)
            try:
                return await self._forward(request, span)
            except ProxyError as e:
                span.set_attribute("proxy.error", e.error)
                return error_response(e, self.config)
            except Exception as e:
                log_exception_with_details(logger, "[Proxy]", e)
                span.set_attribute("proxy.error", format_exception_message(e))
                return internal_error_response(self.config)

    async def _forward(self, request: Request, span) -> Response:
        config = self.config
        raw_path = request.scope.get("raw_path")
        path = raw_path.decode("latin-1") if raw_path else request.url.path
        query = request.scope.get("query_string", b"").decode("latin-1")
        target_url = build_target_url(path, query, config)
        span.set_attribute("proxy.target_url", target_url)

        proxy_scheme = request.url.scheme
        # Cookies and X-Forwarded-Host use the bare hostname; links need the port too
        proxy_host = request.url.hostname or ""
        proxy_authority = request.url.netloc or proxy_host
        logger.debug(f"Proxying {request.method} {request.url.path} -> {target_url}")

        headers = filter_inbound(request.headers, config, proxy_host)
        if config.rewrite_html:
            headers["accept-encoding"] = REWRITABLE_ACCEPT_ENCODING

        upstream_response = await self.upstream.fetch(
            request.method, target_url, headers, _request_body(request)
        )
        span.set_attribute("proxy.status_code", upstream_response.status_code)
        try:
            return await self._respond(
                request, upstream_response, proxy_scheme, proxy_host, proxy_authority, span
            )
        except BaseException:
            await upstream_response.aclose()
            raise

    async def _respond(
        self,
        request: Request,
        upstream_response: httpx.Response,
        proxy_scheme: str,
        proxy_host: str,
        proxy_authority: str,
        span,
    ) -> Response:
        config = self.config
        headers = filter_outbound(upstream_response.headers, config)
        headers = rewrite_set_cookie_headers(
            headers,
            proxy_host,
            should_strip_secure(config.strip_secure_cookies, proxy_scheme),
        )
        apply_common_headers(headers, config)
        # Static headers take precedence over the CORS and cache defaults
        overlay_static_headers(headers, config)

        status = upstream_response.status_code
        if config.redirect_mode is RedirectMode.MANUAL and status in REDIRECT_STATUSES:
            location = headers.get("location")
            if location:
                headers["location"] = rewrite_redirect_location(
                    location, config.target_origin
                )
                span.set_attribute("proxy.rewritten_location", headers["location"])
        elif (
            config.rewrite_html
            and request.method != "HEAD"
            and is_html(headers.get("content-type", ""))
        ):
            return await self._rewrite_html(
                upstream_response, headers, proxy_scheme, proxy_authority, span
            )

        response = StreamingResponse(_relay_raw(upstream_response), status_code=status)
        response.raw_headers.extend(headers.raw)
        return response

    async def _rewrite_html(
        self,
        upstream_response: httpx.Response,
        headers: MutableHeaders,
        proxy_scheme: str,
        proxy_authority: str,
        span,
    ) -> Response:
        try:
            # aread() returns the content-decoded body
            body = await upstream_response.aread()
        finally:
            await upstream_response.aclose()
        del headers["content-encoding"]
        del headers["content-length"]

        encoding = upstream_response.charset_encoding or "utf-8"
        try:
            body = rewrite_html_body(body, encoding, proxy_scheme, proxy_authority)
            span.set_attribute("proxy.html_rewritten", True)
        except MalformedBodyError as e:
            logger.warning(f"[Proxy] HTML rewriting skipped: {e.message}")
            span.set_attribute("proxy.html_rewritten", False)

        response = Response(content=body, status_code=upstream_response.status_code)
        response.raw_headers.extend(headers.raw)
        return response
