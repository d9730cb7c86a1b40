
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response

from mirror_proxy.handler import ProxyHandler

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


@router.get("/-/healthz", include_in_schema=False)
async def health_check():
    return PlainTextResponse("OK")


# Register catch-all route for proxying; must stay last
@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_all(request: Request, path: str) -> Response:
    """Catch-all route that proxies all requests to the target origin."""
    handler = ProxyHandler(request.app.state.proxy_config, request.app.state.upstream)
    return await handler.handle(request)
