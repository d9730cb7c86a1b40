import logging
from typing import AsyncIterable, Optional, Union

import httpx
from starlette.datastructures import MutableHeaders

from mirror_proxy.config import ProxyConfig, RedirectMode
from mirror_proxy.errors import UpstreamTimeoutError, UpstreamUnreachableError
from mirror_proxy.utils.exception_logging import format_exception_message

logger = logging.getLogger("uvicorn.error")

_HELD_LOCATION = "mirror_proxy.location"


async def _hold_redirect_location(response: httpx.Response) -> None:
    """
    Keep httpx away from redirect Location headers in manual mode.

    httpx builds the follow-up request for every redirect, even one it will
    not follow, and raises on a Location it cannot resolve (bad port, no
    host, ...). The handler owns Location rewriting, so the header is held
    aside here and restored by ``UpstreamClient.fetch``.
    """
    if not response.is_redirect:
        return
    response.extensions[_HELD_LOCATION] = response.headers["location"]
    del response.headers["location"]


class UpstreamClient:
    """
    Outbound fetch capability backed by a pooled ``httpx.AsyncClient``.

    Responses are returned unread (``stream=True``); the caller owns them and
    must close them once the body has been relayed.
    """

    def __init__(
        self,
        config: ProxyConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        manual = config.redirect_mode is RedirectMode.MANUAL
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout),
            follow_redirects=not manual,
            event_hooks={"response": [_hold_redirect_location]} if manual else None,
            transport=transport,
        )

    async def fetch(
        self,
        method: str,
        url: str,
        headers: MutableHeaders,
        body: Optional[Union[bytes, AsyncIterable[bytes]]] = None,
    ) -> httpx.Response:
        request = self._client.build_request(
            method=method,
            url=url,
            headers=list(headers.items()),
            content=body,
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            logger.error(f"Proxy timeout for {url}: {format_exception_message(e)}")
            raise UpstreamTimeoutError(format_exception_message(e)) from e
        except httpx.RequestError as e:
            logger.error(f"Failed to connect to target {url}: {format_exception_message(e)}")
            raise UpstreamUnreachableError(format_exception_message(e)) from e

        held_location = response.extensions.get(_HELD_LOCATION)
        if held_location is not None:
            response.headers["location"] = held_location
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
