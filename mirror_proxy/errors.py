"""
Error taxonomy for the proxy pipeline.

Only ``InvalidTargetError`` may stop the service from serving traffic; every
other error is recovered at the request boundary.
"""


class ProxyError(Exception):
    """Base class for errors raised while proxying a request."""

    status_code = 502
    error = "Proxy error"

    def __init__(self, message: str = ""):
        self.message = message or self.error
        super().__init__(self.message)


class InvalidTargetError(ProxyError):
    """The configured target origin is not a usable absolute URL."""

    status_code = 500
    error = "Invalid target"


class UpstreamUnreachableError(ProxyError):
    """The upstream origin could not be reached (DNS, refused, reset...)."""


class UpstreamTimeoutError(ProxyError):
    """The upstream origin did not answer within the configured timeout."""

    status_code = 504
    error = "Gateway timeout"


class RedirectParseError(ProxyError):
    """A Location header value could not be parsed as a URL."""


class MalformedBodyError(ProxyError):
    """An HTML body could not be decoded with its declared charset."""
