import re

from starlette.datastructures import MutableHeaders

from mirror_proxy.rewrite.headers import copy_headers

_DOMAIN_ATTRIBUTE = re.compile(r"(;\s*)Domain=[^;]*", re.IGNORECASE)
_SECURE_ATTRIBUTE = re.compile(r";\s*Secure\s*(?=;|$)", re.IGNORECASE)

STRIP_SECURE_MODES = ("auto", "always", "never")


def should_strip_secure(mode: str, proxy_scheme: str) -> bool:
    """Whether the Secure attribute must go, given the configured mode."""
    if mode == "always":
        return True
    if mode == "never":
        return False
    return proxy_scheme.rstrip(":").lower() == "http"


def rewrite_set_cookie(value: str, proxy_host: str, strip_secure: bool) -> str:
    """
    Point a single Set-Cookie value at the proxy host.

    Every Domain attribute is replaced by ``proxy_host``; Secure is removed
    when the proxy serves plaintext.
    """
    value = _DOMAIN_ATTRIBUTE.sub(lambda m: f"{m.group(1)}Domain={proxy_host}", value)
    if strip_secure:
        value = _SECURE_ATTRIBUTE.sub("", value)
    return value


def rewrite_set_cookie_headers(
    headers: MutableHeaders, proxy_host: str, strip_secure: bool
) -> MutableHeaders:
    """Rewrite each Set-Cookie header independently, preserving order."""
    result = copy_headers(headers)
    cookies = result.getlist("set-cookie")
    if not cookies:
        return result
    del result["set-cookie"]
    for cookie in cookies:
        result.append("set-cookie", rewrite_set_cookie(cookie, proxy_host, strip_secure))
    return result
