import re

from mirror_proxy.errors import MalformedBodyError
from mirror_proxy.rewrite.urls import rewrite_relative_reference

# Root-relative href/src/action values; "//" (protocol-relative) is excluded
_RELATIVE_ATTRIBUTE = re.compile(
    r"""(?P<lead>\b(?:href|src|action)=["'])(?P<ref>/(?!/)[^"'\s>]*)""",
    re.IGNORECASE,
)


def is_html(content_type: str) -> bool:
    return "text/html" in (content_type or "").lower()


def rewrite_html(body_text: str, proxy_scheme: str, proxy_host: str) -> str:
    """
    Qualify root-relative href/src/action references with the proxy origin.

    This is a lexical pass, not an HTML parse, so partial or malformed
    markup is tolerated. Absolute, protocol-relative and fragment-only
    references are left as they are.
    """
    return _RELATIVE_ATTRIBUTE.sub(
        lambda m: m.group("lead")
        + rewrite_relative_reference(m.group("ref"), proxy_scheme, proxy_host),
        body_text,
    )


def rewrite_html_body(
    body: bytes, encoding: str, proxy_scheme: str, proxy_host: str
) -> bytes:
    """Decode, rewrite and re-encode an HTML body using the same charset."""
    encoding = encoding or "utf-8"
    try:
        text = body.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise MalformedBodyError(f"Cannot decode HTML body as {encoding}: {e}")
    return rewrite_html(text, proxy_scheme, proxy_host).encode(encoding)
