from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from mirror_proxy import vars as env
from mirror_proxy.errors import InvalidTargetError
from mirror_proxy.rewrite.cookies import STRIP_SECURE_MODES
from mirror_proxy.rewrite.urls import validate_target_origin


class RedirectMode(str, Enum):
    FOLLOW = "follow"
    MANUAL = "manual"

    @classmethod
    def from_str(cls, value: str) -> "RedirectMode":
        try:
            return cls(value.lower())
        except ValueError:
            raise InvalidTargetError(
                f"REDIRECT_MODE must be 'follow' or 'manual', got {value!r}"
            )


# Cache-Control applied to every non-preflight response per profile
DEFAULT_CACHE_CONTROL = {
    RedirectMode.MANUAL: "no-store",
    RedirectMode.FOLLOW: "public, max-age=3600",
}


@dataclass(frozen=True)
class ProxyConfig:
    """Process-wide proxy settings; built once at startup and never mutated."""

    target_origin: str
    removable_request_headers: FrozenSet[str] = frozenset()
    removable_request_header_prefixes: Tuple[str, ...] = ()
    removable_response_headers: FrozenSet[str] = frozenset()
    static_response_headers: Tuple[Tuple[str, str], ...] = ()
    redirect_mode: RedirectMode = RedirectMode.MANUAL
    rewrite_html: bool = True
    cache_control: str = field(default="")
    strip_secure_cookies: str = "auto"
    timeout: float = 60.0

    def __post_init__(self):
        object.__setattr__(
            self, "target_origin", validate_target_origin(self.target_origin)
        )
        if self.strip_secure_cookies not in STRIP_SECURE_MODES:
            raise InvalidTargetError(
                f"STRIP_SECURE_COOKIES must be one of {STRIP_SECURE_MODES}, "
                f"got {self.strip_secure_cookies!r}"
            )
        if not self.cache_control:
            object.__setattr__(
                self, "cache_control", DEFAULT_CACHE_CONTROL[self.redirect_mode]
            )


def load_config(
    target_origin: Optional[str] = None,
    redirect_mode: Optional[str] = None,
) -> ProxyConfig:
    """
    Build the proxy configuration from the environment.

    Raises:
        InvalidTargetError: if the target origin or a mode value is malformed.
    """
    return ProxyConfig(
        target_origin=target_origin or env.TARGET_ORIGIN,
        removable_request_headers=frozenset(env.REMOVE_REQUEST_HEADERS),
        removable_request_header_prefixes=tuple(env.REMOVE_REQUEST_HEADER_PREFIXES),
        removable_response_headers=frozenset(env.REMOVE_RESPONSE_HEADERS),
        static_response_headers=tuple(env.STATIC_RESPONSE_HEADERS.items()),
        redirect_mode=RedirectMode.from_str(redirect_mode or env.REDIRECT_MODE),
        rewrite_html=env.REWRITE_HTML,
        cache_control=env.CACHE_CONTROL,
        strip_secure_cookies=env.STRIP_SECURE_COOKIES,
        timeout=env.PROXY_TIMEOUT,
    )
