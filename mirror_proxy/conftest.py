import pytest

from mirror_proxy.config import ProxyConfig, RedirectMode

TEST_TARGET_ORIGIN = "https://archiveofourown.org"


@pytest.fixture
def proxy_config():
    """Manual-redirect profile with HTML rewriting, as deployed by default."""
    return ProxyConfig(
        target_origin=TEST_TARGET_ORIGIN,
        removable_request_headers=frozenset(
            {"cf-connecting-ip", "cf-ray", "cf-ipcountry", "x-forwarded-for", "x-real-ip"}
        ),
        removable_request_header_prefixes=("cf-",),
        removable_response_headers=frozenset({"strict-transport-security"}),
        redirect_mode=RedirectMode.MANUAL,
        rewrite_html=True,
        timeout=5.0,
    )


@pytest.fixture
def follow_config():
    """Pass-through profile: redirects followed, bodies untouched."""
    return ProxyConfig(
        target_origin=TEST_TARGET_ORIGIN,
        removable_request_headers=frozenset({"x-forwarded-for", "x-real-ip"}),
        removable_request_header_prefixes=("cf-",),
        removable_response_headers=frozenset({"strict-transport-security"}),
        static_response_headers=(("access-control-allow-origin", "*"),),
        redirect_mode=RedirectMode.FOLLOW,
        rewrite_html=False,
        timeout=5.0,
    )
