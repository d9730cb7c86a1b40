from urllib.parse import unquote, urlsplit

import pytest

from mirror_proxy.errors import InvalidTargetError
from mirror_proxy.rewrite.urls import (
    build_target_url,
    rewrite_redirect_location,
    rewrite_relative_reference,
    target_host,
    validate_target_origin,
)

TARGET = "https://archiveofourown.org"


class TestValidateTargetOrigin:
    def test_plain_origin(self):
        assert validate_target_origin(TARGET) == TARGET

    def test_trailing_slash_is_normalized(self):
        assert validate_target_origin(f"{TARGET}/") == TARGET

    def test_port_is_kept(self):
        assert validate_target_origin("http://internal-app:8080") == "http://internal-app:8080"

    @pytest.mark.parametrize(
        "origin",
        [
            "",
            "archiveofourown.org",
            "ftp://archiveofourown.org",
            "https://",
            "https://archiveofourown.org/works",
            "https://archiveofourown.org?x=1",
            "https://archiveofourown.org#top",
            "https://user:pw@archiveofourown.org",
            "http://internal-app:notaport",
        ],
    )
    def test_malformed_origins_are_rejected(self, origin):
        with pytest.raises(InvalidTargetError):
            validate_target_origin(origin)

    def test_target_host_includes_port(self):
        assert target_host("http://internal-app:8080") == "internal-app:8080"
        assert target_host(TARGET) == "archiveofourown.org"


class TestBuildTargetUrl:
    def test_path_and_query(self, proxy_config):
        result = build_target_url("/works/123", "view=full", proxy_config)
        assert result == "https://archiveofourown.org/works/123?view=full"

    def test_root_path(self, proxy_config):
        assert build_target_url("/", "", proxy_config) == f"{TARGET}/"

    def test_empty_path_becomes_root(self, proxy_config):
        assert build_target_url("", "", proxy_config) == f"{TARGET}/"

    def test_percent_escapes_are_not_decoded(self, proxy_config):
        result = build_target_url(
            "/tags/F%2FF%20Fluff/works", "q=hello%20world&tag=foo%2Fbar", proxy_config
        )
        assert result == f"{TARGET}/tags/F%2FF%20Fluff/works?q=hello%20world&tag=foo%2Fbar"

    def test_round_trip_preserves_path_and_query(self, proxy_config):
        path, query = "/a%20b/c;d", "x=%2F&y=1&y=2&empty="
        parsed = urlsplit(build_target_url(path, query, proxy_config))
        assert parsed.path == path
        assert parsed.query == query

    def test_multiple_slashes_are_kept(self, proxy_config):
        assert build_target_url("/a//b", "", proxy_config) == f"{TARGET}/a//b"


class TestRewriteRedirectLocation:
    def test_relative_location_becomes_bounce_path(self):
        result = rewrite_redirect_location("/login", TARGET)

        assert result == "/https%3A%2F%2Farchiveofourown.org%2Flogin"
        assert unquote(result[1:]) == f"{TARGET}/login"

    def test_absolute_location(self):
        result = rewrite_redirect_location("https://other.example.com/a?b=c", TARGET)
        assert result == "/https%3A%2F%2Fother.example.com%2Fa%3Fb%3Dc"

    def test_encoding_matches_encode_uri_component(self):
        result = rewrite_redirect_location("/works/(1)!*'~", TARGET)
        assert result.endswith("%2Fworks%2F(1)!*'~")

    def test_already_bounced_location_is_not_encoded_twice(self):
        bounced = rewrite_redirect_location("/login", TARGET)
        assert rewrite_redirect_location(bounced, TARGET) == bounced

    def test_empty_location(self):
        assert rewrite_redirect_location("", TARGET) == ""

    @pytest.mark.parametrize(
        "location", ["http://[::1/broken", "http://archiveofourown.org:abc/x"]
    )
    def test_unparseable_location_passes_through(self, location):
        assert rewrite_redirect_location(location, TARGET) == location

    def test_non_http_location_passes_through(self):
        location = "mailto:someone@example.com"
        assert rewrite_redirect_location(location, TARGET) == location


class TestRewriteRelativeReference:
    def test_root_relative(self):
        assert rewrite_relative_reference("/x", "http", "proxy.local") == "http://proxy.local/x"

    def test_scheme_with_colon(self):
        assert rewrite_relative_reference("/x", "https:", "proxy.local") == "https://proxy.local/x"

    @pytest.mark.parametrize(
        "reference",
        ["//cdn.example.com/x.js", "https://example.com/x", "#top", "page.html", ""],
    )
    def test_other_references_unchanged(self, reference):
        assert rewrite_relative_reference(reference, "http", "proxy.local") == reference

    def test_backslash_after_slash_stays_on_proxy(self):
        result = rewrite_relative_reference("/\\evil.example/x", "http", "proxy.local:8080")
        assert result == "http://proxy.local:8080/\\evil.example/x"

    def test_idempotent(self):
        once = rewrite_relative_reference("/works/1", "http", "proxy.local")
        twice = rewrite_relative_reference(once, "http", "proxy.local")
        assert once == twice
