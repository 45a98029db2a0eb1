"""Tests for claims_scraper.fetcher module."""

from __future__ import annotations

from dataclasses import replace

import httpx
import pytest
import respx

from claims_scraper.fetcher import (
    AuthenticationRequired,
    FetchRequest,
    HttpError,
    NetworkError,
    RequestTimeout,
    build_get_url,
    build_headers,
    fetch,
    open_client,
)
from claims_scraper.resolver import resolve_target

LIST_URL = "https://cases.example.com/acme/Home-LoadClaimData"


@pytest.fixture()
def target(settings):
    return resolve_target(LIST_URL, settings)


@pytest.fixture()
def client(settings):
    with open_client(settings) as c:
        yield c


class TestFetchRequest:
    def test_method_uppercased(self, target):
        assert FetchRequest(target=target, method="get").method == "GET"

    def test_unknown_method(self, target):
        with pytest.raises(ValueError, match="Unknown request method: PUT"):
            FetchRequest(target=target, method="PUT")

    def test_defaults(self, target):
        request = FetchRequest(target=target)
        assert request.method == "POST"
        assert request.body_params == {}
        assert request.upload_file is None
        assert request.authorization is None


class TestBuildHeaders:
    def test_standard_headers(self, target, settings):
        headers = build_headers(FetchRequest(target=target), settings)
        assert headers["User-Agent"] == "test-agent"
        assert headers["Cache-Control"] == "no-cache"
        assert headers["Accept-Ranges"] == "none"
        assert "Authorization" not in headers

    def test_custom_headers_and_authorization(self, target, settings):
        settings = replace(settings, custom_headers={"X-Requested-With": "XMLHttpRequest"})
        request = FetchRequest(target=target, authorization="Basic dXNlcjpwYXNz")
        headers = build_headers(request, settings)
        assert headers["X-Requested-With"] == "XMLHttpRequest"
        assert headers["Authorization"] == "Basic dXNlcjpwYXNz"


class TestBuildGetUrl:
    def test_params_appended(self, target):
        assert build_get_url(target, {"page": "2"}) == f"{LIST_URL}?page=2"

    def test_reserved_keys_filtered(self, target):
        params = {"URL": "https://x", "nl": "1", "Debug": "1", "case": "acme"}
        assert build_get_url(target, params) == f"{LIST_URL}?case=acme"

    def test_no_params(self, target):
        assert build_get_url(target, {}) == LIST_URL

    def test_target_query_wins(self, settings):
        target = resolve_target(f"{LIST_URL}?page=9", settings)
        assert build_get_url(target, {"page": "2"}) == f"{LIST_URL}?page=9"


class TestFetch:
    @respx.mock
    def test_post_form_body(self, target, settings, client):
        route = respx.post(LIST_URL).mock(
            return_value=httpx.Response(
                200, content=b"<html>ok</html>", headers={"Content-Type": "text/html; charset=utf-8"}
            )
        )
        result = fetch(
            FetchRequest(target=target, body_params={"case": "acme", "page": "1"}),
            settings,
            client,
        )

        assert result.ok
        assert result.status_code == 200
        assert result.body == b"<html>ok</html>"
        assert result.content_type == "text/html; charset=utf-8"
        assert result.redirected_to is None
        assert not result.truncated

        request = route.calls.last.request
        assert request.content == b"case=acme&page=1"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert request.headers["User-Agent"] == "test-agent"
        assert request.headers["Cache-Control"] == "no-cache"
        assert request.headers["Accept-Ranges"] == "none"

    @respx.mock
    def test_get_query_string(self, target, settings, client):
        route = respx.get(f"{LIST_URL}?page=2").mock(return_value=httpx.Response(200, content=b"ok"))
        result = fetch(
            FetchRequest(target=target, method="GET", body_params={"page": "2", "DEBUG": "1"}),
            settings,
            client,
        )

        assert result.ok
        assert str(route.calls.last.request.url) == f"{LIST_URL}?page=2"

    @respx.mock
    def test_missing_content_type_defaults_to_html(self, target, settings, client):
        respx.post(LIST_URL).mock(return_value=httpx.Response(200, content=b"ok"))
        result = fetch(FetchRequest(target=target), settings, client)
        assert result.content_type == "text/html"

    @respx.mock
    def test_authorization_resubmitted(self, target, settings, client):
        route = respx.post(LIST_URL).mock(return_value=httpx.Response(200, content=b"ok"))
        fetch(FetchRequest(target=target, authorization="Basic abc"), settings, client)
        assert route.calls.last.request.headers["Authorization"] == "Basic abc"

    @respx.mock
    def test_401_carries_challenge(self, target, settings, client):
        respx.post(LIST_URL).mock(
            return_value=httpx.Response(401, headers={"WWW-Authenticate": 'Basic realm="claims"'})
        )
        result = fetch(FetchRequest(target=target), settings, client)

        assert not result.ok
        assert isinstance(result.error, AuthenticationRequired)
        assert result.error.challenge == 'Basic realm="claims"'
        assert result.error.url == LIST_URL
        assert str(result.error) == f'Authenticate: {LIST_URL}, Basic realm="claims"'

    @respx.mock
    def test_http_error_keeps_body(self, target, settings, client):
        respx.post(LIST_URL).mock(return_value=httpx.Response(500, content=b"stack trace"))
        result = fetch(FetchRequest(target=target), settings, client)

        assert not result.ok
        assert isinstance(result.error, HttpError)
        assert result.error.code == 500
        assert str(result.error) == "HTTP 500 Internal Server Error"
        assert result.body == b"stack trace"
        assert result.status_code == 500

    @respx.mock
    def test_timeout(self, target, settings, client):
        respx.post(LIST_URL).mock(side_effect=httpx.ReadTimeout("too slow"))
        result = fetch(FetchRequest(target=target), settings, client)

        assert isinstance(result.error, RequestTimeout)
        assert result.status_code is None
        assert result.body == b""

    @respx.mock
    def test_connection_error(self, target, settings, client):
        respx.post(LIST_URL).mock(side_effect=httpx.ConnectError("refused"))
        result = fetch(FetchRequest(target=target), settings, client)

        assert isinstance(result.error, NetworkError)
        assert "refused" in str(result.error)

    @respx.mock
    def test_redirect_followed(self, target, settings, client):
        moved = "https://cases.example.com/acme2/Home-LoadClaimData"
        respx.post(LIST_URL).mock(return_value=httpx.Response(307, headers={"Location": moved}))
        route = respx.post(moved).mock(return_value=httpx.Response(200, content=b"moved"))
        result = fetch(FetchRequest(target=target, body_params={"page": "1"}), settings, client)

        assert result.ok
        assert result.body == b"moved"
        assert result.redirected_to == moved
        assert result.url == moved
        assert route.calls.last.request.content == b"page=1"

    @pytest.mark.parametrize("status", [301, 302, 308])
    @respx.mock
    def test_redirected_post_keeps_method_and_body(self, status, target, settings, client):
        moved = "https://cases.example.com/acme2/Home-LoadClaimData"
        respx.post(LIST_URL).mock(return_value=httpx.Response(status, headers={"Location": moved}))
        post_route = respx.post(moved).mock(return_value=httpx.Response(200, content=b"page two"))
        result = fetch(FetchRequest(target=target, body_params={"page": "2"}), settings, client)

        assert result.ok
        assert result.body == b"page two"
        assert result.redirected_to == moved
        assert post_route.call_count == 1
        assert post_route.calls.last.request.content == b"page=2"

    @respx.mock
    def test_relative_redirect_location(self, target, settings, client):
        respx.post(LIST_URL).mock(
            return_value=httpx.Response(302, headers={"Location": "/acme2/Home-LoadClaimData"})
        )
        route = respx.post("https://cases.example.com/acme2/Home-LoadClaimData").mock(
            return_value=httpx.Response(200, content=b"ok")
        )
        result = fetch(FetchRequest(target=target, body_params={"id": "1042"}), settings, client)

        assert result.redirected_to == "https://cases.example.com/acme2/Home-LoadClaimData"
        assert route.calls.last.request.content == b"id=1042"

    @respx.mock
    def test_see_other_switches_to_get(self, target, settings, client):
        done = "https://cases.example.com/acme/done"
        respx.post(LIST_URL).mock(return_value=httpx.Response(303, headers={"Location": done}))
        route = respx.get(done).mock(return_value=httpx.Response(200, content=b"done"))
        result = fetch(FetchRequest(target=target, body_params={"page": "1"}), settings, client)

        assert result.ok
        assert result.body == b"done"
        assert route.calls.last.request.content == b""

    @respx.mock
    def test_redirected_upload_resent(self, target, settings, client, tmp_path):
        upload = tmp_path / "claims.csv"
        upload.write_bytes(b"id,amount\n1042,12500\n")
        moved = "https://cases.example.com/acme2/Home-LoadClaimData"
        respx.post(LIST_URL).mock(return_value=httpx.Response(302, headers={"Location": moved}))
        route = respx.post(moved).mock(return_value=httpx.Response(200, content=b"ok"))

        fetch(FetchRequest(target=target, upload_file=upload), settings, client)

        assert b"1042,12500" in route.calls.last.request.content

    @respx.mock
    def test_redirect_loop(self, target, settings):
        respx.post(LIST_URL).mock(return_value=httpx.Response(302, headers={"Location": LIST_URL}))
        with httpx.Client(max_redirects=3) as short_client:
            result = fetch(FetchRequest(target=target), settings, short_client)

        assert isinstance(result.error, NetworkError)
        assert "Exceeded 3 redirects" in str(result.error)
        assert respx.calls.call_count == 4

    @respx.mock
    def test_body_truncated_at_limit(self, target, settings, client):
        settings = replace(settings, max_response_bytes=10)
        respx.post(LIST_URL).mock(return_value=httpx.Response(200, content=b"x" * 100))
        result = fetch(FetchRequest(target=target), settings, client)

        assert result.ok
        assert result.truncated
        assert result.body == b"x" * 10

    @respx.mock
    def test_multipart_upload(self, target, settings, client, tmp_path):
        upload = tmp_path / "claims.csv"
        upload.write_bytes(b"id,amount\n1042,12500\n")
        route = respx.post(LIST_URL).mock(return_value=httpx.Response(200, content=b"ok"))

        fetch(
            FetchRequest(target=target, body_params={"case": "acme"}, upload_file=upload),
            settings,
            client,
        )

        request = route.calls.last.request
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="case"' in body
        assert b'name="upload"; filename="claims.csv"' in body
        assert b"1042,12500" in body

    @respx.mock
    def test_opens_private_client(self, target, settings):
        respx.post(LIST_URL).mock(return_value=httpx.Response(200, content=b"ok"))
        result = fetch(FetchRequest(target=target), settings)
        assert result.ok
        assert result.body == b"ok"
