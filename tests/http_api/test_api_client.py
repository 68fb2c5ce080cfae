from __future__ import annotations

import json

import httpx
import pytest

from apirepo.infra.http.api_client import ApiClient, ApiError


def make_client(transport: httpx.BaseTransport, *, retries: int = 0, token: str | None = "tkn") -> ApiClient:
    return ApiClient(
        baseUrl="https://api.local/",
        apiToken=token,
        retries=retries,
        retryBackoffSeconds=0,
        transport=transport,
    )


def test_get_json_sends_bearer_token_and_params():
    def responder(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer tkn"
        assert request.url.params["page"] == "2"
        return httpx.Response(200, json={"items": [1, 2]})

    client = make_client(httpx.MockTransport(responder))

    assert client.getJson("/users", {"page": 2}) == {"items": [1, 2]}


def test_get_json_without_token_has_no_authorization_header():
    def responder(request: httpx.Request) -> httpx.Response:
        assert "Authorization" not in request.headers
        return httpx.Response(200, json=[])

    client = make_client(httpx.MockTransport(responder), token=None)

    assert client.getJson("/users") == []


def test_get_json_retries_on_429_and_succeeds():
    calls = {"count": 0}

    def responder(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(429, text="slow down")
        return httpx.Response(200, json={"ok": True})

    client = make_client(httpx.MockTransport(responder), retries=1)

    assert client.getJson("/users") == {"ok": True}
    assert client.getRetryAttempts() == 1


def test_get_json_raises_on_error_status_with_snippet():
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="no such user")

    client = make_client(httpx.MockTransport(responder))

    with pytest.raises(ApiError) as exc:
        client.getJson("/users/9")

    assert exc.value.status_code == 404
    assert exc.value.code == "HTTP_404"
    assert exc.value.body_snippet == "no such user"
    assert exc.value.retryable is False


def test_get_json_invalid_json():
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not-json")

    client = make_client(httpx.MockTransport(responder))

    with pytest.raises(ApiError) as exc:
        client.getJson("/users")

    assert exc.value.code == "INVALID_JSON"


def test_request_json_sends_payload():
    payload = {"id": 1, "name": "Jane"}

    def responder(request: httpx.Request) -> httpx.Response:
        assert request.method == "PUT"
        assert json.loads(request.content.decode("utf-8")) == payload
        return httpx.Response(204)

    client = make_client(httpx.MockTransport(responder))

    assert client.requestJson("put", "/users/1", jsonBody=payload) == (204, None)


def test_network_error_after_retries():
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom")

    client = make_client(httpx.MockTransport(responder), retries=2)

    with pytest.raises(ApiError) as exc:
        client.getJson("/users")

    assert exc.value.code == "NETWORK_ERROR"
    assert client.getRetryAttempts() == 2


def test_extract_items_from_known_keys():
    client = make_client(httpx.MockTransport(lambda r: httpx.Response(200)))

    assert client.extractItems([1]) == [1]
    assert client.extractItems({"results": [2]}) == [2]
    with pytest.raises(ApiError) as exc:
        client.extractItems({"total": 3})
    assert exc.value.code == "INVALID_ITEMS_FORMAT"
