from __future__ import annotations

import httpx
import pytest

from ghkeys.infra.http.github_client import ApiError


@pytest.mark.asyncio
async def test_get_json_sends_token_header(client_factory):
    seen = {}

    def responder(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["accept"] = request.headers.get("Accept")
        return httpx.Response(200, json={"resources": {"core": {"limit": 5000, "remaining": 4999}}})

    async with client_factory(httpx.MockTransport(responder)) as client:
        data = await client.getRateLimit()

    assert data["resources"]["core"]["limit"] == 5000
    assert seen["auth"] == "token token"
    assert seen["accept"] == "application/vnd.github+json"


@pytest.mark.asyncio
async def test_paged_items_follow_link_header_until_exhausted(fake_github, client_factory):
    fake_github.per_page = 2
    fake_github.keys["many"] = [f"key_{i}" for i in range(5)]

    async with client_factory(fake_github.transport) as client:
        pages = [(page, [item["key"] for item in items]) async for page, items in client.getPagedItems("/users/many/keys", 2)]

    assert pages == [(1, ["key_0", "key_1"]), (2, ["key_2", "key_3"]), (3, ["key_4"])]
    assert fake_github.calls["/users/many/keys"] == 3
    first = fake_github.requests[0]
    assert first.url.params["per_page"] == "2"
    assert first.url.params["page"] == "1"


@pytest.mark.asyncio
async def test_paged_items_fail_whole_call_on_mid_pagination_error(fake_github, client_factory):
    fake_github.per_page = 1
    fake_github.fail_pages[("/teams/1/members", 2)] = 502

    async with client_factory(fake_github.transport) as client:
        with pytest.raises(ApiError) as exc:
            await client.collectPagedItems("/teams/1/members", 1)

    assert exc.value.status_code == 502
    assert exc.value.code == "HTTP_502"


@pytest.mark.asyncio
async def test_paged_items_max_pages_exceeded_is_error_not_truncation(fake_github, client_factory):
    fake_github.per_page = 1

    async with client_factory(fake_github.transport) as client:
        with pytest.raises(ApiError) as exc:
            await client.collectPagedItems("/users/github_user_1/keys", 1, maxPages=1)

    assert exc.value.code == "MAX_PAGES_EXCEEDED"


@pytest.mark.asyncio
async def test_paged_items_rejects_non_list_payload(client_factory):
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": "weird"})

    async with client_factory(httpx.MockTransport(responder)) as client:
        with pytest.raises(ApiError) as exc:
            await client.collectPagedItems("/users/u/keys", 100)

    assert exc.value.code == "INVALID_ITEMS_FORMAT"


@pytest.mark.asyncio
async def test_invalid_json_raises_api_error(client_factory):
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not-json")

    async with client_factory(httpx.MockTransport(responder)) as client:
        with pytest.raises(ApiError) as exc:
            await client.getJson("/rate_limit")

    assert exc.value.code == "INVALID_JSON"


@pytest.mark.asyncio
async def test_retries_on_500_and_succeeds(client_factory):
    calls = {"count": 0}

    def responder(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(500, text="fail")
        return httpx.Response(200, json=[{"key": "k"}])

    async with client_factory(httpx.MockTransport(responder), retries=1) as client:
        items = await client.collectPagedItems("/users/u/keys", 100)

    assert items == [{"key": "k"}]
    assert client.getRetryAttempts() == 1


@pytest.mark.asyncio
async def test_no_retry_by_default(client_factory):
    calls = {"count": 0}

    def responder(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(503, text="unavailable")

    async with client_factory(httpx.MockTransport(responder)) as client:
        with pytest.raises(ApiError) as exc:
            await client.getJson("/rate_limit")

    assert calls["count"] == 1
    assert exc.value.retryable is True
    assert exc.value.body_snippet == "unavailable"
    assert exc.value.describe() == "HTTP_503: HTTP 503 for /rate_limit"


@pytest.mark.asyncio
async def test_network_error_raises_api_error(client_factory):
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom")

    async with client_factory(httpx.MockTransport(responder)) as client:
        with pytest.raises(ApiError) as exc:
            await client.getJson("/rate_limit")

    assert exc.value.code == "NETWORK_ERROR"


@pytest.mark.asyncio
async def test_long_error_body_is_truncated(client_factory):
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="x" * 1000)

    async with client_factory(httpx.MockTransport(responder)) as client:
        with pytest.raises(ApiError) as exc:
            await client.getJson("/rate_limit")

    assert len(exc.value.body_snippet) == 200
    assert exc.value.body_snippet.endswith("...")


@pytest.mark.asyncio
async def test_request_counters_include_retries(client_factory):
    calls = {"count": 0}

    def responder(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] < 3:
            return httpx.Response(429, text="slow down")
        return httpx.Response(200, json={"rate": {}})

    async with client_factory(httpx.MockTransport(responder), retries=2) as client:
        await client.getRateLimit()

    assert client.getRequestsSent() == 3
    assert client.getRetryAttempts() == 2
