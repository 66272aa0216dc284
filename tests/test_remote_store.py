"""Tests for the Supabase REST store."""

import json

import httpx
import pytest

from stock_bot.storage import RemoteStore, RemoteStoreError


def make_store(handler) -> RemoteStore:
    return RemoteStore(
        "https://demo-project.supabase.co/",
        "anon-key",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_sends_auth_headers_and_base_path():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    store = make_store(handler)
    assert await store.test_connection() is True
    await store.close()

    request = seen[0]
    assert request.url.path == "/rest/v1/stock_controls"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer anon-key"


@pytest.mark.asyncio
async def test_config_name_is_host():
    store = make_store(lambda request: httpx.Response(200, json=[]))
    assert store.config_name == "demo-project.supabase.co"
    await store.close()


@pytest.mark.asyncio
async def test_list_controls_requests_nested_items():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "c1", "name": "Licores", "stock_items": []}])

    store = make_store(handler)
    rows = await store.list_controls()
    await store.close()

    assert rows[0]["id"] == "c1"
    params = seen[0].url.params
    assert params["select"] == "*,stock_items(*)"
    assert params["order"] == "created_at.desc"


@pytest.mark.asyncio
async def test_create_control_posts_control_then_items():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = json.loads(request.content)
        if request.url.path.endswith("/stock_controls"):
            return httpx.Response(201, json=[{"id": "c1", **body}])
        return httpx.Response(
            201,
            json=[{"id": f"i{n}", **row} for n, row in enumerate(body)],
        )

    store = make_store(handler)
    control = await store.create_control(
        "Licores",
        "Líder",
        [{"codigo": "25", "denominacion": "ANIS", "stock_sistema": 60}],
    )
    await store.close()

    assert [r.method for r in seen] == ["POST", "POST"]
    assert seen[0].headers["Prefer"] == "return=representation"
    assert control["id"] == "c1"
    assert control["stock_items"][0]["control_id"] == "c1"
    assert control["stock_items"][0]["codigo"] == "25"


@pytest.mark.asyncio
async def test_update_item_patches_by_id():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    store = make_store(handler)
    await store.update_item("i1", {"corregido": 5})
    await store.close()

    assert seen[0].method == "PATCH"
    assert seen[0].url.params["id"] == "eq.i1"
    assert json.loads(seen[0].content) == {"corregido": 5}


@pytest.mark.asyncio
@pytest.mark.parametrize(("status", "retryable"), [(500, True), (503, True), (429, True), (400, False), (401, False)])
async def test_http_errors_are_classified(status, retryable):
    store = make_store(lambda request: httpx.Response(status, text="boom"))

    with pytest.raises(RemoteStoreError) as exc_info:
        await store.list_controls()
    await store.close()

    assert exc_info.value.status_code == status
    assert exc_info.value.retryable is retryable


@pytest.mark.asyncio
async def test_transport_error_is_retryable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    store = make_store(handler)
    with pytest.raises(RemoteStoreError) as exc_info:
        await store.delete_control("c1")
    await store.close()

    assert exc_info.value.retryable is True
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_test_connection_false_on_error():
    store = make_store(lambda request: httpx.Response(401, text="bad key"))
    assert await store.test_connection() is False
    await store.close()
