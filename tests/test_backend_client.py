import httpx
import pytest

from shopcart.core.backend_client import BackendClient
from shopcart.core.exceptions import ServiceError

from conftest import make_product


def make_client(handler) -> BackendClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BackendClient(base_url="http://api.test/", client=http_client)


def json_routes(routes: dict):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path not in routes:
            return httpx.Response(404, json={})
        return httpx.Response(200, json=routes[request.url.path])

    return handler


@pytest.mark.asyncio
async def test_get_stock():
    client = make_client(json_routes({"/stock/10": {"id": 10, "amount": 5}}))

    stock = await client.get_stock(10)

    assert stock.amount == 5
    await client.close()


@pytest.mark.asyncio
async def test_get_product():
    client = make_client(json_routes({"/products/10": make_product(10)}))

    product = await client.get_product(10)

    assert product == make_product(10)
    await client.close()


@pytest.mark.asyncio
async def test_not_found_raises_with_status():
    client = make_client(json_routes({}))

    with pytest.raises(ServiceError) as exc_info:
        await client.get_stock(10)
    assert exc_info.value.status_code == 404

    with pytest.raises(ServiceError):
        await client.get_product(10)
    await client.close()


@pytest.mark.asyncio
async def test_server_error_raises():
    client = make_client(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(ServiceError) as exc_info:
        await client.get_stock(10)

    assert exc_info.value.status_code == 500
    await client.close()


@pytest.mark.asyncio
async def test_network_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)

    with pytest.raises(ServiceError) as exc_info:
        await client.get_stock(10)

    assert exc_info.value.status_code is None
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"id": 10},
    {"id": 10, "amount": -1},
    {"id": 10, "amount": "5"},
    [5],
])
async def test_malformed_stock_raises(body):
    client = make_client(json_routes({"/stock/10": body}))

    with pytest.raises(ServiceError):
        await client.get_stock(10)
    await client.close()


@pytest.mark.asyncio
async def test_non_json_body_raises():
    client = make_client(lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(ServiceError):
        await client.get_stock(10)
    await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [make_product(11), {"title": "no id"}, [make_product(10)]])
async def test_malformed_product_raises(body):
    client = make_client(json_routes({"/products/10": body}))

    with pytest.raises(ServiceError):
        await client.get_product(10)
    await client.close()


@pytest.mark.asyncio
async def test_close_is_idempotent():
    client = make_client(json_routes({}))

    await client.close()
    await client.close()

    assert client.client is None
