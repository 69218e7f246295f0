"""Tests for transport implementations."""

import httpx
import pytest
from aiohttp import web
from aiohttp import test_utils

from icecream import IceCreamApi, IceCreamOrder
from wirestub import ClientConfig, JsonDecoder, JsonEncoder, TransportError, target
from wirestub.http import HttpMethod, Options, Request
from wirestub.transports import AiohttpTransport, HttpxTransport, create_transport


def echo_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        201,
        headers=[("X-Echo", request.method), ("X-Multi", "a"), ("X-Multi", "b")],
        content=request.content,
    )


async def order_handler(request: web.Request) -> web.Response:
    order_id = request.match_info["order_id"]
    return web.json_response({"id": f"order-{order_id}", "no": order_id})


async def flavors_handler(request: web.Request) -> web.Response:
    return web.Response(text="Vanilla,Mint")


@pytest.fixture
def app() -> web.Application:
    app = web.Application()
    app.router.add_get("/icecream/orders/{order_id}", order_handler)
    app.router.add_get("/icecream/flavors", flavors_handler)
    return app


class TestTransportFactory:
    """Tests for transport factory function."""

    def test_create_http_transport(self) -> None:
        """Test create http transport."""
        transport = create_transport("http://localhost:8080/api")
        assert isinstance(transport, HttpxTransport)
        transport.close()

    def test_create_https_transport(self) -> None:
        """Test create https transport."""
        with create_transport("https://example.com", timeout=5.0) as transport:
            assert isinstance(transport, HttpxTransport)

    def test_create_transport_invalid_scheme(self) -> None:
        """Test that invalid URL scheme raises error."""
        with pytest.raises(ValueError, match="Unsupported URL scheme"):
            create_transport("ftp://example.com/rpc")


class TestHttpxTransport:
    """Tests for the blocking httpx transport."""

    def test_execute(self) -> None:
        """Test a request round trip through httpx."""
        client = httpx.Client(transport=httpx.MockTransport(echo_handler))
        transport = HttpxTransport(client)
        request = Request(
            HttpMethod.POST,
            "http://icecream.test/orders",
            {"Content-Type": ["text/plain"]},
            b"two scoops",
        )

        response = transport.execute(request, Options())

        assert response.status == 201
        assert response.reason == "Created"
        assert response.body == b"two scoops"
        assert response.header("x-echo") == "POST"
        assert response.headers["x-multi"] == ["a", "b"]
        assert response.request is request

    def test_does_not_close_borrowed_client(self) -> None:
        """Test does not close borrowed client."""
        client = httpx.Client(transport=httpx.MockTransport(echo_handler))
        HttpxTransport(client).close()
        assert not client.is_closed

    def test_connection_errors_become_transport_errors(self) -> None:
        """Test connection errors become transport errors."""
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(refuse))
        api = target(
            IceCreamApi,
            "http://icecream.test",
            ClientConfig(transport=HttpxTransport(client)),
        )
        with pytest.raises(TransportError) as exc_info:
            api.flavors()
        assert exc_info.value.message == (
            "Connection refused executing GET http://icecream.test/icecream/flavors"
        )
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestAiohttpTransport:
    """Tests for the asyncio aiohttp transport."""

    @pytest.mark.asyncio
    async def test_execute(self, app) -> None:
        """Test a request round trip through aiohttp."""
        async with test_utils.TestServer(app) as server, AiohttpTransport() as transport:
            request = Request(HttpMethod.GET, str(server.make_url("/icecream/flavors")))
            response = await transport.execute(request, Options())

        assert response.status == 200
        assert response.text() == "Vanilla,Mint"
        assert response.header("Content-Type").startswith("text/plain")

    @pytest.mark.asyncio
    async def test_suspending_calls_over_aiohttp(self, app) -> None:
        """Test suspending calls over aiohttp."""
        async with test_utils.TestServer(app) as server, AiohttpTransport() as transport:
            config = ClientConfig(
                transport=HttpxTransport(),
                async_transport=transport,
                encoder=JsonEncoder(),
                decoder=JsonDecoder(),
            )
            api = target(IceCreamApi, str(server.make_url("/")), config)
            order = await api.find_order_async(7)

        assert order == IceCreamOrder("order-7", 7)

    @pytest.mark.asyncio
    async def test_suspending_calls_over_httpx_threads(self, app) -> None:
        """Without an asyncio transport the blocking one runs on worker threads."""
        async with test_utils.TestServer(app) as server:
            with HttpxTransport() as transport:
                config = ClientConfig(transport=transport)
                api = target(IceCreamApi, str(server.make_url("/")), config)
                assert await api.flavors_async() == "Vanilla,Mint"
