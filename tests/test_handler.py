"""Tests for the per-method request pipeline."""

import dataclasses
from typing import Annotated

import pytest

from icecream import BASE_URL, IceCreamApi, IceCreamOrder
from wirestub import (
    ClientConfig,
    DecodeError,
    EncodeError,
    HeaderMap,
    HttpMethod,
    JsonEncoder,
    Param,
    Response,
    get,
    post,
    target,
)
from wirestub.mock import MockClient


class TeapotError(Exception):
    pass


class TeapotErrorDecoder:
    def decode(self, method_key: str, response: Response) -> Exception:
        return TeapotError(f"{method_key} {response.status}")


class ExplodingDecoder:
    def decode(self, response, type_):
        raise ValueError("kaboom")


class ShopApi:
    @get("/shops/{shop}/stock")
    def stock(
        self,
        shop: Annotated[str, Param("shop", expander=str.upper)],
        extra: Annotated[dict, HeaderMap()],
    ) -> str: ...

    @post("/shops")
    def open_shop(self, name: str) -> str: ...

    @get("/shops/files/{path}")
    def file(self, path: str) -> str: ...

    @get("/shops/files/{path}", decode_slash=False)
    def file_encoded(self, path: str) -> str: ...


class TestBuildRequest:
    """Tests for binding arguments into the request."""

    def test_expander_and_header_map(self) -> None:
        """Test Param expanders and header maps shape the request."""
        mock = MockClient().ok(HttpMethod.GET, "/shops/MAIN/stock", "12")
        api = target(ShopApi, BASE_URL, ClientConfig(transport=mock))

        assert api.stock("main", {"X-Tag": ["a", "b"], "X-Skip": None}) == "12"

        request = mock.verify_one(HttpMethod.GET, "/shops/MAIN/stock")
        assert request.headers == {"X-Tag": ["a", "b"]}

    def test_str_body_with_default_encoder(self) -> None:
        """Test the default encoder sends str bodies as UTF-8."""
        mock = MockClient().ok(HttpMethod.POST, "/shops", "opened")
        api = target(ShopApi, BASE_URL, ClientConfig(transport=mock))

        assert api.open_shop("Gelato") == "opened"
        assert mock.verify_one(HttpMethod.POST, "/shops").body == b"Gelato"

    def test_slashes_in_path_values(self) -> None:
        """Test slashes are kept unless the method sets decode_slash=False."""
        mock = MockClient().ok(HttpMethod.GET, "/shops/files/a/b", "x")
        api = target(ShopApi, BASE_URL, ClientConfig(transport=mock))

        api.file("a/b")
        api.file_encoded("a/b")

        requests = mock.verify_times(HttpMethod.GET, "/shops/files/a/b", 2)
        assert [r.url for r in requests] == [
            "http://icecream.test/shops/files/a/b",
            "http://icecream.test/shops/files/a%2Fb",
        ]

    def test_encode_errors_carry_method_key(self) -> None:
        """Test encoder failures name the failing method."""
        api = target(IceCreamApi, BASE_URL, ClientConfig(transport=MockClient()))
        with pytest.raises(EncodeError) as exc_info:
            api.place_order(IceCreamOrder("x", 1))
        assert exc_info.value.method_key == "IceCreamApi.place_order"

    def test_interceptor_can_replace_body(self) -> None:
        """Test request interceptors see the encoded body."""

        def sign(template) -> None:
            template.body = b"signed:" + (template.body or b"")

        mock = MockClient().ok(HttpMethod.POST, "/shops", "ok")
        api = target(ShopApi, BASE_URL, ClientConfig(transport=mock, interceptors=[sign]))
        api.open_shop("Gelato")
        assert mock.verify_one(HttpMethod.POST, "/shops").body == b"signed:Gelato"


class TestHandleResponse:
    """Tests for turning responses into values or errors."""

    def test_foreign_decoder_errors_become_decode_errors(self) -> None:
        """Test any decoder exception becomes a DecodeError with context."""
        mock = MockClient().ok(HttpMethod.GET, "/icecream/flavors", "Mint")
        api = target(
            IceCreamApi, BASE_URL, ClientConfig(transport=mock, decoder=ExplodingDecoder())
        )
        with pytest.raises(DecodeError) as exc_info:
            api.flavors()
        error = exc_info.value
        assert error.message == "ValueError: kaboom"
        assert error.method_key == "IceCreamApi.flavors"
        assert error.status == 200
        assert error.body == b"Mint"

    def test_no_value_skips_decoder(self) -> None:
        """Test methods returning None never call the decoder."""
        mock = MockClient().ok(HttpMethod.POST, "/icecream/orders", "HELLO WORLD")
        config = ClientConfig(
            transport=mock, encoder=JsonEncoder(), decoder=ExplodingDecoder()
        )
        api = target(IceCreamApi, BASE_URL, config)
        assert api.place_order(IceCreamOrder("x", 1)) is None

    @pytest.mark.asyncio
    async def test_custom_error_decoder(self) -> None:
        """Test the configured error decoder builds the raised exception."""
        mock = MockClient().add(HttpMethod.GET, "/icecream/flavors", 418)
        config = ClientConfig(transport=mock, error_decoder=TeapotErrorDecoder())
        api = target(IceCreamApi, BASE_URL, config)

        with pytest.raises(TeapotError, match="IceCreamApi.flavors 418"):
            api.flavors()
        with pytest.raises(TeapotError, match="IceCreamApi.flavors_async 418"):
            await api.flavors_async()


class TestResponseInterceptors:
    """Response interceptors run on each response before it is decoded."""

    @pytest.mark.asyncio
    async def test_run_in_order_on_both_paths(self) -> None:
        """Test interceptors chain in order for direct and suspending calls."""
        seen: list[str] = []

        def shout(response: Response) -> Response:
            seen.append("shout")
            return dataclasses.replace(response, body=response.body.upper())

        def exclaim(response: Response) -> Response:
            seen.append("exclaim")
            return dataclasses.replace(response, body=response.body + b"!")

        mock = MockClient().ok(HttpMethod.GET, "/icecream/flavors", "mint")
        config = ClientConfig(transport=mock, response_interceptors=[shout, exclaim])
        api = target(IceCreamApi, BASE_URL, config)

        assert api.flavors() == "MINT!"
        assert await api.flavors_async() == "MINT!"
        assert seen == ["shout", "exclaim", "shout", "exclaim"]

    def test_can_replace_an_error_response(self) -> None:
        """Test an interceptor may turn a failure into a success."""

        def fallback(response: Response) -> Response:
            if response.status == 503:
                return dataclasses.replace(response, status=200, body=b"Vanilla")
            return response

        mock = MockClient().add(HttpMethod.GET, "/icecream/flavors", 503, "busy")
        config = ClientConfig(transport=mock, response_interceptors=[fallback])
        api = target(IceCreamApi, BASE_URL, config)

        assert api.flavors() == "Vanilla"
