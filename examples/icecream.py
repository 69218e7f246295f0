import asyncio
import logging
from dataclasses import dataclass

from aiohttp import web

from wirestub import (
    AiohttpTransport,
    Client,
    ClientConfig,
    JsonDecoder,
    JsonEncoder,
    LogLevel,
    get,
    headers,
    post,
)


@dataclass
class IceCreamOrder:
    id: str
    no: int


@headers("Accept: application/json")
class IceCreamApi:
    @get("/icecream/flavors")
    def flavors(self) -> list[str]: ...

    @get("/icecream/orders/{order_id}")
    async def find_order(self, order_id: int) -> IceCreamOrder: ...

    @post("/icecream/orders")
    async def place_order(self, order: IceCreamOrder) -> None: ...


ORDERS: dict[str, dict] = {}


async def list_flavors(request: web.Request) -> web.Response:
    return web.json_response(["Vanilla", "Mint", "Pistachio"])


async def find_order(request: web.Request) -> web.Response:
    order = ORDERS.get(request.match_info["order_id"])
    if order is None:
        raise web.HTTPNotFound(text="no such order")
    return web.json_response(order)


async def place_order(request: web.Request) -> web.Response:
    order = await request.json()
    ORDERS[str(order["no"])] = order
    return web.Response(status=201, text="HELLO WORLD")


async def main() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(name)s %(message)s")

    app = web.Application()
    app.router.add_get("/icecream/flavors", list_flavors)
    app.router.add_get("/icecream/orders/{order_id}", find_order)
    app.router.add_post("/icecream/orders", place_order)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 8080)
    await site.start()

    try:
        async with AiohttpTransport() as transport:
            config = ClientConfig(
                async_transport=transport,
                encoder=JsonEncoder(),
                decoder=JsonDecoder(),
                log_level=LogLevel.BASIC,
            )
            with Client(IceCreamApi, "http://127.0.0.1:8080", config) as client:
                api = client.api
                # Direct methods block, so keep them off the event loop
                print("flavors:", await asyncio.to_thread(api.flavors))

                await api.place_order(IceCreamOrder(id="cone", no=1))
                print("order:", await api.find_order(1))
    finally:
        await runner.cleanup()


if __name__ == "__main__":
    asyncio.run(main())
