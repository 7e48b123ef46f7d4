"""Executioner client against a mocked transport"""

import asyncio
import json

import httpx
import pytest

from ome.common.exceptions import RpcError
from ome.order import OrderSide
from ome.rpc import ExecutionerClient, parse_settlement_id

from .conftest import ALICE, BOB

BASE_URL = "http://executioner.test/submit"
SETTLEMENT = "0x" + "5f" * 20


def client_for(handler) -> ExecutionerClient:
    return ExecutionerClient(BASE_URL, transport=httpx.MockTransport(handler))


def run(coro):
    return asyncio.run(coro)


def test_check_order_validity_posts_order(order_factory):
    order = order_factory(ALICE, OrderSide.BID, 100, 1)
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200)

    async def scenario():
        client = client_for(handler)
        try:
            return await client.check_order_validity(order)
        finally:
            await client.close()

    assert run(scenario()) is True
    assert seen["url"] == f"{BASE_URL}/check"
    assert seen["body"]["order"]["id"] == order.id
    assert seen["body"]["order"]["amount"] == "1"


def test_check_order_validity_refused(order_factory):
    order = order_factory(ALICE, OrderSide.BID, 100, 1)
    client = client_for(lambda request: httpx.Response(400, text="bad signature"))

    assert run(client.check_order_validity(order)) is False


def test_check_order_validity_unreachable(order_factory):
    order = order_factory(ALICE, OrderSide.BID, 100, 1)

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RpcError) as exc:
        run(client_for(handler).check_order_validity(order))
    assert exc.value.kind == RpcError.HTTP_ERROR


def test_send_matched_orders(order_factory):
    maker = order_factory(ALICE, OrderSide.ASK, 100, 1)
    taker = order_factory(BOB, OrderSide.BID, 100, 1)
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text=SETTLEMENT.upper().replace("0X", "0x"))

    assert run(client_for(handler).send_matched_orders(maker, taker)) == SETTLEMENT
    assert seen["url"] == BASE_URL
    assert seen["body"]["maker"]["id"] == maker.id
    assert seen["body"]["taker"]["id"] == taker.id


def test_send_matched_orders_rejected(order_factory):
    maker = order_factory(ALICE, OrderSide.ASK, 100, 1)
    taker = order_factory(BOB, OrderSide.BID, 100, 1)
    client = client_for(lambda request: httpx.Response(500, text="execution reverted"))

    with pytest.raises(RpcError) as exc:
        run(client.send_matched_orders(maker, taker))
    assert exc.value.kind == RpcError.CONTRACT_ERROR
    assert exc.value.status_code == 500


def test_send_matched_orders_empty_error(order_factory):
    maker = order_factory(ALICE, OrderSide.ASK, 100, 1)
    taker = order_factory(BOB, OrderSide.BID, 100, 1)
    client = client_for(lambda request: httpx.Response(503))

    with pytest.raises(RpcError) as exc:
        run(client.send_matched_orders(maker, taker))
    assert exc.value.kind == RpcError.HTTP_ERROR
    assert exc.value.status_code == 503


def test_send_matched_orders_bad_body(order_factory):
    maker = order_factory(ALICE, OrderSide.ASK, 100, 1)
    taker = order_factory(BOB, OrderSide.BID, 100, 1)
    client = client_for(lambda request: httpx.Response(200, text="ok"))

    with pytest.raises(RpcError) as exc:
        run(client.send_matched_orders(maker, taker))
    assert exc.value.kind == RpcError.INVALID_RESPONSE


@pytest.mark.parametrize(
    "body",
    [SETTLEMENT, SETTLEMENT[2:], f'"{SETTLEMENT}"', f"  {SETTLEMENT}\n"],
)
def test_parse_settlement_id_formats(body):
    assert parse_settlement_id(body) == SETTLEMENT


def test_parse_settlement_id_wrong_length():
    with pytest.raises(RpcError):
        parse_settlement_id("0x" + "00" * 32)
