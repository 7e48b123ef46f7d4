"""HTTP API through FastAPI's TestClient"""

import httpx
import pytest
from fastapi.testclient import TestClient

from ome.api import create_app
from ome.common.config import Settings
from ome.engine import Engine
from ome.rpc import ExecutionerClient

from .conftest import ALICE, BOB, MARKET


@pytest.fixture
def client():
    app = create_app(Settings(environment="test"))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def market(client):
    response = client.post("/book", json={"market": MARKET})
    assert response.status_code == 201
    return MARKET


def submission(user, side, price, amount, created=1_700_000_000):
    return {
        "user": user,
        "target_tracer": MARKET,
        "side": side,
        "price": str(price),
        "amount": str(amount),
        "expiration": 4_000_000_000,
        "created": created,
        "signed_data": "0x00",
    }


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/").json()["status"] == "running"


def test_create_and_list_books(client, market):
    assert client.get("/book").json() == [MARKET]
    assert client.post("/book", json={"market": MARKET}).status_code == 409


def test_create_book_invalid_address(client):
    response = client.post("/book", json={"market": "0x123"})
    assert response.status_code == 400
    assert response.json()["reason"] == "InvalidAddress"


def test_read_empty_book(client, market):
    body = client.get(f"/book/{market}").json()
    assert body["market"] == MARKET
    assert body["bids"] == {}
    assert body["asks"] == {}
    assert body["ltp"] == "0"
    assert body["depth"] == [0, 0]


def test_unknown_book(client):
    assert client.get(f"/book/0x{'cc' * 20}").status_code == 404


def test_submit_and_match(client, market):
    placed = client.post(f"/book/{market}/order", json=submission(ALICE, "Ask", 100, 5))
    assert placed.status_code == 200
    assert placed.json()["status"] == "Placed"
    maker_id = placed.json()["order_id"]

    matched = client.post(f"/book/{market}/order", json=submission(BOB, "Bid", 101, 2)).json()
    assert matched["status"] == "FullMatch"
    assert matched["fills"] == [
        {"maker": maker_id, "taker": matched["order_id"], "quantity": "2", "price": "100"},
    ]

    book = client.get(f"/book/{market}").json()
    assert book["ltp"] == "100"
    assert book["asks"]["100"][0]["amount_left"] == "3"


def test_submit_invalid_order(client, market):
    response = client.post(f"/book/{market}/order", json=submission(ALICE, "Sideways", 100, 5))
    assert response.status_code == 400
    assert response.json()["reason"] == "InvalidSide"


@pytest.mark.parametrize("field", ["expiration", "created"])
def test_submit_bad_timestamp(client, market, field):
    payload = submission(ALICE, "Bid", 100, 5)
    payload[field] = "tomorrow"

    response = client.post(f"/book/{market}/order", json=payload)

    assert response.status_code == 400
    assert response.json()["reason"] == "InvalidTimestamp"


@pytest.mark.parametrize("field", ["price", "amount"])
def test_submit_numeric_amount(client, market, field):
    payload = submission(ALICE, "Bid", 100, 5)
    payload[field] = 5

    response = client.post(f"/book/{market}/order", json=payload)

    assert response.status_code == 400
    assert response.json()["reason"] == "InvalidDecimal"


def test_submit_expired_order(client, market):
    payload = submission(ALICE, "Bid", 100, 5)
    payload["expiration"] = 1_000
    assert client.post(f"/book/{market}/order", json=payload).status_code == 422


def test_read_and_cancel_order(client, market):
    order_id = client.post(
        f"/book/{market}/order", json=submission(ALICE, "Bid", 90, 1)
    ).json()["order_id"]

    order = client.get(f"/book/{market}/order/{order_id}").json()
    assert order["price"] == "90"
    assert order["side"] == "Bid"

    cancelled = client.delete(f"/book/{market}/order/{order_id}")
    assert cancelled.status_code == 200
    assert cancelled.json()["order_id"] == order_id

    assert client.get(f"/book/{market}/order/{order_id}").status_code == 404
    assert client.delete(f"/book/{market}/order/{order_id}").status_code == 404


def test_unreachable_executioner():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    executioner = ExecutionerClient("http://executioner.test", transport=httpx.MockTransport(refuse))
    app = create_app(Settings(environment="test"), engine=Engine(executioner=executioner))

    with TestClient(app) as client:
        client.post("/book", json={"market": MARKET})
        response = client.post(f"/book/{MARKET}/order", json=submission(ALICE, "Bid", 100, 5))

    assert response.status_code == 502
    assert response.json()["reason"] == "HttpError"
    assert app.state.engine.get_book(MARKET).depth == (0, 0)
