"""Order construction, identity and wire parsing"""

from datetime import timedelta

import pytest

from ome.common.exceptions import OrderParseError
from ome.order import (
    UINT256_MAX,
    ExternalOrder,
    Order,
    OrderSide,
    OrderSubmission,
    parse_address,
    parse_uint256,
    utc_now,
)

from .conftest import ALICE, BOB, MARKET


def external(**overrides) -> ExternalOrder:
    fields = dict(
        id="0x" + "ab" * 32,
        user=ALICE,
        target_tracer=MARKET,
        side="Bid",
        price="100",
        amount="10",
        amount_left="10",
        expiration=2_000_000_000,
        created=1_600_000_000,
        signed_data="0xdeadbeef",
    )
    fields.update(overrides)
    return ExternalOrder(**fields)


def test_side_encoding():
    assert OrderSide.BID.as_bytes() == b"\x00"
    assert OrderSide.ASK.as_bytes() == b"\x01"
    assert str(OrderSide.ASK) == "Ask"


def test_new_order_sets_remaining_and_id(order_factory):
    order = order_factory(ALICE, OrderSide.BID, 100, 10)

    assert order.remaining == order.quantity == 10
    assert order.id.startswith("0x")
    assert len(order.id) == 2 + 64
    assert order.id == order.compute_id()


def test_id_depends_on_contents():
    expiration = utc_now() + timedelta(days=1)
    created = utc_now()

    def build(trader):
        return Order.new(trader, MARKET, OrderSide.ASK, 5, 7, expiration, created=created)

    assert build(ALICE).id == build(ALICE).id
    assert build(ALICE).id != build(BOB).id


def test_id_survives_fills(order_factory):
    order = order_factory(ALICE, OrderSide.BID, 100, 10)
    original_id = order.id
    order.fill(4)

    assert order.remaining == 6
    assert order.filled == 4
    assert order.compute_id() == original_id


def test_overfill_is_ignored(order_factory):
    order = order_factory(ALICE, OrderSide.BID, 100, 10)
    order.fill(11)
    assert order.remaining == 10


def test_display(order_factory):
    order = order_factory(ALICE, OrderSide.BID, 100, 10)
    assert str(order) == f"#{order.id} [{MARKET}] Bid 10 @ 100"


def test_addresses_are_normalised():
    mixed = "0x" + "AbCdEf0123" * 4
    assert parse_address(mixed) == mixed.lower()


@pytest.mark.parametrize("value", ["0x1234", "abcd" * 10, "0x" + "zz" * 20, ""])
def test_invalid_addresses(value):
    with pytest.raises(OrderParseError):
        parse_address(value)


def test_uint256_bounds():
    assert parse_uint256(str(UINT256_MAX)) == UINT256_MAX
    with pytest.raises(OrderParseError) as exc:
        parse_uint256(str(UINT256_MAX + 1))
    assert exc.value.reason == OrderParseError.INTEGER_BOUNDS


@pytest.mark.parametrize("value", ["-1", "1.5", "0x10", "", "ten"])
def test_invalid_decimals(value):
    with pytest.raises(OrderParseError) as exc:
        parse_uint256(value)
    assert exc.value.reason == OrderParseError.INVALID_DECIMAL


def test_zero_price_rejected():
    with pytest.raises(OrderParseError) as exc:
        Order.new(ALICE, MARKET, OrderSide.BID, 0, 1, utc_now() + timedelta(days=1))
    assert exc.value.reason == OrderParseError.INTEGER_BOUNDS


def test_from_external_keeps_state():
    order = Order.from_external(external(amount_left="4"))

    assert order.id == "0x" + "ab" * 32
    assert order.trader == ALICE
    assert order.side is OrderSide.BID
    assert order.quantity == 10
    assert order.remaining == 4
    assert order.signed_data == bytes.fromhex("deadbeef")
    assert order.to_external() == external(amount_left="4")


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"side": "Buy"}, OrderParseError.INVALID_SIDE),
        ({"price": "-3"}, OrderParseError.INVALID_DECIMAL),
        ({"amount_left": "11"}, OrderParseError.INTEGER_BOUNDS),
        ({"user": "0x12"}, OrderParseError.INVALID_ADDRESS),
        ({"signed_data": "0xabc"}, OrderParseError.INVALID_HEXADECIMAL),
        ({"expiration": -5}, OrderParseError.INVALID_TIMESTAMP),
    ],
)
def test_from_external_errors(overrides, reason):
    with pytest.raises(OrderParseError) as exc:
        Order.from_external(external(**overrides))
    assert exc.value.reason == reason


def test_from_submission_derives_id():
    submission = OrderSubmission(
        user=ALICE,
        target_tracer=MARKET,
        side="ask",
        price="250",
        amount="3",
        expiration=2_000_000_000,
        created=1_600_000_000,
    )
    order = Order.from_submission(submission)

    assert order.side is OrderSide.ASK
    assert order.remaining == 3
    assert order.id == order.compute_id()


def test_expiry(order_factory):
    order = order_factory(ALICE, OrderSide.BID, 100, 1)
    assert not order.is_expired()
    assert order.is_expired(order.expiration)
