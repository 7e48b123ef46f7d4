import itertools
from datetime import timedelta

import pytest

from ome.order import Order, OrderSide, utc_now

MARKET = "0x" + "aa" * 20
OTHER_MARKET = "0x" + "bb" * 20
ALICE = "0x" + "01" * 20
BOB = "0x" + "02" * 20
CAROL = "0x" + "03" * 20


@pytest.fixture
def order_factory():
    """Build orders with distinct creation times so ids never collide"""
    base = utc_now() - timedelta(hours=1)
    counter = itertools.count()

    def make(
        trader: str,
        side: OrderSide,
        price: int,
        quantity: int,
        market: str = MARKET,
        expires_in: timedelta = timedelta(days=1),
    ) -> Order:
        return Order.new(
            trader=trader,
            market=market,
            side=side,
            price=price,
            quantity=quantity,
            expiration=utc_now() + expires_in,
            signed_data=b"\x12\x34",
            created=base + timedelta(seconds=next(counter)),
        )

    return make
