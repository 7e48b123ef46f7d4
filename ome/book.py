"""
Order Book

Price-time priority order book and matching engine for a single market.

Each side maps a price level to a FIFO queue of resting orders. An incoming
order walks the opposing side best price first, filling against resting
orders in arrival order at the resting order's price. Whatever is left
rests on the book.
"""

from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel

from .common.exceptions import BookParseError, OrderParseError
from .common.logging_setup import get_service_logger, log_fill, log_order_event
from .order import ExternalOrder, Order, OrderSide, parse_address, parse_uint256, utc_now

logger = get_service_logger("book")


@dataclass
class Fill:
    """A single trade between a resting (maker) and incoming (taker) order"""
    maker: str
    taker: str
    quantity: int
    price: int


class OrderStatus(str, Enum):
    """Outcome of a submission"""
    PLACED = "Placed"
    PARTIAL_MATCH = "PartialMatch"
    FULL_MATCH = "FullMatch"

    def __str__(self) -> str:
        return self.value


@dataclass
class MatchResult:
    fills: list[Fill] = field(default_factory=list)
    order_status: OrderStatus = OrderStatus.PLACED
    # (maker, taker) copies as they stood right after each fill, parallel to fills
    trades: list[tuple[Order, Order]] = field(default_factory=list, repr=False)


class ExternalBook(BaseModel):
    """Wire representation of a book; price levels keyed by decimal string."""
    market: str
    bids: dict[str, list[ExternalOrder]]
    asks: dict[str, list[ExternalOrder]]
    ltp: str
    depth: tuple[int, int]
    crossed: bool
    spread: str


class Book:
    """
    Order book for one market.

    Attributes:
        market: Address of the market contract
        bids: Buy-side price levels
        asks: Sell-side price levels
        ltp: Last traded price (0 before the first trade)
        depth: (bid count, ask count) of orders with volume left
        crossed: Best bid >= best ask
        spread: Best ask - best bid (0 when a side is empty)
    """

    def __init__(self, market: str):
        self.market = parse_address(market)
        self.bids: dict[int, deque[Order]] = {}
        self.asks: dict[int, deque[Order]] = {}
        self.ltp = 0
        self.depth: tuple[int, int] = (0, 0)
        self.crossed = False
        self.spread = 0

    def __repr__(self) -> str:
        return f"Book({self.market}, depth={self.depth}, ltp={self.ltp})"

    # ============================================
    # QUERIES
    # ============================================

    def orders(self) -> Iterator[Order]:
        """Iterate every resting order, bids first"""
        for side in (self.bids, self.asks):
            for level in side.values():
                yield from level

    def order(self, order_id: str) -> Optional[Order]:
        """Return the resting order with the given id, if any"""
        for order in self.orders():
            if order.id == order_id:
                return order
        return None

    def top(self) -> tuple[Optional[int], Optional[int]]:
        """(best bid, best ask)"""
        best_bid = max(self.bids) if self.bids else None
        best_ask = min(self.asks) if self.asks else None
        return best_bid, best_ask

    def _count(self, side: dict[int, deque[Order]]) -> int:
        return sum(1 for level in side.values() for order in level if order.remaining > 0)

    # ============================================
    # MATCHING
    # ============================================

    @staticmethod
    def price_viable(opposite: int, incoming: int, incoming_side: OrderSide) -> bool:
        """Can an incoming order at `incoming` trade against level `opposite`?"""
        if incoming_side is OrderSide.BID:
            return opposite <= incoming
        return opposite >= incoming

    def submit(self, order: Order) -> MatchResult:
        """
        Submit an order to the matching engine.

        Anything that cannot be matched immediately is stored in the book
        for future matching. Book metadata is refreshed afterwards.
        """
        log_order_event(logger, "submitting", order)

        best_bid, best_ask = self.top()
        opposing_top = best_ask if order.side is OrderSide.BID else best_bid

        result = self._match(order, opposing_top)
        self.update()
        return result

    def _match(self, order: Order, opposing_top: Optional[int]) -> MatchResult:
        fills: list[Fill] = []
        trades: list[tuple[Order, Order]] = []

        # Haven't crossed the spread, nothing to match
        if opposing_top is None or not self.price_viable(opposing_top, order.price, order.side):
            logger.debug(f"{order} does not cross, adding...")
            self._add_order(order)
            return MatchResult(fills, OrderStatus.PLACED)

        if order.side is OrderSide.BID:
            opposing = self.asks
            prices = sorted(opposing)
        else:
            opposing = self.bids
            prices = sorted(opposing, reverse=True)

        for price in prices:
            if order.remaining == 0 or not self.price_viable(price, order.price, order.side):
                break

            for opposite in opposing[price]:
                if opposite.remaining == 0:
                    continue

                # No self-trading
                if opposite.trader == order.trader:
                    logger.debug(f"Self-trade against {opposite.id}, skipping...")
                    continue

                amount = min(opposite.remaining, order.remaining)
                order.fill(amount)
                opposite.fill(amount)

                fill = Fill(maker=opposite.id, taker=order.id, quantity=amount, price=opposite.price)
                fills.append(fill)
                trades.append((replace(opposite), replace(order)))
                log_fill(logger, self.market, fill)

                self.ltp = price

                if order.remaining == 0:
                    break

        if order.remaining > 0:
            self._add_order(order)
            status = OrderStatus.PARTIAL_MATCH if fills else OrderStatus.PLACED
        else:
            log_order_event(logger, "filled", order)
            status = OrderStatus.FULL_MATCH

        return MatchResult(fills, status, trades)

    def _add_order(self, order: Order) -> None:
        side = self.bids if order.side is OrderSide.BID else self.asks
        side.setdefault(order.price, deque()).append(order)
        log_order_event(logger, "placed", order, remaining=str(order.remaining))

    # ============================================
    # MAINTENANCE
    # ============================================

    def cancel(self, order_id: str) -> Optional[datetime]:
        """
        Cancel the resting order with the matching id.

        Returns:
            Time of cancellation, or None if there is no such order
        """
        for side in (self.bids, self.asks):
            for level in side.values():
                for order in level:
                    if order.id == order_id:
                        level.remove(order)
                        log_order_event(logger, "cancelled", order)
                        self.update()
                        return utc_now()
        return None

    def prune(self) -> None:
        """Drop filled orders and empty price levels"""
        for side in (self.bids, self.asks):
            for price in list(side):
                level = deque(order for order in side[price] if order.remaining > 0)
                if level:
                    side[price] = level
                else:
                    del side[price]

    def update(self) -> None:
        """Refresh metadata; call after every successful mutation"""
        self.prune()
        self.depth = (self._count(self.bids), self._count(self.asks))

        best_bid, best_ask = self.top()
        if best_bid is not None and best_ask is not None:
            self.crossed = best_bid >= best_ask
            self.spread = max(best_ask - best_bid, 0)
        else:
            self.crossed = False
            self.spread = 0

    # ============================================
    # CONVERSIONS
    # ============================================

    def to_external(self) -> ExternalBook:
        def side_to_external(side: dict[int, deque[Order]]) -> dict[str, list[ExternalOrder]]:
            return {
                str(price): [order.to_external() for order in side[price]]
                for price in sorted(side)
            }

        return ExternalBook(
            market=self.market,
            bids=side_to_external(self.bids),
            asks=side_to_external(self.asks),
            ltp=str(self.ltp),
            depth=self.depth,
            crossed=self.crossed,
            spread=str(self.spread),
        )

    @classmethod
    def from_external(cls, ext: ExternalBook) -> "Book":
        """
        Rebuild a book from its wire form.

        Raises:
            BookParseError: any order, price or address fails to parse, or an
                order sits on the wrong side or price level
        """
        try:
            book = cls(ext.market)
            for side, levels, expected in (
                (book.bids, ext.bids, OrderSide.BID),
                (book.asks, ext.asks, OrderSide.ASK),
            ):
                for price_text, orders in levels.items():
                    price = parse_uint256(price_text)
                    level: deque[Order] = deque()
                    for ext_order in orders:
                        order = Order.from_external(ext_order)
                        if order.side is not expected:
                            raise BookParseError(BookParseError.INVALID_SIDE, f"order {order.id}")
                        if order.price != price:
                            raise BookParseError(
                                BookParseError.INVALID_DECIMAL,
                                f"order {order.id} priced {order.price} under level {price}",
                            )
                        level.append(order)
                    if level:
                        side[price] = level

            book.ltp = parse_uint256(ext.ltp)
        except OrderParseError as e:
            raise BookParseError(e.reason, e.detail) from e

        book.update()
        return book
