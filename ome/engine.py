"""
Matching Engine

Owns one order book per market and serialises access to each book.

Submission flow:
1. Reject orders for the wrong market, expired or duplicate orders
2. Optionally ask the executioner whether the order is valid
3. Match against the book (under the market's lock)
4. Forward every fill to the executioner for settlement
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime

from .book import Book, MatchResult
from .common.exceptions import (
    BookExistsError,
    BookNotFoundError,
    OrderNotFoundError,
    OrderRejectedError,
    RpcError,
)
from .common.logging_setup import get_service_logger
from .order import Order, parse_address, utc_now
from .rpc import ExecutionerClient

logger = get_service_logger("engine")


@dataclass
class SubmissionResult:
    """Result of submitting one order"""
    order: Order
    match: MatchResult
    settlements: list[str] = field(default_factory=list)
    settlement_errors: list[str] = field(default_factory=list)


class Engine:
    """
    Matching engine across markets.

    Matching and settlement for one market happen under that market's
    lock, so fills reach the executioner in the order they were made.
    """

    def __init__(
        self,
        executioner: ExecutionerClient | None = None,
        check_orders: bool = True,
    ):
        self.executioner = executioner
        self.check_orders = check_orders
        self._books: dict[str, Book] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def markets(self) -> list[str]:
        return sorted(self._books)

    def create_book(self, market: str) -> Book:
        """
        Create an empty book.

        Raises:
            OrderParseError: market is not a valid address
            BookExistsError: a book already exists for the market
        """
        market = parse_address(market)
        if market in self._books:
            raise BookExistsError(market)

        book = Book(market)
        self._books[market] = book
        self._locks[market] = asyncio.Lock()
        logger.info(f"Created book for {market}", extra={"market": market})
        return book

    def get_book(self, market: str) -> Book:
        market = parse_address(market)
        book = self._books.get(market)
        if book is None:
            raise BookNotFoundError(market)
        return book

    def get_order(self, market: str, order_id: str) -> Order:
        book = self.get_book(market)
        order = book.order(order_id.lower())
        if order is None:
            raise OrderNotFoundError(order_id, book.market)
        return order

    async def submit(self, market: str, order: Order) -> SubmissionResult:
        """
        Submit an order to a market.

        Raises:
            BookNotFoundError: unknown market
            OrderRejectedError: wrong market, expired, duplicate, or refused
                by the executioner
            RpcError: executioner unreachable during the validity check
        """
        book = self.get_book(market)

        if order.market != book.market:
            raise OrderRejectedError(
                f"order targets {order.market}, not {book.market}", order.id, book.market
            )
        if order.is_expired(utc_now()):
            raise OrderRejectedError("order has expired", order.id, book.market)

        if self.executioner and self.check_orders:
            if not await self.executioner.check_order_validity(order):
                raise OrderRejectedError("executioner refused order", order.id, book.market)

        async with self._locks[book.market]:
            if book.order(order.id) is not None:
                raise OrderRejectedError("duplicate order id", order.id, book.market)

            match = book.submit(order)
            result = SubmissionResult(order=order, match=match)

            if self.executioner and match.fills:
                await self._settle(result)

        logger.info(
            f"{order.id} -> {match.order_status} ({len(match.fills)} fills)",
            extra={
                "market": book.market,
                "order_id": order.id,
                "status": str(match.order_status),
                "fill_count": len(match.fills),
            },
        )
        return result

    async def _settle(self, result: SubmissionResult) -> None:
        """
        Forward fills; failures are reported, never rolled back.

        Each pair is sent as it stood right after its fill, so amount_left
        reflects that fill rather than the end of the walk.
        """
        for fill, (maker, taker) in zip(result.match.fills, result.match.trades):
            try:
                settlement_id = await self.executioner.send_matched_orders(maker, taker)
                result.settlements.append(settlement_id)
            except RpcError as e:
                logger.error(
                    f"Settlement of {fill.maker} / {fill.taker} failed: {e}",
                    extra={"maker": fill.maker, "taker": fill.taker, "kind": e.kind},
                )
                result.settlement_errors.append(str(e))

    async def cancel(self, market: str, order_id: str) -> datetime:
        """
        Cancel a resting order.

        Raises:
            BookNotFoundError: unknown market
            OrderNotFoundError: no resting order with that id
        """
        book = self.get_book(market)
        async with self._locks[book.market]:
            cancelled_at = book.cancel(order_id.lower())

        if cancelled_at is None:
            raise OrderNotFoundError(order_id, book.market)
        return cancelled_at

    async def close(self) -> None:
        if self.executioner:
            await self.executioner.close()
