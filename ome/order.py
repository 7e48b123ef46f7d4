"""
Orders

Type definitions and wire conversions for limit orders.

Internally prices and quantities are plain Python ints bounded to the
unsigned 256-bit range used by the market contracts. On the wire every
amount is a decimal string, addresses and signatures are 0x-prefixed hex
and timestamps are Unix seconds. Wire field names follow the contract's
LimitOrder struct (user, target_tracer, amount).
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .common.exceptions import OrderParseError

# Magic string representing the function signature
FUNCTION_SIGNATURE = (
    "LimitOrder(uint256 amount,uint256 price,bool side,address user,"
    "uint256 expiration,address target_tracer)"
)

# Magic pre-computed hash of the EIP712 domain prefix
DOMAIN_HASH = "49854490ba36fba358fe1019f097d8b566d011cfb3fd67c6fce6a40624150034"

# Magic number prefix for EIP712
EIP712_MAGIC_PREFIX = "1901"

UINT256_MAX = 2**256 - 1
ADDRESS_BYTES = 20


class OrderSide(str, Enum):
    """Which side of the market an order is on"""
    BID = "Bid"  # buy-side
    ASK = "Ask"  # sell-side

    def __str__(self) -> str:
        return self.value

    def as_bytes(self) -> bytes:
        """One byte; there will only ever be two market sides"""
        return b"\x00" if self is OrderSide.BID else b"\x01"


# ============================================
# PARSING HELPERS
# ============================================

def parse_hex(value: str) -> bytes:
    """Parse 0x-prefixed (or bare) hex into bytes"""
    text = value[2:] if value[:2].lower() == "0x" else value
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise OrderParseError(OrderParseError.INVALID_HEXADECIMAL, repr(value)) from e


def parse_address(value: str) -> str:
    """Validate an Ethereum address and return it lower-cased with 0x prefix"""
    if not isinstance(value, str) or value[:2].lower() != "0x" or len(value) != 2 + 2 * ADDRESS_BYTES:
        raise OrderParseError(OrderParseError.INVALID_ADDRESS, repr(value))
    raw = parse_hex(value)
    return "0x" + raw.hex()


def parse_uint256(value: str) -> int:
    """Parse a decimal string into an unsigned 256-bit integer"""
    text = value.strip() if isinstance(value, str) else ""
    if not text or not text.isascii() or not text.isdigit():
        raise OrderParseError(OrderParseError.INVALID_DECIMAL, repr(value))
    number = int(text, 10)
    if number > UINT256_MAX:
        raise OrderParseError(OrderParseError.INTEGER_BOUNDS, repr(value))
    return number


def parse_side(value: str) -> OrderSide:
    for side in OrderSide:
        if isinstance(value, str) and value.lower() == side.value.lower():
            return side
    raise OrderParseError(OrderParseError.INVALID_SIDE, repr(value))


def parse_timestamp(value: int | str) -> datetime:
    """Unix seconds (int or decimal string) to an aware UTC datetime"""
    try:
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise ValueError("not whole seconds")
        seconds = int(value)
        if seconds < 0:
            raise ValueError("negative timestamp")
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise OrderParseError(OrderParseError.INVALID_TIMESTAMP, repr(value)) from e


def to_timestamp(value: datetime) -> int:
    return int(value.timestamp())


def utc_now() -> datetime:
    """Current time truncated to whole seconds (wire resolution)"""
    return datetime.now(timezone.utc).replace(microsecond=0)


# ============================================
# WIRE SCHEMAS
# ============================================

class ExternalOrder(BaseModel):
    """Wire representation of an order."""
    id: str
    user: str
    target_tracer: str
    side: str
    price: str
    amount: str
    amount_left: str
    expiration: int
    created: int
    signed_data: str = "0x"


class OrderSubmission(BaseModel):
    """
    New order as submitted by a trader; id and fill state are assigned here.

    Amounts and timestamps are accepted as any JSON scalar and checked by
    the parse helpers, so malformed values raise OrderParseError.
    """
    user: str
    target_tracer: str
    side: str
    price: str | int | float
    amount: str | int | float
    expiration: int | str | float
    created: Optional[int | str | float] = None
    signed_data: str = "0x"


# ============================================
# ORDER
# ============================================

@dataclass
class Order:
    """An order resting in, or travelling through, the market"""
    id: str                 # SHA3-256 hash of the other fields
    trader: str             # address of the trader
    market: str             # address of the market contract
    side: OrderSide
    price: int
    quantity: int           # original size
    remaining: int          # unfilled size
    expiration: datetime
    created: datetime
    signed_data: bytes = field(default=b"", repr=False)

    def __str__(self) -> str:
        return f"#{self.id} [{self.market}] {self.side} {self.quantity} @ {self.price}"

    @classmethod
    def new(
        cls,
        trader: str,
        market: str,
        side: OrderSide,
        price: int,
        quantity: int,
        expiration: datetime,
        signed_data: bytes = b"",
        created: datetime | None = None,
    ) -> "Order":
        """
        Build a fresh order and derive its id.

        Args:
            trader: Trader address (0x-prefixed hex)
            market: Market contract address (0x-prefixed hex)
            side: Market side
            price: Limit price, 0 < price <= 2**256-1
            quantity: Size, 0 < quantity <= 2**256-1
            expiration: UTC expiry
            signed_data: Trader's signature over the order
            created: Creation time (defaults to now)

        Raises:
            OrderParseError: address or amount out of range
        """
        trader = parse_address(trader)
        market = parse_address(market)
        for name, value in (("price", price), ("quantity", quantity)):
            if not 0 < value <= UINT256_MAX:
                raise OrderParseError(OrderParseError.INTEGER_BOUNDS, f"{name}={value}")

        created = created or utc_now()
        order = cls(
            id="",
            trader=trader,
            market=market,
            side=side,
            price=price,
            quantity=quantity,
            remaining=quantity,
            expiration=expiration,
            created=created,
            signed_data=signed_data,
        )
        order.id = order.compute_id()
        return order

    def compute_id(self) -> str:
        """SHA3-256 over the canonical big-endian encoding of the order"""
        digest = hashlib.sha3_256()
        digest.update(bytes.fromhex(self.trader[2:]))
        digest.update(bytes.fromhex(self.market[2:]))
        digest.update(self.side.as_bytes())
        for number in (
            self.price,
            self.quantity,
            to_timestamp(self.expiration),
            to_timestamp(self.created),
        ):
            digest.update(number.to_bytes(32, "big"))
        digest.update(self.signed_data)
        return "0x" + digest.hexdigest()

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expiration <= (now or utc_now())

    @property
    def filled(self) -> int:
        return self.quantity - self.remaining

    def fill(self, amount: int) -> None:
        """Reduce remaining volume; amounts larger than remaining are ignored"""
        if amount <= self.remaining:
            self.remaining -= amount

    # Conversions

    @classmethod
    def from_submission(cls, submission: OrderSubmission) -> "Order":
        return cls.new(
            trader=submission.user,
            market=submission.target_tracer,
            side=parse_side(submission.side),
            price=parse_uint256(submission.price),
            quantity=parse_uint256(submission.amount),
            expiration=parse_timestamp(submission.expiration),
            signed_data=parse_hex(submission.signed_data),
            created=parse_timestamp(submission.created) if submission.created is not None else None,
        )

    @classmethod
    def from_external(cls, ext: ExternalOrder) -> "Order":
        """
        Parse a wire order, keeping its id and fill state.

        Raises:
            OrderParseError: any field fails to parse
        """
        quantity = parse_uint256(ext.amount)
        remaining = parse_uint256(ext.amount_left)
        if remaining > quantity:
            raise OrderParseError(
                OrderParseError.INTEGER_BOUNDS,
                f"amount_left {remaining} exceeds amount {quantity}",
            )

        raw_id = parse_hex(ext.id)
        if not raw_id:
            raise OrderParseError(OrderParseError.INVALID_HEXADECIMAL, "empty id")

        return cls(
            id="0x" + raw_id.hex(),
            trader=parse_address(ext.user),
            market=parse_address(ext.target_tracer),
            side=parse_side(ext.side),
            price=parse_uint256(ext.price),
            quantity=quantity,
            remaining=remaining,
            expiration=parse_timestamp(ext.expiration),
            created=parse_timestamp(ext.created),
            signed_data=parse_hex(ext.signed_data),
        )

    def to_external(self) -> ExternalOrder:
        return ExternalOrder(
            id=self.id,
            user=self.trader,
            target_tracer=self.market,
            side=self.side.value,
            price=str(self.price),
            amount=str(self.quantity),
            amount_left=str(self.remaining),
            expiration=to_timestamp(self.expiration),
            created=to_timestamp(self.created),
            signed_data="0x" + self.signed_data.hex(),
        )
