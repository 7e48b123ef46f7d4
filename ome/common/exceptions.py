"""
Custom Exception Classes for the Order Matching Engine

Hierarchical exception structure shared by the book, the engine,
the RPC client and the API layer.
"""


class OmeError(Exception):
    """Base exception for all matching engine errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(OmeError):
    """Configuration-related errors"""

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(f"Config Error: {message}", recoverable)


class ParseError(OmeError):
    """Wire representation could not be interpreted"""

    # Reasons shared by order and book parsing
    INVALID_HEXADECIMAL = "InvalidHexadecimal"
    INVALID_SIDE = "InvalidSide"
    INVALID_TIMESTAMP = "InvalidTimestamp"
    INTEGER_BOUNDS = "IntegerBounds"
    INVALID_DECIMAL = "InvalidDecimal"
    INVALID_ADDRESS = "InvalidAddress"

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        self.detail = detail
        message = f"{reason}: {detail}" if detail else reason
        super().__init__(message, recoverable=True)


class OrderParseError(ParseError):
    """Byte/string level representation of an order is invalid"""


class BookParseError(ParseError):
    """External order book representation is invalid"""


class BookError(OmeError):
    """Order book operation errors"""

    def __init__(self, message: str, market: str | None = None):
        self.market = market
        super().__init__(message, recoverable=True)


class BookExistsError(BookError):
    """A book for the market already exists"""

    def __init__(self, market: str):
        super().__init__(f"Book already exists for market {market}", market)


class BookNotFoundError(BookError):
    """No book for the market"""

    def __init__(self, market: str):
        super().__init__(f"No book for market {market}", market)


class OrderNotFoundError(BookError):
    """No resting order with the given id"""

    def __init__(self, order_id: str, market: str | None = None):
        self.order_id = order_id
        super().__init__(f"No order {order_id} in book", market)


class OrderRejectedError(BookError):
    """Order refused before reaching the matching engine"""

    def __init__(self, message: str, order_id: str | None = None, market: str | None = None):
        self.order_id = order_id
        super().__init__(f"Order rejected: {message}", market)


class RpcError(OmeError):
    """Executioner communication errors"""

    HTTP_ERROR = "HttpError"
    CONTRACT_ERROR = "ContractError"
    INVALID_RESPONSE = "InvalidResponse"

    def __init__(self, kind: str, message: str, status_code: int | None = None):
        self.kind = kind
        self.status_code = status_code
        super().__init__(f"RPC {kind}: {message}", recoverable=True)
