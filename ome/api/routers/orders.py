"""
Orders Router

Handles orders within a market's book:
- Submission (matching + settlement)
- Lookup of resting orders
- Cancellation
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from ...common.logging_setup import get_service_logger
from ...engine import Engine
from ...order import ExternalOrder, Order, OrderSubmission
from ..dependencies import get_engine

router = APIRouter()

logger = get_service_logger("api.orders")


# ============================================
# SCHEMAS
# ============================================

class FillResponse(BaseModel):
    maker: str
    taker: str
    quantity: str
    price: str


class SubmitResponse(BaseModel):
    """Order submission result."""
    order_id: str
    status: str  # Placed, PartialMatch, FullMatch
    fills: list[FillResponse]
    order: ExternalOrder
    settlements: list[str]
    settlement_errors: list[str]


class CancelResponse(BaseModel):
    order_id: str
    cancelled_at: datetime


# ============================================
# ENDPOINTS
# ============================================

@router.post("", response_model=SubmitResponse)
async def submit_order(
    market: str,
    submission: OrderSubmission,
    engine: Engine = Depends(get_engine),
):
    """
    Submit an order to a market.

    The order id is derived from its contents. Unmatched volume rests
    on the book; fills are forwarded to the executioner when configured.
    """
    order = Order.from_submission(submission)
    result = await engine.submit(market, order)

    return SubmitResponse(
        order_id=order.id,
        status=result.match.order_status.value,
        fills=[
            FillResponse(
                maker=fill.maker,
                taker=fill.taker,
                quantity=str(fill.quantity),
                price=str(fill.price),
            )
            for fill in result.match.fills
        ],
        order=order.to_external(),
        settlements=result.settlements,
        settlement_errors=result.settlement_errors,
    )


@router.get("/{order_id}", response_model=ExternalOrder)
async def read_order(market: str, order_id: str, engine: Engine = Depends(get_engine)):
    """Resting order by id."""
    return engine.get_order(market, order_id).to_external()


@router.delete("/{order_id}", response_model=CancelResponse, status_code=status.HTTP_200_OK)
async def cancel_order(market: str, order_id: str, engine: Engine = Depends(get_engine)):
    """Cancel a resting order. Returns 404 if it is not on the book."""
    cancelled_at = await engine.cancel(market, order_id)
    logger.info(f"Cancelled {order_id}", extra={"market": market, "order_id": order_id})
    return CancelResponse(order_id=order_id.lower(), cancelled_at=cancelled_at)
