"""
Books Router

Handles order book management:
- Listing markets
- Creating a book for a market
- Reading a book's full state
"""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from ...book import ExternalBook
from ...engine import Engine
from ..dependencies import get_engine

router = APIRouter()


# ============================================
# SCHEMAS
# ============================================

class BookCreate(BaseModel):
    """Create book request."""
    market: str


class BookCreated(BaseModel):
    market: str


# ============================================
# ENDPOINTS
# ============================================

@router.get("", response_model=list[str])
async def list_books(engine: Engine = Depends(get_engine)):
    """List the markets that have a book, sorted by address."""
    return engine.markets()


@router.post("", response_model=BookCreated, status_code=status.HTTP_201_CREATED)
async def create_book(body: BookCreate, engine: Engine = Depends(get_engine)):
    """
    Create an empty book for a market.

    Returns 400 for an invalid address and 409 if the book exists.
    """
    book = engine.create_book(body.market)
    return BookCreated(market=book.market)


@router.get("/{market}", response_model=ExternalBook)
async def read_book(market: str, engine: Engine = Depends(get_engine)):
    """Full book: price levels on each side, LTP, depth, spread."""
    return engine.get_book(market).to_external()
