"""
API Dependencies

The engine lives on app.state; routers receive it through Depends.

Usage:
    @router.get("/")
    async def my_route(engine: Engine = Depends(get_engine)):
        return engine.markets()
"""

from fastapi import Request

from ..engine import Engine


def get_engine(request: Request) -> Engine:
    """Dependency for getting the matching engine in routes."""
    return request.app.state.engine
