"""
Executioner RPC

HTTP client for the executioner service, which verifies order signatures
and settles matched order pairs on the market contract.

Reuses a single HTTP client for all requests.
"""

import httpx

from .common.exceptions import RpcError
from .common.logging_setup import get_service_logger
from .order import Order

logger = get_service_logger("rpc")

# Settlement identifiers are 20-byte hex values
SETTLEMENT_ID_BYTES = 20


def parse_settlement_id(body: str) -> str:
    """
    Parse the executioner's settlement response.

    Accepts a bare or JSON-quoted hex string, with or without 0x prefix.

    Raises:
        RpcError: body is not a 20-byte hex value
    """
    text = body.strip().strip('"').strip()
    if text[:2].lower() == "0x":
        text = text[2:]

    try:
        raw = bytes.fromhex(text)
    except ValueError as e:
        raise RpcError(RpcError.INVALID_RESPONSE, f"not hex: {body[:80]!r}") from e

    if len(raw) != SETTLEMENT_ID_BYTES:
        raise RpcError(
            RpcError.INVALID_RESPONSE,
            f"expected {SETTLEMENT_ID_BYTES} bytes, got {len(raw)}",
        )

    return "0x" + raw.hex()


class ExecutionerClient:
    """
    Talks to the executioner.

    Endpoints:
    - POST {base_url}/check  {"order": ...}           -> 2xx when valid
    - POST {base_url}        {"maker": ..., "taker": ...} -> settlement id
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def check_order_validity(self, order: Order) -> bool:
        """
        Ask the executioner whether an order is valid (signature, balance).

        Returns:
            True if the executioner answered with a 2xx status

        Raises:
            RpcError: the executioner could not be reached
        """
        client = await self._get_client()
        payload = {"order": order.to_external().model_dump()}

        try:
            response = await client.post(f"{self.base_url}/check", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Order check failed for {order.id}: {e}")
            raise RpcError(RpcError.HTTP_ERROR, str(e)) from e

        valid = response.is_success
        logger.debug(
            f"Order {order.id} check: {response.status_code}",
            extra={"order_id": order.id, "status_code": response.status_code},
        )
        return valid

    async def send_matched_orders(self, maker: Order, taker: Order) -> str:
        """
        Forward a matched pair for settlement.

        Returns:
            Settlement id reported by the executioner (0x-prefixed hex)

        Raises:
            RpcError: transport failure, rejected settlement or bad response
        """
        client = await self._get_client()
        payload = {
            "maker": maker.to_external().model_dump(),
            "taker": taker.to_external().model_dump(),
        }

        try:
            response = await client.post(self.base_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Settlement request failed: {e}")
            raise RpcError(RpcError.HTTP_ERROR, str(e)) from e

        if response.is_error:
            body = response.text.strip()
            kind = RpcError.CONTRACT_ERROR if body else RpcError.HTTP_ERROR
            raise RpcError(
                kind,
                body or f"status {response.status_code}",
                status_code=response.status_code,
            )

        settlement_id = parse_settlement_id(response.text)
        logger.info(
            f"Settled {maker.id} / {taker.id}: {settlement_id}",
            extra={"maker": maker.id, "taker": taker.id, "settlement_id": settlement_id},
        )
        return settlement_id
