"""
Thin async client for the marketplace cluster, used by the checkout flow.

Every failure is turned into a MarketplaceAPIError whose message is safe to
show to a buyer; the raw response stays in the logs.
"""
from typing import Any, Optional

import httpx
import structlog

from shared.config.settings import MARKETPLACE_URL

logger = structlog.get_logger(__name__)


class MarketplaceAPIError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, details: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


def _error_text(resp: httpx.Response) -> tuple[str, str]:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"Request failed with status {resp.status_code}", ""

    if isinstance(body, dict):
        # Payment errors come back as {error, details}; FastAPI errors as {detail}
        if "error" in body:
            return str(body["error"]), str(body.get("details", ""))
        detail = body.get("detail")
        if isinstance(detail, list):
            return "; ".join(str(d.get("msg", d)) for d in detail), ""
        if detail:
            return str(detail), ""
    return f"Request failed with status {resp.status_code}", ""


class MarketplaceClient:
    def __init__(
        self,
        token: str,
        base_url: str = MARKETPLACE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _post(self, path: str, payload: dict) -> Any:
        try:
            resp = await self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.error("marketplace_unreachable", path=path, error=str(e))
            raise MarketplaceAPIError("Could not reach the marketplace. Please check your connection.") from e

        if resp.status_code >= 400:
            message, details = _error_text(resp)
            logger.warning("marketplace_request_failed", path=path, status=resp.status_code, message=message)
            raise MarketplaceAPIError(message, status_code=resp.status_code, details=details)
        return resp.json()

    async def place_order(self, order_data: dict) -> str:
        """Cash-on-delivery: one call creates the order and its items."""
        data = await self._post("/orders/", order_data)
        return data["order_id"]

    async def create_checkout_session(self, order_data: dict) -> dict:
        return await self._post("/payments/checkout-session", {"order_data": order_data})

    async def verify_payment(self, session_id: str) -> dict:
        return await self._post("/payments/verify", {"session_id": session_id})
