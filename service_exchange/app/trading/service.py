"""
Trading service: authenticated balance and order operations.
"""

from typing import Any, Dict, List, Optional

from shared.errors import (
    AuthenticationRequiredError,
    InvalidArgumentError,
    UnsupportedOperationError,
)
from shared.logging import get_logger

from ..venues.errors import translate_gateway_error
from ..venues.gateway import Credentials, GatewayHandle
from ..venues.pool import InstancePool


ORDER_TYPES = ("market", "limit", "stop", "stop-limit")
ORDER_SIDES = ("buy", "sell")
PRICED_ORDER_TYPES = ("limit", "stop-limit")


class TradingService:
    """Runs private venue calls on behalf of the presented credentials.

    Credentials are checked before any handle is acquired so a request
    without an API key and secret never opens a venue connection.
    """

    def __init__(self, pool: InstancePool):
        self.pool = pool
        self.logger = get_logger("exchange.trading")

    async def get_balance(self, venue_id: str, credentials: Optional[Credentials]) -> Dict[str, Any]:
        handle = await self._authenticated_handle(venue_id, credentials, "fetch_balance")
        return await self._call(handle, "fetch_balance", handle.fetch_balance)

    async def create_order(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        symbol: str,
        order_type: str,
        side: str,
        amount: float,
        price: Optional[float] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Place an order after validating its shape locally."""
        self._validate_order(symbol, order_type, side, amount, price)
        handle = await self._authenticated_handle(venue_id, credentials, "create_order")

        order = await self._call(
            handle,
            "create_order",
            handle.create_order,
            symbol,
            order_type,
            side,
            amount,
            price,
            params,
            subject=symbol,
        )
        self.logger.info(
            "Order created",
            venue_id=venue_id,
            symbol=symbol,
            order_type=order_type,
            side=side,
            order_id=order.get("id"),
        )
        return order

    async def cancel_order(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        order_id: str,
        symbol: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._validate_order_id(order_id)
        handle = await self._authenticated_handle(venue_id, credentials, "cancel_order")
        result = await self._call(handle, "cancel_order", handle.cancel_order, order_id, symbol, subject=order_id)
        self.logger.info("Order cancelled", venue_id=venue_id, order_id=order_id)
        return result

    async def get_order(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        order_id: str,
        symbol: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._validate_order_id(order_id)
        handle = await self._authenticated_handle(venue_id, credentials, "fetch_order")
        return await self._call(handle, "fetch_order", handle.fetch_order, order_id, symbol, subject=order_id)

    async def get_orders(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        symbol: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        self._validate_limit(limit)
        handle = await self._authenticated_handle(venue_id, credentials, "fetch_orders")
        return await self._call(handle, "fetch_orders", handle.fetch_orders, symbol, limit, subject=symbol)

    async def get_open_orders(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        symbol: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        handle = await self._authenticated_handle(venue_id, credentials, "fetch_open_orders")
        return await self._call(handle, "fetch_open_orders", handle.fetch_open_orders, symbol, subject=symbol)

    async def get_my_trades(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        symbol: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        self._validate_limit(limit)
        handle = await self._authenticated_handle(venue_id, credentials, "fetch_my_trades")
        return await self._call(handle, "fetch_my_trades", handle.fetch_my_trades, symbol, limit, subject=symbol)

    async def get_order_status(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        order_id: str,
        symbol: Optional[str] = None,
    ) -> Optional[str]:
        order = await self.get_order(venue_id, credentials, order_id, symbol)
        return order.get("status")

    async def _authenticated_handle(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        operation: str,
    ) -> GatewayHandle:
        if credentials is None or not credentials.is_authenticated:
            raise AuthenticationRequiredError(
                "API key and secret are required for this operation",
                {"venue_id": venue_id, "operation": operation},
            )

        try:
            handle = await self.pool.acquire(venue_id, credentials)
        except Exception as exc:
            raise translate_gateway_error(exc, venue_id, "connect") from exc

        if not handle.authenticated:
            raise AuthenticationRequiredError(
                "Exchange handle is not authenticated",
                {"venue_id": venue_id, "operation": operation},
            )
        if not handle.capabilities.supports(operation):
            raise UnsupportedOperationError(venue_id, operation)
        return handle

    async def _call(self, handle: GatewayHandle, operation: str, method, *args, subject: Optional[str] = None):
        try:
            return await method(*args)
        except Exception as exc:
            self.logger.error(
                "Trading call failed",
                venue_id=handle.venue_id,
                operation=operation,
                error=str(exc),
            )
            raise translate_gateway_error(exc, handle.venue_id, operation, subject=subject) from exc

    def _validate_order(
        self,
        symbol: str,
        order_type: str,
        side: str,
        amount: float,
        price: Optional[float],
    ) -> None:
        if not symbol:
            raise InvalidArgumentError("symbol is required")
        if order_type not in ORDER_TYPES:
            raise InvalidArgumentError(
                f"type must be one of {', '.join(ORDER_TYPES)}",
                {"type": order_type},
            )
        if side not in ORDER_SIDES:
            raise InvalidArgumentError("side must be buy or sell", {"side": side})
        if amount is None or amount <= 0:
            raise InvalidArgumentError("amount must be greater than 0", {"amount": amount})
        if order_type in PRICED_ORDER_TYPES and (price is None or price <= 0):
            raise InvalidArgumentError(
                f"price must be greater than 0 for {order_type} orders",
                {"type": order_type, "price": price},
            )

    def _validate_order_id(self, order_id: str) -> None:
        if not order_id:
            raise InvalidArgumentError("order_id is required")

    def _validate_limit(self, limit: Optional[int]) -> None:
        if limit is not None and limit < 1:
            raise InvalidArgumentError("limit must be at least 1", {"limit": limit})
