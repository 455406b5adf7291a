"""
Request body models for the exchange routes.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..venues.gateway import Credentials


class CredentialsBody(BaseModel):
    """Venue credentials carried in a request body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_key: Optional[str] = Field(None, alias="apiKey", description="Venue API key")
    secret: Optional[str] = Field(None, description="Venue API secret")
    passphrase: Optional[str] = Field(None, description="Venue API passphrase, where required")
    sandbox: bool = Field(default=False, description="Use the venue's sandbox environment")

    def to_credentials(self) -> Credentials:
        return Credentials(
            api_key=self.api_key or None,
            secret=self.secret or None,
            passphrase=self.passphrase or None,
            sandbox=self.sandbox,
        )


class CreateOrderBody(CredentialsBody):
    """Order placement request."""

    symbol: str = Field(..., description="Market symbol, e.g. BTC/USDT")
    type: str = Field(..., description="market, limit, stop or stop-limit")
    side: str = Field(..., description="buy or sell")
    amount: float = Field(..., description="Order size in base currency")
    price: Optional[float] = Field(None, description="Limit price")
    params: Dict[str, Any] = Field(default_factory=dict, description="Venue-specific parameters")


class OrderBody(CredentialsBody):
    """Request addressing a single order."""

    order_id: Optional[str] = Field(None, alias="orderId", description="Venue order id")
    symbol: Optional[str] = Field(None, description="Market symbol, required by some venues")


class OrderQueryBody(CredentialsBody):
    """Request listing orders or fills."""

    symbol: Optional[str] = Field(None, description="Restrict to one market symbol")
    limit: Optional[int] = Field(None, description="Maximum number of records")
