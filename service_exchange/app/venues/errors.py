"""
Translation of venue client failures into the shared error taxonomy.
"""

import asyncio
from typing import Optional

import ccxt

from shared.errors import (
    AccessLayerException,
    AuthenticationRequiredError,
    InvalidArgumentError,
    NotFoundError,
    UnsupportedOperationError,
    VenueUnavailableError,
)


def translate_gateway_error(
    exc: BaseException,
    venue_id: str,
    operation: str,
    *,
    subject: Optional[str] = None,
) -> AccessLayerException:
    """Map a gateway exception to the nearest taxonomy member.

    ``subject`` names the symbol or order the call was about and is folded into
    the message of not-found errors.
    """
    if isinstance(exc, AccessLayerException):
        return exc

    details = {"venue_id": venue_id, "operation": operation, "error": str(exc)}
    if subject:
        details["subject"] = subject

    if isinstance(exc, ccxt.AuthenticationError):
        return AuthenticationRequiredError(f"Authentication failed on {venue_id}", details)
    if isinstance(exc, (ccxt.BadSymbol, ccxt.OrderNotFound)):
        target = f"'{subject}'" if subject else "Resource"
        return NotFoundError(f"{target} not found on {venue_id}", details)
    if isinstance(exc, ccxt.NotSupported):
        return UnsupportedOperationError(venue_id, operation, details)
    if isinstance(exc, (ccxt.NetworkError, asyncio.TimeoutError)):
        return VenueUnavailableError(f"Exchange network error on {venue_id}", details)
    if isinstance(exc, (ccxt.InvalidOrder, ccxt.InsufficientFunds, ccxt.BadRequest, ccxt.ArgumentsRequired)):
        return InvalidArgumentError(f"Request rejected by {venue_id}: {exc}", details)
    if isinstance(exc, ccxt.ExchangeError):
        return InvalidArgumentError(f"Exchange API error on {venue_id}", details)
    return VenueUnavailableError(f"Failed to {operation} on {venue_id}", details)
