"""
Venue access: ccxt gateway, pooled handles and error translation.
"""

from .gateway import Capabilities, Credentials, ExchangeGateway, GatewayHandle
from .pool import InstancePool, PoolKey

__all__ = [
    "Capabilities",
    "Credentials",
    "ExchangeGateway",
    "GatewayHandle",
    "InstancePool",
    "PoolKey",
]
