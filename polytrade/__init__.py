"""Polymarket order signing and on-chain call toolkit.

Resolves a signing identity from flag, environment or config file, builds
and EIP-712 signs exchange orders, authenticates CLOB API requests, and
encodes Conditional Token Framework calls.

Public API:
    - AuthManager: Resolve the signing identity for one command
    - OrderBuilder: Build and sign limit and market orders
    - OnChainTxBuilder: Encode approvals and split/merge/redeem calls
    - ClobClient: CLOB API transport
    - OrderRequest: Limit order request model
    - MarketOrderRequest: Market order request model

Example:
    >>> from polytrade import AuthManager, ClobClient, OrderBuilder, OrderRequest
    >>> from polytrade.config import get_settings
    >>> with AuthManager(get_settings()).resolve() as identity:
    ...     client = ClobClient("https://clob.polymarket.com", identity.chain.chain_id)
    ...     signed = OrderBuilder(identity, client).create_order(
    ...         OrderRequest(token_id="1234", side="buy", price="0.5", size="10")
    ...     )
"""

__version__ = "0.1.0"

from polytrade.auth import AuthManager
from polytrade.client import ClobClient
from polytrade.ctf import OnChainTxBuilder
from polytrade.models import MarketOrderRequest, OrderRequest
from polytrade.orders import OrderBuilder

__all__ = [
    "AuthManager",
    "ClobClient",
    "MarketOrderRequest",
    "OnChainTxBuilder",
    "OrderBuilder",
    "OrderRequest",
]
