# polytrade/models.py
"""
Data models for orders, requests and exchange responses.

Orders are frozen dataclasses: every field is populated by the order
builder first and the signature is attached afterwards as a separate
``SignedOrder`` wrapper, so a signed order can never be mutated in place.
User intent and exchange payloads are Pydantic models.

Classes:
    Side: BUY / SELL as encoded in the signed struct
    OrderType: GTC, FOK, GTD, FAK
    Order: Unsigned, fully populated exchange order
    SignedOrder: Order plus its typed-data hash and signature
    OrderRequest: Limit order intent
    MarketOrderRequest: Market order intent (notional amount)
    TickSize: Minimum price increment for one token
    OrderBookSummary: Bids and asks for one token
    OrderResponse: Result of posting or cancelling an order
    BatchItemResult: Per-item outcome of a batch operation

Example:
    >>> from polytrade.models import OrderRequest
    >>> request = OrderRequest(token_id="1234", side="buy", price="0.55", size="10")
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Side(IntEnum):
    """Order side as the exchange contract encodes it (uint8)."""

    BUY = 0
    SELL = 1

    @classmethod
    def parse(cls, value: "str | Side") -> "Side":
        if isinstance(value, Side):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Invalid side: {value}. Must be BUY or SELL") from None


class OrderType(str, Enum):
    GTC = "GTC"  # good till cancelled
    FOK = "FOK"  # fill or kill
    GTD = "GTD"  # good till date
    FAK = "FAK"  # fill and kill

    @property
    def is_market(self) -> bool:
        return self in (OrderType.FOK, OrderType.FAK)


@dataclass(frozen=True)
class Order:
    """
    Unsigned exchange order.

    The first twelve fields are exactly the typed-data ``Order`` struct;
    ``price``, ``size``, ``order_type`` and ``neg_risk`` are client-side
    context carried along for display and submission.
    """

    salt: int
    maker: str
    signer: str
    taker: str
    token_id: int
    maker_amount: int
    taker_amount: int
    expiration: int
    nonce: int
    fee_rate_bps: int
    side: Side
    signature_type: int

    price: Decimal = Decimal("0")
    size: Decimal = Decimal("0")
    order_type: OrderType = OrderType.GTC
    neg_risk: bool = False

    def struct(self) -> dict[str, Any]:
        """Message body for typed-data hashing, in struct field order."""
        return {
            "salt": self.salt,
            "maker": self.maker,
            "signer": self.signer,
            "taker": self.taker,
            "tokenId": self.token_id,
            "makerAmount": self.maker_amount,
            "takerAmount": self.taker_amount,
            "expiration": self.expiration,
            "nonce": self.nonce,
            "feeRateBps": self.fee_rate_bps,
            "side": int(self.side),
            "signatureType": self.signature_type,
        }


@dataclass(frozen=True)
class SignedOrder:
    """An order together with the hash that was signed and its signature."""

    order: Order
    order_hash: str
    signature: str

    def to_wire(self) -> dict[str, Any]:
        """Order JSON as the exchange API expects it."""
        o = self.order
        return {
            "salt": o.salt,
            "maker": o.maker,
            "signer": o.signer,
            "taker": o.taker,
            "tokenId": str(o.token_id),
            "makerAmount": str(o.maker_amount),
            "takerAmount": str(o.taker_amount),
            "expiration": str(o.expiration),
            "nonce": str(o.nonce),
            "feeRateBps": str(o.fee_rate_bps),
            "side": o.side.name,
            "signatureType": o.signature_type,
            "signature": self.signature,
        }

    def to_post_body(self, owner: str) -> dict[str, Any]:
        """Body for ``POST /order``; ``owner`` is the API key."""
        return {
            "order": self.to_wire(),
            "owner": owner,
            "orderType": self.order.order_type.value,
        }


class OrderRequest(BaseModel):
    """Request to place a limit order."""

    token_id: str
    side: Side
    price: Decimal = Field(description="Price from 0 to 1 exclusive, checked after tick rounding")
    size: Decimal = Field(gt=0, description="Order size in shares")
    order_type: OrderType = OrderType.GTC
    expiration: int = Field(0, ge=0, description="Unix seconds, 0 = none")
    nonce: int = Field(0, ge=0)

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v: Any) -> Side:
        return Side.parse(v)

    @field_validator("order_type", mode="before")
    @classmethod
    def normalize_order_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.upper()
        return v

    @field_validator("token_id")
    @classmethod
    def numeric_token_id(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError(f"Invalid token id: {v}. Must be a decimal integer")
        return v


class MarketOrderRequest(BaseModel):
    """
    Request to place a market order.

    ``amount`` is collateral (USDC) to spend for BUY and shares to sell for
    SELL. ``price`` is an optional worst acceptable price; when omitted it
    is computed from the order book.
    """

    token_id: str
    side: Side
    amount: Decimal = Field(gt=0)
    price: Decimal | None = None
    order_type: OrderType = OrderType.FOK
    nonce: int = Field(0, ge=0)

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v: Any) -> Side:
        return Side.parse(v)

    @field_validator("order_type", mode="before")
    @classmethod
    def normalize_order_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.upper()
        return v

    @field_validator("order_type")
    @classmethod
    def market_order_type(cls, v: OrderType) -> OrderType:
        if not v.is_market:
            raise ValueError("Market orders must be FOK or FAK")
        return v

    @field_validator("token_id")
    @classmethod
    def numeric_token_id(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError(f"Invalid token id: {v}. Must be a decimal integer")
        return v


class TickSize(BaseModel):
    """Response from ``GET /tick-size``."""

    minimum_tick_size: Decimal

    model_config = ConfigDict(extra="ignore")


class PriceLevel(BaseModel):
    price: Decimal
    size: Decimal


class OrderBookSummary(BaseModel):
    """Order book snapshot from ``GET /book``."""

    asset_id: str | None = None
    market: str | None = None
    bids: list[PriceLevel] = []
    asks: list[PriceLevel] = []
    tick_size: Decimal | None = None
    neg_risk: bool | None = None

    model_config = ConfigDict(extra="ignore")


class OrderResponse(BaseModel):
    """Response from posting or cancelling an order."""

    order_id: str
    status: str
    accepted: bool
    raw_response: dict
    error_message: str | None = None


class BatchItemResult(BaseModel):
    """Outcome of one item in a batch; failures never abort the batch."""

    index: int
    ok: bool
    value: Any = None
    error: dict | None = None
