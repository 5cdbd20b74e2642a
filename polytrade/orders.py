"""
Order construction.

Turns user intent (token, side, price/size or notional amount, order type,
expiration) into a fully populated ``Order`` and signs it. Market metadata
(tick size, neg-risk flag, fee rate, order book) comes from a collaborator
implementing ``MarketMetadata``; the CLOB client does, and tests use fakes.

Amounts follow the exchange's rounding table, keyed by tick size:

    tick     price  size  amount   (decimal places)
    0.1      1      2     3
    0.01     2      2     4
    0.001    3      2     5
    0.0001   4      2     6

BUY:  makerAmount = collateral paid, takerAmount = shares received
SELL: makerAmount = shares given,   takerAmount = collateral received
Both are expressed in 6-decimal base units.
"""

import secrets
import time
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal
from typing import Callable, Iterable, Protocol

import structlog

from polytrade.auth import EffectiveIdentity
from polytrade.exceptions import (
    MissingExpiration,
    PolytradeError,
    PriceOutOfRange,
    ValidationError,
)
from polytrade.models import (
    ZERO_ADDRESS,
    BatchItemResult,
    MarketOrderRequest,
    Order,
    OrderBookSummary,
    OrderRequest,
    OrderType,
    Side,
    SignedOrder,
)
from polytrade.signing.typed_data import TypedDataSigner, exchange_domain

logger = structlog.get_logger(__name__)

COLLATERAL_DECIMALS = 6
MAX_SALT = 2**53 - 1


@dataclass(frozen=True)
class RoundConfig:
    price: int
    size: int
    amount: int


ROUNDING_CONFIG: dict[Decimal, RoundConfig] = {
    Decimal("0.1"): RoundConfig(price=1, size=2, amount=3),
    Decimal("0.01"): RoundConfig(price=2, size=2, amount=4),
    Decimal("0.001"): RoundConfig(price=3, size=2, amount=5),
    Decimal("0.0001"): RoundConfig(price=4, size=2, amount=6),
}


class MarketMetadata(Protocol):
    def get_tick_size(self, token_id: str) -> Decimal: ...

    def get_neg_risk(self, token_id: str) -> bool: ...

    def get_fee_rate_bps(self, token_id: str) -> int: ...

    def get_order_book(self, token_id: str) -> OrderBookSummary: ...


def rounding_for(tick_size: Decimal) -> RoundConfig:
    try:
        return ROUNDING_CONFIG[Decimal(tick_size).normalize()]
    except KeyError:
        raise ValidationError(
            "Unsupported tick size",
            {"tick_size": tick_size, "supported": ",".join(str(t) for t in ROUNDING_CONFIG)},
        ) from None


def decimal_places(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    return max(0, -exponent)


def round_down(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)


def round_up(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_UP)


def normalize_price(price: Decimal, tick_size: Decimal) -> Decimal:
    """
    Round ``price`` to the nearest multiple of ``tick_size``.

    Idempotent: a tick-aligned price is returned unchanged.

    Raises:
        PriceOutOfRange: the rounded price is not strictly between 0 and 1
    """
    tick = Decimal(tick_size)
    ticks = (Decimal(price) / tick).to_integral_value(rounding=ROUND_HALF_UP)
    rounded = (ticks * tick).quantize(tick)
    if not Decimal(0) < rounded < Decimal(1):
        raise PriceOutOfRange(
            "Price must be between 0 and 1 after tick rounding",
            {"price": price, "rounded": rounded, "tick_size": tick},
        )
    return rounded


def fit_amount(value: Decimal, places: int) -> Decimal:
    """Trim a derived amount to at most ``places`` decimals."""
    if decimal_places(value) > places:
        value = round_up(value, places + 4)
        if decimal_places(value) > places:
            value = round_down(value, places)
    return value


def to_base_units(value: Decimal, decimals: int = COLLATERAL_DECIMALS) -> int:
    return int((value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_HALF_UP))


def limit_amounts(
    side: Side, size: Decimal, price: Decimal, config: RoundConfig
) -> tuple[int, int]:
    """(makerAmount, takerAmount) in base units for a limit order."""
    shares = round_down(size, config.size)
    if shares <= 0:
        raise ValidationError("Order size rounds to zero", {"size": size})
    collateral = fit_amount(shares * price, config.amount)
    if side is Side.BUY:
        return to_base_units(collateral), to_base_units(shares)
    return to_base_units(shares), to_base_units(collateral)


def market_amounts(
    side: Side, amount: Decimal, price: Decimal, config: RoundConfig
) -> tuple[int, int]:
    """(makerAmount, takerAmount) for a market order of ``amount``."""
    maker = round_down(amount, config.size)
    if maker <= 0:
        raise ValidationError("Order amount rounds to zero", {"amount": amount})
    if side is Side.BUY:
        taker = fit_amount(maker / price, config.amount)
    else:
        taker = fit_amount(maker * price, config.amount)
    return to_base_units(maker), to_base_units(taker)


def market_price(
    book: OrderBookSummary,
    side: Side,
    amount: Decimal,
    order_type: OrderType,
) -> Decimal:
    """
    Worst price needed to fill ``amount`` against the opposite book side.

    BUY walks asks from the lowest price, summing notional (size * price);
    SELL walks bids from the highest price, summing shares. If the book
    cannot cover the amount, FOK fails and FAK accepts the deepest level.
    """
    if side is Side.BUY:
        levels = sorted(book.asks, key=lambda level: level.price)
    else:
        levels = sorted(book.bids, key=lambda level: level.price, reverse=True)
    if not levels:
        raise ValidationError("No liquidity on the order book", {"side": side.name})

    filled = Decimal(0)
    for level in levels:
        filled += level.size * level.price if side is Side.BUY else level.size
        if filled >= amount:
            return level.price

    if order_type is OrderType.FOK:
        raise ValidationError(
            "Insufficient liquidity to fill FOK order",
            {"requested": amount, "available": filled},
        )
    return levels[-1].price


def generate_salt() -> int:
    """Fresh nonzero random salt that fits a JSON number."""
    return secrets.randbelow(MAX_SALT) + 1


class OrderBuilder:
    """
    Builds and signs orders for one EffectiveIdentity.

    Each call builds its order independently; nothing is shared between
    orders except read-only metadata lookups.
    """

    def __init__(
        self,
        identity: EffectiveIdentity,
        market: MarketMetadata,
        salt_factory: Callable[[], int] = generate_salt,
        clock: Callable[[], float] = time.time,
    ):
        self._identity = identity
        self._market = market
        self._salt_factory = salt_factory
        self._clock = clock
        self._signer = TypedDataSigner(identity.key)

    def _check_expiration(self, order_type: OrderType, expiration: int) -> None:
        if order_type is OrderType.GTD:
            if expiration <= 0:
                raise MissingExpiration("GTD orders require an expiration")
            if expiration <= int(self._clock()):
                raise ValidationError(
                    "Expiration is in the past", {"expiration": expiration}
                )
        elif expiration != 0:
            raise ValidationError(
                "Only GTD orders may set an expiration",
                {"order_type": order_type.value},
            )

    def _order(
        self,
        token_id: str,
        side: Side,
        maker_amount: int,
        taker_amount: int,
        price: Decimal,
        size: Decimal,
        order_type: OrderType,
        expiration: int,
        nonce: int,
        neg_risk: bool,
    ) -> Order:
        identity = self._identity
        salt = self._salt_factory()
        if salt <= 0:
            raise ValidationError("Salt must be nonzero")
        return Order(
            salt=salt,
            maker=identity.maker_address,
            signer=identity.signer_address,
            taker=ZERO_ADDRESS,
            token_id=int(token_id),
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            expiration=expiration,
            nonce=nonce,
            fee_rate_bps=self._market.get_fee_rate_bps(token_id),
            side=side,
            signature_type=identity.signature_type.signing_domain_adjustment(),
            price=price,
            size=size,
            order_type=order_type,
            neg_risk=neg_risk,
        )

    def build_limit(self, request: OrderRequest) -> Order:
        """Unsigned limit order from a price and share size."""
        self._check_expiration(request.order_type, request.expiration)
        tick_size = self._market.get_tick_size(request.token_id)
        config = rounding_for(tick_size)
        price = normalize_price(request.price, tick_size)
        maker_amount, taker_amount = limit_amounts(
            request.side, request.size, price, config
        )
        order = self._order(
            token_id=request.token_id,
            side=request.side,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            price=price,
            size=round_down(request.size, config.size),
            order_type=request.order_type,
            expiration=request.expiration,
            nonce=request.nonce,
            neg_risk=self._market.get_neg_risk(request.token_id),
        )
        logger.info(
            "order_built",
            token_id=request.token_id,
            side=request.side.name,
            price=str(price),
            size=str(order.size),
            order_type=order.order_type.value,
        )
        return order

    def build_market(self, request: MarketOrderRequest) -> Order:
        """Unsigned market order from a notional amount."""
        tick_size = self._market.get_tick_size(request.token_id)
        config = rounding_for(tick_size)
        raw_price = request.price
        if raw_price is None:
            book = self._market.get_order_book(request.token_id)
            raw_price = market_price(book, request.side, request.amount, request.order_type)
        price = normalize_price(raw_price, tick_size)
        maker_amount, taker_amount = market_amounts(
            request.side, request.amount, price, config
        )
        shares = taker_amount if request.side is Side.BUY else maker_amount
        order = self._order(
            token_id=request.token_id,
            side=request.side,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            price=price,
            size=Decimal(shares) / (Decimal(10) ** COLLATERAL_DECIMALS),
            order_type=request.order_type,
            expiration=0,
            nonce=request.nonce,
            neg_risk=self._market.get_neg_risk(request.token_id),
        )
        logger.info(
            "market_order_built",
            token_id=request.token_id,
            side=request.side.name,
            amount=str(request.amount),
            price=str(price),
            order_type=order.order_type.value,
        )
        return order

    def sign(self, order: Order) -> SignedOrder:
        domain = exchange_domain(self._identity.chain, neg_risk=order.neg_risk)
        return self._signer.sign_order(order, domain)

    def create_order(self, request: OrderRequest) -> SignedOrder:
        return self.sign(self.build_limit(request))

    def create_market_order(self, request: MarketOrderRequest) -> SignedOrder:
        return self.sign(self.build_market(request))

    def create_orders(
        self, requests: Iterable[OrderRequest | MarketOrderRequest]
    ) -> list[BatchItemResult]:
        """Build and sign each request on its own; failures are per item."""
        results = []
        for index, request in enumerate(requests):
            try:
                if isinstance(request, MarketOrderRequest):
                    signed = self.create_market_order(request)
                else:
                    signed = self.create_order(request)
            except PolytradeError as e:
                logger.warning("batch_order_failed", index=index, error=e.kind)
                results.append(BatchItemResult(index=index, ok=False, error=e.to_dict()))
            else:
                results.append(BatchItemResult(index=index, ok=True, value=signed))
        return results
