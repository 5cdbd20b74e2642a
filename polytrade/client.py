"""CLOB API client: market metadata, credentials and order submission."""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Any, Callable, Iterable, TypeVar

import requests

from polytrade.auth import ApiCredentials
from polytrade.exceptions import (
    AuthError,
    CredentialDerivationFailed,
    NetworkError,
    PolytradeError,
    RateLimitError,
    UpstreamAPIError,
    ValidationError,
)
from polytrade.models import (
    BatchItemResult,
    OrderBookSummary,
    OrderResponse,
    SignedOrder,
    TickSize,
)
from polytrade.signing.headers import l1_headers, l2_headers, serialize_body
from polytrade.signing.typed_data import TypedDataSigner
from polytrade.utils.logging import get_logger
from polytrade.utils.retry import retry

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_WORKERS = 4


def dispatch_batch(
    items: Iterable[T],
    func: Callable[[T], Any],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[BatchItemResult]:
    """
    Run ``func`` over ``items`` concurrently.

    Items share no state, so each one succeeds or fails on its own. Results
    come back in input order, one per item.
    """
    items = list(items)
    if not items:
        return []

    def run(index: int, item: T) -> BatchItemResult:
        try:
            return BatchItemResult(index=index, ok=True, value=func(item))
        except PolytradeError as e:
            logger.warning(f"Batch item {index} failed: {e}")
            return BatchItemResult(index=index, ok=False, error=e.to_dict())

    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as pool:
        futures = [pool.submit(run, index, item) for index, item in enumerate(items)]
        return [future.result() for future in futures]


class ClobClient:
    """
    Client for the exchange's CLOB API.

    Public endpoints need nothing; credential endpoints need a signer
    (L1 headers); order endpoints need a signer and API credentials
    (L2 headers). Headers are rebuilt on every attempt, retries included.
    """

    def __init__(
        self,
        host: str,
        chain_id: int,
        signer: TypedDataSigner | None = None,
        creds: ApiCredentials | None = None,
        timeout: float = 30,
        session: requests.Session | None = None,
    ):
        self._host = host.rstrip("/")
        self._chain_id = chain_id
        self._signer = signer
        self._creds = creds
        self._timeout = timeout
        self._session = session or requests.Session()

        self._tick_sizes: dict[str, Decimal] = {}
        self._neg_risk: dict[str, bool] = {}
        self._fee_rates: dict[str, int] = {}

        logger.debug(f"Initialized ClobClient for {self._host} (chain {chain_id})")

    @property
    def creds(self) -> ApiCredentials | None:
        return self._creds

    def set_api_creds(self, creds: ApiCredentials) -> None:
        self._creds = creds

    def _headers(self, auth: str | None, method: str, path: str, body: str, nonce: int) -> dict:
        if auth is None:
            return {}
        if self._signer is None:
            raise AuthError("A signing key is required for this request")
        if auth == "l1":
            return l1_headers(self._signer, self._chain_id, nonce=nonce)
        if self._creds is None:
            raise AuthError(
                "API credentials required; run `polytrade clob api-key` "
                "or set POLYMARKET_API_KEY/_SECRET/_PASSPHRASE"
            )
        return l2_headers(self._creds, self._signer.address, method, path, body)

    @retry(max_attempts=3, initial_delay=1.0)
    def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        body: Any = None,
        auth: str | None = None,
        nonce: int = 0,
    ) -> Any:
        """
        Send one request and decode the JSON response.

        Args:
            method: HTTP method
            path: Endpoint path; this exact string is signed for L2
            params: Query parameters
            body: JSON body, serialized once so the signed text is what is sent
            auth: None, "l1" or "l2"
            nonce: L1 nonce

        Raises:
            AuthError: 401/403
            RateLimitError: 429
            UpstreamAPIError: 5xx
            ValidationError: other 4xx
            NetworkError: timeout or connection failure
        """
        data = serialize_body(body)
        headers = self._headers(auth, method, path, data, nonce)
        if data:
            headers["Content-Type"] = "application/json"

        url = f"{self._host}{path}"
        logger.debug(f"{method} {url} params={params}")
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                data=data or None,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.exceptions.Timeout:
            raise NetworkError(f"Request timeout: {method} {path}")
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(f"Connection error: {e}")

        status = response.status_code
        if status in (401, 403):
            raise AuthError(f"Authentication failed: {status}", {"path": path})
        if status == 429:
            raise RateLimitError("Rate limit exceeded", {"path": path})
        if status >= 500:
            raise UpstreamAPIError(f"Server error: {status}", {"path": path})
        if status >= 400:
            raise ValidationError(
                f"Request rejected: {status}",
                {"path": path, "response": response.text[:200]},
            )
        return response.json() if response.content else {}

    # Market metadata

    def get_tick_size(self, token_id: str) -> Decimal:
        if token_id not in self._tick_sizes:
            data = self._request("GET", "/tick-size", params={"token_id": token_id})
            self._tick_sizes[token_id] = TickSize(**data).minimum_tick_size
        return self._tick_sizes[token_id]

    def get_neg_risk(self, token_id: str) -> bool:
        if token_id not in self._neg_risk:
            data = self._request("GET", "/neg-risk", params={"token_id": token_id})
            self._neg_risk[token_id] = bool(data["neg_risk"])
        return self._neg_risk[token_id]

    def get_fee_rate_bps(self, token_id: str) -> int:
        if token_id not in self._fee_rates:
            data = self._request("GET", "/fee-rate", params={"token_id": token_id})
            self._fee_rates[token_id] = int(data.get("base_fee", 0))
        return self._fee_rates[token_id]

    def get_order_book(self, token_id: str) -> OrderBookSummary:
        data = self._request("GET", "/book", params={"token_id": token_id})
        return OrderBookSummary(**data)

    # Credentials

    def create_api_key(self, nonce: int = 0) -> ApiCredentials:
        data = self._request("POST", "/auth/api-key", auth="l1", nonce=nonce)
        return ApiCredentials.from_response(data)

    def derive_api_key(self, nonce: int = 0) -> ApiCredentials:
        data = self._request("GET", "/auth/derive-api-key", auth="l1", nonce=nonce)
        return ApiCredentials.from_response(data)

    def create_or_derive_api_creds(self, nonce: int = 0) -> ApiCredentials:
        """
        Create API credentials, or derive the existing set for this key.

        Creating for a key that already has credentials fails server-side;
        that is expected and answered by deriving instead.
        """
        try:
            creds = self.create_api_key(nonce)
            logger.info("Created new API credentials")
            return creds
        except (PolytradeError, KeyError) as e:
            logger.info(f"API key creation failed ({e}); deriving existing key")

        try:
            creds = self.derive_api_key(nonce)
        except (PolytradeError, KeyError) as e:
            raise CredentialDerivationFailed(
                "Could not create or derive API credentials", {"reason": str(e)}
            ) from e
        logger.info("Derived existing API credentials")
        return creds

    def get_api_keys(self) -> list[str]:
        data = self._request("GET", "/auth/api-keys", auth="l2")
        return list(data.get("apiKeys", []))

    # Orders

    def post_order(self, signed: SignedOrder) -> OrderResponse:
        if self._creds is None:
            raise AuthError("API credentials required to post orders")
        body = signed.to_post_body(self._creds.api_key)
        result = self._request("POST", "/order", body=body, auth="l2")
        accepted = bool(result.get("success", False))
        return OrderResponse(
            order_id=result.get("orderID", ""),
            status=result.get("status", "posted" if accepted else "failed"),
            accepted=accepted,
            raw_response=result,
            error_message=result.get("errorMsg") or None,
        )

    def post_orders(
        self,
        orders: Iterable[SignedOrder],
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> list[BatchItemResult]:
        return dispatch_batch(orders, self.post_order, max_workers)

    def cancel_order(self, order_id: str) -> OrderResponse:
        result = self._request("DELETE", "/order", body={"orderID": order_id}, auth="l2")
        canceled = result.get("canceled", [])
        return OrderResponse(
            order_id=order_id,
            status="canceled" if order_id in canceled else "not_canceled",
            accepted=order_id in canceled,
            raw_response=result,
            error_message=(result.get("not_canceled") or {}).get(order_id),
        )

    def cancel_orders(
        self,
        order_ids: Iterable[str],
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> list[BatchItemResult]:
        return dispatch_batch(order_ids, self.cancel_order, max_workers)
