"""
Polygon JSON-RPC transport.

Signs contract calls locally with the resolved key and broadcasts the raw
transaction; the key never leaves the process. Calls are routed according
to the signature type:

- EOA: each call is sent as its own transaction from the key's address
- Proxy: each call is wrapped in its own ``proxy(...)`` call on the
  proxy-wallet factory, which executes it from the proxy wallet
- GnosisSafe: not supported; Safe transactions need the Safe's own
  multi-signature flow
"""

import itertools
import time
from dataclasses import dataclass
from typing import Any

import requests
from eth_utils import to_hex

from polytrade.auth import EffectiveIdentity, SignatureType
from polytrade.ctf import ContractCall, OnChainTxBuilder
from polytrade.exceptions import (
    ConfigError,
    NetworkError,
    RateLimitError,
    TransactionFailed,
    UpstreamAPIError,
)
from polytrade.utils.logging import get_logger
from polytrade.utils.retry import retry

logger = get_logger(__name__)

GAS_MULTIPLIER = 1.2


@dataclass(frozen=True)
class TxResult:
    tx_hash: str
    description: str
    status: str = "submitted"
    block_number: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "description": self.description,
            "status": self.status,
            "block_number": self.block_number,
        }


class RpcClient:
    """Minimal JSON-RPC client over a requests session."""

    def __init__(self, url: str, timeout: float = 30, session: requests.Session | None = None):
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    @retry(max_attempts=3, initial_delay=1.0)
    def call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        logger.debug(f"RPC {method}")
        try:
            response = self._session.post(self._url, json=payload, timeout=self._timeout)
        except requests.exceptions.Timeout:
            raise NetworkError(f"RPC timeout calling {method}")
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(f"RPC connection error: {e}")

        if response.status_code == 429:
            raise RateLimitError("RPC rate limit exceeded", {"method": method})
        if response.status_code >= 500:
            raise UpstreamAPIError(
                f"RPC server error: {response.status_code}", {"method": method}
            )
        if response.status_code >= 400:
            raise TransactionFailed(
                f"RPC request rejected: {response.status_code}", {"method": method}
            )

        body = response.json()
        if body.get("error"):
            error = body["error"]
            raise TransactionFailed(
                error.get("message", "RPC error"),
                {"method": method, "code": error.get("code")},
            )
        return body.get("result")

    def chain_id(self) -> int:
        return int(self.call("eth_chainId", []), 16)

    def get_transaction_count(self, address: str) -> int:
        return int(self.call("eth_getTransactionCount", [address, "pending"]), 16)

    def gas_price(self) -> int:
        return int(self.call("eth_gasPrice", []), 16)

    def estimate_gas(self, tx: dict[str, Any]) -> int:
        return int(self.call("eth_estimateGas", [tx]), 16)

    def send_raw_transaction(self, raw: str) -> str:
        return self.call("eth_sendRawTransaction", [raw])

    def get_transaction_receipt(self, tx_hash: str) -> dict | None:
        return self.call("eth_getTransactionReceipt", [tx_hash])

    def wait_for_receipt(
        self,
        tx_hash: str,
        max_polls: int = 30,
        poll_interval: float = 2.0,
    ) -> dict | None:
        """Poll until the transaction is mined; None on timeout."""
        for _ in range(max_polls):
            receipt = self.get_transaction_receipt(tx_hash)
            if receipt is not None:
                return receipt
            time.sleep(poll_interval)
        return None


def route_calls(
    signature_type: SignatureType,
    builder: OnChainTxBuilder,
    calls: list[ContractCall],
) -> list[ContractCall]:
    """
    The transactions to actually send for ``calls`` under ``signature_type``.

    Proxy wallets get one ``proxy(...)`` transaction per call, so a revert
    in one call leaves the others in place.
    """
    if signature_type is SignatureType.PROXY:
        return [builder.wrap_for_proxy([call]) for call in calls]
    if signature_type is SignatureType.GNOSIS_SAFE:
        raise ConfigError(
            "On-chain calls from a Gnosis Safe must go through the Safe itself"
        )
    return list(calls)


def send_call(
    rpc: RpcClient,
    identity: EffectiveIdentity,
    call: ContractCall,
    wait: bool = True,
) -> TxResult:
    """Sign ``call`` with the identity's key and broadcast it."""
    sender = identity.signer_address
    tx = {
        "from": sender,
        "to": call.to,
        "data": to_hex(call.data),
        "value": call.value,
    }
    gas = int(rpc.estimate_gas({**tx, "value": hex(call.value)}) * GAS_MULTIPLIER)
    tx.pop("from")
    tx.update(
        nonce=rpc.get_transaction_count(sender),
        gas=gas,
        gasPrice=rpc.gas_price(),
        chainId=identity.chain.chain_id,
    )
    signed = identity.key.sign_transaction(tx)
    tx_hash = rpc.send_raw_transaction(to_hex(signed.raw_transaction))
    logger.info(f"Sent {call.function} tx {tx_hash}")

    if not wait:
        return TxResult(tx_hash=tx_hash, description=call.description)

    receipt = rpc.wait_for_receipt(tx_hash)
    if receipt is None:
        return TxResult(tx_hash=tx_hash, description=call.description, status="pending")
    block = int(receipt["blockNumber"], 16)
    if int(receipt.get("status", "0x1"), 16) != 1:
        raise TransactionFailed(
            f"{call.function} reverted", {"tx_hash": tx_hash, "block": block}
        )
    return TxResult(
        tx_hash=tx_hash, description=call.description, status="confirmed", block_number=block
    )


def send_calls(
    rpc: RpcClient,
    identity: EffectiveIdentity,
    builder: OnChainTxBuilder,
    calls: list[ContractCall],
    wait: bool = True,
) -> list[TxResult]:
    """Route and send calls in order, stopping at the first failure."""
    routed = route_calls(identity.signature_type, builder, calls)
    return [send_call(rpc, identity, tx, wait=wait) for tx in routed]
