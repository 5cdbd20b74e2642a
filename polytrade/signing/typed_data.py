"""
EIP-712 typed-data hashing and signing.

Two payloads are signed:

- ``Order`` against the exchange domain (``Polymarket CTF Exchange``), whose
  verifying contract is the exchange or, for negative-risk markets, the
  neg-risk exchange.
- ``ClobAuth`` against the ``ClobAuthDomain`` domain, used once to obtain
  L2 API credentials.

The hash committed to is ``keccak256(0x19 0x01 ++ domainSeparator ++
hashStruct(message))``. Field names, types and order below must match the
exchange's verifier exactly.

Functions:
    exchange_domain: Order domain for a chain
    clob_auth_domain: Auth domain for a chain
    encode_typed: Build an eth-account SignableMessage
    typed_data_hash: The 32-byte digest that is actually signed
    recover_signer: Address that produced a signature
    verify_order: Recompute an order's hash and check its signature

Classes:
    TypedDataDomain: Domain separator inputs
    TypedDataSigner: Signs orders and auth messages with a KeyMaterial
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from eth_account import Account
from eth_abi.exceptions import EncodingError
from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import keccak, to_checksum_address, to_hex

from polytrade.config import ChainConfig
from polytrade.exceptions import EncodingFailed
from polytrade.models import Order, SignedOrder

if TYPE_CHECKING:
    from polytrade.auth import KeyMaterial

logger = structlog.get_logger(__name__)

EXCHANGE_DOMAIN_NAME = "Polymarket CTF Exchange"
CLOB_AUTH_DOMAIN_NAME = "ClobAuthDomain"
DOMAIN_VERSION = "1"

CLOB_AUTH_MESSAGE = "This message attests that I control the given wallet"

ORDER_TYPES = [
    {"name": "salt", "type": "uint256"},
    {"name": "maker", "type": "address"},
    {"name": "signer", "type": "address"},
    {"name": "taker", "type": "address"},
    {"name": "tokenId", "type": "uint256"},
    {"name": "makerAmount", "type": "uint256"},
    {"name": "takerAmount", "type": "uint256"},
    {"name": "expiration", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "feeRateBps", "type": "uint256"},
    {"name": "side", "type": "uint8"},
    {"name": "signatureType", "type": "uint8"},
]

CLOB_AUTH_TYPES = [
    {"name": "address", "type": "address"},
    {"name": "timestamp", "type": "string"},
    {"name": "nonce", "type": "uint256"},
    {"name": "message", "type": "string"},
]


@dataclass(frozen=True)
class TypedDataDomain:
    name: str
    version: str
    chain_id: int
    verifying_contract: str | None = None

    def types(self) -> list[dict[str, str]]:
        fields = [
            {"name": "name", "type": "string"},
            {"name": "version", "type": "string"},
            {"name": "chainId", "type": "uint256"},
        ]
        if self.verifying_contract is not None:
            fields.append({"name": "verifyingContract", "type": "address"})
        return fields

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
        }
        if self.verifying_contract is not None:
            data["verifyingContract"] = self.verifying_contract
        return data


def exchange_domain(chain: ChainConfig, neg_risk: bool = False) -> TypedDataDomain:
    """Domain for order signing; neg-risk markets verify on a separate exchange."""
    return TypedDataDomain(
        name=EXCHANGE_DOMAIN_NAME,
        version=DOMAIN_VERSION,
        chain_id=chain.chain_id,
        verifying_contract=chain.neg_risk_exchange if neg_risk else chain.exchange,
    )


def clob_auth_domain(chain_id: int) -> TypedDataDomain:
    return TypedDataDomain(
        name=CLOB_AUTH_DOMAIN_NAME,
        version=DOMAIN_VERSION,
        chain_id=chain_id,
    )


def encode_typed(
    domain: TypedDataDomain,
    primary_type: str,
    fields: list[dict[str, str]],
    message: dict[str, Any],
) -> SignableMessage:
    """Build the EIP-712 signable message for ``message``."""
    full_message = {
        "types": {
            "EIP712Domain": domain.types(),
            primary_type: fields,
        },
        "primaryType": primary_type,
        "domain": domain.to_dict(),
        "message": message,
    }
    try:
        return encode_typed_data(full_message=full_message)
    except (EncodingError, ValueError, TypeError, OverflowError) as e:
        raise EncodingFailed(
            f"Cannot encode {primary_type} typed data",
            {"reason": str(e)},
        ) from e


def typed_data_hash(signable: SignableMessage) -> bytes:
    """The digest an EIP-712 signature commits to."""
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def order_signable(order: Order, domain: TypedDataDomain) -> SignableMessage:
    return encode_typed(domain, "Order", ORDER_TYPES, order.struct())


def clob_auth_message(address: str, timestamp: int, nonce: int = 0) -> dict[str, Any]:
    return {
        "address": to_checksum_address(address),
        "timestamp": str(timestamp),
        "nonce": nonce,
        "message": CLOB_AUTH_MESSAGE,
    }


def recover_signer(signable: SignableMessage, signature: str | bytes) -> str:
    return Account.recover_message(signable, signature=signature)


def verify_order(signed: SignedOrder, domain: TypedDataDomain) -> bool:
    """
    Recompute the order hash from its fields and check the signature.

    True only when the recomputed hash equals the recorded one and the
    signature recovers to the order's ``signer``.
    """
    signable = order_signable(signed.order, domain)
    if to_hex(typed_data_hash(signable)) != signed.order_hash:
        return False
    recovered = recover_signer(signable, signed.signature)
    return recovered == to_checksum_address(signed.order.signer)


class TypedDataSigner:
    """
    Signs typed data with a KeyMaterial.

    The signer is always the key's own address. For Proxy and GnosisSafe
    orders the maker differs; the exchange resolves that mapping from the
    order's ``signatureType`` field, so the signing itself is identical.
    """

    def __init__(self, key: "KeyMaterial"):
        self._key = key

    @property
    def address(self) -> str:
        return self._key.address

    def sign(self, signable: SignableMessage) -> tuple[bytes, str]:
        """Return (digest, 0x-hex signature)."""
        signed = self._key.sign_message(signable)
        return typed_data_hash(signable), to_hex(signed.signature)

    def sign_order(self, order: Order, domain: TypedDataDomain) -> SignedOrder:
        if to_checksum_address(order.signer) != self.address:
            raise EncodingFailed(
                "Order signer does not match the signing key",
                {"signer": order.signer, "key": self.address},
            )
        digest, signature = self.sign(order_signable(order, domain))
        order_hash = to_hex(digest)
        logger.debug(
            "order_signed",
            order_hash=order_hash,
            maker=order.maker,
            signature_type=order.signature_type,
            verifying_contract=domain.verifying_contract,
        )
        return SignedOrder(order=order, order_hash=order_hash, signature=signature)

    def sign_clob_auth(self, chain_id: int, timestamp: int, nonce: int = 0) -> str:
        """Signature over the fixed ClobAuth attestation."""
        signable = encode_typed(
            clob_auth_domain(chain_id),
            "ClobAuth",
            CLOB_AUTH_TYPES,
            clob_auth_message(self.address, timestamp, nonce),
        )
        _, signature = self.sign(signable)
        return signature
