"""
Conditional Token Framework call encoding.

Builds calldata for the on-chain side of trading: token approvals for the
exchange contracts, splitting collateral into outcome tokens, merging them
back, and redeeming after resolution. Nothing here talks to the network;
``polytrade.rpc`` signs and broadcasts the resulting calls.

Also computes the CTF identifiers offline:

    conditionId  = keccak256(oracle ++ questionId ++ outcomeSlotCount)
    collectionId = alt_bn128 point encoding of (conditionId, indexSet),
                   added to the parent collection's point when nested
    positionId   = uint256(keccak256(collateral ++ collectionId))

Example:
    >>> builder = OnChainTxBuilder(get_chain_config(137))
    >>> calls = builder.approval_calls()
    >>> len(calls)
    6
"""

from dataclasses import dataclass
from typing import Any, Iterable

import structlog
from eth_abi import encode as abi_encode
from eth_abi.exceptions import EncodingError
from eth_utils import keccak, to_canonical_address, to_hex
from py_ecc.bn128 import FQ, add, field_modulus

from polytrade.config import ChainConfig, ContractRole
from polytrade.exceptions import EncodingFailed
from polytrade.utils.parsing import ZERO_BYTES32

logger = structlog.get_logger(__name__)

MAX_UINT256 = 2**256 - 1

# Binary market partition: [1, 2] = [YES, NO]
BINARY_PARTITION = (1, 2)

APPROVE = "approve(address,uint256)"
SET_APPROVAL_FOR_ALL = "setApprovalForAll(address,bool)"
SPLIT_POSITION = "splitPosition(address,bytes32,bytes32,uint256[],uint256)"
MERGE_POSITIONS = "mergePositions(address,bytes32,bytes32,uint256[],uint256)"
REDEEM_POSITIONS = "redeemPositions(address,bytes32,bytes32,uint256[])"
REDEEM_NEG_RISK = "redeemPositions(bytes32,uint256[])"
PROXY = "proxy((uint8,address,uint256,bytes)[])"

# Proxy wallet call type: plain CALL (not DELEGATECALL)
PROXY_CALL = 1

# alt_bn128: y^2 = x^3 + 3 over the base field
BN128_B = 3


def selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


def _arg_types(signature: str) -> list[str]:
    inner = signature[signature.index("(") + 1 : -1]
    if inner.startswith("("):
        return [inner]
    return inner.split(",") if inner else []


def encode_call(signature: str, args: list[Any]) -> bytes:
    """
    4-byte selector followed by the ABI-encoded arguments.

    Raises:
        EncodingFailed: an argument does not fit its ABI type
    """
    try:
        return selector(signature) + abi_encode(_arg_types(signature), args)
    except (EncodingError, TypeError, ValueError, OverflowError) as e:
        raise EncodingFailed(
            f"Cannot encode {signature.split('(')[0]} call", {"reason": str(e)}
        ) from e


@dataclass(frozen=True)
class ContractCall:
    """One encoded contract call, ready to be sent as a transaction."""

    to: str
    data: bytes
    function: str
    description: str = ""
    value: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "function": self.function,
            "description": self.description,
            "value": self.value,
            "data": to_hex(self.data),
        }


def _bytes32(value: bytes, name: str) -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != 32:
        raise EncodingFailed(f"{name} must be 32 bytes")
    return bytes(value)


def validate_partition(partition: Iterable[int], min_size: int = 2) -> list[int]:
    """
    Index sets must be positive and pairwise disjoint.

    Raises:
        EncodingFailed: empty or too short, non-positive or overlapping sets
    """
    sets = [int(s) for s in partition]
    if len(sets) < min_size:
        raise EncodingFailed(
            f"Partition needs at least {min_size} index sets", {"partition": sets}
        )
    seen = 0
    for index_set in sets:
        if index_set <= 0 or index_set > MAX_UINT256:
            raise EncodingFailed("Index sets must be positive", {"index_set": index_set})
        if seen & index_set:
            raise EncodingFailed("Index sets must be disjoint", {"partition": sets})
        seen |= index_set
    return sets


def _positive_amount(amount: int) -> int:
    if amount <= 0:
        raise EncodingFailed("Amount must be positive", {"amount": amount})
    return amount


class OnChainTxBuilder:
    """
    Encodes approval and position-management calls for one chain.

    Amounts are in collateral base units (6 decimals for USDC). Every
    method is a pure encoder; no call is checked against chain state.
    """

    def __init__(self, chain: ChainConfig):
        self.chain = chain

    def approval_calls(self) -> list[ContractCall]:
        """
        The six approvals trading needs.

        Collateral ``approve(MAX)`` and conditional-token
        ``setApprovalForAll(true)`` for each of the exchange, the neg-risk
        exchange and the neg-risk adapter.
        """
        chain = self.chain
        spenders = [
            ("CTF Exchange", chain.exchange),
            ("Neg Risk Exchange", chain.neg_risk_exchange),
            ("Neg Risk Adapter", chain.neg_risk_adapter),
        ]
        calls = []
        for name, spender in spenders:
            calls.append(
                ContractCall(
                    to=chain.collateral,
                    data=encode_call(APPROVE, [spender, MAX_UINT256]),
                    function="approve",
                    description=f"USDC allowance for {name}",
                )
            )
            calls.append(
                ContractCall(
                    to=chain.conditional_tokens,
                    data=encode_call(SET_APPROVAL_FOR_ALL, [spender, True]),
                    function="setApprovalForAll",
                    description=f"CTF operator approval for {name}",
                )
            )
        return calls

    def _position_call(
        self,
        signature: str,
        function: str,
        condition_id: bytes,
        amount: int,
        partition: Iterable[int] | None,
        collateral: str | None,
        parent_collection_id: bytes | None,
    ) -> ContractCall:
        sets = validate_partition(partition if partition is not None else BINARY_PARTITION)
        args = [
            collateral or self.chain.collateral,
            _bytes32(parent_collection_id or ZERO_BYTES32, "parent collection id"),
            _bytes32(condition_id, "condition id"),
            sets,
            _positive_amount(amount),
        ]
        logger.debug(function, condition_id=to_hex(condition_id), amount=amount, partition=sets)
        return ContractCall(
            to=self.chain.conditional_tokens,
            data=encode_call(signature, args),
            function=function,
            description=f"{function} {amount} base units over {sets}",
        )

    def split_position(
        self,
        condition_id: bytes,
        amount: int,
        partition: Iterable[int] | None = None,
        collateral: str | None = None,
        parent_collection_id: bytes | None = None,
    ) -> ContractCall:
        """Split ``amount`` of collateral into one token per index set."""
        return self._position_call(
            SPLIT_POSITION, "splitPosition", condition_id, amount,
            partition, collateral, parent_collection_id,
        )

    def merge_positions(
        self,
        condition_id: bytes,
        amount: int,
        partition: Iterable[int] | None = None,
        collateral: str | None = None,
        parent_collection_id: bytes | None = None,
    ) -> ContractCall:
        """Merge a full set of outcome tokens back into collateral."""
        return self._position_call(
            MERGE_POSITIONS, "mergePositions", condition_id, amount,
            partition, collateral, parent_collection_id,
        )

    def redeem_positions(
        self,
        condition_id: bytes,
        index_sets: Iterable[int] | None = None,
        collateral: str | None = None,
        parent_collection_id: bytes | None = None,
    ) -> ContractCall:
        """Redeem resolved outcome tokens; a single index set is allowed."""
        sets = validate_partition(
            index_sets if index_sets is not None else BINARY_PARTITION, min_size=1
        )
        args = [
            collateral or self.chain.collateral,
            _bytes32(parent_collection_id or ZERO_BYTES32, "parent collection id"),
            _bytes32(condition_id, "condition id"),
            sets,
        ]
        return ContractCall(
            to=self.chain.conditional_tokens,
            data=encode_call(REDEEM_POSITIONS, args),
            function="redeemPositions",
            description=f"redeem index sets {sets}",
        )

    def redeem_neg_risk(
        self,
        condition_id: bytes,
        amounts: list[int],
        outcome_count: int = 2,
    ) -> ContractCall:
        """
        Redeem through the neg-risk adapter.

        ``amounts`` holds one base-unit amount per outcome; zero is allowed
        for outcomes not held.

        Raises:
            EncodingFailed: amounts list empty, negative, or not one per outcome
        """
        if not amounts:
            raise EncodingFailed("Neg-risk redemption needs at least one amount")
        if len(amounts) != outcome_count:
            raise EncodingFailed(
                "Neg-risk redemption needs one amount per outcome",
                {"amounts": len(amounts), "outcomes": outcome_count},
            )
        if any(a < 0 for a in amounts):
            raise EncodingFailed("Amounts must be non-negative", {"amounts": amounts})
        return ContractCall(
            to=self.chain.neg_risk_adapter,
            data=encode_call(REDEEM_NEG_RISK, [_bytes32(condition_id, "condition id"), list(amounts)]),
            function="redeemPositions",
            description=f"neg-risk redeem {list(amounts)}",
        )

    def wrap_for_proxy(self, calls: list[ContractCall]) -> ContractCall:
        """
        Route calls through the caller's proxy wallet.

        The factory forwards ``proxy([...])`` to the proxy wallet owned by
        ``msg.sender``, which executes each call in order.
        """
        if not calls:
            raise EncodingFailed("Nothing to send through the proxy wallet")
        factory = self.chain.address(ContractRole.PROXY_FACTORY)
        batch = [(PROXY_CALL, call.to, call.value, call.data) for call in calls]
        return ContractCall(
            to=factory,
            data=encode_call(PROXY, [batch]),
            function="proxy",
            description="; ".join(call.description or call.function for call in calls),
        )


def condition_id(oracle: str, question_id: bytes, outcome_count: int) -> bytes:
    """keccak256(oracle ++ questionId ++ uint256(outcomeSlotCount))."""
    if not 1 < outcome_count <= 256:
        raise EncodingFailed(
            "Outcome count must be between 2 and 256", {"outcomes": outcome_count}
        )
    return keccak(
        to_canonical_address(oracle)
        + _bytes32(question_id, "question id")
        + outcome_count.to_bytes(32, "big")
    )


def _sqrt(yy: int) -> int:
    # field_modulus = 3 mod 4
    return pow(yy, (field_modulus + 1) // 4, field_modulus)


def _curve_rhs(x: int) -> int:
    return (x * x * x + BN128_B) % field_modulus


def _fix_parity(y: int, odd: bool) -> int:
    if odd != bool(y % 2):
        return field_modulus - y
    return y


def collection_id(
    condition: bytes,
    index_set: int,
    parent_collection_id: bytes | None = None,
) -> bytes:
    """
    Collection id as the ConditionalTokens contract computes it.

    The (condition, index set) hash is mapped onto an alt_bn128 point; a
    nested collection adds the parent's point. The result packs x with the
    parity of y in bit 254.

    Raises:
        EncodingFailed: index set is not positive, or parent is not a valid point
    """
    if index_set <= 0 or index_set > MAX_UINT256:
        raise EncodingFailed("Index set must be positive", {"index_set": index_set})

    x1 = int.from_bytes(
        keccak(_bytes32(condition, "condition id") + index_set.to_bytes(32, "big")), "big"
    )
    odd = bool(x1 >> 255)
    while True:
        x1 = (x1 + 1) % field_modulus
        yy = _curve_rhs(x1)
        y1 = _sqrt(yy)
        if (y1 * y1) % field_modulus == yy:
            break
    y1 = _fix_parity(y1, odd)

    x2 = int.from_bytes(_bytes32(parent_collection_id or ZERO_BYTES32, "parent collection id"), "big")
    if x2:
        odd = bool(x2 >> 254)
        x2 &= (1 << 254) - 1
        yy = _curve_rhs(x2)
        y2 = _fix_parity(_sqrt(yy), odd)
        if (y2 * y2) % field_modulus != yy:
            raise EncodingFailed("Invalid parent collection id")
        point = add((FQ(x1), FQ(y1)), (FQ(x2), FQ(y2)))
        # point at infinity encodes as (0, 0)
        x1, y1 = (point[0].n, point[1].n) if point is not None else (0, 0)

    if y1 % 2:
        x1 ^= 1 << 254
    return x1.to_bytes(32, "big")


def position_id(collateral: str, collection: bytes) -> int:
    """ERC-1155 token id of a position."""
    return int.from_bytes(
        keccak(to_canonical_address(collateral) + _bytes32(collection, "collection id")),
        "big",
    )
