# tests/test_typed_data.py
import pytest
from eth_abi import encode
from eth_account.messages import _hash_eip191_message
from eth_utils import keccak, to_hex
from polytrade.auth import KeyMaterial
from polytrade.exceptions import EncodingFailed
from polytrade.models import ZERO_ADDRESS, Order, Side
from polytrade.signing.typed_data import (
    CLOB_AUTH_TYPES,
    TypedDataSigner,
    clob_auth_domain,
    clob_auth_message,
    encode_typed,
    exchange_domain,
    order_signable,
    recover_signer,
    typed_data_hash,
    verify_order,
)

from tests.conftest import DOC_ADDRESS, DOC_KEY

DOMAIN_TYPE = "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
ORDER_TYPE = (
    "Order(uint256 salt,address maker,address signer,address taker,uint256 tokenId,"
    "uint256 makerAmount,uint256 takerAmount,uint256 expiration,uint256 nonce,"
    "uint256 feeRateBps,uint8 side,uint8 signatureType)"
)


@pytest.fixture
def doc_key():
    with KeyMaterial.from_hex(DOC_KEY) as key:
        yield key


def _order(**overrides):
    fields = dict(
        salt=123456789,
        maker=DOC_ADDRESS,
        signer=DOC_ADDRESS,
        taker=ZERO_ADDRESS,
        token_id=71321045679252212594626385532706912750332728571942532289631379312455583992563,
        maker_amount=5_000_000,
        taker_amount=10_000_000,
        expiration=0,
        nonce=0,
        fee_rate_bps=0,
        side=Side.BUY,
        signature_type=0,
    )
    fields.update(overrides)
    return Order(**fields)


def test_domain_separator_matches_manual_encoding(polygon):
    signable = order_signable(_order(), exchange_domain(polygon))
    expected = keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                keccak(text=DOMAIN_TYPE),
                keccak(text="Polymarket CTF Exchange"),
                keccak(text="1"),
                137,
                polygon.exchange,
            ],
        )
    )
    assert signable.header == expected


def test_order_struct_hash_matches_manual_encoding(polygon):
    order = _order(side=Side.SELL, fee_rate_bps=100, signature_type=1)
    signable = order_signable(order, exchange_domain(polygon))
    expected = keccak(
        encode(
            ["bytes32"] + ["uint256", "address", "address", "address"] + ["uint256"] * 6 + ["uint8", "uint8"],
            [
                keccak(text=ORDER_TYPE),
                order.salt,
                order.maker,
                order.signer,
                order.taker,
                order.token_id,
                order.maker_amount,
                order.taker_amount,
                order.expiration,
                order.nonce,
                order.fee_rate_bps,
                1,
                1,
            ],
        )
    )
    assert signable.body == expected


def test_typed_data_hash_is_what_gets_signed(polygon):
    signable = order_signable(_order(), exchange_domain(polygon))
    assert typed_data_hash(signable) == _hash_eip191_message(signable)


def test_neg_risk_domain_uses_neg_risk_exchange(polygon):
    assert exchange_domain(polygon).verifying_contract == polygon.exchange
    assert exchange_domain(polygon, neg_risk=True).verifying_contract == polygon.neg_risk_exchange


def test_sign_order_is_deterministic(doc_key, polygon):
    signer = TypedDataSigner(doc_key)
    first = signer.sign_order(_order(), exchange_domain(polygon))
    second = signer.sign_order(_order(), exchange_domain(polygon))
    assert first.signature == second.signature
    assert first.order_hash == second.order_hash
    assert len(bytes.fromhex(first.signature[2:])) == 65


def test_signature_recovers_signer(doc_key, polygon):
    signed = TypedDataSigner(doc_key).sign_order(_order(), exchange_domain(polygon))
    assert verify_order(signed, exchange_domain(polygon))
    signable = order_signable(signed.order, exchange_domain(polygon))
    assert recover_signer(signable, signed.signature) == DOC_ADDRESS
    assert signed.order_hash == to_hex(typed_data_hash(signable))


def test_verify_fails_against_wrong_domain(doc_key, polygon):
    signed = TypedDataSigner(doc_key).sign_order(_order(), exchange_domain(polygon))
    assert not verify_order(signed, exchange_domain(polygon, neg_risk=True))


def test_salt_changes_hash(doc_key, polygon):
    signer = TypedDataSigner(doc_key)
    a = signer.sign_order(_order(salt=1), exchange_domain(polygon))
    b = signer.sign_order(_order(salt=2), exchange_domain(polygon))
    assert a.order_hash != b.order_hash


def test_sign_order_rejects_foreign_signer(doc_key, polygon):
    order = _order(signer="0x1111111111111111111111111111111111111111")
    with pytest.raises(EncodingFailed, match="does not match"):
        TypedDataSigner(doc_key).sign_order(order, exchange_domain(polygon))


def test_unencodable_order(doc_key, polygon):
    with pytest.raises(EncodingFailed):
        order_signable(_order(salt=2**256), exchange_domain(polygon))


def test_clob_auth_signature(doc_key):
    signature = TypedDataSigner(doc_key).sign_clob_auth(137, 1700000000, nonce=3)
    signable = encode_typed(
        clob_auth_domain(137),
        "ClobAuth",
        CLOB_AUTH_TYPES,
        clob_auth_message(DOC_ADDRESS, 1700000000, 3),
    )
    assert recover_signer(signable, signature) == DOC_ADDRESS


def test_clob_auth_domain_has_no_verifying_contract():
    domain = clob_auth_domain(137)
    assert "verifyingContract" not in domain.to_dict()
    assert [f["name"] for f in domain.types()] == ["name", "version", "chainId"]
