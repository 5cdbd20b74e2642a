"""
Offline address derivation for exchange-managed wallets.

Proxy wallets are deployed by the exchange's proxy-wallet factory with
CREATE2, so their address follows from the owner address alone:

    keccak256(0xff ++ factory ++ keccak256(owner) ++ init_code_hash)[12:]

where the salt is the keccak of the owner's packed 20 address bytes.
"""

from eth_utils import is_address, keccak, to_canonical_address, to_checksum_address

from polytrade.config import ChainConfig, ContractRole
from polytrade.exceptions import ConfigError

# keccak256 of the proxy wallet creation code used by the factory
PROXY_INIT_CODE_HASH = bytes.fromhex(
    "d21df8dc65880a8606f09fe0ce3df9b8869287ab0b058be05aa9e8af6330a00b"
)


def create2_address(deployer: str, salt: bytes, init_code_hash: bytes) -> str:
    """Address of a contract deployed with CREATE2."""
    if len(salt) != 32 or len(init_code_hash) != 32:
        raise ValueError("salt and init code hash must be 32 bytes")
    digest = keccak(b"\xff" + to_canonical_address(deployer) + salt + init_code_hash)
    return to_checksum_address(digest[12:])


def proxy_wallet_salt(owner: str) -> bytes:
    return keccak(to_canonical_address(owner))


def derive_proxy_wallet(owner: str, chain: ChainConfig) -> str:
    """
    Deterministic proxy wallet address for ``owner`` on ``chain``.

    Raises:
        ConfigError: owner is not an address, or the chain has no proxy factory
    """
    if not is_address(owner):
        raise ConfigError("Invalid owner address", {"address": owner})
    if not chain.has(ContractRole.PROXY_FACTORY):
        raise ConfigError(
            "Proxy wallets are not available on this chain; use eoa or gnosis-safe",
            {"chain_id": chain.chain_id},
        )
    factory = chain.address(ContractRole.PROXY_FACTORY)
    return create2_address(factory, proxy_wallet_salt(owner), PROXY_INIT_CODE_HASH)
