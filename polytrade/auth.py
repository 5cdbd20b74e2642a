"""
Signing identity resolution.

This module turns the configured key material into the identity used for one
command: the raw signing key, the signature type, and the maker address that
orders are placed on behalf of.

Classes:
    KeyMaterial: Scope-bounded holder of a secp256k1 private key
    SignatureType: EOA, Proxy or GnosisSafe signing
    EffectiveIdentity: Key + maker address + signature type for one invocation
    ApiCredentials: L2 API key set issued by the exchange
    AuthManager: Resolves an EffectiveIdentity from flag / env / config file

Signature Types:
    - EOA (0): the key's own address is the maker
    - Proxy (1): maker is the key's deterministic proxy wallet
    - GnosisSafe (2): maker is an explicitly configured Safe

Example:
    >>> from polytrade.auth import AuthManager
    >>> with AuthManager(settings).resolve() as identity:
    ...     print(identity.maker_address)
"""

from dataclasses import dataclass
from enum import IntEnum

import structlog
from eth_account import Account
from eth_account.datastructures import SignedMessage
from eth_account.messages import SignableMessage
from eth_utils import is_address, to_checksum_address

from polytrade.config import (
    ChainConfig,
    ConfigFile,
    KeySource,
    NO_WALLET_MSG,
    Settings,
    get_chain_config,
    load_config,
    resolve_chain_id,
    resolve_key,
    resolve_safe_address,
    resolve_signature_type,
)
from polytrade.exceptions import (
    ConfigError,
    InvalidKeyFormat,
    MissingSafeAddress,
    NoSigningKey,
    SigningFailed,
)
from polytrade.signing.addresses import derive_proxy_wallet

logger = structlog.get_logger(__name__)

# secp256k1 group order; valid private keys are 1 <= k < N
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def parse_private_key(value: str) -> bytes:
    """
    Validate a hex private key and return its 32 raw bytes.

    Raises:
        InvalidKeyFormat: wrong length, non-hex, zero, or >= curve order
    """
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if len(text) != 64:
        raise InvalidKeyFormat(
            "Private key must be 32 bytes (64 hex characters)",
            {"length": len(text)},
        )
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        raise InvalidKeyFormat("Private key is not valid hex") from None
    scalar = int.from_bytes(raw, "big")
    if scalar == 0:
        raise InvalidKeyFormat("Private key must be nonzero")
    if scalar >= SECP256K1_N:
        raise InvalidKeyFormat("Private key is not below the secp256k1 curve order")
    return raw


class KeyMaterial:
    """
    A private key and its derived address.

    The secret lives in a mutable buffer that ``close()`` overwrites with
    zeros; the object is also a context manager so every exit path zeroes
    it. Instances refuse to be pickled and never print the secret.
    """

    __slots__ = ("_secret", "_address")

    def __init__(self, secret: bytes):
        if len(secret) != 32:
            raise InvalidKeyFormat("Private key must be 32 bytes", {"length": len(secret)})
        scalar = int.from_bytes(secret, "big")
        if not 0 < scalar < SECP256K1_N:
            raise InvalidKeyFormat("Private key is outside the secp256k1 range")
        self._secret = bytearray(secret)
        self._address = Account.from_key(bytes(self._secret)).address

    @classmethod
    def from_hex(cls, value: str) -> "KeyMaterial":
        return cls(parse_private_key(value))

    @classmethod
    def generate(cls) -> "KeyMaterial":
        """Create a fresh random key."""
        account = Account.create()
        return cls(bytes(account.key))

    @property
    def address(self) -> str:
        """Checksummed address derived from the secret."""
        return self._address

    @property
    def closed(self) -> bool:
        return not any(self._secret)

    def _secret_bytes(self) -> bytes:
        if self.closed:
            raise SigningFailed("Key material has been released")
        return bytes(self._secret)

    def sign_message(self, signable: SignableMessage) -> SignedMessage:
        """Sign an EIP-191 / EIP-712 signable message."""
        secret = self._secret_bytes()
        try:
            return Account.sign_message(signable, secret)
        except Exception as e:
            raise SigningFailed("Signing failed", {"reason": type(e).__name__}) from e

    def sign_transaction(self, tx: dict):
        """Sign a raw transaction dict for broadcast."""
        secret = self._secret_bytes()
        try:
            return Account.sign_transaction(tx, secret)
        except Exception as e:
            raise SigningFailed("Transaction signing failed", {"reason": str(e)}) from e

    def export_hex(self) -> str:
        """0x-prefixed hex of the secret, for explicit persistence only."""
        return "0x" + self._secret_bytes().hex()

    def close(self) -> None:
        """Zero the secret buffer."""
        for i in range(len(self._secret)):
            self._secret[i] = 0

    def __enter__(self) -> "KeyMaterial":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __reduce__(self):
        raise TypeError("KeyMaterial cannot be serialized")

    def __repr__(self) -> str:
        return f"KeyMaterial(address={self._address})"


class SignatureType(IntEnum):
    """
    How the exchange maps a signature to the maker's authority.

    The integer value is the ``signatureType`` field of the signed order.
    """

    EOA = 0
    PROXY = 1
    GNOSIS_SAFE = 2

    @classmethod
    def parse(cls, name: str) -> "SignatureType":
        """Parse the config/CLI spelling: eoa, proxy or gnosis-safe."""
        normalized = name.strip().lower().replace("_", "-")
        mapping = {
            "eoa": cls.EOA,
            "proxy": cls.PROXY,
            "gnosis-safe": cls.GNOSIS_SAFE,
            "safe": cls.GNOSIS_SAFE,
        }
        try:
            return mapping[normalized]
        except KeyError:
            raise ConfigError(
                f"Unknown signature type: {name}",
                {"expected": "eoa, proxy, gnosis-safe"},
            ) from None

    @property
    def label(self) -> str:
        return {0: "eoa", 1: "proxy", 2: "gnosis-safe"}[self.value]

    def maker_address(
        self,
        owner: str,
        chain: ChainConfig,
        safe_address: str | None = None,
    ) -> str:
        """Address the orders are placed on behalf of."""
        if self is SignatureType.EOA:
            return to_checksum_address(owner)
        if self is SignatureType.PROXY:
            return derive_proxy_wallet(owner, chain)
        if not safe_address:
            raise MissingSafeAddress(
                "gnosis-safe signing requires a Safe address "
                "(--safe-address, POLYMARKET_SAFE_ADDRESS or config file)"
            )
        if not is_address(safe_address):
            raise ConfigError("Invalid Safe address", {"address": safe_address})
        return to_checksum_address(safe_address)

    def signing_domain_adjustment(self) -> int:
        """Value written into the order's ``signatureType`` field."""
        return int(self)


@dataclass(frozen=True)
class EffectiveIdentity:
    """Who signs and on whose behalf, for one invocation."""

    key: KeyMaterial
    maker_address: str
    signature_type: SignatureType
    chain: ChainConfig
    key_source: KeySource = KeySource.NONE

    @property
    def signer_address(self) -> str:
        return self.key.address

    def close(self) -> None:
        self.key.close()

    def __enter__(self) -> "EffectiveIdentity":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass(frozen=True)
class ApiCredentials:
    """L2 API key set. Treated as secret material."""

    api_key: str
    secret: str
    passphrase: str

    @classmethod
    def from_response(cls, data: dict) -> "ApiCredentials":
        return cls(
            api_key=data["apiKey"],
            secret=data["secret"],
            passphrase=data["passphrase"],
        )

    def __repr__(self) -> str:
        return f"ApiCredentials(api_key={self.api_key}, secret=***, passphrase=***)"


class AuthManager:
    """
    Resolves the signing identity for one command.

    Sources are consulted in fixed precedence (flag > environment > config
    file). Nothing is written back; resolution is read-only.
    """

    def __init__(self, settings: Settings, config: ConfigFile | None = None):
        self._settings = settings
        self._config = config if config is not None else load_config(settings)

    @property
    def chain(self) -> ChainConfig:
        return get_chain_config(resolve_chain_id(self._settings, self._config))

    def signature_type(self, flag: str | None = None) -> SignatureType:
        return SignatureType.parse(
            resolve_signature_type(flag, self._settings, self._config)
        )

    def key_material(self, flag: str | None = None) -> tuple[KeyMaterial, KeySource]:
        """
        Resolve and validate the private key.

        Raises:
            NoSigningKey: no source holds a key
            InvalidKeyFormat: the winning candidate is malformed
        """
        candidate, source = resolve_key(flag, self._settings, self._config)
        if candidate is not None:
            return KeyMaterial.from_hex(candidate), source

        if self._settings.keystore_path.exists() and self._settings.password:
            from polytrade.keystore import load_key_encrypted

            return load_key_encrypted(self._settings, self._settings.password), KeySource.KEYSTORE

        raise NoSigningKey(NO_WALLET_MSG)

    def resolve(
        self,
        private_key: str | None = None,
        signature_type: str | None = None,
        safe_address: str | None = None,
    ) -> EffectiveIdentity:
        """Build the EffectiveIdentity for this invocation."""
        sig_type = self.signature_type(signature_type)
        chain = self.chain
        key, source = self.key_material(private_key)
        try:
            maker = sig_type.maker_address(
                key.address,
                chain,
                resolve_safe_address(safe_address, self._settings, self._config),
            )
        except Exception:
            key.close()
            raise

        logger.debug(
            "identity_resolved",
            signer=key.address,
            maker=maker,
            signature_type=sig_type.label,
            key_source=source.value,
            chain_id=chain.chain_id,
        )
        return EffectiveIdentity(
            key=key,
            maker_address=maker,
            signature_type=sig_type,
            chain=chain,
            key_source=source,
        )

    def stored_credentials(self) -> ApiCredentials | None:
        """L2 credentials supplied through the environment, if complete."""
        s = self._settings
        if not s.has_api_credentials():
            return None
        return ApiCredentials(
            api_key=s.api_key,
            secret=s.api_secret,
            passphrase=s.api_passphrase,
        )
