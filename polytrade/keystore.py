# polytrade/keystore.py
"""
Wallet management: the only code that persists key material.

A wallet is stored either as a plaintext ``private_key`` in config.json or,
when a password is given, as an eth-account V3 keyfile in keystore.json
with config.json holding only the non-secret settings. Both files are
written owner-only.

Functions:
    create_wallet: Generate and store a new random key
    import_wallet: Store an existing key
    wallet_info: Describe the active identity without signing anything
    reset_wallet: Remove stored key material
    load_key_encrypted: Decrypt the keystore into a KeyMaterial
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path

import structlog
from eth_account import Account

from polytrade.auth import AuthManager, KeyMaterial, SignatureType
from polytrade.config import (
    ConfigFile,
    KeySource,
    Settings,
    get_chain_config,
    load_config,
    resolve_chain_id,
    resolve_safe_address,
    save_config,
)
from polytrade.exceptions import AuthError, ConfigError, PolytradeError
from polytrade.signing.addresses import derive_proxy_wallet

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WalletInfo:
    address: str
    proxy_address: str | None
    maker_address: str | None
    signature_type: str
    key_source: KeySource
    config_path: Path
    encrypted: bool = False

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "proxy_address": self.proxy_address,
            "maker_address": self.maker_address,
            "signature_type": self.signature_type,
            "key_source": self.key_source.value,
            "config_path": str(self.config_path),
            "encrypted": self.encrypted,
        }


def _write_private(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    os.chmod(path.parent, 0o700)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as fh:
        json.dump(payload, fh)
    os.chmod(path, 0o600)


def _has_stored_key(settings: Settings) -> bool:
    config = load_config(settings)
    return bool(config and config.private_key) or settings.keystore_path.exists()


def _describe(key: KeyMaterial, settings: Settings, config: ConfigFile, source: KeySource) -> WalletInfo:
    chain = get_chain_config(config.chain_id)
    try:
        proxy = derive_proxy_wallet(key.address, chain)
    except ConfigError:
        proxy = None
    return WalletInfo(
        address=key.address,
        proxy_address=proxy,
        maker_address=None,
        signature_type=config.signature_type,
        key_source=source,
        config_path=settings.config_path,
        encrypted=settings.keystore_path.exists(),
    )


def store_key(
    settings: Settings,
    key: KeyMaterial,
    signature_type: str = "proxy",
    safe_address: str | None = None,
    password: str | None = None,
    force: bool = False,
) -> WalletInfo:
    """
    Persist ``key`` and the wallet settings.

    Raises:
        ConfigError: a wallet already exists and ``force`` is not set
    """
    if _has_stored_key(settings) and not force:
        raise ConfigError(
            "A wallet is already configured; use --force to overwrite",
            {"config_path": settings.config_path},
        )
    sig_type = SignatureType.parse(signature_type)
    existing = load_config(settings)
    config = ConfigFile(
        chain_id=existing.chain_id if existing else resolve_chain_id(settings, None),
        signature_type=sig_type.label,
        safe_address=safe_address or "",
    )

    if password:
        keyfile = Account.encrypt(key.export_hex(), password)
        _write_private(settings.keystore_path, keyfile)
    else:
        config.private_key = key.export_hex()
        settings.keystore_path.unlink(missing_ok=True)

    save_config(settings, config)
    logger.info(
        "wallet_stored",
        address=key.address,
        signature_type=sig_type.label,
        encrypted=bool(password),
    )
    source = KeySource.KEYSTORE if password else KeySource.CONFIG_FILE
    return _describe(key, settings, config, source)


def create_wallet(settings: Settings, **kwargs) -> WalletInfo:
    """Generate a random key and store it."""
    with KeyMaterial.generate() as key:
        return store_key(settings, key, **kwargs)


def import_wallet(settings: Settings, private_key: str, **kwargs) -> WalletInfo:
    """Validate and store an existing key."""
    with KeyMaterial.from_hex(private_key) as key:
        return store_key(settings, key, **kwargs)


def load_key_encrypted(settings: Settings, password: str) -> KeyMaterial:
    """
    Decrypt keystore.json.

    Raises:
        ConfigError: no keystore, or it is not a keyfile
        AuthError: wrong password
    """
    path = settings.keystore_path
    try:
        keyfile = json.loads(path.read_text())
    except OSError:
        raise ConfigError("No encrypted keystore found", {"path": path}) from None
    except ValueError:
        raise ConfigError("Keystore is not valid JSON", {"path": path}) from None
    try:
        secret = Account.decrypt(keyfile, password)
    except ValueError:
        raise AuthError("Wrong keystore password") from None
    except (KeyError, TypeError) as e:
        raise ConfigError("Keystore is malformed", {"path": path}) from e
    return KeyMaterial(bytes(secret))


def wallet_info(
    settings: Settings,
    private_key: str | None = None,
    signature_type: str | None = None,
    safe_address: str | None = None,
) -> WalletInfo:
    """
    Describe the identity the next command would use.

    Resolution failures for the maker address (e.g. gnosis-safe without a
    Safe) are reported as a missing maker rather than raised.
    """
    config = load_config(settings)
    auth = AuthManager(settings, config)
    chain = auth.chain
    sig_type = auth.signature_type(signature_type)
    key, source = auth.key_material(private_key)
    with key:
        try:
            proxy = derive_proxy_wallet(key.address, chain)
        except ConfigError:
            proxy = None
        try:
            maker = sig_type.maker_address(
                key.address, chain, resolve_safe_address(safe_address, settings, config)
            )
        except PolytradeError:
            maker = None
        return WalletInfo(
            address=key.address,
            proxy_address=proxy,
            maker_address=maker,
            signature_type=sig_type.label,
            key_source=source,
            config_path=settings.config_path,
            encrypted=settings.keystore_path.exists(),
        )


def reset_wallet(settings: Settings) -> list[Path]:
    """Delete config.json and keystore.json; returns the removed paths."""
    removed = []
    for path in (settings.config_path, settings.keystore_path):
        if path.exists():
            path.unlink()
            removed.append(path)
    logger.info("wallet_reset", removed=[str(p) for p in removed])
    return removed
