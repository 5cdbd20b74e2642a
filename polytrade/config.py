# polytrade/config.py
"""
Polytrade configuration from environment variables and the config file.

Three sources feed every identity setting, in fixed precedence:
command-line flag > environment variable > config file. Resolution never
writes anything back; only the wallet commands in ``polytrade.keystore``
persist configuration.

Classes:
    Settings: Environment snapshot (after loading ``.env``)
    ConfigFile: Contents of ``config.json``
    ChainConfig: Contract addresses for one chain
    KeySource: Where a resolved private key came from

Environment Variables:
    POLYMARKET_PRIVATE_KEY: Wallet private key (0x-prefixed hex)
    POLYMARKET_SIGNATURE_TYPE: eoa, proxy or gnosis-safe (default: proxy)
    POLYMARKET_SAFE_ADDRESS: Gnosis Safe address for gnosis-safe signing
    POLYMARKET_CHAIN_ID: Chain id (default: 137)
    POLYMARKET_CLOB_URL: CLOB API endpoint
    POLYMARKET_RPC_URL: Polygon JSON-RPC endpoint
    POLYMARKET_API_KEY / _SECRET / _PASSPHRASE: Stored L2 credentials
    POLYMARKET_CONFIG_DIR: Directory holding config.json and keystore.json
    POLYMARKET_PASSWORD: Keystore password (non-interactive use)

Example:
    >>> from polytrade.config import Settings, load_config, resolve_key
    >>> settings = Settings()
    >>> key, source = resolve_key(None, settings, load_config(settings))
"""

import json
import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from eth_utils import is_address, to_checksum_address

from polytrade.exceptions import ConfigError

# Load .env file if exists
load_dotenv()

DEFAULT_SIGNATURE_TYPE = "proxy"
SIGNATURE_TYPE_NAMES = ("eoa", "proxy", "gnosis-safe")

POLYGON = 137
AMOY = 80002

NO_WALLET_MSG = (
    "No wallet configured. Run `polytrade wallet create` or "
    "`polytrade wallet import <key>`, or set POLYMARKET_PRIVATE_KEY"
)


def _chain_id(value, source: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"Invalid chain id: {value!r}. Must be an integer",
            {"source": source},
        ) from e


def _env(name: str) -> str | None:
    """Read an environment variable, treating empty values as unset."""
    value = os.getenv(name)
    return value if value else None


@dataclass(frozen=True)
class Settings:
    """Application settings from environment variables."""

    private_key: str | None = field(
        default_factory=lambda: _env("POLYMARKET_PRIVATE_KEY")
    )
    signature_type: str | None = field(
        default_factory=lambda: _env("POLYMARKET_SIGNATURE_TYPE")
    )
    safe_address: str | None = field(
        default_factory=lambda: _env("POLYMARKET_SAFE_ADDRESS")
    )
    chain_id: int | None = field(
        default_factory=lambda: _chain_id(os.environ["POLYMARKET_CHAIN_ID"], "POLYMARKET_CHAIN_ID")
        if _env("POLYMARKET_CHAIN_ID")
        else None
    )

    # L2 credentials previously issued by the exchange
    api_key: str | None = field(
        default_factory=lambda: _env("POLYMARKET_API_KEY")
    )
    api_secret: str | None = field(
        default_factory=lambda: _env("POLYMARKET_API_SECRET")
    )
    api_passphrase: str | None = field(
        default_factory=lambda: _env("POLYMARKET_API_PASSPHRASE")
    )

    # Endpoints
    clob_url: str = field(
        default_factory=lambda: os.getenv(
            "POLYMARKET_CLOB_URL", "https://clob.polymarket.com"
        )
    )
    rpc_url: str = field(
        default_factory=lambda: os.getenv(
            "POLYMARKET_RPC_URL", "https://polygon.drpc.org"
        )
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("POLYMARKET_TIMEOUT", "30"))
    )

    config_dir: Path = field(
        default_factory=lambda: Path(
            _env("POLYMARKET_CONFIG_DIR")
            or Path.home() / ".config" / "polymarket"
        )
    )
    password: str | None = field(
        default_factory=lambda: _env("POLYMARKET_PASSWORD")
    )

    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "WARNING")
    )
    log_json: bool = field(
        default_factory=lambda: os.getenv("LOG_JSON", "false").lower() == "true"
    )

    @property
    def config_path(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def keystore_path(self) -> Path:
        return self.config_dir / "keystore.json"

    def has_api_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret and self.api_passphrase)

    def __repr__(self) -> str:
        """Return masked representation to protect sensitive credentials."""
        def mask(value: str | None) -> str:
            if value is None:
                return "None"
            if len(value) <= 10:
                return "***"
            return f"{value[:6]}...{value[-4:]}"

        return (
            f"Settings("
            f"private_key={mask(self.private_key)}, "
            f"signature_type={self.signature_type}, "
            f"safe_address={self.safe_address}, "
            f"chain_id={self.chain_id}, "
            f"api_key={mask(self.api_key)}, "
            f"api_secret={mask(self.api_secret)}, "
            f"api_passphrase={mask(self.api_passphrase)}, "
            f"clob_url='{self.clob_url}', "
            f"rpc_url='{self.rpc_url}', "
            f"config_dir='{self.config_dir}', "
            f"log_level='{self.log_level}', "
            f"log_json={self.log_json})"
        )


@dataclass
class ConfigFile:
    """Persisted wallet settings (``config.json``)."""

    private_key: str = ""
    chain_id: int = POLYGON
    signature_type: str = DEFAULT_SIGNATURE_TYPE
    safe_address: str = ""

    def __repr__(self) -> str:
        key = "***" if self.private_key else "''"
        return (
            f"ConfigFile(private_key={key}, chain_id={self.chain_id}, "
            f"signature_type='{self.signature_type}', "
            f"safe_address='{self.safe_address}')"
        )


def load_config(settings: Settings) -> ConfigFile | None:
    """Read config.json; a missing or unreadable file counts as absent."""
    path = settings.config_path
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    return ConfigFile(
        private_key=data.get("private_key") or "",
        chain_id=_chain_id(data.get("chain_id", POLYGON), str(path)),
        signature_type=data.get("signature_type") or DEFAULT_SIGNATURE_TYPE,
        safe_address=data.get("safe_address") or "",
    )


def save_config(settings: Settings, config: ConfigFile) -> Path:
    """Write config.json with owner-only permissions."""
    settings.config_dir.mkdir(parents=True, exist_ok=True)
    os.chmod(settings.config_dir, 0o700)

    payload = {k: v for k, v in asdict(config).items() if v != ""}
    path = settings.config_path
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as fh:
        json.dump(payload, fh, indent=2)
    os.chmod(path, 0o600)
    return path


class KeySource(str, Enum):
    """Where the active private key was found."""

    FLAG = "flag"
    ENV = "env"
    CONFIG_FILE = "config"
    KEYSTORE = "keystore"
    NONE = "none"

    @property
    def label(self) -> str:
        return {
            KeySource.FLAG: "--private-key flag",
            KeySource.ENV: "POLYMARKET_PRIVATE_KEY env var",
            KeySource.CONFIG_FILE: "config file",
            KeySource.KEYSTORE: "encrypted keystore",
            KeySource.NONE: "not configured",
        }[self]


def resolve_key(
    flag: str | None,
    settings: Settings,
    config: ConfigFile | None,
) -> tuple[str | None, KeySource]:
    """Priority: CLI flag > env var > config file."""
    if flag:
        return flag, KeySource.FLAG
    if settings.private_key:
        return settings.private_key, KeySource.ENV
    if config is not None and config.private_key:
        return config.private_key, KeySource.CONFIG_FILE
    return None, KeySource.NONE


def resolve_signature_type(
    flag: str | None,
    settings: Settings,
    config: ConfigFile | None,
) -> str:
    """Priority: CLI flag > env var > config file > default ("proxy")."""
    if flag:
        return flag
    if settings.signature_type:
        return settings.signature_type
    if config is not None and config.signature_type:
        return config.signature_type
    return DEFAULT_SIGNATURE_TYPE


def resolve_safe_address(
    flag: str | None,
    settings: Settings,
    config: ConfigFile | None,
) -> str | None:
    """Priority: CLI flag > env var > config file; None when unset."""
    if flag:
        return flag
    if settings.safe_address:
        return settings.safe_address
    if config is not None and config.safe_address:
        return config.safe_address
    return None


def resolve_chain_id(settings: Settings, config: ConfigFile | None) -> int:
    if settings.chain_id is not None:
        return settings.chain_id
    if config is not None:
        return config.chain_id
    return POLYGON


class ContractRole(str, Enum):
    """Contracts the client signs for or sends calls to."""

    EXCHANGE = "exchange"
    NEG_RISK_EXCHANGE = "neg_risk_exchange"
    NEG_RISK_ADAPTER = "neg_risk_adapter"
    COLLATERAL = "collateral"
    CONDITIONAL_TOKENS = "conditional_tokens"
    PROXY_FACTORY = "proxy_factory"


@dataclass(frozen=True)
class ChainConfig:
    """Contract addresses for one chain. Immutable for the process."""

    chain_id: int
    contracts: dict[ContractRole, str]

    def __post_init__(self):
        normalized = {}
        for role, address in self.contracts.items():
            if not is_address(address):
                raise ConfigError(
                    "Invalid contract address",
                    {"role": role.value, "address": address},
                )
            normalized[ContractRole(role)] = to_checksum_address(address)
        object.__setattr__(self, "contracts", normalized)

    def address(self, role: ContractRole) -> str:
        try:
            return self.contracts[role]
        except KeyError:
            raise ConfigError(
                f"No {role.value} contract on chain {self.chain_id}",
                {"chain_id": self.chain_id},
            ) from None

    def has(self, role: ContractRole) -> bool:
        return role in self.contracts

    @property
    def exchange(self) -> str:
        return self.address(ContractRole.EXCHANGE)

    @property
    def neg_risk_exchange(self) -> str:
        return self.address(ContractRole.NEG_RISK_EXCHANGE)

    @property
    def neg_risk_adapter(self) -> str:
        return self.address(ContractRole.NEG_RISK_ADAPTER)

    @property
    def collateral(self) -> str:
        return self.address(ContractRole.COLLATERAL)

    @property
    def conditional_tokens(self) -> str:
        return self.address(ContractRole.CONDITIONAL_TOKENS)


CHAIN_CONFIGS: dict[int, ChainConfig] = {
    POLYGON: ChainConfig(
        chain_id=POLYGON,
        contracts={
            ContractRole.EXCHANGE: "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E",
            ContractRole.NEG_RISK_EXCHANGE: "0xC5d563A36AE78145C45a50134d48A1215220f80a",
            ContractRole.NEG_RISK_ADAPTER: "0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296",
            # USDC.e
            ContractRole.COLLATERAL: "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
            ContractRole.CONDITIONAL_TOKENS: "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045",
            ContractRole.PROXY_FACTORY: "0xaB45c5A4B0c941a2F231C04C3f49182e1A254052",
        },
    ),
    AMOY: ChainConfig(
        chain_id=AMOY,
        contracts={
            ContractRole.EXCHANGE: "0xdFE02Eb6733538f8Ea35D585af8DE5958AD99E40",
            ContractRole.NEG_RISK_EXCHANGE: "0xC5d563A36AE78145C45a50134d48A1215220f80a",
            ContractRole.NEG_RISK_ADAPTER: "0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296",
            ContractRole.COLLATERAL: "0x9c4e1703476e875070ee25b56a58b008cfb8fa78",
            ContractRole.CONDITIONAL_TOKENS: "0x69308FB512518e39F9b16112fA8d994F4e2Bf8bB",
        },
    ),
}


def get_chain_config(chain_id: int) -> ChainConfig:
    """Look up the contract table for ``chain_id``."""
    try:
        return CHAIN_CONFIGS[chain_id]
    except KeyError:
        raise ConfigError(
            f"Unsupported chain id {chain_id}",
            {"supported": ",".join(str(c) for c in CHAIN_CONFIGS)},
        ) from None


# CLI-level settings cache; the signing core receives Settings explicitly.
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get settings for the current CLI invocation."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Reset settings (mainly for testing)."""
    global _settings
    _settings = None
