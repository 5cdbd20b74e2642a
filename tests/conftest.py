# tests/conftest.py
"""Test fixtures and configuration."""

import logging
from decimal import Decimal

import pytest

from polytrade.auth import EffectiveIdentity, KeyMaterial, SignatureType
from polytrade.config import POLYGON, Settings, get_chain_config, reset_settings
from polytrade.models import OrderBookSummary

# 32-byte in-range test key
TEST_KEY = "0x" + "01" * 32
# Well-known key from the eth-account documentation
DOC_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
DOC_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
SAFE = "0x1111111111111111111111111111111111111111"

ENV_VARS = [
    "POLYMARKET_PRIVATE_KEY",
    "POLYMARKET_SIGNATURE_TYPE",
    "POLYMARKET_SAFE_ADDRESS",
    "POLYMARKET_CHAIN_ID",
    "POLYMARKET_API_KEY",
    "POLYMARKET_API_SECRET",
    "POLYMARKET_API_PASSPHRASE",
    "POLYMARKET_PASSWORD",
    "POLYMARKET_CLOB_URL",
    "POLYMARKET_RPC_URL",
    "LOG_LEVEL",
    "LOG_JSON",
]


@pytest.fixture(autouse=True)
def reset_state(monkeypatch, tmp_path):
    """Reset global state and isolate environment and config directory."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("POLYMARKET_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setattr("polytrade.utils.retry.time.sleep", lambda _: None)
    reset_settings()
    yield
    reset_settings()
    logging.getLogger().handlers.clear()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def key_env(monkeypatch):
    """Private key supplied through the environment."""
    monkeypatch.setenv("POLYMARKET_PRIVATE_KEY", TEST_KEY)


@pytest.fixture
def api_creds_env(monkeypatch):
    monkeypatch.setenv("POLYMARKET_API_KEY", "test-key")
    monkeypatch.setenv("POLYMARKET_API_SECRET", "c2VjcmV0LXNlY3JldC1zZWNyZXQ=")
    monkeypatch.setenv("POLYMARKET_API_PASSPHRASE", "test-pass")


@pytest.fixture
def polygon():
    return get_chain_config(POLYGON)


@pytest.fixture
def identity(polygon):
    """EOA identity on Polygon for TEST_KEY."""
    key = KeyMaterial.from_hex(TEST_KEY)
    ident = EffectiveIdentity(
        key=key,
        maker_address=key.address,
        signature_type=SignatureType.EOA,
        chain=polygon,
    )
    yield ident
    ident.close()


class FakeMarket:
    """In-memory market metadata source."""

    def __init__(self, tick_size="0.01", neg_risk=False, fee_rate_bps=0, bids=(), asks=()):
        self.tick_size = Decimal(tick_size)
        self.neg_risk = neg_risk
        self.fee_rate_bps = fee_rate_bps
        self.book = OrderBookSummary(
            bids=[{"price": p, "size": s} for p, s in bids],
            asks=[{"price": p, "size": s} for p, s in asks],
        )
        self.calls = []

    def get_tick_size(self, token_id):
        self.calls.append(("tick_size", token_id))
        return self.tick_size

    def get_neg_risk(self, token_id):
        return self.neg_risk

    def get_fee_rate_bps(self, token_id):
        self.calls.append(("fee_rate", token_id))
        return self.fee_rate_bps

    def get_order_book(self, token_id):
        return self.book


@pytest.fixture
def make_market():
    return FakeMarket
