# tests/test_cli.py
"""Tests for the polytrade command line."""

import json

import pytest
from typer.testing import CliRunner

from polytrade.cli import app
from polytrade.client import dispatch_batch
from polytrade.config import ContractRole
from polytrade.models import OrderResponse

from tests.conftest import DOC_ADDRESS, DOC_KEY, SAFE, TEST_KEY, FakeMarket

runner = CliRunner()
CONDITION = "0x" + "ab" * 32


class FakeClob(FakeMarket):
    """Stands in for ClobClient; records submitted orders."""

    instances = []

    def __init__(self, host, chain_id, signer=None, creds=None, timeout=None):
        super().__init__(asks=[("0.5", "100")], bids=[("0.4", "100")])
        self.chain_id = chain_id
        self.signer = signer
        self.creds = creds
        self.posted = []
        FakeClob.instances.append(self)

    def set_api_creds(self, creds):
        self.creds = creds

    def create_or_derive_api_creds(self, nonce=0):
        raise AssertionError("credentials should come from the environment")

    def post_order(self, signed):
        self.posted.append(signed)
        return OrderResponse(
            order_id="0xorder", status="live", accepted=True, raw_response={}
        )

    def post_orders(self, orders, max_workers=4):
        return dispatch_batch(orders, self.post_order, max_workers)


@pytest.fixture(autouse=True)
def fake_clob(monkeypatch):
    FakeClob.instances = []
    monkeypatch.setattr("polytrade.cli.ClobClient", FakeClob)
    return FakeClob


def _json(result):
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def _order_args(*extra):
    return [
        "clob", "create-order",
        "--token", "1234", "--side", "buy", "--price", "0.503", "--size", "10",
        *extra,
    ]


def test_create_order_dry_run():
    result = runner.invoke(
        app, ["--private-key", TEST_KEY, "--signature-type", "eoa", "-o", "json", *_order_args()]
    )
    data = _json(result)
    assert data["price"] == "0.50"
    assert data["makerAmount"] == "5000000"
    assert data["takerAmount"] == "10000000"
    assert data["side"] == "BUY"
    assert data["signatureType"] == 0
    assert data["signature"].startswith("0x")
    assert FakeClob.instances[0].posted == []


def test_create_order_proxy_by_default(key_env):
    data = _json(runner.invoke(app, ["-o", "json", *_order_args()]))
    assert data["signatureType"] == 1
    assert data["maker"] != data["signer"]


def test_create_order_gnosis_safe():
    data = _json(
        runner.invoke(
            app,
            ["--private-key", DOC_KEY, "--signature-type", "gnosis-safe",
             "--safe-address", SAFE, "-o", "json", *_order_args()],
        )
    )
    assert data["maker"] == SAFE
    assert data["signer"] == DOC_ADDRESS
    assert data["signatureType"] == 2


def test_gnosis_safe_without_safe_address(key_env):
    result = runner.invoke(
        app, ["--signature-type", "gnosis-safe", "-o", "json", *_order_args()]
    )
    assert result.exit_code == 1
    assert "MissingSafeAddress" in result.output


def test_no_wallet_configured():
    result = runner.invoke(app, _order_args())
    assert result.exit_code == 1
    assert "NoSigningKey" in result.output


def test_invalid_side(key_env):
    result = runner.invoke(
        app, ["clob", "create-order", "--token", "1", "--side", "hold", "--price", "0.5", "--size", "1"]
    )
    assert result.exit_code == 1
    assert "ValidationError" in result.output


def test_create_order_live(key_env, api_creds_env):
    data = runner.invoke(app, ["-o", "json", *_order_args("--live", "--yes")])
    assert data.exit_code == 0, data.output
    (client,) = FakeClob.instances
    assert len(client.posted) == 1
    assert client.creds.api_key == "test-key"
    assert "0xorder" in data.stdout


def test_create_order_live_declined(key_env, api_creds_env):
    result = runner.invoke(app, _order_args("--live"), input="n\n")
    assert result.exit_code == 0
    assert FakeClob.instances[0].posted == []


def test_market_order_dry_run(key_env):
    data = _json(
        runner.invoke(
            app,
            ["-o", "json", "clob", "market-order", "--token", "1234", "--side", "buy", "--amount", "10"],
        )
    )
    assert data["makerAmount"] == "10000000"
    assert data["takerAmount"] == "20000000"
    assert data["order_type"] == "FOK"


def test_post_orders_dry_run_reports_each(key_env, tmp_path):
    orders = tmp_path / "orders.json"
    orders.write_text(
        json.dumps(
            [
                {"token_id": "1234", "side": "buy", "price": "0.5", "size": "10"},
                {"token_id": "1234", "side": "buy", "price": "0.999", "size": "10"},
                {"token_id": "1234", "side": "sell", "amount": "5"},
            ]
        )
    )
    result = runner.invoke(app, ["-o", "json", "clob", "post-orders", str(orders)])
    assert result.exit_code == 1
    rows = json.loads(result.stdout)
    assert [row["ok"] for row in rows] == [True, False, True]
    assert rows[1]["error"] == "PriceOutOfRange"


def test_post_orders_malformed_entries_stay_in_their_rows(key_env, tmp_path):
    orders = tmp_path / "orders.json"
    orders.write_text(
        json.dumps(
            [
                {"token_id": "1234", "side": "buy", "price": "0.5", "size": "10"},
                {"token_id": "1234", "side": "hold", "price": "0.5", "size": "10"},
                "garbage",
                {"token_id": "1234", "side": "buy", "price": "1.5", "size": "10"},
                {"token_id": "1234", "side": "sell", "amount": "5"},
            ]
        )
    )
    result = runner.invoke(app, ["-o", "json", "clob", "post-orders", str(orders)])
    assert result.exit_code == 1
    rows = json.loads(result.stdout)
    assert [row["index"] for row in rows] == [0, 1, 2, 3, 4]
    assert [row["ok"] for row in rows] == [True, False, False, False, True]
    assert rows[1]["error"] == "ValidationError"
    assert rows[2]["error"] == "ValidationError"
    assert rows[2]["detail"] == "Order entry must be a JSON object"
    assert rows[3]["error"] == "PriceOutOfRange"


def test_post_orders_live_skips_malformed_entries(key_env, api_creds_env, tmp_path):
    orders = tmp_path / "orders.json"
    orders.write_text(
        json.dumps(
            [
                ["not", "an", "order"],
                {"token_id": "1234", "side": "buy", "price": "0.5", "size": "10"},
            ]
        )
    )
    result = runner.invoke(
        app, ["-o", "json", "clob", "post-orders", str(orders), "--live", "--yes"]
    )
    assert result.exit_code == 1
    rows = json.loads(result.stdout)
    assert [(row["index"], row["ok"]) for row in rows] == [(0, False), (1, True)]
    assert rows[1]["detail"] == "0xorder"
    assert len(FakeClob.instances[0].posted) == 1


@pytest.mark.parametrize("price", ["1.2", "0", "-0.3"])
def test_create_order_price_outside_unit_interval(key_env, price):
    result = runner.invoke(
        app,
        ["-o", "json", "clob", "create-order", "--token", "1234", "--side", "buy",
         "--price", price, "--size", "10"],
    )
    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"] == "PriceOutOfRange"


def test_market_order_price_outside_unit_interval(key_env):
    result = runner.invoke(
        app,
        ["-o", "json", "clob", "market-order", "--token", "1234", "--side", "buy",
         "--amount", "10", "--price", "1.5"],
    )
    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"] == "PriceOutOfRange"


def test_approve_list():
    data = _json(runner.invoke(app, ["-o", "json", "approve", "list"]))
    assert len(data) == 6
    assert [c["function"] for c in data] == ["approve", "setApprovalForAll"] * 3


def test_approve_set_dry_run_proxy_one_tx_per_approval(polygon):
    data = _json(runner.invoke(app, ["-o", "json", "approve", "set"]))
    assert len(data) == 6
    assert {tx["function"] for tx in data} == {"proxy"}
    assert {tx["to"] for tx in data} == {polygon.address(ContractRole.PROXY_FACTORY)}
    assert len({tx["data"] for tx in data}) == 6


def test_approve_set_dry_run_eoa():
    data = _json(runner.invoke(app, ["--signature-type", "eoa", "-o", "json", "approve", "set"]))
    assert len(data) == 6


def test_ctf_split_dry_run():
    data = _json(
        runner.invoke(
            app,
            ["--signature-type", "eoa", "-o", "json", "ctf", "split",
             "--condition", CONDITION, "--amount", "10"],
        )
    )
    (call,) = data
    assert call["function"] == "splitPosition"
    assert format(10_000_000, "064x") in call["data"]


def test_ctf_split_excess_precision():
    result = runner.invoke(
        app, ["ctf", "split", "--condition", CONDITION, "--amount", "1.0000001"]
    )
    assert result.exit_code == 1
    assert "precision" in result.output


def test_ctf_gnosis_safe_rejected():
    result = runner.invoke(
        app,
        ["--signature-type", "gnosis-safe", "ctf", "merge", "--condition", CONDITION, "--amount", "1"],
    )
    assert result.exit_code == 1
    assert "ConfigError" in result.output


def test_redeem_neg_risk_amount_mismatch():
    result = runner.invoke(
        app,
        ["--signature-type", "eoa", "ctf", "redeem-neg-risk",
         "--condition", CONDITION, "--amounts", "1,2,3"],
    )
    assert result.exit_code == 1
    assert "EncodingFailed" in result.output


def test_redeem_neg_risk_three_outcomes():
    data = _json(
        runner.invoke(
            app,
            ["--signature-type", "eoa", "-o", "json", "ctf", "redeem-neg-risk",
             "--condition", CONDITION, "--amounts", "1,0,2.5", "--outcomes", "3"],
        )
    )
    assert data[0]["function"] == "redeemPositions"


def test_offline_ids():
    condition = _json(
        runner.invoke(
            app,
            ["-o", "json", "ctf", "condition-id", "--oracle", SAFE,
             "--question", "0x" + "12" * 32, "--outcomes", "2"],
        )
    )["condition_id"]
    collection = _json(
        runner.invoke(
            app,
            ["-o", "json", "ctf", "collection-id", "--condition", condition, "--index-set", "1"],
        )
    )["collection_id"]
    position = _json(
        runner.invoke(app, ["-o", "json", "ctf", "position-id", "--collection", collection])
    )["position_id"]
    assert len(condition) == 66
    assert len(collection) == 66
    assert int(position) > 0


def test_wallet_lifecycle():
    created = _json(runner.invoke(app, ["-o", "json", "wallet", "create"]))
    assert created["signature_type"] == "proxy"

    shown = _json(runner.invoke(app, ["-o", "json", "wallet", "show"]))
    assert shown["address"] == created["address"]
    assert shown["maker_address"] == created["proxy_address"]
    assert shown["key_source"] == "config file"

    again = runner.invoke(app, ["wallet", "create"])
    assert again.exit_code == 1
    assert "--force" in again.output

    reset = _json(runner.invoke(app, ["-o", "json", "wallet", "reset", "--yes"]))
    assert len(reset["removed"]) == 1
    assert runner.invoke(app, ["wallet", "show"]).exit_code == 1


def test_wallet_import_encrypted_prompts_for_password():
    result = runner.invoke(
        app,
        ["-o", "json", "wallet", "import", DOC_KEY, "--signature-type", "eoa", "--encrypt"],
        input="pw\npw\n",
    )
    assert result.exit_code == 0, result.output
    shown = runner.invoke(app, ["-o", "json", "wallet", "show"], input="pw\n")
    assert shown.exit_code == 0, shown.output
    assert DOC_ADDRESS in shown.stdout
    assert "encrypted keystore" in shown.stdout


def test_wallet_show_flag_key():
    data = _json(
        runner.invoke(app, ["--private-key", DOC_KEY, "--signature-type", "eoa", "-o", "json", "wallet", "show"])
    )
    assert data["address"] == DOC_ADDRESS
    assert data["key_source"] == "--private-key flag"


def test_invalid_chain_id_env_reported_as_config_error(monkeypatch):
    monkeypatch.setenv("POLYMARKET_CHAIN_ID", "polygon")
    result = runner.invoke(app, ["-o", "json", "approve", "list"])
    assert result.exit_code == 1
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert json.loads(result.stdout)["error"] == "ConfigError"
