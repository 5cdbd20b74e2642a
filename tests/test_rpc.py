# tests/test_rpc.py
import dataclasses
from unittest.mock import MagicMock

import pytest
import requests
from eth_account import Account
from polytrade.auth import SignatureType
from polytrade.config import ContractRole
from polytrade.ctf import OnChainTxBuilder
from polytrade.exceptions import (
    ConfigError,
    NetworkError,
    RateLimitError,
    TransactionFailed,
    UpstreamAPIError,
)
from polytrade.rpc import RpcClient, route_calls, send_call, send_calls


def _rpc_response(result=None, error=None, status=200):
    response = MagicMock()
    response.status_code = status
    body = {"jsonrpc": "2.0", "id": 1}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    response.json.return_value = body
    return response


@pytest.fixture
def session():
    return MagicMock()


def test_call_payload(session):
    session.post.return_value = _rpc_response("0x89")
    rpc = RpcClient("https://rpc.example", session=session)
    assert rpc.chain_id() == 137
    _, kwargs = session.post.call_args
    assert kwargs["json"]["method"] == "eth_chainId"
    assert kwargs["json"]["jsonrpc"] == "2.0"


def test_transaction_count_uses_pending(session):
    session.post.return_value = _rpc_response("0x5")
    assert RpcClient("u", session=session).get_transaction_count("0xabc") == 5
    assert session.post.call_args[1]["json"]["params"] == ["0xabc", "pending"]


def test_rpc_error_not_retried(session):
    session.post.return_value = _rpc_response(error={"code": -32000, "message": "insufficient funds"})
    with pytest.raises(TransactionFailed, match="insufficient funds"):
        RpcClient("u", session=session).send_raw_transaction("0x00")
    assert session.post.call_count == 1


@pytest.mark.parametrize(
    "status, error, calls",
    [(429, RateLimitError, 3), (503, UpstreamAPIError, 3), (400, TransactionFailed, 1)],
)
def test_http_status_mapping(session, status, error, calls):
    session.post.return_value = _rpc_response(status=status)
    with pytest.raises(error):
        RpcClient("u", session=session).gas_price()
    assert session.post.call_count == calls


def test_connection_error(session):
    session.post.side_effect = requests.exceptions.ConnectionError("refused")
    with pytest.raises(NetworkError):
        RpcClient("u", session=session).gas_price()


def test_wait_for_receipt_times_out(session):
    session.post.return_value = _rpc_response(None)
    assert RpcClient("u", session=session).wait_for_receipt("0xh", max_polls=2, poll_interval=0) is None


def test_route_calls(polygon):
    builder = OnChainTxBuilder(polygon)
    calls = builder.approval_calls()
    assert route_calls(SignatureType.EOA, builder, calls) == calls
    routed = route_calls(SignatureType.PROXY, builder, calls)
    assert len(routed) == len(calls)
    for wrapped, call in zip(routed, calls):
        assert wrapped.function == "proxy"
        assert wrapped.data == builder.wrap_for_proxy([call]).data
        assert wrapped.description == call.description
    with pytest.raises(ConfigError, match="Gnosis Safe"):
        route_calls(SignatureType.GNOSIS_SAFE, builder, calls)


def _fake_rpc(receipt):
    rpc = MagicMock()
    rpc.estimate_gas.return_value = 100_000
    rpc.get_transaction_count.return_value = 3
    rpc.gas_price.return_value = 30_000_000_000
    rpc.send_raw_transaction.return_value = "0xtxhash"
    rpc.wait_for_receipt.return_value = receipt
    return rpc


def test_send_call_signs_locally(identity, polygon):
    rpc = _fake_rpc({"blockNumber": "0x10", "status": "0x1"})
    call = OnChainTxBuilder(polygon).approval_calls()[0]
    result = send_call(rpc, identity, call)
    assert result.status == "confirmed"
    assert result.block_number == 16
    assert result.tx_hash == "0xtxhash"

    raw = rpc.send_raw_transaction.call_args[0][0]
    assert Account.recover_transaction(raw) == identity.signer_address
    estimate = rpc.estimate_gas.call_args[0][0]
    assert estimate["from"] == identity.signer_address
    assert estimate["to"] == polygon.collateral


def test_send_call_reverted(identity, polygon):
    rpc = _fake_rpc({"blockNumber": "0x10", "status": "0x0"})
    call = OnChainTxBuilder(polygon).approval_calls()[0]
    with pytest.raises(TransactionFailed, match="reverted"):
        send_call(rpc, identity, call)


def test_send_call_no_wait(identity, polygon):
    rpc = _fake_rpc(None)
    result = send_call(rpc, identity, OnChainTxBuilder(polygon).approval_calls()[0], wait=False)
    assert result.status == "submitted"
    rpc.wait_for_receipt.assert_not_called()


def test_send_call_pending(identity, polygon):
    rpc = _fake_rpc(None)
    result = send_call(rpc, identity, OnChainTxBuilder(polygon).approval_calls()[0])
    assert result.status == "pending"


def test_send_calls_eoa_sends_each(identity, polygon):
    rpc = _fake_rpc({"blockNumber": "0x1", "status": "0x1"})
    builder = OnChainTxBuilder(polygon)
    results = send_calls(rpc, identity, builder, builder.approval_calls())
    assert len(results) == 6
    assert rpc.send_raw_transaction.call_count == 6


def test_send_calls_proxy_sends_each_approval_on_its_own(identity, polygon):
    rpc = _fake_rpc({"blockNumber": "0x1", "status": "0x1"})
    builder = OnChainTxBuilder(polygon)
    proxy_identity = dataclasses.replace(identity, signature_type=SignatureType.PROXY)
    results = send_calls(rpc, proxy_identity, builder, builder.approval_calls())
    assert len(results) == 6
    assert rpc.send_raw_transaction.call_count == 6
    factory = polygon.address(ContractRole.PROXY_FACTORY)
    assert all(c[0][0]["to"] == factory for c in rpc.estimate_gas.call_args_list)
