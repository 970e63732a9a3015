"""Unit tests for the read-only Stacks API client."""

import json
import sys
from pathlib import Path

import pytest
import requests

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

import stx_api  # noqa: E402
from stx_clarity import ClarityResponse, uint_cv  # noqa: E402
from stx_config import STXConfig  # noqa: E402
from stx_errors import NetworkQueryError  # noqa: E402


ADDRESS = "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload


class Recorder:
    """Records requests and replies with queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.responses.pop(0)


def _cfg(**overrides):
    return STXConfig.for_network("testnet", **overrides)


# ---------------------------------------------------------------------------
# Account queries
# ---------------------------------------------------------------------------


def test_get_balance(monkeypatch):
    recorder = Recorder(
        FakeResponse(
            payload={
                "stx": {"balance": "5000000", "locked": "1000000"},
                "fungible_tokens": {"SP..token::tok": {"balance": "7"}},
                "non_fungible_tokens": {},
            }
        )
    )
    monkeypatch.setattr(stx_api.requests, "get", recorder)

    snapshot = stx_api.get_balance(_cfg(), ADDRESS)
    assert snapshot.balance_ustx == 5000000
    assert snapshot.locked_ustx == 1000000
    assert snapshot.to_dict()["balance_stx"] == "5"
    assert "SP..token::tok" in snapshot.fungible_tokens

    url, kwargs = recorder.calls[0]
    assert url == f"https://api.testnet.hiro.so/extended/v1/address/{ADDRESS}/balances"
    assert kwargs["timeout"] is None


def test_get_nonce_hint(monkeypatch):
    recorder = Recorder(FakeResponse(payload={"possible_next_nonce": 5}))
    monkeypatch.setattr(stx_api.requests, "get", recorder)

    assert stx_api.get_nonce_hint(_cfg(), ADDRESS) == 5
    assert recorder.calls[0][0].endswith(f"/extended/v1/address/{ADDRESS}/nonces")


def test_api_key_and_timeout_are_sent(monkeypatch):
    recorder = Recorder(FakeResponse(payload={"possible_next_nonce": 0}))
    monkeypatch.setattr(stx_api.requests, "get", recorder)

    stx_api.get_nonce_hint(_cfg(api_key="secret-key", http_timeout=3.0), ADDRESS)
    _url, kwargs = recorder.calls[0]
    assert kwargs["headers"]["X-API-Key"] == "secret-key"
    assert kwargs["timeout"] == 3.0


def test_non_2xx_raises_with_status(monkeypatch):
    recorder = Recorder(FakeResponse(status_code=404, payload={"error": "not found"}))
    monkeypatch.setattr(stx_api.requests, "get", recorder)

    with pytest.raises(NetworkQueryError) as excinfo:
        stx_api.get_balance(_cfg(), ADDRESS)
    assert excinfo.value.status == 404
    assert "not found" in excinfo.value.body


def test_transport_failure_raises(monkeypatch):
    def boom(url, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(stx_api.requests, "get", boom)
    with pytest.raises(NetworkQueryError) as excinfo:
        stx_api.get_network_info(_cfg())
    assert excinfo.value.status is None


def test_get_transaction_adds_prefix(monkeypatch):
    recorder = Recorder(FakeResponse(payload={"tx_id": "0xabc", "tx_status": "success"}))
    monkeypatch.setattr(stx_api.requests, "get", recorder)

    result = stx_api.get_transaction(_cfg(), "abc")
    assert result["tx_status"] == "success"
    assert recorder.calls[0][0].endswith("/extended/v1/tx/0xabc")


# ---------------------------------------------------------------------------
# Read-only calls
# ---------------------------------------------------------------------------


def test_call_read_only_decodes_result(monkeypatch):
    recorder = Recorder(FakeResponse(payload={"okay": True, "result": "0x" + uint_cv(42).hex()}))
    monkeypatch.setattr(stx_api.requests, "post", recorder)

    value = stx_api.call_read_only(
        _cfg(), ADDRESS, "counter", "get-count", ["u1"], sender=ADDRESS
    )
    assert value == 42

    url, kwargs = recorder.calls[0]
    assert url.endswith(f"/v2/contracts/call-read/{ADDRESS}/counter/get-count")
    assert kwargs["json"]["sender"] == ADDRESS
    assert kwargs["json"]["arguments"] == ["0x" + uint_cv(1).hex()]


def test_call_read_only_response_value(monkeypatch):
    recorder = Recorder(FakeResponse(payload={"okay": True, "result": "0x0703"}))
    monkeypatch.setattr(stx_api.requests, "post", recorder)

    value = stx_api.call_read_only(_cfg(), ADDRESS, "pox-4", "can-stack-stx")
    assert value == ClarityResponse(ok=True, value=True)


def test_call_read_only_not_okay_raises(monkeypatch):
    recorder = Recorder(FakeResponse(payload={"okay": False, "cause": "Unchecked(NoSuchContract)"}))
    monkeypatch.setattr(stx_api.requests, "post", recorder)

    with pytest.raises(NetworkQueryError) as excinfo:
        stx_api.call_read_only(_cfg(), ADDRESS, "missing", "get-x")
    assert "NoSuchContract" in str(excinfo.value)


def test_call_read_only_bad_principal_raises_network_error(monkeypatch):
    result = "0x05ff" + "00" * 20
    recorder = Recorder(FakeResponse(payload={"okay": True, "result": result}))
    monkeypatch.setattr(stx_api.requests, "post", recorder)

    with pytest.raises(NetworkQueryError):
        stx_api.call_read_only(_cfg(), ADDRESS, "registry", "get-owner")


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------


def test_estimate_fee_uses_middle_estimate(monkeypatch):
    recorder = Recorder(
        FakeResponse(
            payload={"estimations": [{"fee": 100}, {"fee": 250}, {"fee": 900}]}
        )
    )
    monkeypatch.setattr(stx_api.requests, "post", recorder)

    assert stx_api.estimate_fee(_cfg(), b"\x02", 200) == 250


def test_estimate_fee_falls_back_to_transfer_rate(monkeypatch):
    monkeypatch.setattr(
        stx_api.requests,
        "post",
        Recorder(FakeResponse(status_code=400, payload={"error": "Estimator error"})),
    )
    monkeypatch.setattr(stx_api.requests, "get", Recorder(FakeResponse(payload=2)))

    assert stx_api.estimate_fee(_cfg(), b"\x02", 200) == 400


def test_ustx_to_stx():
    assert stx_api.ustx_to_stx(1500000) == "1.5"
    assert stx_api.ustx_to_stx(1) == "0.000001"
