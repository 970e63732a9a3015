"""Unit tests for transaction broadcast."""

import json
import sys
from pathlib import Path

import requests

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

import stx_broadcast  # noqa: E402
from stx_config import STXConfig  # noqa: E402
from stx_signer import SignedTransaction  # noqa: E402


TXID = "ab" * 32


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


def _signed():
    return SignedTransaction(raw=b"\x80\x00", txid="0x" + TXID)


def test_accepted_broadcast(monkeypatch):
    calls = []

    def fake_post(cfg, path, body):
        calls.append((path, body))
        return FakeResponse(payload=TXID)

    monkeypatch.setattr(stx_broadcast, "post_raw", fake_post)

    result = stx_broadcast.submit(STXConfig.for_network("testnet"), _signed())
    assert result.success is True
    assert result.txid == "0x" + TXID
    assert result.error is None
    assert result.explorer_url == f"https://explorer.hiro.so/txid/0x{TXID}?chain=testnet"
    assert calls == [("/v2/transactions", b"\x80\x00")]


def test_rejected_broadcast_is_a_value(monkeypatch):
    monkeypatch.setattr(
        stx_broadcast,
        "post_raw",
        lambda cfg, path, body: FakeResponse(
            status_code=400,
            payload={"error": "transaction rejected", "reason": "BadNonce", "txid": TXID},
        ),
    )

    result = stx_broadcast.submit(STXConfig.for_network("testnet"), _signed())
    assert result.success is False
    assert result.txid == ""
    assert result.error == "transaction rejected"
    assert result.reason == "BadNonce"


def test_non_json_error_body(monkeypatch):
    monkeypatch.setattr(
        stx_broadcast,
        "post_raw",
        lambda cfg, path, body: FakeResponse(status_code=503, text="Service Unavailable"),
    )

    result = stx_broadcast.submit(STXConfig.for_network("mainnet"), _signed())
    assert result.success is False
    assert result.txid == ""
    assert "Service Unavailable" in result.error


def test_transport_failure_is_a_value(monkeypatch):
    def boom(cfg, path, body):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(stx_broadcast, "post_raw", boom)

    result = stx_broadcast.submit(STXConfig.for_network("testnet"), _signed())
    assert result.success is False
    assert result.txid == ""
    assert "refused" in result.error


def test_explorer_urls_per_network():
    assert stx_broadcast.explorer_url(STXConfig.for_network("mainnet"), TXID) == (
        f"https://explorer.hiro.so/txid/0x{TXID}"
    )
    devnet = STXConfig.for_network("devnet")
    assert stx_broadcast.explorer_url(devnet, "0x" + TXID) == (
        f"https://explorer.hiro.so/txid/0x{TXID}?chain=testnet&api=http://localhost:3999"
    )
