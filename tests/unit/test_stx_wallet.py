"""Unit tests for the wallet context and orchestrated operations."""

import sys
from pathlib import Path

import base58
import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

import stx_wallet  # noqa: E402
from stx_broadcast import BroadcastResult  # noqa: E402
from stx_config import STXConfig  # noqa: E402
from stx_errors import TransactionValidationError  # noqa: E402
from stx_identity import resolve_identity  # noqa: E402
from stx_nonce import NonceSequencer  # noqa: E402
from stx_stacking import EligibilityResult  # noqa: E402
from stx_transactions import FixedFeeStrategy, TransactionKind  # noqa: E402


DEPLOYER_KEY = "753b7cc01a1a2e86221266a154af739463fce51219d97e4f856cd7200c3bd2a601"
RECIPIENT = "ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG"
REWARD_ADDRESS = base58.b58encode_check(b"\x6f" + bytes(range(20))).decode()
SIGNER_KEY = "03" + "22" * 32
POX_INFO = {
    "contract_id": "ST000000000000000000002AMW42H.pox-4",
    "first_burnchain_block_height": 100,
    "reward_cycle_length": 20,
    "current_burnchain_block_height": 345,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class HintSource:
    def __init__(self, hint=5):
        self.hint = hint
        self.calls = 0

    def __call__(self, address):
        self.calls += 1
        return self.hint


class Relay:
    """Stands in for the broadcaster. An accepted transaction advances the node's nonce."""

    def __init__(self, accept=True, hints=None):
        self.accept = accept
        self.hints = hints
        self.submitted = []

    def __call__(self, cfg, signed):
        self.submitted.append(signed)
        if self.accept:
            if self.hints is not None:
                self.hints.hint = int.from_bytes(signed.raw[27:35], "big") + 1
            return BroadcastResult(
                txid=signed.txid, success=True, explorer_url=f"https://explorer/{signed.txid}"
            )
        return BroadcastResult(txid="", success=False, error="transaction rejected", reason="BadNonce")


def _wallet(hints=None, **kwargs):
    cfg = STXConfig.for_network("testnet")
    identity = resolve_identity("testnet", private_key=DEPLOYER_KEY)
    sequencer = NonceSequencer(hints or HintSource())
    return stx_wallet.STXWallet(cfg, identity, sequencer=sequencer, **kwargs)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def test_from_config_resolves_identity():
    cfg = STXConfig.for_network("testnet", private_key=DEPLOYER_KEY)
    wallet = stx_wallet.STXWallet.from_config(cfg)
    assert wallet.address == "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"
    assert DEPLOYER_KEY not in repr(wallet)
    assert DEPLOYER_KEY not in repr(cfg)


def test_network_mismatch_rejected():
    cfg = STXConfig.for_network("mainnet")
    identity = resolve_identity("testnet", private_key=DEPLOYER_KEY)
    with pytest.raises(ValueError):
        stx_wallet.STXWallet(cfg, identity)


def test_parse_asset_id():
    assert stx_wallet.parse_asset_id("ST000000000000000000002AMW42H.my-token::tok") == (
        "ST000000000000000000002AMW42H", "my-token", "tok",
    )
    with pytest.raises(TransactionValidationError):
        stx_wallet.parse_asset_id("ST000000000000000000002AMW42H.my-token")


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


def test_transfer_uses_hint_and_broadcasts(monkeypatch):
    relay = Relay()
    monkeypatch.setattr(stx_wallet, "submit", relay)
    wallet = _wallet()

    result = wallet.transfer_stx(RECIPIENT, 1000, memo="hi", dry_run=False)
    assert result["success"] is True
    assert result["nonce"] == 5
    assert result["fee_ustx"] == 2000
    assert result["txid"] == relay.submitted[0].txid
    assert result["txid"].startswith("0x")
    assert result["dry_run"] is False
    assert result["kind"] == "transfer"


def test_next_transfer_follows_advanced_hint(monkeypatch):
    hints = HintSource()
    monkeypatch.setattr(stx_wallet, "submit", Relay(hints=hints))
    wallet = _wallet(hints)

    first = wallet.transfer_stx(RECIPIENT, 1000, dry_run=False)
    second = wallet.transfer_stx(RECIPIENT, 1000, dry_run=False)
    assert (first["nonce"], second["nonce"]) == (5, 6)


def test_hint_not_advanced_is_reused(monkeypatch):
    # an accepted transaction the node has not counted yet leaves no local state
    monkeypatch.setattr(stx_wallet, "submit", Relay())
    wallet = _wallet()

    nonces = [wallet.transfer_stx(RECIPIENT, 1000, dry_run=False)["nonce"] for _ in range(3)]
    assert nonces == [5, 5, 5]


def test_rejected_broadcast_returns_failure(monkeypatch):
    monkeypatch.setattr(stx_wallet, "submit", Relay(accept=False))
    wallet = _wallet()

    result = wallet.transfer_stx(RECIPIENT, 1000, dry_run=False)
    assert result["success"] is False
    assert result["txid"] == ""
    assert result["error"] == "transaction rejected"
    # a rejected nonce is not consumed
    assert wallet.transfer_stx(RECIPIENT, 1000, dry_run=False)["nonce"] == 5


def test_malformed_recipient_makes_no_network_call(monkeypatch):
    relay = Relay()
    monkeypatch.setattr(stx_wallet, "submit", relay)
    hints = HintSource()
    wallet = _wallet(hints)

    with pytest.raises(TransactionValidationError):
        wallet.transfer_stx("ST-garbage", 1000, dry_run=False)
    assert hints.calls == 0
    assert relay.submitted == []


def test_dry_run_signs_without_broadcast(monkeypatch):
    relay = Relay()
    monkeypatch.setattr(stx_wallet, "submit", relay)
    wallet = _wallet()

    result = wallet.transfer_stx(RECIPIENT, 1000, dry_run=True)
    assert result["success"] is True
    assert result["dry_run"] is True
    assert result["txid"].startswith("0x")
    assert result["tx_hex"]
    assert relay.submitted == []


def test_dry_run_default_from_config(monkeypatch):
    relay = Relay()
    monkeypatch.setattr(stx_wallet, "submit", relay)
    wallet = _wallet()
    wallet.cfg.dry_run_default = True

    assert wallet.transfer_stx(RECIPIENT, 1000)["dry_run"] is True
    assert relay.submitted == []


def test_ft_and_nft_transfers_are_strict(monkeypatch):
    hints = HintSource()
    monkeypatch.setattr(stx_wallet, "submit", Relay(hints=hints))
    wallet = _wallet(hints)

    ft = wallet.transfer_fungible_token(
        "ST000000000000000000002AMW42H.my-token::tok", 10, RECIPIENT, dry_run=False
    )
    nft = wallet.transfer_nft(
        "ST000000000000000000002AMW42H.my-nft::nft", 3, RECIPIENT, dry_run=False
    )
    assert ft["post_condition_mode"] == "deny"
    assert nft["post_condition_mode"] == "deny"
    assert ft["nonce"] == 5
    assert nft["nonce"] == 6


def test_contract_call_is_permissive(monkeypatch):
    monkeypatch.setattr(stx_wallet, "submit", Relay())
    wallet = _wallet()

    result = wallet.call_contract(
        "ST000000000000000000002AMW42H", "counter", "increment", ["u1"], dry_run=False
    )
    assert result["post_condition_mode"] == "allow"
    assert result["contract_id"] == "ST000000000000000000002AMW42H.counter"


# ---------------------------------------------------------------------------
# Stacking
# ---------------------------------------------------------------------------


def test_stack_refused_when_ineligible(monkeypatch):
    relay = Relay()
    monkeypatch.setattr(stx_wallet, "submit", relay)
    monkeypatch.setattr(stx_wallet, "get_pox_info", lambda cfg: POX_INFO)
    monkeypatch.setattr(
        stx_wallet,
        "check_eligibility",
        lambda *a, **k: EligibilityResult(eligible=False, reason="ERR_STACKING_ALREADY_STACKED"),
    )
    wallet = _wallet()

    result = wallet.stack_stx(6000, REWARD_ADDRESS, 6, SIGNER_KEY, fee=1000, dry_run=False)
    assert result["success"] is False
    assert result["txid"] == ""
    assert "ERR_STACKING_ALREADY_STACKED" in result["error"]
    assert relay.submitted == []


def test_stack_broadcasts_when_unverified(monkeypatch):
    relay = Relay()
    seen = {}

    def fake_check(cfg, address, reward_address, cycles, **kwargs):
        seen.update(kwargs)
        return EligibilityResult(eligible=True, reason="could not be verified", verified=False)

    monkeypatch.setattr(stx_wallet, "submit", relay)
    monkeypatch.setattr(stx_wallet, "get_pox_info", lambda cfg: POX_INFO)
    monkeypatch.setattr(stx_wallet, "check_eligibility", fake_check)
    wallet = _wallet(
        stacking_fee_strategy=FixedFeeStrategy({TransactionKind.STAKE_DELEGATE: 50000})
    )

    result = wallet.stack_stx(6000, REWARD_ADDRESS, 6, SIGNER_KEY, dry_run=False)
    assert result["success"] is True
    assert result["fee_ustx"] == 50000
    assert result["start_burn_height"] == 345
    assert result["pox_contract"] == "ST000000000000000000002AMW42H.pox-4"
    assert result["eligibility"]["verified"] is False
    assert seen["start_burn_height"] == 345
    assert len(relay.submitted) == 1


def test_stack_invalid_cycles_before_network(monkeypatch):
    def no_network(*args, **kwargs):
        raise AssertionError("network should not be touched")

    monkeypatch.setattr(stx_wallet, "get_pox_info", no_network)
    hints = HintSource()
    wallet = _wallet(hints)

    with pytest.raises(TransactionValidationError):
        wallet.stack_stx(6000, REWARD_ADDRESS, 13, SIGNER_KEY, fee=1, dry_run=False)
    assert hints.calls == 0


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


def test_get_wallet_info_has_no_secret():
    info = _wallet().get_wallet_info()
    assert info["address"] == "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"
    assert DEPLOYER_KEY[:64] not in str(info)


def test_read_contract_decodes(monkeypatch):
    from stx_clarity import ClarityResponse

    monkeypatch.setattr(
        stx_wallet,
        "call_read_only",
        lambda *a, **k: ClarityResponse(ok=True, value=b"\x01"),
    )
    result = _wallet().read_contract("ST000000000000000000002AMW42H.counter", "get-count")
    assert result["result"] == {"ok": True, "value": "0x01"}


def test_get_nonce_reports_hint(monkeypatch):
    monkeypatch.setattr(stx_wallet, "get_nonce_hint", lambda cfg, address: 11)
    assert _wallet().get_nonce()["nonce"] == 11
