"""
Broadcast of signed Stacks transactions.

One POST per call, no retry. Rejections and transport failures come back
as BroadcastResult(success=False) rather than exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from stx_api import post_raw
from stx_config import STXConfig
from stx_signer import SignedTransaction

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    txid: str
    success: bool
    error: str | None = None
    explorer_url: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "txid": self.txid,
            "success": self.success,
            "error": self.error,
            "reason": self.reason,
            "explorer_url": self.explorer_url,
        }


def _normalize_txid(txid: str) -> str:
    txid = txid.strip().strip('"')
    return txid if txid.startswith("0x") else f"0x{txid}"


def explorer_url(cfg: STXConfig, txid: str) -> str:
    """Explorer link for a transaction on the configured network."""
    url = f"{cfg.explorer_url}/txid/{_normalize_txid(txid)}"
    if cfg.network == "testnet":
        url += "?chain=testnet"
    elif cfg.network == "devnet":
        url += f"?chain=testnet&api={cfg.hiro_api_url}"
    return url


def submit(cfg: STXConfig, signed: SignedTransaction) -> BroadcastResult:
    """POST the signed bytes to /v2/transactions."""
    try:
        resp = post_raw(cfg, "/v2/transactions", signed.raw)
    except requests.RequestException as exc:
        logger.warning("Broadcast of %s failed: %s", signed.txid, exc)
        return BroadcastResult(txid="", success=False, error=f"Broadcast request failed: {exc}")

    try:
        data = resp.json()
    except ValueError:
        data = None

    if not resp.ok:
        if isinstance(data, dict):
            error = str(data.get("error") or resp.text or f"HTTP {resp.status_code}")
            reason = data.get("reason")
        else:
            error = resp.text or f"HTTP {resp.status_code}"
            reason = None
        logger.warning(
            "Broadcast of %s rejected (HTTP %s): %s %s", signed.txid, resp.status_code, error, reason or ""
        )
        return BroadcastResult(
            txid="", success=False, error=error, reason=str(reason) if reason else None
        )

    if isinstance(data, str):
        txid = data
    elif isinstance(data, dict):
        txid = data.get("txid") or data.get("tx_id") or data.get("transaction_id") or signed.txid
    else:
        txid = (resp.text or "").strip() or signed.txid
    txid = _normalize_txid(txid)

    logger.info("Broadcast accepted: %s", txid)
    return BroadcastResult(txid=txid, success=True, explorer_url=explorer_url(cfg, txid))
