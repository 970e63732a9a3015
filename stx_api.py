"""
Read-only Stacks API client (Hiro API / Stacks node RPC).

Implements:
- Account balance and nonce hint lookups
- Network (/v2/info) and PoX consensus (/v2/pox) info
- Read-only contract calls with Clarity result decoding
- Transaction lookup and fee estimation

Every call is a single attempt with no retry. Any non-2xx status or
transport failure raises NetworkQueryError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import requests

from stx_clarity import decode_clarity_value, encode_args
from stx_config import STXConfig
from stx_errors import NetworkQueryError

logger = logging.getLogger(__name__)

USTX_PER_STX = Decimal("1000000")


def ustx_to_stx(amount_ustx: int) -> str:
    return str(Decimal(int(amount_ustx)) / USTX_PER_STX)


@dataclass
class AccountSnapshot:
    """Point-in-time view of an address. Amounts in micro-STX."""

    address: str
    balance_ustx: int
    locked_ustx: int
    nonce_hint: int | None = None
    fungible_tokens: dict[str, Any] = field(default_factory=dict)
    non_fungible_tokens: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "balance_ustx": self.balance_ustx,
            "balance_stx": ustx_to_stx(self.balance_ustx),
            "locked_ustx": self.locked_ustx,
            "locked_stx": ustx_to_stx(self.locked_ustx),
            "nonce": self.nonce_hint,
            "fungible_tokens": self.fungible_tokens,
            "non_fungible_tokens": self.non_fungible_tokens,
        }


# ---------------------------------------------------------------------------
# Hiro API helpers
# ---------------------------------------------------------------------------


def _headers(cfg: STXConfig, content_type: str | None = None) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if content_type:
        headers["Content-Type"] = content_type
    if cfg.api_key:
        headers["X-API-Key"] = cfg.api_key
    return headers


def _check(resp: requests.Response, url: str) -> Any:
    if not resp.ok:
        body = resp.text or ""
        raise NetworkQueryError(
            f"HTTP {resp.status_code} from {url}: {body[:500]}",
            status=resp.status_code,
            body=body,
        )
    try:
        return resp.json()
    except ValueError as exc:
        raise NetworkQueryError(
            f"Invalid JSON from {url}", status=resp.status_code, body=resp.text or ""
        ) from exc


def _hiro_get(cfg: STXConfig, path: str, params: dict | None = None) -> Any:
    """GET request to the Stacks API."""
    url = f"{cfg.hiro_api_url}{path}"
    try:
        resp = requests.get(
            url, params=params, headers=_headers(cfg), timeout=cfg.http_timeout
        )
    except requests.RequestException as exc:
        raise NetworkQueryError(f"Request to {url} failed: {exc}") from exc
    return _check(resp, url)


def _hiro_post(cfg: STXConfig, path: str, data: Any = None) -> Any:
    """POST a JSON body to the Stacks API."""
    url = f"{cfg.hiro_api_url}{path}"
    try:
        resp = requests.post(
            url,
            json=data,
            headers=_headers(cfg, "application/json"),
            timeout=cfg.http_timeout,
        )
    except requests.RequestException as exc:
        raise NetworkQueryError(f"Request to {url} failed: {exc}") from exc
    return _check(resp, url)


def post_raw(cfg: STXConfig, path: str, body: bytes) -> requests.Response:
    """
    POST raw octets and return the response unchecked.

    Transport failures still raise requests.RequestException.
    """
    url = f"{cfg.hiro_api_url}{path}"
    return requests.post(
        url,
        data=body,
        headers=_headers(cfg, "application/octet-stream"),
        timeout=cfg.http_timeout,
    )


def _parse_amount(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, str) and value.startswith("0x"):
        return int(value, 16)
    return int(value)


# ---------------------------------------------------------------------------
# Account queries
# ---------------------------------------------------------------------------


def get_balance(cfg: STXConfig, address: str) -> AccountSnapshot:
    """Get STX balance, locked amount and token balances for an address."""
    data = _hiro_get(cfg, f"/extended/v1/address/{address}/balances")
    stx_data = data.get("stx", {})
    return AccountSnapshot(
        address=address,
        balance_ustx=_parse_amount(stx_data.get("balance")),
        locked_ustx=_parse_amount(stx_data.get("locked")),
        fungible_tokens=data.get("fungible_tokens", {}) or {},
        non_fungible_tokens=data.get("non_fungible_tokens", {}) or {},
    )


def get_nonce_hint(cfg: STXConfig, address: str) -> int:
    """Next nonce to use for an address, as reported by the API."""
    data = _hiro_get(cfg, f"/extended/v1/address/{address}/nonces")
    if data.get("possible_next_nonce") is None:
        raise NetworkQueryError(f"Nonce response for {address} has no possible_next_nonce")
    return int(data["possible_next_nonce"])


# ---------------------------------------------------------------------------
# Network / consensus
# ---------------------------------------------------------------------------


def get_network_info(cfg: STXConfig) -> dict[str, Any]:
    """Node info: tip heights, burn block height, network id, server version."""
    return _hiro_get(cfg, "/v2/info")


def get_pox_info(cfg: STXConfig) -> dict[str, Any]:
    """PoX consensus parameters: reward cycle length, first burn height, cycles."""
    return _hiro_get(cfg, "/v2/pox")


def get_transaction(cfg: STXConfig, txid: str) -> dict[str, Any]:
    """Transaction details by id."""
    tx_id = txid if txid.startswith("0x") else f"0x{txid}"
    return _hiro_get(cfg, f"/extended/v1/tx/{tx_id}")


# ---------------------------------------------------------------------------
# Read-only contract calls
# ---------------------------------------------------------------------------


def call_read_only(
    cfg: STXConfig,
    contract_address: str,
    contract_name: str,
    function_name: str,
    function_args: list[str | bytes] | None = None,
    sender: str | None = None,
) -> Any:
    """
    Call a read-only Clarity function and return the decoded native value.

    Uses the /v2/contracts/call-read endpoint. An 'okay: false' envelope
    raises NetworkQueryError carrying the node's cause.
    """
    arguments = ["0x" + arg.hex() for arg in encode_args(function_args)]
    path = f"/v2/contracts/call-read/{contract_address}/{contract_name}/{function_name}"
    data = _hiro_post(
        cfg, path, data={"sender": sender or contract_address, "arguments": arguments}
    )

    if not data.get("okay", False):
        cause = data.get("cause", "unknown cause")
        raise NetworkQueryError(
            f"Read-only call failed: {contract_address}.{contract_name}::{function_name}: {cause}",
            body=str(cause),
        )
    try:
        return decode_clarity_value(data.get("result", ""))
    except ValueError as exc:
        raise NetworkQueryError(
            f"Undecodable read-only result from {contract_name}::{function_name}: {exc}"
        ) from exc


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------


def estimate_fee(cfg: STXConfig, payload: bytes, estimated_len: int) -> int:
    """
    Estimate a fee in micro-STX for a transaction payload.

    Uses the middle estimate of /v2/fees/transaction. When the node has no
    estimate for this payload it falls back to the /v2/fees/transfer rate
    times the estimated length.
    """
    try:
        data = _hiro_post(
            cfg,
            "/v2/fees/transaction",
            data={"transaction_payload": "0x" + payload.hex(), "estimated_len": estimated_len},
        )
        estimations = data.get("estimations") or []
        if estimations:
            return int(estimations[len(estimations) // 2]["fee"])
    except NetworkQueryError as exc:
        if exc.status != 400:
            raise
        logger.info("No fee estimate available, using transfer rate: %s", exc)

    rate = _hiro_get(cfg, "/v2/fees/transfer")
    return int(rate) * estimated_len
