#!/usr/bin/env python3
"""
MCP server for Stacks (STX) wallet operations.

Tools cover the wallet identity, balances and nonces, network and
transaction lookups, read-only contract calls, the four transfer/call
transaction kinds and solo stacking (eligibility, stack-stx, status).

Wraps stx_wallet.py as MCP tools.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
import threading
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, List

from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

# Load .env from current directory or parent directories
SERVER_DIR = Path(__file__).resolve().parent
load_dotenv(SERVER_DIR / ".env")
load_dotenv(SERVER_DIR.parent / ".env")

from stx_clarity import to_json_value  # noqa: E402
from stx_transactions import stx_to_ustx  # noqa: E402
from stx_wallet import STXWallet  # noqa: E402

logger = logging.getLogger(__name__)

app = Server("stx_wallet")

_wallet: STXWallet | None = None
_wallet_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ok_response(data: dict[str, Any]) -> List[TextContent]:
    data.setdefault("success", True)
    return [TextContent(type="text", text=json.dumps(to_json_value(data), default=str))]


def _error_response(message: str) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps({"success": False, "error": message}))]


def _get_wallet() -> STXWallet:
    """Build the wallet context once per process."""
    global _wallet
    with _wallet_lock:
        if _wallet is None:
            _wallet = STXWallet.from_env()
            logger.info("Wallet ready: %s on %s", _wallet.address, _wallet.cfg.network)
        return _wallet


def _parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid {field_name}. Must be an integer.")
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"Invalid {field_name}. Must be an integer.") from exc
    if not parsed.is_finite() or parsed != parsed.to_integral_value():
        raise ValueError(f"Invalid {field_name}. Must be an integer.")
    return int(parsed)


def _optional_int(arguments: dict[str, Any], field_name: str) -> int | None:
    value = arguments.get(field_name)
    if value is None:
        return None
    return _parse_int(value, field_name)


def _resolve_amount_ustx(arguments: dict[str, Any]) -> int:
    amount_stx = arguments.get("amount_stx")
    amount_ustx = arguments.get("amount_ustx")

    if amount_stx is not None and amount_ustx is not None:
        raise ValueError("Provide exactly one of amount_stx or amount_ustx, not both.")
    if amount_stx is None and amount_ustx is None:
        raise ValueError("Missing amount. Provide amount_stx or amount_ustx.")

    if amount_stx is not None:
        return stx_to_ustx(amount_stx)
    return _parse_int(amount_ustx, "amount_ustx")


_FEE_PROP = {"type": "integer", "description": "Optional fee override in micro-STX"}
_DRY_RUN_PROP = {
    "type": "boolean",
    "description": "If true, build and sign but do not broadcast (default from STX_DRY_RUN)",
}
_AMOUNT_PROPS = {
    "amount_stx": {
        "type": "string",
        "description": "Amount in STX, truncated to whole micro-STX (e.g. '1.5')",
    },
    "amount_ustx": {
        "type": "integer",
        "description": "Amount in micro-STX (1 STX = 1000000 uSTX)",
    },
}
_ADDRESS_PROP = {
    "type": "string",
    "description": "Stacks address (defaults to the wallet's own address)",
}


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


@app.list_tools()
async def list_tools() -> List[Tool]:
    return [
        # -- Identity & account --
        Tool(
            name="stx_get_wallet_info",
            description=(
                "Return the wallet's Stacks address, public key, network and "
                "derivation path. Never returns the secret."
            ),
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="stx_get_balance",
            description="Get STX balance (total and locked) and token balances for an address.",
            inputSchema={"type": "object", "properties": {"address": _ADDRESS_PROP}},
        ),
        Tool(
            name="stx_get_nonce",
            description="Get the next nonce the network expects for an address.",
            inputSchema={"type": "object", "properties": {"address": _ADDRESS_PROP}},
        ),
        # -- Network & lookups --
        Tool(
            name="stx_get_network_info",
            description="Return node info: network id, chain tip height, burn block height.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="stx_get_transaction",
            description="Look up a transaction by txid and return its status.",
            inputSchema={
                "type": "object",
                "properties": {"txid": {"type": "string", "description": "Transaction id"}},
                "required": ["txid"],
            },
        ),
        Tool(
            name="stx_read_contract",
            description=(
                "Call a read-only Clarity function. Arguments use Clarity syntax "
                "(u100, 'SP..., \"text\", none, (some u1)). The result is decoded."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "contract_id": {
                        "type": "string",
                        "description": "Contract identifier 'address.contract-name'",
                    },
                    "function_name": {"type": "string", "description": "Function to call"},
                    "function_args": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Clarity-encoded arguments",
                    },
                    "sender": {"type": "string", "description": "Optional sender address"},
                },
                "required": ["contract_id", "function_name"],
            },
        ),
        # -- Transactions --
        Tool(
            name="stx_transfer_stx",
            description=(
                "Transfer STX to a recipient. Provide amount_stx or amount_ustx. "
                "Supports an optional memo. Requires explicit user confirmation."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "recipient": {"type": "string", "description": "Recipient Stacks address or contract principal"},
                    **_AMOUNT_PROPS,
                    "memo": {"type": "string", "description": "Optional memo (max 34 bytes)"},
                    "fee": _FEE_PROP,
                    "dry_run": _DRY_RUN_PROP,
                },
                "required": ["recipient"],
            },
        ),
        Tool(
            name="stx_call_contract",
            description=(
                "Call a public Clarity smart contract function. "
                "Post-condition mode is allow."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "contract_id": {
                        "type": "string",
                        "description": "Contract identifier 'address.contract-name'",
                    },
                    "function_name": {"type": "string", "description": "Function to call"},
                    "function_args": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Clarity-encoded arguments",
                    },
                    "fee": _FEE_PROP,
                    "dry_run": _DRY_RUN_PROP,
                },
                "required": ["contract_id", "function_name"],
            },
        ),
        Tool(
            name="stx_transfer_ft",
            description=(
                "Transfer a SIP-010 fungible token. Attaches a deny-mode post-condition "
                "that the wallet sends exactly the amount."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "recipient": {"type": "string", "description": "Recipient Stacks address or contract principal"},
                    "asset": {
                        "type": "string",
                        "description": "Fully qualified asset: 'address.contract-name::token-name'",
                    },
                    "amount": {"type": "integer", "description": "Amount in base units"},
                    "memo": {"type": "string", "description": "Optional memo (max 34 bytes)"},
                    "fee": _FEE_PROP,
                    "dry_run": _DRY_RUN_PROP,
                },
                "required": ["recipient", "asset", "amount"],
            },
        ),
        Tool(
            name="stx_transfer_nft",
            description=(
                "Transfer a SIP-009 NFT. Attaches a deny-mode post-condition that "
                "the wallet sends the token."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "recipient": {"type": "string", "description": "Recipient Stacks address or contract principal"},
                    "asset": {
                        "type": "string",
                        "description": "Fully qualified asset: 'address.contract-name::nft-name'",
                    },
                    "token_id": {
                        "type": "string",
                        "description": "Token id (uint, or a Clarity value such as u5)",
                    },
                    "fee": _FEE_PROP,
                    "dry_run": _DRY_RUN_PROP,
                },
                "required": ["recipient", "asset", "token_id"],
            },
        ),
        # -- Stacking --
        Tool(
            name="stx_check_stacking_eligibility",
            description=(
                "Check whether the wallet can stack now for the given reward address "
                "and number of cycles (1-12)."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "reward_address": {"type": "string", "description": "Bitcoin reward address"},
                    "cycles": {"type": "integer", "description": "Lock period in cycles (1-12)"},
                    **_AMOUNT_PROPS,
                    "address": _ADDRESS_PROP,
                },
                "required": ["reward_address", "cycles"],
            },
        ),
        Tool(
            name="stx_stack",
            description=(
                "Solo stack STX through pox-4 stack-stx. Runs the eligibility check "
                "first. Requires explicit user confirmation."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **_AMOUNT_PROPS,
                    "reward_address": {"type": "string", "description": "Bitcoin reward address"},
                    "cycles": {"type": "integer", "description": "Lock period in cycles (1-12)"},
                    "signer_key": {
                        "type": "string",
                        "description": "Signer public key (33-byte compressed, hex)",
                    },
                    "signer_signature": {
                        "type": "string",
                        "description": "Optional signer authorization signature (65 bytes, hex)",
                    },
                    "max_amount": {
                        "type": "integer",
                        "description": "Max amount the signer authorized (defaults to amount)",
                    },
                    "auth_id": {"type": "integer", "description": "Signer authorization id"},
                    "start_burn_height": {
                        "type": "integer",
                        "description": "Optional start burn height (defaults to current)",
                    },
                    "fee": _FEE_PROP,
                    "dry_run": _DRY_RUN_PROP,
                },
                "required": ["reward_address", "cycles", "signer_key"],
            },
        ),
        Tool(
            name="stx_get_stacking_info",
            description="Get PoX cycle info and the stacking status of an address.",
            inputSchema={"type": "object", "properties": {"address": _ADDRESS_PROP}},
        ),
    ]


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> List[TextContent]:
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        return _error_response("Invalid arguments. Expected an object.")

    try:
        if name == "stx_get_wallet_info":
            return await _handle_get_wallet_info()
        if name == "stx_get_balance":
            return await _handle_get_balance(arguments)
        if name == "stx_get_nonce":
            return await _handle_get_nonce(arguments)
        if name == "stx_get_network_info":
            return await _handle_get_network_info()
        if name == "stx_get_transaction":
            return await _handle_get_transaction(arguments)
        if name == "stx_read_contract":
            return await _handle_read_contract(arguments)

        if name == "stx_transfer_stx":
            return await _handle_transfer_stx(arguments)
        if name == "stx_call_contract":
            return await _handle_call_contract(arguments)
        if name == "stx_transfer_ft":
            return await _handle_transfer_ft(arguments)
        if name == "stx_transfer_nft":
            return await _handle_transfer_nft(arguments)

        if name == "stx_check_stacking_eligibility":
            return await _handle_check_stacking_eligibility(arguments)
        if name == "stx_stack":
            return await _handle_stack(arguments)
        if name == "stx_get_stacking_info":
            return await _handle_get_stacking_info(arguments)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Tool %s failed: %s", name, exc)
        return _error_response(str(exc))

    return _error_response(f"Unknown tool: {name}")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_get_wallet_info() -> List[TextContent]:
    wallet = await asyncio.to_thread(_get_wallet)
    return _ok_response(wallet.get_wallet_info())


async def _handle_get_balance(arguments: dict[str, Any]) -> List[TextContent]:
    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(wallet.get_balance, arguments.get("address"))
    return _ok_response(result)


async def _handle_get_nonce(arguments: dict[str, Any]) -> List[TextContent]:
    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(wallet.get_nonce, arguments.get("address"))
    return _ok_response(result)


async def _handle_get_network_info() -> List[TextContent]:
    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(wallet.get_network_info)
    return _ok_response(result)


async def _handle_get_transaction(arguments: dict[str, Any]) -> List[TextContent]:
    txid = (arguments.get("txid") or "").strip()
    if not txid:
        return _error_response("Missing 'txid' parameter.")
    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(wallet.get_transaction, txid)
    return _ok_response(result)


async def _handle_read_contract(arguments: dict[str, Any]) -> List[TextContent]:
    contract_id = (arguments.get("contract_id") or "").strip()
    if not contract_id:
        return _error_response("Missing 'contract_id' parameter.")
    function_name = (arguments.get("function_name") or "").strip()
    if not function_name:
        return _error_response("Missing 'function_name' parameter.")

    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(
        wallet.read_contract,
        contract_id,
        function_name,
        arguments.get("function_args") or [],
        arguments.get("sender"),
    )
    return _ok_response(result)


async def _handle_transfer_stx(arguments: dict[str, Any]) -> List[TextContent]:
    recipient = (arguments.get("recipient") or "").strip()
    if not recipient:
        return _error_response("Missing 'recipient' parameter.")
    amount_ustx = _resolve_amount_ustx(arguments)

    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(
        wallet.transfer_stx,
        recipient,
        amount_ustx,
        arguments.get("memo") or "",
        _optional_int(arguments, "fee"),
        arguments.get("dry_run"),
    )
    return _ok_response(result)


async def _handle_call_contract(arguments: dict[str, Any]) -> List[TextContent]:
    contract_id = (arguments.get("contract_id") or "").strip()
    if not contract_id:
        return _error_response("Missing 'contract_id' parameter.")
    function_name = (arguments.get("function_name") or "").strip()
    if not function_name:
        return _error_response("Missing 'function_name' parameter.")
    parts = contract_id.split(".")
    if len(parts) != 2:
        return _error_response("Contract ID must be in format 'address.contract-name'")

    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(
        wallet.call_contract,
        parts[0],
        parts[1],
        function_name,
        arguments.get("function_args") or [],
        _optional_int(arguments, "fee"),
        arguments.get("dry_run"),
    )
    return _ok_response(result)


async def _handle_transfer_ft(arguments: dict[str, Any]) -> List[TextContent]:
    recipient = (arguments.get("recipient") or "").strip()
    asset = (arguments.get("asset") or "").strip()
    amount = arguments.get("amount")
    if not recipient:
        return _error_response("Missing 'recipient' parameter.")
    if not asset:
        return _error_response("Missing 'asset' parameter.")
    if amount is None:
        return _error_response("Missing 'amount' parameter.")

    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(
        wallet.transfer_fungible_token,
        asset,
        _parse_int(amount, "amount"),
        recipient,
        arguments.get("memo"),
        _optional_int(arguments, "fee"),
        arguments.get("dry_run"),
    )
    return _ok_response(result)


async def _handle_transfer_nft(arguments: dict[str, Any]) -> List[TextContent]:
    recipient = (arguments.get("recipient") or "").strip()
    asset = (arguments.get("asset") or "").strip()
    token_id = arguments.get("token_id")
    if not recipient:
        return _error_response("Missing 'recipient' parameter.")
    if not asset:
        return _error_response("Missing 'asset' parameter.")
    if token_id is None or str(token_id).strip() == "":
        return _error_response("Missing 'token_id' parameter.")

    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(
        wallet.transfer_nft,
        asset,
        token_id,
        recipient,
        _optional_int(arguments, "fee"),
        arguments.get("dry_run"),
    )
    return _ok_response(result)


async def _handle_check_stacking_eligibility(arguments: dict[str, Any]) -> List[TextContent]:
    reward_address = (arguments.get("reward_address") or "").strip()
    if not reward_address:
        return _error_response("Missing 'reward_address' parameter.")
    if arguments.get("cycles") is None:
        return _error_response("Missing 'cycles' parameter.")
    amount_ustx = None
    if arguments.get("amount_stx") is not None or arguments.get("amount_ustx") is not None:
        amount_ustx = _resolve_amount_ustx(arguments)

    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(
        wallet.check_stacking,
        reward_address,
        _parse_int(arguments["cycles"], "cycles"),
        amount_ustx,
        arguments.get("address"),
    )
    return _ok_response(result)


async def _handle_stack(arguments: dict[str, Any]) -> List[TextContent]:
    reward_address = (arguments.get("reward_address") or "").strip()
    if not reward_address:
        return _error_response("Missing 'reward_address' parameter.")
    if arguments.get("cycles") is None:
        return _error_response("Missing 'cycles' parameter.")
    signer_key = (arguments.get("signer_key") or "").strip()
    if not signer_key:
        return _error_response("Missing 'signer_key' parameter.")
    amount_ustx = _resolve_amount_ustx(arguments)

    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(
        wallet.stack_stx,
        amount_ustx,
        reward_address,
        _parse_int(arguments["cycles"], "cycles"),
        signer_key,
        arguments.get("signer_signature"),
        _optional_int(arguments, "max_amount"),
        _optional_int(arguments, "auth_id") or 0,
        _optional_int(arguments, "start_burn_height"),
        _optional_int(arguments, "fee"),
        arguments.get("dry_run"),
    )
    return _ok_response(result)


async def _handle_get_stacking_info(arguments: dict[str, Any]) -> List[TextContent]:
    wallet = await asyncio.to_thread(_get_wallet)
    result = await asyncio.to_thread(wallet.get_stacking_info, arguments.get("address"))
    return _ok_response(result)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def main() -> None:
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run() -> None:
    # stdout carries the MCP transport
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
