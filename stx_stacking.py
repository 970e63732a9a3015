"""
Stacking (PoX) support.

Implements:
- Bitcoin reward address -> PoX address tuple (version, hashbytes)
- Reward cycle arithmetic from /v2/pox consensus parameters
- Eligibility check ahead of a stack-stx transaction
- Stacking status lookup via the PoX contract

The eligibility check is advisory: the broadcast is the authoritative gate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import base58
import bech32

from stx_api import call_read_only, get_balance, get_pox_info
from stx_clarity import ClarityResponse, buffer_cv, to_json_value, tuple_cv, uint_cv
from stx_config import STXConfig
from stx_errors import NetworkQueryError, TransactionValidationError
from stx_identity import parse_contract_id

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# PoX stacking contract
POX_CONTRACT_MAINNET = "SP000000000000000000002Q6VF78.pox-4"
POX_CONTRACT_TESTNET = "ST000000000000000000002AMW42H.pox-4"

MIN_LOCK_CYCLES = 1
MAX_LOCK_CYCLES = 12

# PoX address versions
POX_VERSION_P2PKH = 0x00
POX_VERSION_P2SH = 0x01
POX_VERSION_P2WPKH = 0x04
POX_VERSION_P2WSH = 0x05
POX_VERSION_P2TR = 0x06

# Base58 version byte -> (PoX version, btc network)
_BASE58_VERSIONS = {
    0x00: (POX_VERSION_P2PKH, "mainnet"),
    0x05: (POX_VERSION_P2SH, "mainnet"),
    0x6F: (POX_VERSION_P2PKH, "testnet"),
    0xC4: (POX_VERSION_P2SH, "testnet"),
}

_BECH32_HRPS = {"bc": "mainnet", "tb": "testnet", "bcrt": "testnet"}

# pox-4 error codes
POX_ERRORS = {
    1: "ERR_STACKING_INSUFFICIENT_FUNDS",
    2: "ERR_STACKING_INVALID_LOCK_PERIOD",
    3: "ERR_STACKING_ALREADY_STACKED",
    4: "ERR_STACKING_NO_SUCH_PRINCIPAL",
    5: "ERR_STACKING_EXPIRED",
    6: "ERR_STACKING_STX_LOCKED",
    9: "ERR_STACKING_PERMISSION_DENIED",
    11: "ERR_STACKING_THRESHOLD_NOT_MET",
    12: "ERR_STACKING_POX_ADDRESS_IN_USE",
    13: "ERR_STACKING_INVALID_POX_ADDRESS",
    18: "ERR_STACKING_INVALID_AMOUNT",
    19: "ERR_NOT_ALLOWED",
    20: "ERR_STACKING_ALREADY_DELEGATED",
    21: "ERR_DELEGATION_EXPIRES_DURING_LOCK",
    22: "ERR_DELEGATION_TOO_MUCH_LOCKED",
    23: "ERR_DELEGATION_POX_ADDR_REQUIRED",
    24: "ERR_INVALID_START_BURN_HEIGHT",
    25: "ERR_NOT_CURRENT_STACKER",
    26: "ERR_STACK_EXTEND_NOT_LOCKED",
    27: "ERR_STACK_INCREASE_NOT_LOCKED",
    28: "ERR_DELEGATION_NO_REWARD_SLOT",
    29: "ERR_DELEGATION_WRONG_REWARD_SLOT",
    30: "ERR_STACKING_IS_DELEGATED",
    31: "ERR_STACKING_NOT_DELEGATED",
    32: "ERR_INVALID_SIGNER_KEY",
    33: "ERR_REUSED_SIGNER_KEY",
    34: "ERR_DELEGATION_ALREADY_REVOKED",
    35: "ERR_INVALID_SIGNATURE_PUBKEY",
    36: "ERR_INVALID_SIGNATURE_RECOVER",
    37: "ERR_INVALID_REWARD_CYCLE",
    38: "ERR_SIGNER_AUTH_AMOUNT_TOO_HIGH",
    39: "ERR_SIGNER_AUTH_USED",
    40: "ERR_INVALID_INCREASE",
    254: "ERR_STACKING_CORRUPTED_STATE",
    255: "ERR_STACKING_UNREACHABLE",
}


def default_pox_contract(network: str) -> str:
    return POX_CONTRACT_MAINNET if network == "mainnet" else POX_CONTRACT_TESTNET


def validate_cycles(cycles: Any) -> int:
    """Lock period in reward cycles, 1 through 12."""
    if isinstance(cycles, bool) or not isinstance(cycles, int):
        raise TransactionValidationError("cycles must be an integer between 1 and 12.")
    if not MIN_LOCK_CYCLES <= cycles <= MAX_LOCK_CYCLES:
        raise TransactionValidationError(
            f"cycles must be between {MIN_LOCK_CYCLES} and {MAX_LOCK_CYCLES}."
        )
    return cycles


# ---------------------------------------------------------------------------
# Reward address decoding
# ---------------------------------------------------------------------------


def _decode_segwit(address: str) -> tuple[str, int, bytes]:
    """Decode a bech32/bech32m segwit address into (hrp, witness version, program)."""
    hrp = address.lower().rsplit("1", 1)[0]
    witness_version, program = bech32.decode(hrp, address)
    if witness_version is None:
        raise ValueError("Invalid bech32 encoding or witness program")
    return hrp, witness_version, bytes(program)


def decode_pox_address(btc_address: str, network: str | None = None) -> tuple[int, bytes]:
    """
    Convert a Bitcoin reward address to the PoX (version, hashbytes) pair.

    Supports P2PKH, P2SH, P2WPKH, P2WSH and P2TR. When network is given the
    address must belong to the matching Bitcoin network (testnet and devnet
    accept testnet/regtest addresses).
    """
    address = (btc_address or "").strip()
    if not address:
        raise TransactionValidationError("Reward address is required.")

    btc_network: str
    prefix = address.lower().split("1", 1)[0]
    if "1" in address and prefix in _BECH32_HRPS:
        try:
            hrp, witness_version, program = _decode_segwit(address)
        except ValueError as exc:
            raise TransactionValidationError(f"Invalid Bitcoin address {address}: {exc}") from exc
        btc_network = _BECH32_HRPS[hrp]
        if witness_version == 0:
            version = POX_VERSION_P2WPKH if len(program) == 20 else POX_VERSION_P2WSH
        elif witness_version == 1 and len(program) == 32:
            version = POX_VERSION_P2TR
        else:
            raise TransactionValidationError(f"Unsupported witness version in {address}")
        hashbytes = program
    else:
        try:
            raw = base58.b58decode_check(address)
        except ValueError as exc:
            raise TransactionValidationError(f"Invalid Bitcoin address {address}: {exc}") from exc
        if len(raw) != 21 or raw[0] not in _BASE58_VERSIONS:
            raise TransactionValidationError(f"Unsupported Bitcoin address: {address}")
        version, btc_network = _BASE58_VERSIONS[raw[0]]
        hashbytes = raw[1:]

    if network is not None:
        expected = "mainnet" if network == "mainnet" else "testnet"
        if btc_network != expected:
            raise TransactionValidationError(
                f"Reward address {address} is not a Bitcoin {expected} address."
            )
    return version, hashbytes


def pox_address_cv(version: int, hashbytes: bytes) -> bytes:
    """(tuple (version (buff 1)) (hashbytes (buff 32)))"""
    return tuple_cv(
        {"version": buffer_cv(bytes([version])), "hashbytes": buffer_cv(hashbytes)}
    )


# ---------------------------------------------------------------------------
# Reward cycle arithmetic
# ---------------------------------------------------------------------------


def burn_height_to_reward_cycle(height: int, pox_info: dict[str, Any]) -> int:
    first = int(pox_info["first_burnchain_block_height"])
    length = int(pox_info["reward_cycle_length"])
    return (int(height) - first) // length


def reward_cycle_to_burn_height(cycle: int, pox_info: dict[str, Any]) -> int:
    first = int(pox_info["first_burnchain_block_height"])
    length = int(pox_info["reward_cycle_length"])
    return first + int(cycle) * length


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


@dataclass
class EligibilityResult:
    """Outcome of a stacking eligibility check."""

    eligible: bool
    reason: str | None = None
    verified: bool = True
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"eligible": self.eligible, "verified": self.verified}
        if self.reason:
            result["reason"] = self.reason
        result.update(self.details)
        return result


def _ineligible(reason: str, **details: Any) -> EligibilityResult:
    logger.info("Stacking not eligible: %s", reason)
    return EligibilityResult(eligible=False, reason=reason, details=details)


def check_eligibility(
    cfg: STXConfig,
    address: str,
    reward_address: str,
    cycles: int,
    amount_ustx: int | None = None,
    start_burn_height: int | None = None,
    pox_info: dict[str, Any] | None = None,
) -> EligibilityResult:
    """
    Check whether address may start stacking now.

    Never raises for unmet preconditions; those come back as
    eligible=False with a reason. A failed read of consensus info or the
    balance raises NetworkQueryError. If only the contract's
    can-stack-stx call cannot be completed, the result is eligible with
    verified=False so the caller still attempts the broadcast.
    """
    try:
        cycles = validate_cycles(cycles)
        pox_version, hashbytes = decode_pox_address(reward_address, cfg.network)
    except TransactionValidationError as exc:
        return _ineligible(str(exc))

    if pox_info is None:
        pox_info = get_pox_info(cfg)
    snapshot = get_balance(cfg, address)
    available = snapshot.balance_ustx - snapshot.locked_ustx

    amount = available if amount_ustx is None else int(amount_ustx)
    current_burn = int(pox_info.get("current_burnchain_block_height", 0))
    current_cycle = burn_height_to_reward_cycle(current_burn, pox_info)
    first_reward_cycle = current_cycle + 1
    threshold = int(
        (pox_info.get("next_cycle") or {}).get("min_threshold_ustx")
        or pox_info.get("min_amount_ustx")
        or 0
    )
    details = {
        "amount_ustx": amount,
        "available_ustx": available,
        "min_threshold_ustx": threshold,
        "current_cycle": current_cycle,
        "first_reward_cycle": first_reward_cycle,
        "current_burn_height": current_burn,
        "reward_cycle_length": int(pox_info.get("reward_cycle_length", 0)),
        "first_burnchain_block_height": int(pox_info.get("first_burnchain_block_height", 0)),
    }

    if amount <= 0:
        return _ineligible("No unlocked balance available to stack.", **details)
    if amount > available:
        return _ineligible("Insufficient unlocked balance for the requested amount.", **details)
    if amount < threshold:
        return _ineligible(
            f"Amount is below the minimum stacking threshold of {threshold} uSTX.", **details
        )
    if start_burn_height is not None:
        start_cycle = burn_height_to_reward_cycle(start_burn_height, pox_info)
        if start_cycle != current_cycle:
            return _ineligible(
                f"Start burn height {start_burn_height} is not in the current reward cycle "
                f"{current_cycle}.",
                **details,
            )

    contract_id = pox_info.get("contract_id") or default_pox_contract(cfg.network)
    contract_address, contract_name = parse_contract_id(contract_id)
    try:
        result = call_read_only(
            cfg,
            contract_address,
            contract_name,
            "can-stack-stx",
            [
                pox_address_cv(pox_version, hashbytes),
                uint_cv(amount),
                uint_cv(first_reward_cycle),
                uint_cv(cycles),
            ],
            sender=address,
        )
    except NetworkQueryError as exc:
        logger.warning("can-stack-stx check could not be completed: %s", exc)
        return EligibilityResult(
            eligible=True,
            reason=f"Eligibility could not be verified: {exc}",
            verified=False,
            details=details,
        )

    if isinstance(result, ClarityResponse) and result.ok:
        logger.info("Stacking eligible for %s (%d uSTX, %d cycles)", address, amount, cycles)
        return EligibilityResult(eligible=True, details=details)
    if isinstance(result, ClarityResponse) and isinstance(result.value, int):
        code = result.value
        return _ineligible(POX_ERRORS.get(code, f"ERR_UNKNOWN ({code})"), error_code=code, **details)
    return EligibilityResult(
        eligible=True,
        reason=f"Unrecognized can-stack-stx result: {to_json_value(result)}",
        verified=False,
        details=details,
    )


# ---------------------------------------------------------------------------
# Stacking status
# ---------------------------------------------------------------------------


def get_stacking_info(cfg: STXConfig, address: str) -> dict[str, Any]:
    """PoX cycle information plus the address's get-stacker-info entry."""
    pox_info = get_pox_info(cfg)
    contract_id = pox_info.get("contract_id") or default_pox_contract(cfg.network)
    contract_address, contract_name = parse_contract_id(contract_id)
    stacker = call_read_only(
        cfg,
        contract_address,
        contract_name,
        "get-stacker-info",
        [f"'{address}"],
        sender=address,
    )

    current_cycle = pox_info.get("current_cycle") or {}
    next_cycle = pox_info.get("next_cycle") or {}
    return {
        "address": address,
        "pox_contract": contract_id,
        "current_cycle": {
            "id": current_cycle.get("id"),
            "min_threshold_ustx": current_cycle.get("min_threshold_ustx"),
            "stacked_ustx": current_cycle.get("stacked_ustx"),
            "is_pox_active": current_cycle.get("is_pox_active"),
        },
        "next_cycle": {
            "id": next_cycle.get("id"),
            "min_threshold_ustx": next_cycle.get("min_threshold_ustx"),
            "blocks_until_prepare_phase": next_cycle.get("blocks_until_prepare_phase"),
        },
        "reward_cycle_length": pox_info.get("reward_cycle_length"),
        "first_burnchain_block_height": pox_info.get("first_burnchain_block_height"),
        "current_burnchain_block_height": pox_info.get("current_burnchain_block_height"),
        "stacker_info": to_json_value(stacker),
        "is_stacking": stacker is not None,
        "network": cfg.network,
    }
