"""
Stacks transaction construction.

Implements:
- TransactionIntent: an unsigned transaction and its wire serialization
- Builders for the five supported kinds (STX transfer, contract call,
  SIP-010 fungible transfer, SIP-009 NFT transfer, pox-4 stack-stx)
- Parameter validators run before any network access
- Pluggable fee strategies (fixed per-kind constants, node estimate)
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field, replace
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from enum import Enum, IntEnum
from typing import Any, Callable, Protocol

from stx_api import USTX_PER_STX, estimate_fee, ustx_to_stx
from stx_clarity import (
    buffer_cv,
    encode_args,
    none_cv,
    parse_clarity_arg,
    principal_cv,
    some_cv,
    uint_cv,
)
from stx_config import STXConfig, chain_id, tx_version
from stx_errors import TransactionValidationError
from stx_identity import (
    STXIdentity,
    parse_contract_id,
    validate_address,
    validate_contract_name,
)
from stx_stacking import (
    decode_pox_address,
    default_pox_contract,
    pox_address_cv,
    validate_cycles,
)

# ---------------------------------------------------------------------------
# Wire constants
# ---------------------------------------------------------------------------

PAYLOAD_TOKEN_TRANSFER = 0x00
PAYLOAD_CONTRACT_CALL = 0x02

AUTH_STANDARD = 0x04
SPENDING_CONDITION_SINGLESIG_P2PKH = 0x00
KEY_ENCODING_COMPRESSED = 0x00

SIGNATURE_LEN = 65
MEMO_LEN = 34
U64_MAX = (1 << 64) - 1

# Post-condition wire codes
POST_CONDITION_FUNGIBLE = 0x01
POST_CONDITION_NON_FUNGIBLE = 0x02
PRINCIPAL_STANDARD = 0x02
FUNGIBLE_SENT_EQ = 0x01
NON_FUNGIBLE_SENT = 0x10

CLARITY_NAME_RE = re.compile(r"^[a-zA-Z]([a-zA-Z0-9]|[-_!?+<>=/*])*$")


class TransactionKind(str, Enum):
    TRANSFER = "transfer"
    CONTRACT_CALL = "contract-call"
    FUNGIBLE_TRANSFER = "fungible-transfer"
    NFT_TRANSFER = "nft-transfer"
    STAKE_DELEGATE = "stake-delegate"


class PostConditionMode(IntEnum):
    ALLOW = 0x01  # permissive
    DENY = 0x02  # strict


class AnchorMode(IntEnum):
    ON_CHAIN_ONLY = 0x01
    OFF_CHAIN_ONLY = 0x02
    ANY = 0x03


POST_CONDITION_MODES = {
    TransactionKind.TRANSFER: PostConditionMode.ALLOW,
    TransactionKind.CONTRACT_CALL: PostConditionMode.ALLOW,
    TransactionKind.FUNGIBLE_TRANSFER: PostConditionMode.DENY,
    TransactionKind.NFT_TRANSFER: PostConditionMode.DENY,
    TransactionKind.STAKE_DELEGATE: PostConditionMode.ALLOW,
}

# Fixed fees in micro-STX
DEFAULT_FEES = {
    TransactionKind.TRANSFER: 2000,
    TransactionKind.CONTRACT_CALL: 10000,
    TransactionKind.FUNGIBLE_TRANSFER: 10000,
    TransactionKind.NFT_TRANSFER: 10000,
}


# ---------------------------------------------------------------------------
# Intent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransactionIntent:
    """A not-yet-signed transaction."""

    kind: TransactionKind
    network: str
    sender: str
    signer_hash: bytes
    nonce: int
    fee: int
    payload: bytes
    post_condition_mode: PostConditionMode
    post_conditions: tuple[bytes, ...] = ()
    anchor_mode: AnchorMode = AnchorMode.ANY
    summary: dict[str, Any] = field(default_factory=dict, compare=False)

    def serialize(self, signature: bytes | None = None, cleared: bool = False) -> bytes:
        """
        Stacks wire form with a standard single-sig P2PKH authorization.

        cleared=True zeroes nonce, fee and signature (the form hashed for
        the initial sighash).
        """
        nonce, fee = (0, 0) if cleared else (self.nonce, self.fee)
        if cleared or signature is None:
            signature = b"\x00" * SIGNATURE_LEN
        if len(signature) != SIGNATURE_LEN:
            raise ValueError("Signature must be 65 bytes")

        tx = struct.pack(">BI", tx_version(self.network), chain_id(self.network))
        tx += struct.pack("BB", AUTH_STANDARD, SPENDING_CONDITION_SINGLESIG_P2PKH)
        tx += self.signer_hash
        tx += struct.pack(">QQ", nonce, fee)
        tx += struct.pack("B", KEY_ENCODING_COMPRESSED) + signature
        tx += struct.pack("BB", self.anchor_mode, self.post_condition_mode)
        tx += struct.pack(">I", len(self.post_conditions)) + b"".join(self.post_conditions)
        tx += self.payload
        return tx

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "sender": self.sender,
            "nonce": self.nonce,
            "fee_ustx": self.fee,
            "fee_stx": ustx_to_stx(self.fee),
            "post_condition_mode": "deny" if self.post_condition_mode == PostConditionMode.DENY else "allow",
            "network": self.network,
            **self.summary,
        }


# ---------------------------------------------------------------------------
# Fee strategies
# ---------------------------------------------------------------------------


class FeeStrategy(Protocol):
    def fee_for(self, intent: TransactionIntent) -> int: ...


class FixedFeeStrategy:
    """Per-kind constant fees."""

    def __init__(self, fees: dict[TransactionKind, int] | None = None):
        self.fees = dict(DEFAULT_FEES)
        if fees:
            self.fees.update(fees)

    def fee_for(self, intent: TransactionIntent) -> int:
        try:
            return self.fees[intent.kind]
        except KeyError:
            raise TransactionValidationError(
                f"No fixed fee configured for {intent.kind.value} transactions."
            ) from None


class NetworkFeeStrategy:
    """Fee from the node's estimate for this payload and length."""

    def __init__(self, cfg: STXConfig):
        self.cfg = cfg

    def fee_for(self, intent: TransactionIntent) -> int:
        return estimate_fee(self.cfg, intent.payload, len(intent.serialize()))


# ---------------------------------------------------------------------------
# Amounts and small validators
# ---------------------------------------------------------------------------


def stx_to_ustx(amount: Any) -> int:
    """
    Convert an STX amount to micro-STX, truncating below one micro-STX.

    0.001 -> 1000. Non-numeric, non-finite or non-positive results raise.
    """
    if isinstance(amount, bool):
        raise TransactionValidationError(f"Invalid STX amount: {amount!r}")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise TransactionValidationError(f"Invalid STX amount: {amount!r}") from None
    if not value.is_finite():
        raise TransactionValidationError(f"Invalid STX amount: {amount!r}")
    ustx = int((value * USTX_PER_STX).to_integral_value(rounding=ROUND_FLOOR))
    if ustx <= 0:
        raise TransactionValidationError("Amount must be greater than zero.")
    return ustx


def _positive_int(value: Any, name: str, maximum: int = U64_MAX) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TransactionValidationError(f"{name} must be an integer.")
    if value <= 0:
        raise TransactionValidationError(f"{name} must be greater than zero.")
    if value > maximum:
        raise TransactionValidationError(f"{name} is too large.")
    return value


def _memo_bytes(memo: str | None) -> bytes:
    raw = (memo or "").encode("utf-8")
    if len(raw) > MEMO_LEN:
        raise TransactionValidationError(f"Memo must be at most {MEMO_LEN} bytes.")
    return raw


def _clarity_name(name: str, what: str) -> str:
    if not name or len(name) > 128 or not CLARITY_NAME_RE.match(name):
        raise TransactionValidationError(f"Invalid {what}: {name!r}")
    return name


def _contract(network: str, contract_address: str, contract_name: str) -> tuple[str, str]:
    validate_address(contract_address, network)
    validate_contract_name(contract_name)
    return contract_address, contract_name


def _recipient(network: str, recipient: str) -> str:
    """Standard principal or contract principal ('address.contract-name')."""
    recipient = (recipient or "").strip()
    if "." in recipient:
        _contract(network, *parse_contract_id(recipient))
    else:
        validate_address(recipient, network)
    return recipient


def _hex_bytes(value: str, length: int, name: str) -> bytes:
    text = (value or "").strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        raise TransactionValidationError(f"{name} must be hex.") from None
    if len(raw) != length:
        raise TransactionValidationError(f"{name} must be {length} bytes.")
    return raw


def _token_id_cv(token_id: Any) -> bytes:
    if isinstance(token_id, bool):
        raise TransactionValidationError(f"Invalid token id: {token_id!r}")
    if isinstance(token_id, int):
        if token_id < 0:
            raise TransactionValidationError("Token id must be non-negative.")
        return uint_cv(token_id)
    text = str(token_id or "").strip()
    if text.isdigit():
        return uint_cv(int(text))
    try:
        return parse_clarity_arg(text)
    except ValueError as exc:
        raise TransactionValidationError(f"Invalid token id {token_id!r}: {exc}") from exc


# ---------------------------------------------------------------------------
# Validators (no network access)
# ---------------------------------------------------------------------------


def validate_stx_transfer(
    network: str, recipient: str, amount_ustx: int, memo: str = ""
) -> dict[str, Any]:
    return {
        "recipient": _recipient(network, recipient),
        "amount_ustx": _positive_int(amount_ustx, "Amount"),
        "memo": memo or "",
        "memo_bytes": _memo_bytes(memo),
    }


def validate_contract_call(
    network: str,
    contract_address: str,
    contract_name: str,
    function_name: str,
    function_args: list[str | bytes] | None = None,
) -> dict[str, Any]:
    _contract(network, contract_address, contract_name)
    _clarity_name(function_name, "function name")
    try:
        encoded = encode_args(function_args)
    except ValueError as exc:
        raise TransactionValidationError(f"Invalid function argument: {exc}") from exc
    return {
        "contract_address": contract_address,
        "contract_name": contract_name,
        "function_name": function_name,
        "encoded_args": encoded,
    }


def validate_ft_transfer(
    network: str,
    contract_address: str,
    contract_name: str,
    asset_name: str,
    amount: int,
    recipient: str,
    memo: str | None = None,
) -> dict[str, Any]:
    _contract(network, contract_address, contract_name)
    _clarity_name(asset_name, "asset name")
    recipient = _recipient(network, recipient)
    return {
        "contract_address": contract_address,
        "contract_name": contract_name,
        "asset_name": asset_name,
        "amount": _positive_int(amount, "Amount"),
        "recipient": recipient,
        "memo_bytes": _memo_bytes(memo) if memo else None,
    }


def validate_nft_transfer(
    network: str,
    contract_address: str,
    contract_name: str,
    asset_name: str,
    token_id: Any,
    recipient: str,
) -> dict[str, Any]:
    _contract(network, contract_address, contract_name)
    _clarity_name(asset_name, "asset name")
    recipient = _recipient(network, recipient)
    return {
        "contract_address": contract_address,
        "contract_name": contract_name,
        "asset_name": asset_name,
        "token_id": token_id,
        "token_cv": _token_id_cv(token_id),
        "recipient": recipient,
    }


def validate_stake_delegation(
    network: str,
    amount_ustx: int,
    cycles: int,
    reward_address: str,
    signer_key: str,
    start_burn_height: int | None = None,
    pox_contract: str | None = None,
    signer_signature: str | None = None,
    max_amount: int | None = None,
    auth_id: int = 0,
) -> dict[str, Any]:
    amount_ustx = _positive_int(amount_ustx, "Amount")
    cycles = validate_cycles(cycles)
    pox_version, hashbytes = decode_pox_address(reward_address, network)
    if not signer_key:
        raise TransactionValidationError("signer_key is required for stacking.")
    signer_key_bytes = _hex_bytes(signer_key, 33, "signer_key")
    if signer_key_bytes[0] not in (0x02, 0x03):
        raise TransactionValidationError("signer_key must be a compressed public key.")
    signature = _hex_bytes(signer_signature, 65, "signer_signature") if signer_signature else None
    if start_burn_height is not None and (
        isinstance(start_burn_height, bool) or not isinstance(start_burn_height, int) or start_burn_height < 0
    ):
        raise TransactionValidationError("start_burn_height must be a non-negative integer.")
    max_amount = amount_ustx if max_amount is None else _positive_int(max_amount, "max_amount", (1 << 128) - 1)
    if max_amount < amount_ustx:
        raise TransactionValidationError("max_amount must be at least the stacked amount.")
    if isinstance(auth_id, bool) or not isinstance(auth_id, int) or auth_id < 0:
        raise TransactionValidationError("auth_id must be a non-negative integer.")
    pox_address, pox_name = parse_contract_id(pox_contract or default_pox_contract(network))
    return {
        "amount_ustx": amount_ustx,
        "cycles": cycles,
        "reward_address": reward_address.strip(),
        "pox_version": pox_version,
        "pox_hashbytes": hashbytes,
        "signer_key": signer_key_bytes,
        "signer_signature": signature,
        "start_burn_height": start_burn_height,
        "max_amount": max_amount,
        "auth_id": auth_id,
        "pox_contract_address": pox_address,
        "pox_contract_name": pox_name,
    }


VALIDATORS: dict[TransactionKind, Callable[..., dict[str, Any]]] = {
    TransactionKind.TRANSFER: validate_stx_transfer,
    TransactionKind.CONTRACT_CALL: validate_contract_call,
    TransactionKind.FUNGIBLE_TRANSFER: validate_ft_transfer,
    TransactionKind.NFT_TRANSFER: validate_nft_transfer,
    TransactionKind.STAKE_DELEGATE: validate_stake_delegation,
}


def validate_params(kind: TransactionKind | str, network: str, **params: Any) -> dict[str, Any]:
    """Run the kind's validator; raises TransactionValidationError."""
    try:
        return VALIDATORS[TransactionKind(kind)](network, **params)
    except TypeError as exc:
        raise TransactionValidationError(f"Invalid parameters for {kind}: {exc}") from exc


# ---------------------------------------------------------------------------
# Payloads and post-conditions
# ---------------------------------------------------------------------------


def _lp(name: str) -> bytes:
    raw = name.encode("ascii")
    return struct.pack("B", len(raw)) + raw


def _token_transfer_payload(recipient: str, amount_ustx: int, memo: bytes) -> bytes:
    return (
        struct.pack("B", PAYLOAD_TOKEN_TRANSFER)
        + principal_cv(recipient)
        + struct.pack(">Q", amount_ustx)
        + memo.ljust(MEMO_LEN, b"\x00")
    )


def _contract_call_payload(
    contract_address: str, contract_name: str, function_name: str, args: list[bytes]
) -> bytes:
    version, hash160 = validate_address(contract_address)
    return (
        struct.pack("BB", PAYLOAD_CONTRACT_CALL, version)
        + hash160
        + _lp(contract_name)
        + _lp(function_name)
        + struct.pack(">I", len(args))
        + b"".join(args)
    )


def _asset_info(contract_address: str, contract_name: str, asset_name: str) -> bytes:
    version, hash160 = validate_address(contract_address)
    return struct.pack("B", version) + hash160 + _lp(contract_name) + _lp(asset_name)


def _standard_principal_pc(address: str) -> bytes:
    version, hash160 = validate_address(address)
    return struct.pack("BB", PRINCIPAL_STANDARD, version) + hash160


def fungible_post_condition(
    sender: str, contract_address: str, contract_name: str, asset_name: str, amount: int
) -> bytes:
    """Sender sends exactly amount of the asset."""
    return (
        struct.pack("B", POST_CONDITION_FUNGIBLE)
        + _standard_principal_pc(sender)
        + _asset_info(contract_address, contract_name, asset_name)
        + struct.pack(">BQ", FUNGIBLE_SENT_EQ, amount)
    )


def nft_post_condition(
    sender: str, contract_address: str, contract_name: str, asset_name: str, token_cv: bytes
) -> bytes:
    """Sender sends the token."""
    return (
        struct.pack("B", POST_CONDITION_NON_FUNGIBLE)
        + _standard_principal_pc(sender)
        + _asset_info(contract_address, contract_name, asset_name)
        + token_cv
        + struct.pack("B", NON_FUNGIBLE_SENT)
    )


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _finish(
    identity: STXIdentity,
    kind: TransactionKind,
    nonce: int,
    payload: bytes,
    summary: dict[str, Any],
    post_conditions: tuple[bytes, ...] = (),
    fee: int | None = None,
    fee_strategy: FeeStrategy | None = None,
    anchor_mode: AnchorMode = AnchorMode.ANY,
) -> TransactionIntent:
    if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
        raise TransactionValidationError("Nonce must be a non-negative integer.")
    intent = TransactionIntent(
        kind=kind,
        network=identity.network,
        sender=identity.address,
        signer_hash=identity.hash160,
        nonce=nonce,
        fee=0,
        payload=payload,
        post_condition_mode=POST_CONDITION_MODES[kind],
        post_conditions=post_conditions,
        anchor_mode=AnchorMode(anchor_mode),
        summary=summary,
    )
    if fee is None:
        fee = (fee_strategy or FixedFeeStrategy()).fee_for(intent)
    elif isinstance(fee, bool) or not isinstance(fee, int) or not 0 <= fee <= U64_MAX:
        raise TransactionValidationError("Fee must be a non-negative integer.")
    return replace(intent, fee=fee)


def build_stx_transfer(
    identity: STXIdentity,
    nonce: int,
    recipient: str,
    amount_ustx: int,
    memo: str = "",
    fee: int | None = None,
    fee_strategy: FeeStrategy | None = None,
    anchor_mode: AnchorMode = AnchorMode.ANY,
) -> TransactionIntent:
    """Native STX transfer (permissive post-conditions)."""
    p = validate_stx_transfer(identity.network, recipient, amount_ustx, memo)
    payload = _token_transfer_payload(p["recipient"], p["amount_ustx"], p["memo_bytes"])
    summary = {
        "recipient": p["recipient"],
        "amount_ustx": p["amount_ustx"],
        "amount_stx": ustx_to_stx(p["amount_ustx"]),
        "memo": p["memo"],
    }
    return _finish(identity, TransactionKind.TRANSFER, nonce, payload, summary,
                   fee=fee, fee_strategy=fee_strategy, anchor_mode=anchor_mode)


def build_contract_call(
    identity: STXIdentity,
    nonce: int,
    contract_address: str,
    contract_name: str,
    function_name: str,
    function_args: list[str | bytes] | None = None,
    fee: int | None = None,
    fee_strategy: FeeStrategy | None = None,
    anchor_mode: AnchorMode = AnchorMode.ANY,
) -> TransactionIntent:
    """Public function call (permissive post-conditions)."""
    p = validate_contract_call(
        identity.network, contract_address, contract_name, function_name, function_args
    )
    payload = _contract_call_payload(
        contract_address, contract_name, function_name, p["encoded_args"]
    )
    summary = {
        "contract_id": f"{contract_address}.{contract_name}",
        "function_name": function_name,
        "function_args": [a if isinstance(a, str) else "0x" + bytes(a).hex() for a in function_args or []],
    }
    return _finish(identity, TransactionKind.CONTRACT_CALL, nonce, payload, summary,
                   fee=fee, fee_strategy=fee_strategy, anchor_mode=anchor_mode)


def build_ft_transfer(
    identity: STXIdentity,
    nonce: int,
    contract_address: str,
    contract_name: str,
    asset_name: str,
    amount: int,
    recipient: str,
    memo: str | None = None,
    fee: int | None = None,
    fee_strategy: FeeStrategy | None = None,
    anchor_mode: AnchorMode = AnchorMode.ANY,
) -> TransactionIntent:
    """
    SIP-010 transfer(amount, sender, recipient, memo).

    Strict post-conditions: the sender sends exactly amount of the asset.
    """
    p = validate_ft_transfer(
        identity.network, contract_address, contract_name, asset_name, amount, recipient, memo
    )
    memo_cv = some_cv(buffer_cv(p["memo_bytes"])) if p["memo_bytes"] else none_cv()
    args = [uint_cv(p["amount"]), principal_cv(identity.address), principal_cv(p["recipient"]), memo_cv]
    payload = _contract_call_payload(contract_address, contract_name, "transfer", args)
    condition = fungible_post_condition(
        identity.address, contract_address, contract_name, asset_name, p["amount"]
    )
    summary = {
        "asset": f"{contract_address}.{contract_name}::{asset_name}",
        "recipient": p["recipient"],
        "amount": p["amount"],
    }
    return _finish(identity, TransactionKind.FUNGIBLE_TRANSFER, nonce, payload, summary,
                   post_conditions=(condition,), fee=fee, fee_strategy=fee_strategy,
                   anchor_mode=anchor_mode)


def build_nft_transfer(
    identity: STXIdentity,
    nonce: int,
    contract_address: str,
    contract_name: str,
    asset_name: str,
    token_id: Any,
    recipient: str,
    fee: int | None = None,
    fee_strategy: FeeStrategy | None = None,
    anchor_mode: AnchorMode = AnchorMode.ANY,
) -> TransactionIntent:
    """
    SIP-009 transfer(id, sender, recipient).

    Strict post-conditions: the sender sends the token.
    """
    p = validate_nft_transfer(
        identity.network, contract_address, contract_name, asset_name, token_id, recipient
    )
    args = [p["token_cv"], principal_cv(identity.address), principal_cv(p["recipient"])]
    payload = _contract_call_payload(contract_address, contract_name, "transfer", args)
    condition = nft_post_condition(
        identity.address, contract_address, contract_name, asset_name, p["token_cv"]
    )
    summary = {
        "asset": f"{contract_address}.{contract_name}::{asset_name}",
        "recipient": p["recipient"],
        "token_id": str(token_id),
    }
    return _finish(identity, TransactionKind.NFT_TRANSFER, nonce, payload, summary,
                   post_conditions=(condition,), fee=fee, fee_strategy=fee_strategy,
                   anchor_mode=anchor_mode)


def build_stake_delegation(
    identity: STXIdentity,
    nonce: int,
    amount_ustx: int,
    cycles: int,
    reward_address: str,
    start_burn_height: int,
    signer_key: str,
    pox_contract: str | None = None,
    signer_signature: str | None = None,
    max_amount: int | None = None,
    auth_id: int = 0,
    fee: int | None = None,
    fee_strategy: FeeStrategy | None = None,
    anchor_mode: AnchorMode = AnchorMode.ANY,
) -> TransactionIntent:
    """pox-4 stack-stx (permissive post-conditions). Lock period 1-12 cycles."""
    if start_burn_height is None:
        raise TransactionValidationError("start_burn_height is required.")
    p = validate_stake_delegation(
        identity.network,
        amount_ustx,
        cycles,
        reward_address,
        signer_key,
        start_burn_height=start_burn_height,
        pox_contract=pox_contract,
        signer_signature=signer_signature,
        max_amount=max_amount,
        auth_id=auth_id,
    )
    args = [
        uint_cv(p["amount_ustx"]),
        pox_address_cv(p["pox_version"], p["pox_hashbytes"]),
        uint_cv(p["start_burn_height"]),
        uint_cv(p["cycles"]),
        some_cv(buffer_cv(p["signer_signature"])) if p["signer_signature"] else none_cv(),
        buffer_cv(p["signer_key"]),
        uint_cv(p["max_amount"]),
        uint_cv(p["auth_id"]),
    ]
    payload = _contract_call_payload(
        p["pox_contract_address"], p["pox_contract_name"], "stack-stx", args
    )
    summary = {
        "pox_contract": f"{p['pox_contract_address']}.{p['pox_contract_name']}",
        "amount_ustx": p["amount_ustx"],
        "amount_stx": ustx_to_stx(p["amount_ustx"]),
        "cycles": p["cycles"],
        "reward_address": p["reward_address"],
        "start_burn_height": p["start_burn_height"],
    }
    if fee is None and fee_strategy is None:
        raise TransactionValidationError(
            "Stacking transactions need an explicit fee or a fee strategy."
        )
    return _finish(identity, TransactionKind.STAKE_DELEGATE, nonce, payload, summary,
                   fee=fee, fee_strategy=fee_strategy, anchor_mode=anchor_mode)


BUILDERS: dict[TransactionKind, Callable[..., TransactionIntent]] = {
    TransactionKind.TRANSFER: build_stx_transfer,
    TransactionKind.CONTRACT_CALL: build_contract_call,
    TransactionKind.FUNGIBLE_TRANSFER: build_ft_transfer,
    TransactionKind.NFT_TRANSFER: build_nft_transfer,
    TransactionKind.STAKE_DELEGATE: build_stake_delegation,
}


def build_intent(
    kind: TransactionKind | str,
    identity: STXIdentity,
    nonce: int,
    **params: Any,
) -> TransactionIntent:
    """Dispatch to the builder for kind."""
    return BUILDERS[TransactionKind(kind)](identity, nonce, **params)
