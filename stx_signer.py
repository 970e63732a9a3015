"""
Stacks transaction signing.

Single-sig P2PKH sighash:
    initial  = sha512/256(tx with nonce 0, fee 0, zero signature)
    presign  = sha512/256(initial || auth type || fee || nonce)
    signature = recoverable secp256k1 over presign, as recid || r || s
    txid     = sha512/256(signed tx)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

import coincurve
from Crypto.Hash import SHA512

from stx_errors import IdentityError
from stx_identity import STXIdentity
from stx_transactions import AUTH_STANDARD, TransactionIntent


def sha512_256(data: bytes) -> bytes:
    return SHA512.new(data, truncate="256").digest()


@dataclass(frozen=True)
class SignedTransaction:
    raw: bytes
    txid: str  # 0x-prefixed hex

    @property
    def hex(self) -> str:
        return self.raw.hex()


def presign_hash(intent: TransactionIntent) -> bytes:
    initial = sha512_256(intent.serialize(cleared=True))
    return sha512_256(initial + struct.pack(">BQQ", AUTH_STANDARD, intent.fee, intent.nonce))


def sign(intent: TransactionIntent, identity: STXIdentity) -> SignedTransaction:
    """Sign intent with identity's key. The sender must be that identity."""
    if intent.sender != identity.address or intent.signer_hash != identity.hash160:
        raise IdentityError(
            f"Transaction sender {intent.sender} does not match identity {identity.address}"
        )
    if intent.network != identity.network:
        raise IdentityError(
            f"Transaction network {intent.network} does not match identity network {identity.network}"
        )

    sig = coincurve.PrivateKey(identity.private_key).sign_recoverable(
        presign_hash(intent), hasher=None
    )
    # coincurve returns r || s || recid; Stacks wants recid || r || s
    raw = intent.serialize(signature=bytes([sig[64]]) + sig[:64])
    return SignedTransaction(raw=raw, txid="0x" + sha512_256(raw).hex())
