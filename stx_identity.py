"""
Stacks identity resolution.

Implements:
- c32check address encoding/decoding and validation
- STX key derivation from BIP-39 mnemonic (m/44'/5757'/0'/0/0)
- Identity resolution from a hex private key or a seed phrase
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import struct
from dataclasses import dataclass, field
from typing import Any, Literal

# coincurve for secp256k1 key handling
import coincurve
from Crypto.Hash import RIPEMD160
from eth_account.hdaccount import seed_from_mnemonic

from stx_errors import IdentityError, TransactionValidationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STXNetwork = Literal["mainnet", "testnet", "devnet"]
SUPPORTED_NETWORKS = ("mainnet", "testnet", "devnet")

STX_DERIVATION_PATH = "m/44'/5757'/0'/0/0"

# Stacks address versions
ADDRESS_VERSION_MAINNET_SINGLE_SIG = 22  # 'SP'
ADDRESS_VERSION_TESTNET_SINGLE_SIG = 26  # 'ST'
ADDRESS_VERSION_MAINNET_MULTI_SIG = 20  # 'SM'
ADDRESS_VERSION_TESTNET_MULTI_SIG = 21  # 'SN'

MAINNET_VERSIONS = (ADDRESS_VERSION_MAINNET_SINGLE_SIG, ADDRESS_VERSION_MAINNET_MULTI_SIG)
TESTNET_VERSIONS = (ADDRESS_VERSION_TESTNET_SINGLE_SIG, ADDRESS_VERSION_TESTNET_MULTI_SIG)

SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# c32 alphabet (Crockford base32 variant)
C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

CONTRACT_NAME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9\-_]{0,127}$")


# ---------------------------------------------------------------------------
# c32check address encoding
# ---------------------------------------------------------------------------


def _c32_encode(data: bytes) -> str:
    """Encode bytes to c32 string."""
    if not data:
        return ""
    num = int.from_bytes(data, "big")

    result = []
    while num > 0:
        num, remainder = divmod(num, 32)
        result.append(C32_ALPHABET[remainder])
    # One '0' per leading zero byte
    for b in data:
        if b == 0:
            result.append(C32_ALPHABET[0])
        else:
            break
    return "".join(reversed(result))


def _c32_decode(c32_str: str) -> bytes:
    """Decode a c32 string to bytes."""
    c32_str = c32_str.upper()
    leading_zeros = 0
    for ch in c32_str:
        if ch == C32_ALPHABET[0]:
            leading_zeros += 1
        else:
            break

    num = 0
    for ch in c32_str:
        idx = C32_ALPHABET.find(ch)
        if idx < 0:
            raise ValueError(f"Invalid c32 character: {ch!r}")
        num = num * 32 + idx

    if num == 0:
        return b"\x00" * leading_zeros
    body = num.to_bytes((num.bit_length() + 7) // 8, "big")
    return b"\x00" * leading_zeros + body


def _c32_checksum(version: int, data: bytes) -> bytes:
    """Compute c32check checksum (double SHA256 of version + data)."""
    payload = bytes([version]) + data
    h1 = hashlib.sha256(payload).digest()
    h2 = hashlib.sha256(h1).digest()
    return h2[:4]


def c32_address(version: int, hash160_bytes: bytes) -> str:
    """
    Encode a Stacks address from version byte and hash160.

    Returns a c32check-encoded address string like 'SP...' or 'ST...'.
    """
    if len(hash160_bytes) != 20:
        raise ValueError("hash160 must be 20 bytes")
    if not 0 <= version < len(C32_ALPHABET):
        raise ValueError(f"Address version {version} is out of range")
    checksum = _c32_checksum(version, hash160_bytes)
    return "S" + C32_ALPHABET[version] + _c32_encode(hash160_bytes + checksum)


def decode_c32_address(address: str) -> tuple[int, bytes]:
    """Decode a c32check address into version byte and hash160 bytes."""
    if not isinstance(address, str) or len(address) < 5 or address[0] != "S":
        raise ValueError(f"Invalid Stacks address: {address}")

    version = C32_ALPHABET.find(address[1].upper())
    if version < 0:
        raise ValueError(f"Invalid Stacks address version: {address}")

    decoded = _c32_decode(address[2:])
    if len(decoded) < 24:
        decoded = b"\x00" * (24 - len(decoded)) + decoded
    if len(decoded) != 24:
        raise ValueError(f"Invalid Stacks address length: {address}")

    hash160_bytes = decoded[:-4]
    if decoded[-4:] != _c32_checksum(version, hash160_bytes):
        raise ValueError(f"Invalid Stacks address checksum: {address}")

    # Reject non-canonical encodings (stray leading zeros)
    if c32_address(version, hash160_bytes) != address.upper():
        raise ValueError(f"Invalid Stacks address: {address}")

    return version, hash160_bytes


def address_versions(network: str) -> tuple[int, ...]:
    return MAINNET_VERSIONS if network == "mainnet" else TESTNET_VERSIONS


def validate_address(address: str, network: str | None = None) -> tuple[int, bytes]:
    """
    Check a standard principal and return (version, hash160).

    When network is given the address version must belong to it.
    """
    try:
        version, hash160_bytes = decode_c32_address((address or "").strip())
    except ValueError as exc:
        raise TransactionValidationError(str(exc)) from exc
    if network is not None and version not in address_versions(network):
        raise TransactionValidationError(
            f"Address {address} does not belong to the {network} network."
        )
    return version, hash160_bytes


def parse_contract_id(contract_id: str) -> tuple[str, str]:
    """Split 'SP....contract-name' into (address, contract_name)."""
    parts = (contract_id or "").strip().split(".")
    if len(parts) != 2:
        raise TransactionValidationError(
            "Contract ID must be in format 'address.contract-name'"
        )
    validate_contract_name(parts[1])
    return parts[0], parts[1]


def validate_contract_name(name: str) -> str:
    if not name or not CONTRACT_NAME_RE.match(name):
        raise TransactionValidationError(f"Invalid contract name: {name!r}")
    return name


def _hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------


def _derive_child(
    parent_key: bytes, parent_chain: bytes, index: int
) -> tuple[bytes, bytes]:
    """BIP-32 child key derivation."""
    if index >= 0x80000000:
        # Hardened child
        data = b"\x00" + parent_key + struct.pack(">I", index)
    else:
        pubkey = coincurve.PrivateKey(parent_key).public_key.format(compressed=True)
        data = pubkey + struct.pack(">I", index)

    I = hmac.new(parent_chain, data, hashlib.sha512).digest()
    child_key_int = (
        int.from_bytes(I[:32], "big") + int.from_bytes(parent_key, "big")
    ) % SECP256K1_ORDER
    return child_key_int.to_bytes(32, "big"), I[32:]


def _derive_stx_key_from_seed(seed: bytes) -> bytes:
    """
    Derive the Stacks account-zero private key from a BIP-39 seed.

    Uses BIP-32 derivation at m/44'/5757'/0'/0/0.
    """
    I = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
    key, chain = I[:32], I[32:]

    path_components = [
        44 + 0x80000000,  # 44'
        5757 + 0x80000000,  # 5757'
        0 + 0x80000000,  # 0'
        0,  # external chain
        0,  # account index zero
    ]
    for child_index in path_components:
        key, chain = _derive_child(key, chain, child_index)
    return key


def _parse_private_key_hex(private_key: str) -> bytes:
    """
    Parse a hex secret, with or without '0x' and the trailing '01'
    compressed-key marker.
    """
    pk_hex = private_key.strip()
    if pk_hex[:2].lower() == "0x":
        pk_hex = pk_hex[2:]
    if len(pk_hex) == 66 and pk_hex.endswith("01"):
        pk_hex = pk_hex[:64]
    if len(pk_hex) != 64:
        raise IdentityError("Private key must be 32 bytes of hex (64 characters).")
    try:
        key = bytes.fromhex(pk_hex)
    except ValueError as exc:
        raise IdentityError("Private key is not valid hex.") from exc
    if not 0 < int.from_bytes(key, "big") < SECP256K1_ORDER:
        raise IdentityError("Private key is out of range for secp256k1.")
    return key


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class STXIdentity:
    """One account's key material and derived address."""

    private_key: bytes = field(repr=False)  # 32-byte secret, never serialized
    public_key: bytes  # 33-byte compressed public key
    address: str  # c32check encoded address
    network: STXNetwork
    derivation_path: str = ""

    @property
    def hash160(self) -> bytes:
        return _hash160(self.public_key)

    def public_info(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "publicKey": self.public_key.hex(),
            "network": self.network,
            "derivationPath": self.derivation_path,
        }


def address_from_public_key(public_key: bytes, network: str) -> str:
    """Single-sig address for a compressed public key on the given network."""
    if network == "mainnet":
        version = ADDRESS_VERSION_MAINNET_SINGLE_SIG
    else:
        version = ADDRESS_VERSION_TESTNET_SINGLE_SIG
    return c32_address(version, _hash160(public_key))


def identity_from_private_key(
    private_key: bytes, network: STXNetwork, derivation_path: str = ""
) -> STXIdentity:
    public_key = coincurve.PrivateKey(private_key).public_key.format(compressed=True)
    return STXIdentity(
        private_key=private_key,
        public_key=public_key,
        address=address_from_public_key(public_key, network),
        network=network,
        derivation_path=derivation_path,
    )


def resolve_identity(
    network: STXNetwork,
    private_key: str | None = None,
    mnemonic: str | None = None,
    passphrase: str = "",
) -> STXIdentity:
    """
    Resolve the wallet identity from a hex private key or a seed phrase.

    The private key wins when both are supplied. The network must be given
    explicitly since it decides the address prefix.
    """
    if network not in SUPPORTED_NETWORKS:
        raise IdentityError(
            f"Unsupported network: {network}. Supported: {', '.join(SUPPORTED_NETWORKS)}"
        )

    if private_key and private_key.strip():
        identity = identity_from_private_key(_parse_private_key_hex(private_key), network)
    elif mnemonic and mnemonic.strip():
        try:
            seed = seed_from_mnemonic(" ".join(mnemonic.split()), passphrase or "")
            key = _derive_stx_key_from_seed(bytes(seed))
        except Exception as exc:  # noqa: BLE001
            raise IdentityError(f"Failed to derive key from mnemonic: {exc}") from exc
        identity = identity_from_private_key(key, network, STX_DERIVATION_PATH)
    else:
        raise IdentityError("Either a private key or a mnemonic must be provided.")

    logger.info("Stacks identity resolved: %s on %s", identity.address, network)
    return identity
