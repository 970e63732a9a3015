"""
Clarity value serialization and deserialization.

Encoders produce the consensus binary form used in contract-call payloads
and read-only call arguments. The decoder turns a read-only result (hex)
into native Python values:

- uint / int -> int
- true / false -> bool
- none -> None, (some x) -> x
- buffer -> bytes
- string-ascii / string-utf8 -> str
- principal -> str ('SP...' or 'SP....contract')
- tuple -> dict, list -> list
- (ok x) / (err x) -> ClarityResponse
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass
from typing import Any

from stx_identity import c32_address, decode_c32_address, validate_contract_name

# Clarity type ids
CV_INT = 0x00
CV_UINT = 0x01
CV_BUFFER = 0x02
CV_TRUE = 0x03
CV_FALSE = 0x04
CV_PRINCIPAL_STANDARD = 0x05
CV_PRINCIPAL_CONTRACT = 0x06
CV_RESPONSE_OK = 0x07
CV_RESPONSE_ERR = 0x08
CV_NONE = 0x09
CV_SOME = 0x0A
CV_LIST = 0x0B
CV_TUPLE = 0x0C
CV_STRING_ASCII = 0x0D
CV_STRING_UTF8 = 0x0E

UINT128_MAX = (1 << 128) - 1
INT128_MIN = -(1 << 127)
INT128_MAX = (1 << 127) - 1


@dataclass(frozen=True)
class ClarityResponse:
    """A decoded (ok ...) or (err ...) value."""

    ok: bool
    value: Any


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------


def uint_cv(value: int) -> bytes:
    value = int(value)
    if not 0 <= value <= UINT128_MAX:
        raise ValueError(f"uint out of range: {value}")
    return bytes([CV_UINT]) + value.to_bytes(16, "big")


def int_cv(value: int) -> bytes:
    value = int(value)
    if not INT128_MIN <= value <= INT128_MAX:
        raise ValueError(f"int out of range: {value}")
    return bytes([CV_INT]) + value.to_bytes(16, "big", signed=True)


def bool_cv(value: bool) -> bytes:
    return bytes([CV_TRUE if value else CV_FALSE])


def none_cv() -> bytes:
    return bytes([CV_NONE])


def some_cv(inner: bytes) -> bytes:
    return bytes([CV_SOME]) + inner


def ok_cv(inner: bytes) -> bytes:
    return bytes([CV_RESPONSE_OK]) + inner


def err_cv(inner: bytes) -> bytes:
    return bytes([CV_RESPONSE_ERR]) + inner


def buffer_cv(data: bytes) -> bytes:
    return bytes([CV_BUFFER]) + struct.pack(">I", len(data)) + data


def string_ascii_cv(text: str) -> bytes:
    raw = text.encode("ascii")
    return bytes([CV_STRING_ASCII]) + struct.pack(">I", len(raw)) + raw


def string_utf8_cv(text: str) -> bytes:
    raw = text.encode("utf-8")
    return bytes([CV_STRING_UTF8]) + struct.pack(">I", len(raw)) + raw


def _lp_name(name: str) -> bytes:
    raw = name.encode("ascii")
    if not 0 < len(raw) <= 128:
        raise ValueError(f"Invalid Clarity name: {name!r}")
    return struct.pack("B", len(raw)) + raw


def principal_cv(principal: str) -> bytes:
    """Standard ('SP...') or contract ('SP....name') principal."""
    principal = principal.strip().lstrip("'")
    if "." in principal:
        address, contract_name = principal.split(".", 1)
        version, hash160 = decode_c32_address(address)
        validate_contract_name(contract_name)
        return (
            bytes([CV_PRINCIPAL_CONTRACT, version])
            + hash160
            + _lp_name(contract_name)
        )
    version, hash160 = decode_c32_address(principal)
    return bytes([CV_PRINCIPAL_STANDARD, version]) + hash160


def list_cv(items: list[bytes]) -> bytes:
    return bytes([CV_LIST]) + struct.pack(">I", len(items)) + b"".join(items)


def tuple_cv(fields: dict[str, bytes]) -> bytes:
    """Tuple with keys serialized in sorted order."""
    out = bytes([CV_TUPLE]) + struct.pack(">I", len(fields))
    for name in sorted(fields):
        out += _lp_name(name) + fields[name]
    return out


# ---------------------------------------------------------------------------
# Argument parsing (string form)
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(r'\s*(u"(?:[^"\\]|\\.)*"|"(?:[^"\\]|\\.)*"|\(|\)|[^\s()]+)')


def _tokenize(text: str) -> list[str]:
    tokens = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise ValueError(f"Cannot parse Clarity value: {text!r}")
        tokens.append(match.group(1))
        pos = match.end()
    return tokens


def _unquote(literal: str) -> str:
    return re.sub(r"\\(.)", r"\1", literal[1:-1])


def _parse_atom(token: str) -> bytes:
    if re.fullmatch(r"u\d+", token):
        return uint_cv(int(token[1:]))
    if re.fullmatch(r"i?-?\d+", token):
        return int_cv(int(token.lstrip("i")))
    if token == "true":
        return bool_cv(True)
    if token == "false":
        return bool_cv(False)
    if token == "none":
        return none_cv()
    if token.startswith("0x"):
        return buffer_cv(bytes.fromhex(token[2:]))
    if token.startswith("u\"") and token.endswith('"'):
        return string_utf8_cv(_unquote(token[1:]))
    if token.startswith('"') and token.endswith('"'):
        return string_ascii_cv(_unquote(token))
    if token.startswith("'"):
        return principal_cv(token[1:])
    if token.startswith("S") and len(token) >= 28:
        return principal_cv(token)
    raise ValueError(f"Unsupported Clarity value: {token!r}")


def _parse_expr(tokens: list[str], pos: int) -> tuple[bytes, int]:
    token = tokens[pos]
    if token != "(":
        return _parse_atom(token), pos + 1

    head = tokens[pos + 1]
    pos += 2
    if head in ("some", "ok", "err"):
        inner, pos = _parse_expr(tokens, pos)
        wrap = {"some": some_cv, "ok": ok_cv, "err": err_cv}[head]
        value = wrap(inner)
    elif head == "list":
        items = []
        while tokens[pos] != ")":
            item, pos = _parse_expr(tokens, pos)
            items.append(item)
        value = list_cv(items)
    elif head == "tuple":
        fields: dict[str, bytes] = {}
        while tokens[pos] != ")":
            if tokens[pos] != "(":
                raise ValueError("Tuple entries must be (name value) pairs")
            name = tokens[pos + 1]
            field_value, pos = _parse_expr(tokens, pos + 2)
            if tokens[pos] != ")":
                raise ValueError("Tuple entries must be (name value) pairs")
            fields[name] = field_value
            pos += 1
        value = tuple_cv(fields)
    else:
        raise ValueError(f"Unsupported Clarity form: ({head} ...)")

    if tokens[pos] != ")":
        raise ValueError("Unbalanced parentheses in Clarity value")
    return value, pos + 1


def parse_clarity_arg(text: str) -> bytes:
    """
    Serialize a Clarity value from string representation.

    Supported: u42, i-7, true, false, none, (some x), (ok x), (err x),
    'SP..., 'SP....contract, 0xBEEF, "ascii", u"utf8", (list ...),
    (tuple (key value) ...).
    """
    tokens = _tokenize(text)
    if not tokens:
        raise ValueError("Empty Clarity value")
    try:
        value, pos = _parse_expr(tokens, 0)
    except IndexError as exc:
        raise ValueError(f"Unbalanced Clarity value: {text!r}") from exc
    if pos != len(tokens):
        raise ValueError(f"Trailing input in Clarity value: {text!r}")
    return value


def encode_args(args: list[str | bytes] | None) -> list[bytes]:
    """Encode a typed argument list; bytes are taken as already serialized."""
    encoded = []
    for arg in args or []:
        if isinstance(arg, (bytes, bytearray)):
            encoded.append(bytes(arg))
        else:
            encoded.append(parse_clarity_arg(str(arg)))
    return encoded


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _read(data: bytes, offset: int, count: int) -> tuple[bytes, int]:
    end = offset + count
    if end > len(data):
        raise ValueError("Truncated Clarity value")
    return data[offset:end], end


def _read_u32(data: bytes, offset: int) -> tuple[int, int]:
    raw, offset = _read(data, offset, 4)
    return struct.unpack(">I", raw)[0], offset


def _read_name(data: bytes, offset: int) -> tuple[str, int]:
    raw, offset = _read(data, offset, 1)
    name, offset = _read(data, offset, raw[0])
    return name.decode("ascii"), offset


def _decode_at(data: bytes, offset: int) -> tuple[Any, int]:
    type_raw, offset = _read(data, offset, 1)
    type_id = type_raw[0]

    if type_id == CV_UINT:
        raw, offset = _read(data, offset, 16)
        return int.from_bytes(raw, "big"), offset
    if type_id == CV_INT:
        raw, offset = _read(data, offset, 16)
        return int.from_bytes(raw, "big", signed=True), offset
    if type_id == CV_TRUE:
        return True, offset
    if type_id == CV_FALSE:
        return False, offset
    if type_id == CV_NONE:
        return None, offset
    if type_id == CV_SOME:
        return _decode_at(data, offset)
    if type_id in (CV_RESPONSE_OK, CV_RESPONSE_ERR):
        inner, offset = _decode_at(data, offset)
        return ClarityResponse(ok=type_id == CV_RESPONSE_OK, value=inner), offset
    if type_id == CV_BUFFER:
        length, offset = _read_u32(data, offset)
        return _read(data, offset, length)
    if type_id in (CV_STRING_ASCII, CV_STRING_UTF8):
        length, offset = _read_u32(data, offset)
        raw, offset = _read(data, offset, length)
        return raw.decode("ascii" if type_id == CV_STRING_ASCII else "utf-8"), offset
    if type_id in (CV_PRINCIPAL_STANDARD, CV_PRINCIPAL_CONTRACT):
        raw, offset = _read(data, offset, 21)
        address = c32_address(raw[0], raw[1:])
        if type_id == CV_PRINCIPAL_STANDARD:
            return address, offset
        name, offset = _read_name(data, offset)
        return f"{address}.{name}", offset
    if type_id == CV_LIST:
        count, offset = _read_u32(data, offset)
        items = []
        for _ in range(count):
            item, offset = _decode_at(data, offset)
            items.append(item)
        return items, offset
    if type_id == CV_TUPLE:
        count, offset = _read_u32(data, offset)
        fields = {}
        for _ in range(count):
            name, offset = _read_name(data, offset)
            fields[name], offset = _decode_at(data, offset)
        return fields, offset

    raise ValueError(f"Unknown Clarity type id: 0x{type_id:02x}")


def decode_clarity_value(value: bytes | str) -> Any:
    """Decode a serialized Clarity value (bytes or '0x' hex) to a native value."""
    if isinstance(value, str):
        hex_str = value[2:] if value.startswith("0x") else value
        value = bytes.fromhex(hex_str)
    decoded, offset = _decode_at(value, 0)
    if offset != len(value):
        raise ValueError("Trailing bytes after Clarity value")
    return decoded


def to_json_value(value: Any) -> Any:
    """Make a decoded Clarity value JSON friendly (bytes become 0x hex)."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, ClarityResponse):
        return {"ok": value.ok, "value": to_json_value(value.value)}
    if isinstance(value, dict):
        return {k: to_json_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_json_value(v) for v in value]
    return value
