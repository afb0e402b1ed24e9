"""Byte-level encodings, hashing and numeric helpers used across the pool."""

from __future__ import annotations

import hashlib
import secrets
import struct

_UINT64_MAX = (1 << 64) - 1

_HASHRATE_UNITS = (" H", " KH", " MH", " GH", " TH", " PH", " EH", " ZH", " YH")


def _check_uint64(n: int) -> None:
    if n < 0 or n > _UINT64_MAX:
        raise ValueError(f"{n} does not fit in an unsigned 64-bit integer")


def var_int_bytes(n: int) -> bytes:
    """Encode ``n`` as a Bitcoin variable-length integer."""
    _check_uint64(n)
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", n)
    if n <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", n)
    return b"\xff" + struct.pack("<Q", n)


def var_string_bytes(s: str) -> bytes:
    """Encode a string prefixed with its var-int length."""
    raw = s.encode("utf-8")
    return var_int_bytes(len(raw)) + raw


def serialize_string(s: str) -> bytes:
    """Encode a string with a compact length prefix, as used in scripts."""
    raw = s.encode("utf-8")
    size = len(raw)
    if size < 253:
        return bytes([size]) + raw
    if size < 0x10000:
        return b"\xfd" + struct.pack("<H", size) + raw
    if size < 0x100000000:
        return b"\xfe" + struct.pack("<I", size) + raw
    return b"\xff" + struct.pack("<Q", size) + raw


def serialize_number(n: int) -> bytes:
    """Encode a number for a coinbase script (small-int opcodes for 1..16)."""
    _check_uint64(n)
    if 1 <= n <= 16:
        return bytes([0x50 + n])
    body = bytearray()
    while n > 0x7F:
        body.append(n & 0xFF)
        n >>= 8
    body.append(n)
    return bytes([len(body)]) + bytes(body)


def uint256_bytes_from_hash(h: str) -> bytes:
    """Turn a hex hash into 32 bytes in reversed (internal) byte order."""
    try:
        decoded = bytes.fromhex(h)
    except ValueError as exc:
        raise ValueError(f"invalid hex hash: {h!r}") from exc
    container = decoded[:32].ljust(32, b"\x00")
    return container[::-1]


def reverse_byte_order(b: bytes) -> bytes:
    """Swap between little- and big-endian 32-bit word order of a 256-bit value."""
    if len(b) < 32:
        raise ValueError("reverse_byte_order needs at least 32 bytes")
    swapped = b"".join(b[i : i + 4][::-1] for i in range(0, 32, 4)) + b[32:]
    return swapped[::-1]


def sha256(b: bytes) -> bytes:
    """Single SHA-256 digest."""
    return hashlib.sha256(b).digest()


def sha256d(b: bytes) -> bytes:
    """Double SHA-256 digest."""
    return sha256(sha256(b))


def bigint_from_bits_bytes(bits: bytes) -> int:
    """Expand compact ``bits`` bytes into the full target integer."""
    if not bits:
        raise ValueError("bits must not be empty")
    exponent = (bits[0] - 3) & 0xFF
    mantissa = int.from_bytes(bits[1:], "big")
    return mantissa * (1 << (8 * exponent))


def bigint_from_bits_hex(bits: str) -> int:
    """Expand compact ``bits`` given in hex into the full target integer."""
    try:
        raw = bytes.fromhex(bits)
    except ValueError as exc:
        raise ValueError(f"invalid bits hex: {bits!r}") from exc
    return bigint_from_bits_bytes(raw)


def fixed_len_string_bytes(s: str, length: int) -> bytes:
    """Encode ``s`` into exactly ``length`` bytes, zero padded or truncated."""
    return s.encode("utf-8")[:length].ljust(length, b"\x00")


def command_string_bytes(s: str) -> bytes:
    """Encode a p2p command name into its 12-byte field."""
    return fixed_len_string_bytes(s, 12)


def satoshis_to_coins(satoshis: int, magnitude: int, coin_precision: int) -> float:
    """Convert satoshis to coins, rounded to ``coin_precision`` decimals."""
    coins = satoshis / magnitude
    return float(f"{coins:.{coin_precision}f}")


def coins_to_satoshis(coins: float, magnitude: int) -> int:
    """Convert coins to whole satoshis, truncating any fraction."""
    return int(coins * magnitude)


def readable_hashrate(hashrate: float) -> str:
    """Format a hash rate with a unit prefix, seven decimals."""
    index = 0
    while hashrate > 1000:
        index += 1
        hashrate /= 1000
        if index + 1 == len(_HASHRATE_UNITS):
            break
    return f"{hashrate:.7f}{_HASHRATE_UNITS[index]}"


def rand_positive_int64() -> int:
    """A random non-negative 63-bit integer."""
    return secrets.randbelow(1 << 63)


def rand_hex_uint64() -> str:
    """Eight random bytes as lower-case hex."""
    return secrets.token_hex(8)