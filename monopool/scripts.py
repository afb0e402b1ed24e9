"""Address decoding and output-script construction."""

from __future__ import annotations

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


class AddressError(ValueError):
    """An address or key could not be decoded into a script."""


def b58decode(s: str) -> bytes:
    """Decode a base58 string (Bitcoin alphabet), keeping leading zero bytes."""
    if not s:
        raise AddressError("zero length base58 string")
    num = 0
    for ch in s:
        index = _B58_ALPHABET.find(ch)
        if index < 0:
            raise AddressError(f"invalid base58 character {ch!r}")
        num = num * 58 + index
    body = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    zeros = len(s) - len(s.lstrip("1"))
    return b"\x00" * zeros + body


def _bech32_polymod(values: list[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ value
        for i, gen in enumerate(_BECH32_GENERATORS):
            if (top >> i) & 1:
                chk ^= gen
    return chk


def _bech32_hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def bech32_decode(addr: str) -> tuple[str, list[int]]:
    """Decode a bech32 string into its human-readable part and 5-bit data."""
    if any(ord(c) < 33 or ord(c) > 126 for c in addr):
        raise AddressError("invalid character in bech32 string")
    if addr.lower() != addr and addr.upper() != addr:
        raise AddressError("bech32 string has mixed case")
    addr = addr.lower()
    if len(addr) > 90:
        raise AddressError("bech32 string too long")
    pos = addr.rfind("1")
    if pos < 1 or pos + 7 > len(addr):
        raise AddressError("invalid bech32 separator position")
    hrp = addr[:pos]
    data = []
    for ch in addr[pos + 1 :]:
        index = _BECH32_CHARSET.find(ch)
        if index < 0:
            raise AddressError(f"invalid bech32 character {ch!r}")
        data.append(index)
    if _bech32_polymod(_bech32_hrp_expand(hrp) + data) != 1:
        raise AddressError("invalid bech32 checksum")
    return hrp, data[:-6]


def convert_bits(data, from_bits: int, to_bits: int, pad: bool) -> bytes:
    """Regroup a sequence of ``from_bits``-wide values into ``to_bits``-wide ones."""
    acc = 0
    bits = 0
    out = bytearray()
    max_value = (1 << to_bits) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            raise AddressError(f"invalid data value {value}")
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & max_value)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & max_value)
    elif bits >= from_bits or (acc << (to_bits - bits)) & max_value:
        raise AddressError("invalid padding in bit conversion")
    return bytes(out)


def _hex(value: str, what: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise AddressError(f"hex decode failed for {what} {value!r}") from exc


def public_key_to_script(key: str) -> bytes:
    """Pay-to-public-key script for a 33-byte hex public key (POS coins)."""
    if len(key) != 66:
        raise AddressError(f"invalid public key: {key}")
    return b"\x21" + _hex(key, "public key") + b"\xac"


def _base58_payload(addr: str) -> bytes:
    decoded = b58decode(addr)
    if len(decoded) != 25:
        raise AddressError(f"invalid address length for {addr}")
    return decoded[1:-4]


def p2pkh_address_to_script(addr: str) -> bytes:
    """Pay-to-public-key-hash script for a base58 address."""
    return b"\x76\xa9\x14" + _base58_payload(addr) + b"\x88\xac"


def p2sh_address_to_script(addr: str) -> bytes:
    """Pay-to-script-hash script for a base58 address."""
    return b"\xa9\x14" + _base58_payload(addr) + b"\x87"


def p2wsh_address_to_script(addr: str) -> bytes:
    """Witness output script for a bech32 address."""
    _, data = bech32_decode(addr)
    if not data:
        raise AddressError(f"bech32 address {addr} holds no witness program")
    program = convert_bits(data[1:], 5, 8, True)
    return b"\x00\x14" + program


def script_pubkey_to_script(hex_script: str) -> bytes:
    """Raw script given directly in hex."""
    return _hex(hex_script, "script")


def mining_key_to_script(key: str) -> bytes:
    """Pay-to-public-key-hash script for a hex mining key."""
    return b"\x76\xa9\x14" + _hex(key, "mining key") + b"\x88\xac"