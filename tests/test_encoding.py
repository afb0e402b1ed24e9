import pytest

from monopool.encoding import (
    bigint_from_bits_bytes,
    bigint_from_bits_hex,
    coins_to_satoshis,
    command_string_bytes,
    fixed_len_string_bytes,
    rand_hex_uint64,
    rand_positive_int64,
    readable_hashrate,
    reverse_byte_order,
    satoshis_to_coins,
    serialize_number,
    serialize_string,
    sha256,
    sha256d,
    uint256_bytes_from_hash,
    var_int_bytes,
    var_string_bytes,
)


def test_serialize_number_cases():
    assert serialize_number(100) == bytes([0x01, 0x64])
    assert serialize_number((1 << 31) - 1).hex() == "04ffffff7f"


def test_serialize_number_small_opcodes():
    assert serialize_number(1) == b"\x51"
    assert serialize_number(16) == b"\x60"
    assert serialize_number(17) == b"\x01\x11"


def test_serialize_string_hello_world():
    assert serialize_string("HelloWorld") == bytes(
        [0x0A, 0x48, 0x65, 0x6C, 0x6C, 0x6F, 0x57, 0x6F, 0x72, 0x6C, 0x64]
    )


def test_serialize_string_long_uses_two_byte_length():
    out = serialize_string("a" * 300)
    assert out[:3] == b"\xfd" + (300).to_bytes(2, "little")
    assert len(out) == 303


def test_uint256_bytes_from_hash():
    expected = bytes.fromhex("691938264876d1078051da4e30ec0643262e8b93fca661f525fe7122b38d5f18")
    assert uint256_bytes_from_hash(sha256(b"Hello").hex()) == expected


def test_uint256_bytes_from_empty_hash_is_zero():
    assert uint256_bytes_from_hash("") == bytes(32)


def test_uint256_bytes_from_bad_hex():
    with pytest.raises(ValueError):
        uint256_bytes_from_hash("zz")


def test_var_int_bytes_cases():
    assert var_int_bytes(23333).hex() == "fd255b"
    assert var_int_bytes((1 << 31) - 1).hex() == "feffffff7f"


def test_var_int_bytes_boundaries():
    assert var_int_bytes(0xFC) == b"\xfc"
    assert var_int_bytes(0xFD)[:1] == b"\xfd"
    assert len(var_int_bytes(1 << 32)) == 9
    with pytest.raises(ValueError):
        var_int_bytes(-1)


def test_var_string_bytes():
    assert var_string_bytes("Hello").hex() == "0548656c6c6f"


def test_sha256d_block_header():
    header = bytes.fromhex(
        "01000000"
        "81cd02ab7e569e8bcd9317e2fe99f2de44d49ab2b8851ba4a308000000000000"
        "e320b6c2fffc8d750423db8b1eb942ae710e951ed797f7affc8892b0f1fc122b"
        "c7f5d74d"
        "f2b9441a"
        "42a14695"
    )
    assert sha256d(header).hex() == "1dbd981fe6985776b644b173a4d0385ddc1aa2a829688d1e0000000000000000"


def test_reverse_byte_order_is_an_involution():
    digest = sha256(b"0000")
    assert reverse_byte_order(reverse_byte_order(digest)) == digest
    assert reverse_byte_order(digest)[:4] == digest[28:32]


def test_reverse_byte_order_short_input():
    with pytest.raises(ValueError):
        reverse_byte_order(b"\x00" * 8)


def test_bigint_from_bits_hex():
    assert bigint_from_bits_hex("1e06109b") == int(
        "000006109b000000000000000000000000000000000000000000000000000000", 16
    )
    assert bigint_from_bits_hex("1d00a949") == int(
        "00000000a9490000000000000000000000000000000000000000000000000000", 16
    )


def test_bigint_from_bits_bytes_empty():
    with pytest.raises(ValueError):
        bigint_from_bits_bytes(b"")


def test_command_string_bytes():
    assert command_string_bytes("version").hex() == "76657273696f6e0000000000"


def test_fixed_len_string_bytes_truncates():
    assert fixed_len_string_bytes("abcdef", 3) == b"abc"


def test_coin_conversions_round_trip():
    assert satoshis_to_coins(150000000, 100000000, 8) == 1.5
    assert coins_to_satoshis(1.5, 100000000) == 150000000


def test_readable_hashrate():
    assert readable_hashrate(1500.0) == "1.5000000 KH"
    assert readable_hashrate(10) == "10.0000000 H"
    assert readable_hashrate(1e40).endswith(" YH")


def test_random_helpers():
    for _ in range(20):
        assert 0 <= rand_positive_int64() < (1 << 63)
    value = rand_hex_uint64()
    assert len(value) == 16
    assert int(value, 16) >= 0