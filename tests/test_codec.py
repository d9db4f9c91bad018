import base64
import math

import pytest

from Pathly import (
    BASE64_ALPHABET,
    BASE64URL_ALPHABET,
    BytesView,
    ErrorCode,
    InvalidBase64Error,
    decode_base64,
    encode_base64,
    encode_base64url,
    is_base64,
)


def test_encode_single_zero_byte_is_padded():
    assert encode_base64([0x00]) == "AA=="


def test_encode_full_group_uses_high_digits():
    assert encode_base64([0xFF, 0xEF, 0xFE]) == "/+/+"


def test_decode_padded_single_byte():
    assert decode_base64("AA==") == b"\x00"


@pytest.mark.parametrize("raw, text", [
    (b"", ""),
    (b"f", "Zg=="),
    (b"fo", "Zm8="),
    (b"foo", "Zm9v"),
    (b"foob", "Zm9vYg=="),
    (b"fooba", "Zm9vYmE="),
    (b"foobar", "Zm9vYmFy"),
])
def test_rfc4648_vectors(raw, text):
    assert encode_base64(raw) == text
    assert decode_base64(text) == raw


def test_round_trip_and_length_for_all_tail_sizes():
    data = bytes(range(256))
    for n in (0, 1, 2, 3, 4, 5, 64, 255, 256):
        encoded = encode_base64(data[:n])
        assert len(encoded) == 4 * math.ceil(n / 3)
        assert decode_base64(encoded) == data[:n]
        assert encoded == base64.b64encode(data[:n]).decode("ascii")


def test_base64url_emits_no_padding():
    assert encode_base64url([0x00]) == "AA"
    assert encode_base64url(b"fo") == "Zm8"
    encoded = encode_base64url(bytes(range(100)))
    assert "=" not in encoded


def test_decoder_accepts_unpadded_input():
    assert decode_base64("AA") == b"\x00"
    assert decode_base64(encode_base64url(b"hello world")) == b"hello world"


def test_base64url_alphabet_shares_digits_and_drops_pad():
    assert BASE64URL_ALPHABET[:64] == BASE64_ALPHABET[:64]
    assert BASE64_ALPHABET[64] == "="
    assert len(BASE64_ALPHABET) == len(BASE64URL_ALPHABET) == 65


def test_custom_alphabet_pad_symbol():
    alphabet = BASE64_ALPHABET[:64] + "."
    assert encode_base64(b"f", alphabet) == "Zg.."


def test_alphabet_must_have_65_symbols():
    with pytest.raises(ValueError):
        encode_base64(b"abc", BASE64_ALPHABET[:64])


def test_decode_stops_at_first_pad():
    assert decode_base64("AA==ignored!") == b"\x00"


def test_decode_rejects_non_alphabet_character():
    with pytest.raises(InvalidBase64Error) as exc_info:
        decode_base64("Zm9*")
    assert exc_info.value.code == ErrorCode.INVALID_BASE64


def test_decode_rejects_single_trailing_digit():
    with pytest.raises(InvalidBase64Error):
        decode_base64("Zm9vY")
    with pytest.raises(InvalidBase64Error):
        decode_base64("Z=")


def test_is_base64():
    assert is_base64("A")
    assert is_base64("+")
    assert not is_base64("=")
    assert not is_base64("-")


def test_encode_accepts_bytes_view():
    view = BytesView(b"foobar", 3)
    assert encode_base64(view) == "Zm9v"


def test_bytes_view_equality_is_length_then_content():
    assert BytesView(b"abc", 2) == BytesView(b"ab")
    assert BytesView(b"ab") != BytesView(b"ac")
    assert BytesView(b"ab") != BytesView(b"abc")


def test_bytes_view_does_not_copy():
    buffer = bytearray(b"abc")
    view = BytesView(buffer)
    buffer[0] = ord("z")
    assert view[0] == ord("z")
    assert list(view) == [ord("z"), ord("b"), ord("c")]
    assert view.length == len(view) == 3
    assert view.to_bytes() == b"zbc"


def test_bytes_view_rejects_bad_length():
    with pytest.raises(ValueError):
        BytesView(b"abc", 4)


@pytest.mark.parametrize("octets", [[256], [0, -1], [1, 2, 3, 1000]])
def test_encode_rejects_out_of_range_octets(octets):
    with pytest.raises(ValueError):
        encode_base64(octets)
