import logging
from typing import Iterable, Iterator, Optional, Union

from .errors import InvalidBase64Error

logger = logging.getLogger(__name__)

# ==============================================================================
# Alphabets
# ==============================================================================

_DIGITS = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789+/"
)

# The 65th symbol is the pad; "\0" means the alphabet emits no padding.
NO_PADDING = "\0"
BASE64_ALPHABET = _DIGITS + "="
BASE64URL_ALPHABET = _DIGITS + NO_PADDING

_DECODE_MAP = {c: i for i, c in enumerate(_DIGITS)}


def is_base64(ch: str) -> bool:
    return ch in _DECODE_MAP


# ==============================================================================
# Byte View
# ==============================================================================

class BytesView:
    """
    A read-only window over a byte buffer.

    The view does not copy its buffer, so the buffer must outlive the view.
    Two views are equal when they have the same length and the same octets.
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview], length: Optional[int] = None):
        view = memoryview(data).cast("B")
        if length is not None:
            if length < 0 or length > len(view):
                raise ValueError(f"length {length} out of range for buffer of {len(view)} bytes")
            view = view[:length]
        self._view = view.toreadonly()

    @property
    def data(self) -> memoryview:
        return self._view

    @property
    def length(self) -> int:
        return len(self._view)

    def __len__(self) -> int:
        return len(self._view)

    def __getitem__(self, pos: int) -> int:
        return self._view[pos]

    def __iter__(self) -> Iterator[int]:
        return iter(self._view)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BytesView):
            return NotImplemented
        if len(self) != len(other):
            return False
        return self._view == other._view

    def __hash__(self) -> int:
        return hash(self._view.tobytes())

    def __repr__(self) -> str:
        return f"BytesView({self._view.tobytes()!r})"

    def to_bytes(self) -> bytes:
        return self._view.tobytes()


# ==============================================================================
# Encoding
# ==============================================================================

def encode_base64(data: Iterable[int], alphabet: str = BASE64_ALPHABET) -> str:
    """
    Encodes octets with a 64 digit alphabet.

    Args:
        data (Iterable[int]): The octets to encode (bytes, bytearray, BytesView
            or any iterable of ints in 0..255).
        alphabet (str): 64 digits followed by the pad symbol, or by NO_PADDING
            for an unpadded encoding.

    Returns:
        str: The encoded text.

    Raises:
        ValueError: If the alphabet does not have 65 symbols or an octet is
            outside 0..255.
    """
    if len(alphabet) != 65:
        raise ValueError(f"Base64 alphabet must have 65 symbols, got {len(alphabet)}")
    fill = alphabet[64]
    result = []
    group = []

    for octet in data:
        if not 0 <= octet <= 0xFF:
            raise ValueError(f"Octet out of range 0..255: {octet!r}")
        group.append(octet)
        if len(group) == 3:
            b0, b1, b2 = group
            result.append(alphabet[b0 >> 2])
            result.append(alphabet[((b0 & 0x03) << 4) | (b1 >> 4)])
            result.append(alphabet[((b1 & 0x0F) << 2) | (b2 >> 6)])
            result.append(alphabet[b2 & 0x3F])
            group = []

    if group:
        k = len(group)
        b0, b1, b2 = (group + [0, 0])[:3]
        indices = [
            b0 >> 2,
            ((b0 & 0x03) << 4) | (b1 >> 4),
            ((b1 & 0x0F) << 2) | (b2 >> 6),
        ]
        for index in indices[:k + 1]:
            result.append(alphabet[index])
        if fill != NO_PADDING:
            result.append(fill * (3 - k))

    return "".join(result)


def encode_base64url(data: Iterable[int]) -> str:
    return encode_base64(data, BASE64URL_ALPHABET)


# ==============================================================================
# Decoding
# ==============================================================================

def decode_base64(text: str) -> bytes:
    """
    Decodes base64 text, with or without '=' padding.

    Decoding stops at the first '=' or at the end of the text.

    Args:
        text (str): The encoded text.

    Returns:
        bytes: The decoded octets.

    Raises:
        InvalidBase64Error: If a character before the padding is not a base64
            digit, or if the last group holds a single digit.
    """
    result = bytearray()
    group = []

    for pos, ch in enumerate(text):
        if ch == "=":
            break
        index = _DECODE_MAP.get(ch)
        if index is None:
            logger.debug(f"Rejecting base64 input: {ch!r} at position {pos}")
            raise InvalidBase64Error(f"Invalid base64 character {ch!r} at position {pos}")
        group.append(index)
        if len(group) == 4:
            i0, i1, i2, i3 = group
            result.append(((i0 << 2) | ((i1 & 0x30) >> 4)) & 0xFF)
            result.append((((i1 & 0x0F) << 4) | ((i2 & 0x3C) >> 2)) & 0xFF)
            result.append((((i2 & 0x03) << 6) | i3) & 0xFF)
            group = []

    if len(group) == 1:
        raise InvalidBase64Error("Truncated base64 group: a single trailing digit")
    if group:
        i0, i1, i2 = (group + [0])[:3]
        octets = [
            ((i0 << 2) | ((i1 & 0x30) >> 4)) & 0xFF,
            (((i1 & 0x0F) << 4) | ((i2 & 0x3C) >> 2)) & 0xFF,
        ]
        result.extend(octets[:len(group) - 1])

    return bytes(result)
