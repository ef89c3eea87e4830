"""Base58Check encoding for legacy (P2PKH / P2SH) addresses."""

from __future__ import annotations

from btcverify.crypto.hashing import sha256d
from btcverify.errors import AddressDecodeError

ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def b58encode(data: bytes) -> str:
    n = int.from_bytes(data, "big")
    result = ""
    while n > 0:
        n, remainder = divmod(n, 58)
        result = ALPHABET[remainder] + result
    # Leading zero bytes map to leading '1's
    pad = len(data) - len(data.lstrip(b"\x00"))
    return "1" * pad + result


def b58decode(s: str) -> bytes:
    """Decode a Base58 string to bytes."""
    n = 0
    for char in s:
        idx = ALPHABET.find(char)
        if idx == -1:
            msg = f"Invalid Base58 character: {char!r}"
            raise AddressDecodeError(msg)
        n = n * 58 + idx
    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    pad = len(s) - len(s.lstrip("1"))
    return b"\x00" * pad + body


def b58check_encode(payload: bytes) -> str:
    return b58encode(payload + sha256d(payload)[:4])


def b58check_decode(s: str) -> bytes:
    """
    Decode a Base58Check string and strip its checksum.

    Raises:
        AddressDecodeError: If the string is too short or the checksum is wrong.
    """
    raw = b58decode(s)
    if len(raw) < 5:
        msg = "Base58Check payload too short"
        raise AddressDecodeError(msg)
    payload, checksum = raw[:-4], raw[-4:]
    if sha256d(payload)[:4] != checksum:
        msg = "Invalid Base58Check checksum"
        raise AddressDecodeError(msg)
    return payload
