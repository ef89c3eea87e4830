"""
Bech32 / Bech32m segwit address codec (BIP173 / BIP350).

Reference: https://github.com/bitcoin/bips/blob/master/bip-0173.mediawiki
           https://github.com/bitcoin/bips/blob/master/bip-0350.mediawiki
"""

from __future__ import annotations

from enum import Enum

from btcverify.errors import AddressDecodeError

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


class Encoding(Enum):
    """Checksum constant distinguishing bech32 from bech32m."""

    BECH32 = 1
    BECH32M = 0x2BC830A3


def _polymod(values: list[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ value
        for i, gen in enumerate(_GENERATOR):
            if (top >> i) & 1:
                chk ^= gen
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def _checksum_encoding(hrp: str, data: list[int]) -> Encoding | None:
    const = _polymod(_hrp_expand(hrp) + data)
    for encoding in Encoding:
        if const == encoding.value:
            return encoding
    return None


def _create_checksum(hrp: str, data: list[int], encoding: Encoding) -> list[int]:
    polymod = _polymod(_hrp_expand(hrp) + data + [0] * 6) ^ encoding.value
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int] | None:
    """General power-of-2 base conversion. Returns None on invalid padding or values."""
    acc = 0
    bits = 0
    ret: list[int] = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1
    for value in data:
        if value < 0 or (value >> frombits):
            return None
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        return None
    return ret


def bech32_decode(bech: str) -> tuple[str, list[int], Encoding]:
    """
    Split a bech32/bech32m string into HRP, 5-bit data, and checksum encoding.

    Raises:
        AddressDecodeError: On bad characters, mixed case, length, or checksum.
    """
    if any(ord(x) < 33 or ord(x) > 126 for x in bech):
        msg = "Invalid character in address"
        raise AddressDecodeError(msg)
    if bech.lower() != bech and bech.upper() != bech:
        msg = "Mixed case in address"
        raise AddressDecodeError(msg)
    bech = bech.lower()
    pos = bech.rfind("1")
    if pos < 1 or pos + 7 > len(bech) or len(bech) > 90:
        msg = "Invalid bech32 address format"
        raise AddressDecodeError(msg)
    hrp = bech[:pos]
    data_part = bech[pos + 1 :]
    if not all(x in CHARSET for x in data_part):
        msg = "Invalid character in data part"
        raise AddressDecodeError(msg)
    data = [CHARSET.find(x) for x in data_part]
    encoding = _checksum_encoding(hrp, data)
    if encoding is None:
        msg = "Invalid bech32 checksum"
        raise AddressDecodeError(msg)
    return hrp, data[:-6], encoding


def bech32_encode(hrp: str, data: list[int], encoding: Encoding) -> str:
    combined = data + _create_checksum(hrp, data, encoding)
    return hrp + "1" + "".join(CHARSET[d] for d in combined)


def decode_segwit_address(addr: str) -> tuple[str, int, bytes]:
    """
    Decode a segwit address.

    Args:
        addr: The full bech32/bech32m address string.

    Returns:
        Tuple of (hrp, witness_version, witness_program).

    Raises:
        AddressDecodeError: If the address breaks any BIP173/BIP350 rule.
    """
    hrp, data, encoding = bech32_decode(addr)
    if not data:
        msg = "Empty data section"
        raise AddressDecodeError(msg)
    witness_version = data[0]
    if witness_version > 16:
        msg = f"Invalid witness version: {witness_version}"
        raise AddressDecodeError(msg)
    # Witness version 0 uses bech32, versions 1+ use bech32m
    expected = Encoding.BECH32 if witness_version == 0 else Encoding.BECH32M
    if encoding is not expected:
        msg = f"Witness version {witness_version} must use {expected.name.lower()} encoding"
        raise AddressDecodeError(msg)
    program = convertbits(data[1:], 5, 8, pad=False)
    if program is None or len(program) < 2 or len(program) > 40:
        msg = "Invalid witness program length"
        raise AddressDecodeError(msg)
    if witness_version == 0 and len(program) not in (20, 32):
        msg = "Invalid witness v0 program length"
        raise AddressDecodeError(msg)
    return hrp, witness_version, bytes(program)


def encode_segwit_address(hrp: str, witver: int, witprog: bytes) -> str:
    """
    Encode a segwit address (bech32 for v0, bech32m for v1+).

    Raises:
        ValueError: If the witness program cannot be converted.
    """
    encoding = Encoding.BECH32 if witver == 0 else Encoding.BECH32M
    converted = convertbits(list(witprog), 8, 5)
    if converted is None:
        msg = "Failed to convert witness program"
        raise ValueError(msg)
    return bech32_encode(hrp, [witver] + converted, encoding)
