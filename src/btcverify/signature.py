"""
Signature blob decoding.

A signature string is base64 (the usual wallet output) or hex. Once decoded
it is one of two shapes:

  - compact: 65 bytes = header byte || r (32) || s (32), Legacy / BIP-137
  - witness: a serialized BIP-322 witness stack, varint item count followed
    by varint length-prefixed items

Taproot signatures may also arrive as ``tr:<sig hex>[:<internal key hex>]``,
a 64-byte BIP-340 signature over the BIP-322 message hash.

Header byte ranges (BIP-137):
  - 27-30: P2PKH uncompressed
  - 31-34: P2PKH compressed
  - 35-38: P2SH-P2WPKH
  - 39-42: P2WPKH
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum

from btcverify.addresses import AddressType
from btcverify.crypto.hashing import encode_varint
from btcverify.errors import HeaderByteError, SignatureDecodeError
from btcverify.schemas import SignatureInfo

COMPACT_SIZE = 65

# (first flag of range, compressed, address hint, description)
_HEADER_RANGES = (
    (27, False, AddressType.P2PKH, "P2PKH (uncompressed)"),
    (31, True, AddressType.P2PKH, "P2PKH (compressed)"),
    (35, True, AddressType.P2SH_P2WPKH, "P2SH-P2WPKH"),
    (39, True, AddressType.P2WPKH, "P2WPKH"),
)
HEADER_MIN = 27
HEADER_MAX = 42
LEGACY_HEADER_MAX = 30


class SignatureEncoding(Enum):
    BASE64 = "base64"
    HEX = "hex"
    TAPROOT_HEX = "tr"


TAPROOT_PREFIX = "tr:"


@dataclass(frozen=True)
class HeaderByte:
    """Decoded meaning of a compact signature's first byte."""

    flag: int
    recovery_id: int
    compressed: bool
    address_hint: AddressType
    description: str

    @classmethod
    def decode(cls, flag: int) -> HeaderByte:
        """
        Map a header byte to recovery id, compression and address hint.

        Raises:
            HeaderByteError: If the byte is outside 27-42.
        """
        for base, compressed, hint, description in _HEADER_RANGES:
            if base <= flag < base + 4:
                return cls(flag, flag - base, compressed, hint, description)
        raise HeaderByteError(flag)

    @property
    def is_legacy(self) -> bool:
        """Original client encoding: uncompressed key, P2PKH."""
        return self.flag <= LEGACY_HEADER_MAX


def describe_header(flag: int) -> str | None:
    """Human-readable meaning of a header byte, or None if unknown."""
    try:
        return HeaderByte.decode(flag).description
    except HeaderByteError:
        return None


@dataclass(frozen=True)
class SignatureBlob:
    """Raw signature bytes and the text encoding they were decoded from."""

    raw: bytes
    encoding: SignatureEncoding
    internal_key: bytes | None = None

    @property
    def is_compact(self) -> bool:
        """65 bytes with a known header byte."""
        return len(self.raw) == COMPACT_SIZE and HEADER_MIN <= self.raw[0] <= HEADER_MAX

    @property
    def rs(self) -> bytes:
        return self.raw[1:COMPACT_SIZE]

    def header(self) -> HeaderByte:
        """
        Decode the header byte.

        Raises:
            SignatureDecodeError: If the blob is not 65 bytes long.
            HeaderByteError: If the header byte is unknown.
        """
        if len(self.raw) != COMPACT_SIZE:
            msg = f"Compact signature must be {COMPACT_SIZE} bytes, got {len(self.raw)}"
            raise SignatureDecodeError(msg)
        return HeaderByte.decode(self.raw[0])

    def witness_stack(self) -> list[bytes]:
        """
        Parse the blob as a serialized witness stack.

        Raises:
            SignatureDecodeError: If the stack is empty, truncated, or has trailing bytes.
        """
        return parse_witness_stack(self.raw)

    @property
    def is_taproot_text(self) -> bool:
        return self.encoding is SignatureEncoding.TAPROOT_HEX

    @property
    def is_witness(self) -> bool:
        if self.is_taproot_text:
            return False
        try:
            self.witness_stack()
        except SignatureDecodeError:
            return False
        return True


# ---------------------------------------------------------------------------
# Witness stack
# ---------------------------------------------------------------------------


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read a CompactSize at ``offset``. Returns (value, next_offset)."""
    if offset >= len(data):
        msg = "Truncated varint"
        raise SignatureDecodeError(msg)
    prefix = data[offset]
    if prefix < 0xFD:
        return prefix, offset + 1
    width = {0xFD: 2, 0xFE: 4, 0xFF: 8}[prefix]
    end = offset + 1 + width
    if end > len(data):
        msg = "Truncated varint"
        raise SignatureDecodeError(msg)
    return int.from_bytes(data[offset + 1 : end], "little"), end


def parse_witness_stack(data: bytes) -> list[bytes]:
    """Decode ``varint(n) || n × (varint(len) || item)``, consuming every byte."""
    count, offset = read_varint(data, 0)
    if count == 0:
        msg = "Empty witness stack"
        raise SignatureDecodeError(msg)
    # Every item needs at least its length byte
    if count > len(data) - offset:
        msg = "Witness item count exceeds data"
        raise SignatureDecodeError(msg)
    items: list[bytes] = []
    for _ in range(count):
        length, offset = read_varint(data, offset)
        if offset + length > len(data):
            msg = "Truncated witness item"
            raise SignatureDecodeError(msg)
        items.append(data[offset : offset + length])
        offset += length
    if offset != len(data):
        msg = f"{len(data) - offset} trailing bytes after witness stack"
        raise SignatureDecodeError(msg)
    return items


def serialize_witness_stack(items: list[bytes]) -> bytes:
    """Inverse of :func:`parse_witness_stack`."""
    out = encode_varint(len(items))
    for item in items:
        out += encode_varint(len(item)) + item
    return out


# ---------------------------------------------------------------------------
# Text decoding
# ---------------------------------------------------------------------------


def _try_base64(text: str) -> bytes | None:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return None


def _try_hex(text: str) -> bytes | None:
    try:
        return bytes.fromhex(text)
    except ValueError:
        return None


def _decode_taproot_text(text: str) -> SignatureBlob:
    parts = text[len(TAPROOT_PREFIX) :].split(":")
    if len(parts) > 2 or len(parts[0]) != 128 or (len(parts) == 2 and len(parts[1]) != 64):
        msg = "Taproot signature must be tr:<64-byte sig hex>[:<32-byte key hex>]"
        raise SignatureDecodeError(msg)
    raw = _try_hex(parts[0])
    internal_key = _try_hex(parts[1]) if len(parts) == 2 else None
    if raw is None or (len(parts) == 2 and internal_key is None):
        msg = "Taproot signature is not valid hex"
        raise SignatureDecodeError(msg)
    return SignatureBlob(raw, SignatureEncoding.TAPROOT_HEX, internal_key)


def decode_signature(text: str) -> SignatureBlob:
    """
    Decode a base64, hex or ``tr:`` signature string.

    Whitespace anywhere in the text is ignored, so base64 wrapped across
    lines still decodes. Base64 is tried first, then hex. A decoding that
    yields a recognized shape (compact record or witness stack) wins over one
    that does not, so a hex string that happens to be valid base64 is still
    read as hex.

    Raises:
        SignatureDecodeError: If the text is neither base64, hex nor a
            well-formed ``tr:`` signature.
    """
    text = "".join(text.split())
    if not text:
        msg = "Signature must be a non-empty string"
        raise SignatureDecodeError(msg)
    if text.lower().startswith(TAPROOT_PREFIX):
        return _decode_taproot_text(text)

    decoded: list[SignatureBlob] = []
    for raw, encoding in ((_try_base64(text), SignatureEncoding.BASE64), (_try_hex(text), SignatureEncoding.HEX)):
        if raw:
            decoded.append(SignatureBlob(raw, encoding))

    if not decoded:
        msg = "Signature is neither base64 nor hex"
        raise SignatureDecodeError(msg)
    for blob in decoded:
        if blob.is_compact or blob.is_witness:
            return blob
    return decoded[0]


def parse_signature(text: str) -> SignatureInfo | None:
    """
    Describe a signature string without verifying it.

    Returns:
        SignatureInfo for compact records, witness stacks and ``tr:``
        signatures, None if the text cannot be decoded or has no recognized
        shape.
    """
    try:
        blob = decode_signature(text)
    except SignatureDecodeError:
        return None

    if blob.is_compact:
        header = blob.header()
        return SignatureInfo(
            encoding=blob.encoding.value,
            shape="compact",
            length=len(blob.raw),
            header=header.flag,
            header_description=header.description,
            recovery_id=header.recovery_id,
            compressed=header.compressed,
            r=blob.raw[1:33].hex(),
            s=blob.raw[33:65].hex(),
        )
    if blob.is_taproot_text:
        return SignatureInfo(
            encoding=blob.encoding.value,
            shape="schnorr",
            length=len(blob.raw),
            r=blob.raw[:32].hex(),
            s=blob.raw[32:].hex(),
            internal_key=blob.internal_key.hex() if blob.internal_key else None,
        )
    if blob.is_witness:
        return SignatureInfo(
            encoding=blob.encoding.value,
            shape="witness",
            length=len(blob.raw),
            witness=[item.hex() for item in blob.witness_stack()],
        )
    return None
