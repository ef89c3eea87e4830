"""
Hash constructions used by Bitcoin message signing.

Each signing convention commits to the message through a different exact
byte layout:

  - Legacy / BIP-137: SHA256(SHA256(varint(24) || "Bitcoin Signed Message:\\n"
    || varint(len(message)) || message))
  - BIP-322: tagged hash "BIP0322-signed-message" over the raw message bytes

Reference: https://github.com/bitcoin/bips/blob/master/bip-0137.mediawiki
           https://github.com/bitcoin/bips/blob/master/bip-0322.mediawiki
"""

from __future__ import annotations

import hashlib
import struct

MESSAGE_MAGIC = b"Bitcoin Signed Message:\n"
BIP322_TAG = "BIP0322-signed-message"
TAPTWEAK_TAG = "TapTweak"
TAPSIGHASH_TAG = "TapSighash"


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha256d(data: bytes) -> bytes:
    """Double SHA-256, as used for txids and checksums."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))."""
    return hashlib.new("ripemd160", hashlib.sha256(data).digest()).digest()


def encode_varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint (CompactSize)."""
    if n < 0:
        msg = "varint must be non-negative"
        raise ValueError(msg)
    if n < 0xFD:
        return struct.pack("<B", n)
    if n <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", n)
    if n <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", n)
    return b"\xff" + struct.pack("<Q", n)


def tagged_hash(tag: str, data: bytes) -> bytes:
    """BIP-340 tagged hash: SHA256(SHA256(tag) || SHA256(tag) || data)."""
    tag_hash = hashlib.sha256(tag.encode("utf-8")).digest()
    return hashlib.sha256(tag_hash + tag_hash + data).digest()


def _message_bytes(message: str | bytes) -> bytes:
    if isinstance(message, bytes):
        return message
    return message.encode("utf-8")


def legacy_message_digest(message: str | bytes) -> bytes:
    """Digest signed by the Legacy and BIP-137 schemes."""
    msg_bytes = _message_bytes(message)
    payload = encode_varint(len(MESSAGE_MAGIC)) + MESSAGE_MAGIC + encode_varint(len(msg_bytes)) + msg_bytes
    return sha256d(payload)


def bip322_message_commitment(message: str | bytes) -> bytes:
    """BIP-322 message hash committed to by the to_spend transaction."""
    return tagged_hash(BIP322_TAG, _message_bytes(message))


def taproot_tweak(xonly_pubkey: bytes) -> bytes:
    """BIP-86 key-path tweak for an internal key with no script tree."""
    return tagged_hash(TAPTWEAK_TAG, xonly_pubkey)
