"""Hashing, encoding, and secp256k1 helpers."""

from btcverify.crypto.hashing import (
    bip322_message_commitment,
    hash160,
    legacy_message_digest,
    sha256,
    sha256d,
    tagged_hash,
)
from btcverify.crypto.recovery import RecoveredKey, recover_candidates

__all__ = [
    "RecoveredKey",
    "bip322_message_commitment",
    "hash160",
    "legacy_message_digest",
    "recover_candidates",
    "sha256",
    "sha256d",
    "tagged_hash",
]
