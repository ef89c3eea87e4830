"""
ECDSA public key recovery on secp256k1.

Given a 32-byte digest and a 64-byte (r, s) pair, produce the public keys the
signature could have come from. Uses coincurve (libsecp256k1) for the point
arithmetic.
"""

from __future__ import annotations

from typing import NamedTuple

from coincurve import PublicKey

from btcverify.logging import get_logger

logger = get_logger(__name__)

SECP256K1_P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

RECOVERY_IDS = (0, 1, 2, 3)


class RecoveredKey(NamedTuple):
    """A candidate public key and the recovery parameters that produced it."""

    public_key: bytes
    compressed: bool
    recovery_id: int


def is_on_curve(pubkey: bytes) -> bool:
    """Check y^2 = x^3 + 7 (mod p) for an uncompressed SEC1 public key."""
    if len(pubkey) != 65 or pubkey[0] != 0x04:
        return False
    x = int.from_bytes(pubkey[1:33], "big")
    y = int.from_bytes(pubkey[33:], "big")
    if x >= SECP256K1_P or y >= SECP256K1_P:
        return False
    return (y * y - x * x * x - 7) % SECP256K1_P == 0


def recover_public_key(digest: bytes, rs: bytes, recovery_id: int) -> PublicKey | None:
    """Run one recovery; None if (r, s, recovery_id) does not yield a point."""
    try:
        return PublicKey.from_signature_and_message(rs + bytes([recovery_id]), digest, hasher=None)
    except Exception:  # noqa: BLE001 - coincurve raises a bare Exception on failed recovery
        return None


def recover_candidates(
    digest: bytes,
    rs: bytes,
    recovery_id: int | None = None,
    compressed: bool | None = None,
) -> list[RecoveredKey]:
    """
    Enumerate public keys consistent with an ECDSA signature.

    Args:
        digest: 32-byte message digest that was signed.
        rs: 64-byte r || s.
        recovery_id: Recovery id from a header byte, or None to try 0-3.
        compressed: Serialization implied by the header, or None for both.

    Returns:
        Candidates ordered by recovery id, uncompressed before compressed.
        Ids that fail to recover are left out.

    Raises:
        ValueError: If digest or rs have the wrong length.
    """
    if len(digest) != 32:
        msg = f"Digest must be 32 bytes, got {len(digest)}"
        raise ValueError(msg)
    if len(rs) != 64:
        msg = f"Signature must be 64 bytes (r || s), got {len(rs)}"
        raise ValueError(msg)

    ids = RECOVERY_IDS if recovery_id is None else (recovery_id,)
    forms = (False, True) if compressed is None else (compressed,)

    candidates: list[RecoveredKey] = []
    for rid in ids:
        point = recover_public_key(digest, rs, rid)
        if point is None:
            logger.debug("recovery_failed", recovery_id=rid)
            continue
        if not is_on_curve(point.format(compressed=False)):
            logger.debug("recovered_point_off_curve", recovery_id=rid)
            continue
        candidates.extend(RecoveredKey(point.format(compressed=form), form, rid) for form in forms)
    return candidates
