"""
Bitcoin message signature verification.

Decodes the signature and address, then runs each strategy in priority
order until one proves the signature. Malformed input never raises: it is
reported as an invalid signature. Passing something that is not a string
is a programming error and raises TypeError.
"""

from __future__ import annotations

import asyncio

from btcverify.addresses import decode_address
from btcverify.config import Settings, get_settings
from btcverify.errors import AddressDecodeError, DecodeError
from btcverify.logging import get_logger
from btcverify.schemas import VerificationResult
from btcverify.signature import decode_signature
from btcverify.strategies import STRATEGY_ORDER, Outcome, VerificationContext

logger = get_logger(__name__)


def _check_types(message: object, signature: object, address: object) -> bytes:
    if not isinstance(message, (str, bytes)):
        msg = f"message must be str or bytes, not {type(message).__name__}"
        raise TypeError(msg)
    for name, value in (("signature", signature), ("address", address)):
        if not isinstance(value, str):
            msg = f"{name} must be str, not {type(value).__name__}"
            raise TypeError(msg)
    return message if isinstance(message, bytes) else message.encode("utf-8")


def verify_message(
    message: str | bytes,
    signature: str,
    address: str,
    *,
    settings: Settings | None = None,
) -> VerificationResult:
    """
    Verify a signed message against a Bitcoin address.

    Args:
        message: The exact message that was signed. Never trimmed or normalized.
        signature: Base64 or hex signature (compact BIP-137 record or BIP-322
            simple witness), or the "tr:<sig>[:<key>]" taproot form.
            Whitespace is ignored.
        address: P2PKH, P2SH-P2WPKH, P2WPKH or P2TR address.
        settings: Overrides for the cached environment settings.

    Returns:
        VerificationResult naming the convention that verified, or
        ``valid=False`` if none did.

    Raises:
        TypeError: If an argument is None or not a string.
    """
    msg_bytes = _check_types(message, signature, address)
    settings = settings or get_settings()

    try:
        blob = decode_signature(signature)
    except DecodeError as exc:
        logger.debug("signature_decode_failed", error=str(exc), signature_length=len(signature))
        return VerificationResult.invalid()

    try:
        target = decode_address(address.strip(), settings.network)
    except AddressDecodeError as exc:
        logger.debug("address_decode_failed", error=str(exc))
        return VerificationResult.invalid()

    ctx = VerificationContext(message=msg_bytes, blob=blob, address=target, settings=settings)
    for strategy in STRATEGY_ORDER:
        result = strategy.verify(ctx)
        if result.outcome is Outcome.INAPPLICABLE:
            logger.debug("strategy_skipped", strategy=strategy.spec_name.value)
            continue
        if result.matched:
            logger.debug(
                "strategy_matched",
                strategy=strategy.spec_name.value,
                address_type=target.type.value,
                message_length=len(msg_bytes),
            )
            return VerificationResult(valid=True, method=strategy.spec_name, recovered_public_key=result.public_key)

    logger.debug(
        "verification_failed",
        address_type=target.type.value,
        signature_length=len(blob.raw),
        message_length=len(msg_bytes),
    )
    return VerificationResult.invalid()


def is_valid_signature(message: str | bytes, signature: str, address: str) -> bool:
    """Convenience wrapper returning only the validity flag."""
    return verify_message(message, signature, address).valid


async def verify_message_async(
    message: str | bytes,
    signature: str,
    address: str,
    *,
    settings: Settings | None = None,
) -> VerificationResult:
    """Run :func:`verify_message` in a worker thread for event-loop hosts."""
    return await asyncio.to_thread(verify_message, message, signature, address, settings=settings)
