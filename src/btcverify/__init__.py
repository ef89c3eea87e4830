"""Multi-convention Bitcoin signed message verification."""

from btcverify.addresses import Address, AddressType, decode_address, derive_address
from btcverify.crypto.hashing import bip322_message_commitment, legacy_message_digest
from btcverify.errors import (
    AddressDecodeError,
    DecodeError,
    HeaderByteError,
    SignatureDecodeError,
    VerificationError,
)
from btcverify.schemas import SignatureInfo, SpecName, VerificationResult
from btcverify.signature import describe_header, parse_signature
from btcverify.verifier import is_valid_signature, verify_message, verify_message_async

__version__ = "0.1.0"

__all__ = [
    "Address",
    "AddressDecodeError",
    "AddressType",
    "DecodeError",
    "HeaderByteError",
    "SignatureDecodeError",
    "SignatureInfo",
    "SpecName",
    "VerificationError",
    "VerificationResult",
    "bip322_message_commitment",
    "decode_address",
    "derive_address",
    "describe_header",
    "is_valid_signature",
    "legacy_message_digest",
    "parse_signature",
    "verify_message",
    "verify_message_async",
]
