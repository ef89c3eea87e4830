"""Exception types raised while decoding verification inputs.

Every error here describes untrusted input that could not be decoded. The
verifier catches them at its boundary and reports ``valid=False``.
"""

from __future__ import annotations


class VerificationError(ValueError):
    """Base class for all btcverify errors."""


class DecodeError(VerificationError):
    """An input string or byte sequence could not be decoded."""


class SignatureDecodeError(DecodeError):
    """The signature is not valid base64/hex or not a known signature shape."""


class HeaderByteError(DecodeError):
    """The header byte of a compact signature is outside every known range."""

    def __init__(self, flag: int) -> None:
        self.flag = flag
        super().__init__(f"Unknown signature header byte: {flag}")


class AddressDecodeError(DecodeError):
    """The address has a bad checksum, bad encoding, or an unsupported program."""
