"""Result schemas returned to callers."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class SpecName(str, Enum):
    """Signing convention that proved a signature valid."""

    LEGACY = "Legacy"
    BIP137 = "BIP-137"
    BIP322 = "BIP-322"
    LOOSE_BIP137 = "Loose BIP-137"


class VerificationResult(BaseModel):
    """Outcome of a single verify_message call.

    ``method`` is None whenever ``valid`` is False. A LOOSE_BIP137 method means
    the signature only verified through the hardware-wallet compatibility path.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    method: SpecName | None = None
    recovered_public_key: bytes | None = None

    @classmethod
    def invalid(cls) -> VerificationResult:
        return cls(valid=False)

    @property
    def is_loose(self) -> bool:
        return self.method is SpecName.LOOSE_BIP137


class SignatureInfo(BaseModel):
    """Decoded components of a signature string, for display and diagnostics."""

    model_config = ConfigDict(frozen=True)

    encoding: str
    shape: str
    length: int
    header: int | None = None
    header_description: str | None = None
    recovery_id: int | None = None
    compressed: bool | None = None
    r: str | None = None
    s: str | None = None
    witness: list[str] | None = None
    internal_key: str | None = None
