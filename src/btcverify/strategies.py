"""
Signature verification strategies, one per signing convention.

Strategies are tried in a fixed order by the verifier:

  1. LEGACY        - original client compact signatures (header 27-30) on P2PKH
  2. BIP137        - compact signatures with any BIP-137 header, every template
  3. BIP322        - "simple" witness-stack signatures, and the bare
                     "tr:<sig>[:<key>]" taproot form
  4. LOOSE_BIP137  - compact signatures whose key only matches a P2TR address
                     after the BIP-86 tweak, as some hardware wallets produce them

Each strategy first decides whether it applies to the signature shape and
address template, and only then does any cryptographic work.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from btcverify import bip322
from btcverify.addresses import ALL_TEMPLATES, Address, AddressType, derive_and_match
from btcverify.config import Settings
from btcverify.crypto.hashing import legacy_message_digest
from btcverify.crypto.recovery import RecoveredKey, recover_candidates
from btcverify.errors import SignatureDecodeError
from btcverify.logging import get_logger
from btcverify.schemas import SpecName
from btcverify.signature import HeaderByte, SignatureBlob

logger = get_logger(__name__)


class Outcome(Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    INAPPLICABLE = "inapplicable"


class StrategyResult(NamedTuple):
    outcome: Outcome
    public_key: bytes | None = None

    @property
    def matched(self) -> bool:
        return self.outcome is Outcome.MATCH


NO_MATCH = StrategyResult(Outcome.NO_MATCH)
INAPPLICABLE = StrategyResult(Outcome.INAPPLICABLE)


@dataclass(frozen=True)
class VerificationContext:
    """Decoded inputs shared by every strategy for one verification."""

    message: bytes
    blob: SignatureBlob
    address: Address
    settings: Settings


# ---------------------------------------------------------------------------
# Compact (65-byte) signatures
# ---------------------------------------------------------------------------


def _compact_candidates(ctx: VerificationContext, header: HeaderByte) -> list[RecoveredKey]:
    digest = legacy_message_digest(ctx.message)
    if ctx.settings.header_recovery_only:
        return recover_candidates(digest, ctx.blob.rs, header.recovery_id, header.compressed)
    return recover_candidates(digest, ctx.blob.rs)


def _match_compact(
    ctx: VerificationContext,
    templates: tuple[AddressType, ...],
    *,
    allow_tweak: bool = False,
) -> StrategyResult:
    header = ctx.blob.header()
    for candidate in _compact_candidates(ctx, header):
        matched = derive_and_match(
            candidate.public_key,
            candidate.compressed,
            ctx.address,
            address_hint=header.address_hint,
            templates=templates,
            allow_tweak=allow_tweak,
        )
        if matched is not None:
            logger.debug(
                "candidate_matched",
                template=matched.value,
                recovery_id=candidate.recovery_id,
                compressed=candidate.compressed,
            )
            return StrategyResult(Outcome.MATCH, candidate.public_key)
    return NO_MATCH


def _legacy_applicable(ctx: VerificationContext) -> bool:
    return ctx.blob.is_compact and ctx.blob.header().is_legacy and ctx.address.type is AddressType.P2PKH


def _legacy_verify(ctx: VerificationContext) -> StrategyResult:
    return _match_compact(ctx, (AddressType.P2PKH,))


def _bip137_applicable(ctx: VerificationContext) -> bool:
    return ctx.blob.is_compact


def _bip137_verify(ctx: VerificationContext) -> StrategyResult:
    return _match_compact(ctx, ALL_TEMPLATES)


def _loose_applicable(ctx: VerificationContext) -> bool:
    return ctx.settings.loose_bip137_enabled and ctx.blob.is_compact and ctx.address.type is AddressType.P2TR


def _loose_verify(ctx: VerificationContext) -> StrategyResult:
    return _match_compact(ctx, (AddressType.P2TR,), allow_tweak=True)


# ---------------------------------------------------------------------------
# BIP-322 witness signatures
# ---------------------------------------------------------------------------


def _bip322_applicable(ctx: VerificationContext) -> bool:
    return ctx.blob.is_taproot_text or (not ctx.blob.is_compact and ctx.blob.is_witness)


def _bip322_verify(ctx: VerificationContext) -> StrategyResult:
    if ctx.blob.is_taproot_text:
        public_key = bip322.verify_taproot_text(ctx.message, ctx.blob.raw, ctx.blob.internal_key, ctx.address)
        return NO_MATCH if public_key is None else StrategyResult(Outcome.MATCH, public_key)
    try:
        witness = ctx.blob.witness_stack()
    except SignatureDecodeError:
        return NO_MATCH
    public_key = bip322.verify_simple(ctx.message, witness, ctx.address)
    if public_key is None:
        return NO_MATCH
    return StrategyResult(Outcome.MATCH, public_key)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class Strategy(Enum):
    """Closed set of strategies; declaration order is verification priority."""

    LEGACY = SpecName.LEGACY
    BIP137 = SpecName.BIP137
    BIP322 = SpecName.BIP322
    LOOSE_BIP137 = SpecName.LOOSE_BIP137

    @property
    def spec_name(self) -> SpecName:
        return self.value

    def applicable(self, ctx: VerificationContext) -> bool:
        return _APPLICABLE[self](ctx)

    def verify(self, ctx: VerificationContext) -> StrategyResult:
        """Run the strategy, or report INAPPLICABLE without doing any crypto."""
        if not self.applicable(ctx):
            return INAPPLICABLE
        return _VERIFY[self](ctx)


_APPLICABLE = {
    Strategy.LEGACY: _legacy_applicable,
    Strategy.BIP137: _bip137_applicable,
    Strategy.BIP322: _bip322_applicable,
    Strategy.LOOSE_BIP137: _loose_applicable,
}

_VERIFY = {
    Strategy.LEGACY: _legacy_verify,
    Strategy.BIP137: _bip137_verify,
    Strategy.BIP322: _bip322_verify,
    Strategy.LOOSE_BIP137: _loose_verify,
}

STRATEGY_ORDER: tuple[Strategy, ...] = tuple(Strategy)
