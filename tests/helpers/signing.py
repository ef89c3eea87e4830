"""Signing helpers used to build verification fixtures.

The verifier never signs; these helpers exist so tests can produce fresh,
valid signatures for every address template and convention.
"""

from __future__ import annotations

import base64

from coincurve import PrivateKey

from btcverify.addresses import AddressType, decode_address, derive_address, p2pkh_script
from btcverify.bip322 import (
    SIGHASH_ALL,
    SIGHASH_DEFAULT,
    build_to_sign,
    build_to_spend,
    legacy_sighash,
    segwit_v0_sighash,
    taproot_sighash,
)
from btcverify.crypto.hashing import bip322_message_commitment, hash160, legacy_message_digest, taproot_tweak
from btcverify.crypto.recovery import SECP256K1_N
from btcverify.signature import serialize_witness_stack

HEADER_BASE = {
    (AddressType.P2PKH, False): 27,
    (AddressType.P2PKH, True): 31,
    (AddressType.P2SH_P2WPKH, True): 35,
    (AddressType.P2WPKH, True): 39,
}


def make_key(seed: int) -> PrivateKey:
    """Deterministic private key from a small integer seed."""
    return PrivateKey.from_int(seed)


def pubkey_bytes(key: PrivateKey, compressed: bool = True) -> bytes:
    return key.public_key.format(compressed=compressed)


def address_for(key: PrivateKey, template: AddressType, *, compressed: bool = True, tweak: bool = False, network: str = "mainnet") -> str:
    return derive_address(pubkey_bytes(key, compressed), template, network, tweak=tweak)


# ---------------------------------------------------------------------------
# Compact (Legacy / BIP-137) signatures
# ---------------------------------------------------------------------------


def compact_signature_bytes(key: PrivateKey, message: str | bytes, header_base: int) -> bytes:
    sig = key.sign_recoverable(legacy_message_digest(message), hasher=None)
    rs, recovery_id = sig[:64], sig[64]
    return bytes([header_base + recovery_id]) + rs


def sign_compact(
    key: PrivateKey,
    message: str | bytes,
    template: AddressType = AddressType.P2PKH,
    *,
    compressed: bool = True,
    header_base: int | None = None,
) -> str:
    """Base64 65-byte signature with the header byte for ``template``."""
    if header_base is None:
        header_base = HEADER_BASE[(template, compressed)]
    return base64.b64encode(compact_signature_bytes(key, message, header_base)).decode()


# ---------------------------------------------------------------------------
# BIP-322 simple signatures
# ---------------------------------------------------------------------------


def _tweaked_key(key: PrivateKey) -> PrivateKey:
    secret = key.to_int()
    if key.public_key.format(compressed=True)[0] == 0x03:
        secret = SECP256K1_N - secret
    xonly = key.public_key.format(compressed=True)[1:]
    return PrivateKey.from_int((secret + int.from_bytes(taproot_tweak(xonly), "big")) % SECP256K1_N)


def bip322_witness(
    key: PrivateKey,
    message: str | bytes,
    template: AddressType,
    *,
    compressed: bool = True,
    tweak: bool = True,
    sighash_all: bool = False,
) -> list[bytes]:
    """Witness items of a to_sign transaction proving ``key`` owns its address."""
    target = decode_address(address_for(key, template, compressed=compressed, tweak=tweak))
    to_spend = build_to_spend(message, target.script_pubkey)
    to_sign = build_to_sign(to_spend)
    pubkey = pubkey_bytes(key, compressed)

    if template is AddressType.P2TR:
        signer = _tweaked_key(key) if tweak else key
        hash_type = SIGHASH_ALL if sighash_all else SIGHASH_DEFAULT
        sig = signer.sign_schnorr(taproot_sighash(to_sign, 0, to_spend.outputs, hash_type))
        return [sig + bytes([SIGHASH_ALL])] if sighash_all else [sig]

    if template is AddressType.P2PKH:
        sighash = legacy_sighash(to_sign, 0, target.script_pubkey, SIGHASH_ALL)
    else:
        sighash = segwit_v0_sighash(to_sign, 0, p2pkh_script(hash160(pubkey)), 0, SIGHASH_ALL)
    return [key.sign(sighash, hasher=None) + bytes([SIGHASH_ALL]), pubkey]


def sign_bip322(key: PrivateKey, message: str | bytes, template: AddressType, **kwargs) -> str:
    """Base64 serialized witness stack."""
    return base64.b64encode(serialize_witness_stack(bip322_witness(key, message, template, **kwargs))).decode()


def sign_taproot_text(key: PrivateKey, message: str | bytes, *, with_key: bool = True) -> str:
    """``tr:<sig>[:<internal key>]`` over the BIP-322 message hash.

    With the key attached the internal key signs; without it the BIP-86
    tweaked key signs so the address's output key verifies.
    """
    digest = bip322_message_commitment(message)
    if with_key:
        xonly = key.public_key.format(compressed=True)[1:]
        return f"tr:{key.sign_schnorr(digest).hex()}:{xonly.hex()}"
    return f"tr:{_tweaked_key(key).sign_schnorr(digest).hex()}"
