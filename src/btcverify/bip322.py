"""
BIP-322 generic signed message verification ("simple" signatures).

The signer proves control of an address by spending a virtual output that
commits to the message:

  to_spend  version 0, locktime 0
            in:  00..00:0xFFFFFFFF, scriptSig OP_0 PUSH32(message_hash), sequence 0
            out: value 0, scriptPubKey = the address's script
  to_sign   version 0, locktime 0
            in:  to_spend:0, empty scriptSig, sequence 0, witness = signature
            out: value 0, OP_RETURN

The signature string is the serialized witness of to_sign's only input.
Verification recomputes the sighash for the address's script type and checks
the witness against it.

Reference: https://github.com/bitcoin/bips/blob/master/bip-0322.mediawiki
           https://github.com/bitcoin/bips/blob/master/bip-0143.mediawiki
           https://github.com/bitcoin/bips/blob/master/bip-0341.mediawiki
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace

from coincurve import PublicKey, PublicKeyXOnly

from btcverify.addresses import Address, AddressType, p2pkh_script, p2wpkh_redeem_script, taproot_output_key
from btcverify.crypto.hashing import (
    TAPSIGHASH_TAG,
    bip322_message_commitment,
    encode_varint,
    hash160,
    sha256,
    sha256d,
    tagged_hash,
)
from btcverify.logging import get_logger

logger = get_logger(__name__)

SIGHASH_DEFAULT = 0x00
SIGHASH_ALL = 0x01

OP_0 = 0x00
OP_RETURN = 0x6A

NULL_TXID = b"\x00" * 32
NULL_INDEX = 0xFFFFFFFF


@dataclass(frozen=True)
class TxIn:
    prev_txid: bytes
    prev_index: int
    script_sig: bytes = b""
    sequence: int = 0

    def serialize(self) -> bytes:
        return (
            self.prev_txid
            + struct.pack("<I", self.prev_index)
            + encode_varint(len(self.script_sig))
            + self.script_sig
            + struct.pack("<I", self.sequence)
        )

    @property
    def outpoint(self) -> bytes:
        return self.prev_txid + struct.pack("<I", self.prev_index)


@dataclass(frozen=True)
class TxOut:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<q", self.value) + encode_varint(len(self.script_pubkey)) + self.script_pubkey


@dataclass(frozen=True)
class VirtualTransaction:
    """A transaction that is never broadcast; serialized without witness data."""

    version: int
    inputs: tuple[TxIn, ...]
    outputs: tuple[TxOut, ...]
    locktime: int = 0

    def serialize(self) -> bytes:
        return (
            struct.pack("<i", self.version)
            + encode_varint(len(self.inputs))
            + b"".join(txin.serialize() for txin in self.inputs)
            + encode_varint(len(self.outputs))
            + b"".join(txout.serialize() for txout in self.outputs)
            + struct.pack("<I", self.locktime)
        )

    @property
    def txid(self) -> bytes:
        """Transaction id in internal byte order, as used in outpoints."""
        return sha256d(self.serialize())

    @property
    def txid_hex(self) -> str:
        """Transaction id in the usual reversed display order."""
        return self.txid[::-1].hex()


def build_to_spend(message: str | bytes, script_pubkey: bytes) -> VirtualTransaction:
    message_hash = bip322_message_commitment(message)
    script_sig = bytes([OP_0, 0x20]) + message_hash
    return VirtualTransaction(
        version=0,
        inputs=(TxIn(NULL_TXID, NULL_INDEX, script_sig, 0),),
        outputs=(TxOut(0, script_pubkey),),
    )


def build_to_sign(to_spend: VirtualTransaction) -> VirtualTransaction:
    return VirtualTransaction(
        version=0,
        inputs=(TxIn(to_spend.txid, 0, b"", 0),),
        outputs=(TxOut(0, bytes([OP_RETURN])),),
    )


# ---------------------------------------------------------------------------
# Signature hashes (SIGHASH_ALL / SIGHASH_DEFAULT only)
# ---------------------------------------------------------------------------


def legacy_sighash(tx: VirtualTransaction, input_index: int, script_code: bytes, hash_type: int = SIGHASH_ALL) -> bytes:
    """Pre-segwit signature hash: the tx with only the signed input's script filled in."""
    inputs = tuple(
        replace(txin, script_sig=script_code if i == input_index else b"") for i, txin in enumerate(tx.inputs)
    )
    preimage = replace(tx, inputs=inputs).serialize() + struct.pack("<I", hash_type)
    return sha256d(preimage)


def segwit_v0_sighash(
    tx: VirtualTransaction,
    input_index: int,
    script_code: bytes,
    amount: int,
    hash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP-143 signature hash for witness v0 inputs."""
    txin = tx.inputs[input_index]
    hash_prevouts = sha256d(b"".join(i.outpoint for i in tx.inputs))
    hash_sequence = sha256d(b"".join(struct.pack("<I", i.sequence) for i in tx.inputs))
    hash_outputs = sha256d(b"".join(o.serialize() for o in tx.outputs))
    preimage = (
        struct.pack("<i", tx.version)
        + hash_prevouts
        + hash_sequence
        + txin.outpoint
        + encode_varint(len(script_code))
        + script_code
        + struct.pack("<q", amount)
        + struct.pack("<I", txin.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", hash_type)
    )
    return sha256d(preimage)


def taproot_sighash(
    tx: VirtualTransaction,
    input_index: int,
    spent_outputs: tuple[TxOut, ...],
    hash_type: int = SIGHASH_DEFAULT,
) -> bytes:
    """BIP-341 key-path signature hash (no annex)."""
    sha_prevouts = sha256(b"".join(i.outpoint for i in tx.inputs))
    sha_amounts = sha256(b"".join(struct.pack("<q", o.value) for o in spent_outputs))
    sha_scriptpubkeys = sha256(b"".join(encode_varint(len(o.script_pubkey)) + o.script_pubkey for o in spent_outputs))
    sha_sequences = sha256(b"".join(struct.pack("<I", i.sequence) for i in tx.inputs))
    sha_outputs = sha256(b"".join(o.serialize() for o in tx.outputs))
    spend_type = 0
    sig_msg = (
        bytes([0x00, hash_type])  # epoch, hash type
        + struct.pack("<i", tx.version)
        + struct.pack("<I", tx.locktime)
        + sha_prevouts
        + sha_amounts
        + sha_scriptpubkeys
        + sha_sequences
        + sha_outputs
        + bytes([spend_type])
        + struct.pack("<I", input_index)
    )
    return tagged_hash(TAPSIGHASH_TAG, sig_msg)


# ---------------------------------------------------------------------------
# Witness checks
# ---------------------------------------------------------------------------


def _split_ecdsa(sig_with_type: bytes) -> bytes | None:
    """Strip the trailing SIGHASH_ALL byte from a DER signature."""
    if len(sig_with_type) < 9 or sig_with_type[-1] != SIGHASH_ALL:
        return None
    return sig_with_type[:-1]


def _ecdsa_verify(pubkey: bytes, der_sig: bytes, sighash: bytes) -> bool:
    try:
        return PublicKey(pubkey).verify(der_sig, sighash, hasher=None)
    except ValueError:
        # Unparseable public key or DER signature
        return False


def _verify_segwit_v0(to_sign: VirtualTransaction, witness: list[bytes], target: Address) -> bytes | None:
    if len(witness) == 3 and target.type is AddressType.P2SH_P2WPKH:
        # Some signers append the redeem script as a third item
        if witness[2] != p2wpkh_redeem_script(witness[1]):
            return None
        witness = witness[:2]
    if len(witness) != 2:
        return None
    sig_with_type, pubkey = witness
    if len(pubkey) != 33:
        return None

    if target.type is AddressType.P2WPKH:
        program_ok = hash160(pubkey) == target.payload
    else:
        program_ok = hash160(p2wpkh_redeem_script(pubkey)) == target.payload
    if not program_ok:
        return None

    der_sig = _split_ecdsa(sig_with_type)
    if der_sig is None:
        return None
    sighash = segwit_v0_sighash(to_sign, 0, p2pkh_script(hash160(pubkey)), 0, SIGHASH_ALL)
    return pubkey if _ecdsa_verify(pubkey, der_sig, sighash) else None


def _verify_p2pkh(to_sign: VirtualTransaction, witness: list[bytes], target: Address) -> bytes | None:
    if len(witness) != 2:
        return None
    sig_with_type, pubkey = witness
    if len(pubkey) not in (33, 65) or hash160(pubkey) != target.payload:
        return None
    der_sig = _split_ecdsa(sig_with_type)
    if der_sig is None:
        return None
    sighash = legacy_sighash(to_sign, 0, target.script_pubkey, SIGHASH_ALL)
    return pubkey if _ecdsa_verify(pubkey, der_sig, sighash) else None


def _verify_taproot(
    to_spend: VirtualTransaction,
    to_sign: VirtualTransaction,
    witness: list[bytes],
    target: Address,
) -> bytes | None:
    # Key path only: exactly one item, no annex
    if len(witness) != 1:
        return None
    sig = witness[0]
    if len(sig) == 64:
        hash_type = SIGHASH_DEFAULT
    elif len(sig) == 65 and sig[64] == SIGHASH_ALL:
        hash_type = SIGHASH_ALL
        sig = sig[:64]
    else:
        return None

    sighash = taproot_sighash(to_sign, 0, to_spend.outputs, hash_type)
    return target.payload if _schnorr_verify(target.payload, sig, sighash) else None


def verify_simple(message: str | bytes, witness: list[bytes], target: Address) -> bytes | None:
    """
    Check a BIP-322 simple signature (a to_sign witness) against an address.

    Args:
        message: The exact message that was signed.
        witness: Decoded witness stack items.
        target: The decoded address the signature must spend from.

    Returns:
        The public key the witness proved (x-only output key for P2TR), or
        None if the witness does not satisfy the address's script.
    """
    to_spend = build_to_spend(message, target.script_pubkey)
    to_sign = build_to_sign(to_spend)
    logger.debug("bip322_virtual_tx", to_spend=to_spend.txid_hex, to_sign=to_sign.txid_hex, address_type=target.type.value)

    if target.type is AddressType.P2TR:
        return _verify_taproot(to_spend, to_sign, witness, target)
    if target.type is AddressType.P2PKH:
        return _verify_p2pkh(to_sign, witness, target)
    return _verify_segwit_v0(to_sign, witness, target)


def _schnorr_verify(xonly_key: bytes, sig: bytes, digest: bytes) -> bool:
    try:
        return PublicKeyXOnly(xonly_key).verify(sig, digest)
    except ValueError:
        # Not a valid x coordinate
        return False


def _key_owns_output(internal_key: bytes, target: Address) -> bool:
    if internal_key == target.payload:
        return True
    try:
        return taproot_output_key(internal_key) == target.payload
    except ValueError:
        return False


def verify_taproot_text(
    message: str | bytes,
    sig: bytes,
    internal_key: bytes | None,
    target: Address,
) -> bytes | None:
    """
    Check a ``tr:<sig>[:<key>]`` signature: BIP-340 over the BIP-322 message hash.

    With an internal key, the key must produce the address (BIP-86 tweaked or
    as-is) and the signature is checked against it. Without one, the
    signature is checked against the output key in the address.

    Returns:
        The x-only key the signature verified under, or None.
    """
    if target.type is not AddressType.P2TR or len(sig) != 64:
        return None
    key = target.payload
    if internal_key is not None:
        if not _key_owns_output(internal_key, target):
            return None
        key = internal_key
    return key if _schnorr_verify(key, sig, bip322_message_commitment(message)) else None
