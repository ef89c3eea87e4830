"""
Bitcoin address decoding and public-key-to-address matching.

Supports:
  - P2PKH (1... / m... / n...) - Base58Check, hash160 of the public key
  - P2SH-P2WPKH (3... / 2...) - Base58Check, hash160 of the v0 redeem script
  - P2WPKH (bc1q... / tb1q... / bcrt1q...) - bech32, witness v0
  - P2TR (bc1p... / tb1p... / bcrt1p...) - bech32m, witness v1 x-only key

Other programs (P2WSH, unknown witness versions) are rejected at decode time.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from coincurve import PublicKey

from btcverify.crypto._bech32 import decode_segwit_address, encode_segwit_address
from btcverify.crypto.base58 import b58check_decode, b58check_encode
from btcverify.crypto.hashing import hash160, taproot_tweak
from btcverify.errors import AddressDecodeError


class AddressType(Enum):
    """Address templates a message signature can be proven against."""

    P2PKH = "P2PKH"
    P2SH_P2WPKH = "P2SH-P2WPKH"
    P2WPKH = "P2WPKH"
    P2TR = "P2TR"


ECDSA_TEMPLATES = (AddressType.P2PKH, AddressType.P2SH_P2WPKH, AddressType.P2WPKH)
ALL_TEMPLATES = (*ECDSA_TEMPLATES, AddressType.P2TR)
_SEGWIT_V0_KEYED = (AddressType.P2SH_P2WPKH, AddressType.P2WPKH)


@dataclass(frozen=True)
class NetworkParams:
    """Version bytes and bech32 HRP for one Bitcoin network."""

    name: str
    p2pkh_version: int
    p2sh_version: int
    hrp: str


MAINNET = NetworkParams("mainnet", 0x00, 0x05, "bc")
TESTNET = NetworkParams("testnet", 0x6F, 0xC4, "tb")
SIGNET = NetworkParams("signet", 0x6F, 0xC4, "tb")
REGTEST = NetworkParams("regtest", 0x6F, 0xC4, "bcrt")

NETWORKS: dict[str, NetworkParams] = {p.name: p for p in (MAINNET, TESTNET, SIGNET, REGTEST)}
_BY_HRP = {MAINNET.hrp: MAINNET, TESTNET.hrp: TESTNET, REGTEST.hrp: REGTEST}
_BY_VERSION = {
    MAINNET.p2pkh_version: (MAINNET, AddressType.P2PKH),
    MAINNET.p2sh_version: (MAINNET, AddressType.P2SH_P2WPKH),
    TESTNET.p2pkh_version: (TESTNET, AddressType.P2PKH),
    TESTNET.p2sh_version: (TESTNET, AddressType.P2SH_P2WPKH),
}


@dataclass(frozen=True)
class Address:
    """A decoded address: canonical text, template, network, and payload.

    ``payload`` is the hash160 (P2PKH), scripthash (P2SH), v0 witness program
    (P2WPKH) or x-only output key (P2TR).
    """

    text: str
    type: AddressType
    network: NetworkParams
    payload: bytes

    @property
    def is_segwit(self) -> bool:
        return self.type in (AddressType.P2WPKH, AddressType.P2TR)

    @property
    def script_pubkey(self) -> bytes:
        """The output script this address pays to."""
        if self.type is AddressType.P2PKH:
            return p2pkh_script(self.payload)
        if self.type is AddressType.P2SH_P2WPKH:
            return b"\xa9\x14" + self.payload + b"\x87"
        if self.type is AddressType.P2WPKH:
            return b"\x00\x14" + self.payload
        return b"\x51\x20" + self.payload

    def on_network(self, network: str) -> bool:
        """True if the address's encoding belongs to the named network."""
        params = NETWORKS[network]
        if self.is_segwit:
            return self.network.hrp == params.hrp
        return self.network.p2pkh_version == params.p2pkh_version


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 PUSH20 <hash> OP_EQUALVERIFY OP_CHECKSIG."""
    return b"\x76\xa9\x14" + pubkey_hash + b"\x88\xac"


def p2wpkh_redeem_script(pubkey: bytes) -> bytes:
    """OP_0 PUSH20 hash160(pubkey): the v0 program wrapped by P2SH-P2WPKH."""
    return b"\x00\x14" + hash160(pubkey)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_address(address: str, network: str | None = None) -> Address:
    """
    Decode and validate an address string.

    Args:
        address: The Bitcoin address as supplied by the caller.
        network: If given, reject addresses from any other network.

    Returns:
        The decoded Address.

    Raises:
        AddressDecodeError: If the checksum, encoding, program, or network is invalid.
    """
    if not address:
        msg = "Address must be a non-empty string"
        raise AddressDecodeError(msg)

    decoded = _decode_segwit(address) if _looks_segwit(address) else _decode_base58(address)

    if network is not None and not decoded.on_network(network):
        msg = f"Address {address[:10]}... is not a {network} address"
        raise AddressDecodeError(msg)
    return decoded


def _looks_segwit(address: str) -> bool:
    lowered = address.lower()
    return any(lowered.startswith(hrp + "1") for hrp in _BY_HRP)


def _decode_segwit(address: str) -> Address:
    hrp, version, program = decode_segwit_address(address)
    params = _BY_HRP.get(hrp)
    if params is None:
        msg = f"Unknown address HRP: {hrp!r}"
        raise AddressDecodeError(msg)
    if version == 0 and len(program) == 20:
        return Address(address.lower(), AddressType.P2WPKH, params, program)
    if version == 1 and len(program) == 32:
        return Address(address.lower(), AddressType.P2TR, params, program)
    msg = f"Unsupported witness version {version} with program length {len(program)}"
    raise AddressDecodeError(msg)


def _decode_base58(address: str) -> Address:
    payload = b58check_decode(address)
    if len(payload) != 21:
        msg = "Invalid Base58Check address length"
        raise AddressDecodeError(msg)
    entry = _BY_VERSION.get(payload[0])
    if entry is None:
        msg = f"Unknown address version byte: {payload[0]:#04x}"
        raise AddressDecodeError(msg)
    params, addr_type = entry
    return Address(address, addr_type, params, payload[1:])


# ---------------------------------------------------------------------------
# Derivation and matching
# ---------------------------------------------------------------------------


def xonly(pubkey: bytes) -> bytes:
    """Drop the SEC1 prefix byte (and y coordinate) of a public key."""
    return pubkey[1:33]


def taproot_output_key(internal_xonly: bytes) -> bytes:
    """BIP-86 output key Q = lift_x(P) + H_TapTweak(P)·G, x-only."""
    internal = PublicKey(b"\x02" + internal_xonly)
    return internal.add(taproot_tweak(internal_xonly)).format(compressed=True)[1:]


def derive_address(
    pubkey: bytes,
    template: AddressType,
    network: NetworkParams | str = MAINNET,
    *,
    tweak: bool = False,
) -> str:
    """
    Derive the address of ``pubkey`` under one template.

    Args:
        pubkey: SEC1 public key, 33 or 65 bytes.
        template: Address template to derive.
        network: Network parameters or name.
        tweak: For P2TR, apply the BIP-86 tweak instead of using the key as-is.

    Raises:
        ValueError: If a segwit v0 template is asked for with an uncompressed key.
    """
    params = NETWORKS[network] if isinstance(network, str) else network

    if template is AddressType.P2PKH:
        return b58check_encode(bytes([params.p2pkh_version]) + hash160(pubkey))
    if template is AddressType.P2TR:
        key = taproot_output_key(xonly(pubkey)) if tweak else xonly(pubkey)
        return encode_segwit_address(params.hrp, 1, key)

    if len(pubkey) != 33:
        msg = f"{template.value} requires a compressed public key"
        raise ValueError(msg)
    if template is AddressType.P2SH_P2WPKH:
        return b58check_encode(bytes([params.p2sh_version]) + hash160(p2wpkh_redeem_script(pubkey)))
    return encode_segwit_address(params.hrp, 0, hash160(pubkey))


def _template_order(address_hint: AddressType | None, templates: Iterable[AddressType]) -> list[AddressType]:
    ordered = list(templates)
    if address_hint in ordered:
        ordered.remove(address_hint)
        ordered.insert(0, address_hint)
    return ordered


def derive_and_match(
    pubkey: bytes,
    compressed: bool,
    target: Address,
    address_hint: AddressType | None = None,
    templates: Iterable[AddressType] = ALL_TEMPLATES,
    *,
    allow_tweak: bool = False,
) -> AddressType | None:
    """
    Find the template under which ``pubkey`` produces ``target``.

    The hinted template is tried first, then every other template in
    ``templates``. Segwit v0 templates never match uncompressed keys. P2TR
    matches the key's x-only form directly; with ``allow_tweak`` it also
    matches the BIP-86 tweaked output key.

    Returns:
        The matching AddressType, or None.
    """
    for template in _template_order(address_hint, templates):
        if template in _SEGWIT_V0_KEYED and not compressed:
            continue
        if derive_address(pubkey, template, target.network) == target.text:
            return template
        if template is AddressType.P2TR and allow_tweak and _matches_tweaked(pubkey, target):
            return template
    return None


def _matches_tweaked(pubkey: bytes, target: Address) -> bool:
    try:
        return derive_address(pubkey, AddressType.P2TR, target.network, tweak=True) == target.text
    except ValueError:
        # Tweak produced an invalid point
        return False
