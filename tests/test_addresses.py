"""Tests for address decoding, derivation and template matching."""

import pytest

from btcverify.addresses import (
    ALL_TEMPLATES,
    ECDSA_TEMPLATES,
    AddressType,
    decode_address,
    derive_address,
    derive_and_match,
    taproot_output_key,
    xonly,
)
from btcverify.errors import AddressDecodeError
from tests.helpers.signing import address_for, make_key, pubkey_bytes

# BIP-173 / BIP-84 style public key (generator point)
G_COMPRESSED = bytes.fromhex("0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")


class TestDecodeAddress:
    @pytest.mark.parametrize(
        ("address", "expected_type", "network"),
        [
            ("1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa", AddressType.P2PKH, "mainnet"),
            ("3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy", AddressType.P2SH_P2WPKH, "mainnet"),
            ("bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4", AddressType.P2WPKH, "mainnet"),
            ("bc1ppv609nr0vr25u07u95waq5lucwfm6tde4nydujnu8npg4q75mr5sxq8lt3", AddressType.P2TR, "mainnet"),
            ("tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx", AddressType.P2WPKH, "testnet"),
        ],
    )
    def test_supported_types(self, address, expected_type, network):
        decoded = decode_address(address)
        assert decoded.type is expected_type
        assert decoded.network.name == network

    def test_uppercase_bech32_is_canonicalised(self):
        decoded = decode_address("BC1QW508D6QEJXTDG4Y5R3ZARVARY0C5XW7KV8F3T4")
        assert decoded.text == "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"

    def test_p2wsh_rejected(self):
        with pytest.raises(AddressDecodeError, match="Unsupported"):
            decode_address("bc1qrp33g0q5c5txsp9arysrx4k6zdkfs4nce4xj0gdcccefvpysxf3qccfmv3")

    def test_empty_rejected(self):
        with pytest.raises(AddressDecodeError):
            decode_address("")

    def test_garbage_rejected(self):
        with pytest.raises(AddressDecodeError):
            decode_address("not-an-address")

    def test_network_restriction(self):
        with pytest.raises(AddressDecodeError, match="not a mainnet address"):
            decode_address("tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx", network="mainnet")

    def test_signet_shares_testnet_encoding(self):
        decoded = decode_address("tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx", network="signet")
        assert decoded.on_network("testnet")

    def test_script_pubkeys(self):
        assert decode_address("bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4").script_pubkey.hex() == (
            "0014751e76e8199196d454941c45d1b3a323f1433bd6"
        )
        assert decode_address("1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa").script_pubkey.hex() == (
            "76a91462e907b15cbf27d5425399ebf6f0fb50ebb88f1888ac"
        )


class TestDeriveAddress:
    def test_p2wpkh_bip173_vector(self):
        assert derive_address(G_COMPRESSED, AddressType.P2WPKH) == "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"

    def test_p2wpkh_testnet(self):
        assert derive_address(G_COMPRESSED, AddressType.P2WPKH, "testnet") == "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"

    def test_p2tr_untweaked_uses_xonly(self):
        address = derive_address(G_COMPRESSED, AddressType.P2TR)
        assert decode_address(address).payload == G_COMPRESSED[1:]

    def test_p2tr_tweaked_differs(self):
        plain = derive_address(G_COMPRESSED, AddressType.P2TR)
        tweaked = derive_address(G_COMPRESSED, AddressType.P2TR, tweak=True)
        assert plain != tweaked
        assert decode_address(tweaked).payload == taproot_output_key(G_COMPRESSED[1:])

    def test_segwit_requires_compressed(self):
        uncompressed = make_key(7).public_key.format(compressed=False)
        with pytest.raises(ValueError, match="compressed"):
            derive_address(uncompressed, AddressType.P2WPKH)

    def test_xonly(self):
        assert xonly(G_COMPRESSED) == G_COMPRESSED[1:]


class TestDeriveAndMatch:
    @pytest.mark.parametrize("template", ALL_TEMPLATES)
    def test_matches_own_template(self, template):
        key = make_key(1234)
        target = decode_address(address_for(key, template))
        assert derive_and_match(pubkey_bytes(key), True, target) is template

    def test_hint_is_only_a_preference(self):
        key = make_key(99)
        target = decode_address(address_for(key, AddressType.P2WPKH))
        matched = derive_and_match(pubkey_bytes(key), True, target, address_hint=AddressType.P2PKH)
        assert matched is AddressType.P2WPKH

    def test_uncompressed_never_matches_segwit(self):
        key = make_key(99)
        target = decode_address(address_for(key, AddressType.P2WPKH))
        assert derive_and_match(pubkey_bytes(key, compressed=False), False, target) is None

    def test_uncompressed_p2pkh(self):
        key = make_key(99)
        target = decode_address(address_for(key, AddressType.P2PKH, compressed=False))
        assert derive_and_match(pubkey_bytes(key, compressed=False), False, target) is AddressType.P2PKH

    def test_p2tr_matches_tweaked_output_key_when_allowed(self):
        key = make_key(4321)
        target = decode_address(address_for(key, AddressType.P2TR, tweak=True))
        assert derive_and_match(pubkey_bytes(key), True, target) is None
        assert derive_and_match(pubkey_bytes(key), True, target, allow_tweak=True) is AddressType.P2TR

    def test_p2tr_untweaked_matches_without_flag(self):
        key = make_key(4321)
        target = decode_address(address_for(key, AddressType.P2TR))
        assert derive_and_match(pubkey_bytes(key), True, target) is AddressType.P2TR

    def test_template_restriction(self):
        key = make_key(4321)
        target = decode_address(address_for(key, AddressType.P2TR))
        assert derive_and_match(pubkey_bytes(key), True, target, templates=ECDSA_TEMPLATES) is None

    def test_other_key_does_not_match(self):
        target = decode_address(address_for(make_key(1), AddressType.P2PKH))
        assert derive_and_match(pubkey_bytes(make_key(2)), True, target) is None
