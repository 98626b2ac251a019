"""Tests for the hashing and signing primitives."""

import pytest

from captcha_service.services.crypto_utils import (
    Algorithm,
    canonicalize,
    constant_time_equals,
    hash_hex,
    hmac_hex,
    parse_algorithm,
    puzzle_hash,
    sign,
    to_key_bytes,
)


class TestAlgorithms:
    def test_parse_supported_names(self):
        assert parse_algorithm("SHA-1") is Algorithm.SHA1
        assert parse_algorithm("SHA-256") is Algorithm.SHA256
        assert parse_algorithm("SHA-512") is Algorithm.SHA512

    @pytest.mark.parametrize("name", ["MD5", "sha256", "SHA256", ""])
    def test_parse_rejects_unknown_names(self, name):
        with pytest.raises(ValueError, match="Unsupported algorithm"):
            parse_algorithm(name)


class TestHashing:
    def test_known_digests(self):
        assert (
            hash_hex(Algorithm.SHA256, "abc")
            == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )
        assert hash_hex(Algorithm.SHA1, "abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"
        assert len(hash_hex(Algorithm.SHA512, "abc")) == 128

    def test_hmac_known_vector(self):
        """RFC 4231 test case 2."""
        assert (
            hmac_hex(Algorithm.SHA256, b"Jefe", "what do ya want for nothing?")
            == "5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843"
        )

    def test_puzzle_hash_concatenates_salt_and_decimal_number(self):
        assert puzzle_hash(Algorithm.SHA256, "a1b2", 42) == hash_hex(Algorithm.SHA256, "a1b242")

    def test_puzzle_hash_is_deterministic(self):
        first = puzzle_hash(Algorithm.SHA512, "deadbeef", 7)
        second = puzzle_hash(Algorithm.SHA512, "deadbeef", 7)
        assert first == second


class TestCanonicalize:
    def test_layout_with_expiry(self):
        assert (
            canonicalize(Algorithm.SHA256, "abcd", "0011", 1700000000)
            == "altcha-pow-v1\nSHA-256\nabcd\n0011\n1700000000"
        )

    def test_layout_without_expiry(self):
        assert canonicalize(Algorithm.SHA1, "abcd", "0011", None) == (
            "altcha-pow-v1\nSHA-1\nabcd\n0011\n"
        )

    def test_signature_binds_every_field(self):
        key = b"k" * 32
        base = sign(Algorithm.SHA256, key, "abcd", "0011", 1700000000)

        assert sign(Algorithm.SHA256, key, "abcd", "0011", 1700000000) == base
        assert sign(Algorithm.SHA512, key, "abcd", "0011", 1700000000) != base
        assert sign(Algorithm.SHA256, key, "abce", "0011", 1700000000) != base
        assert sign(Algorithm.SHA256, key, "abcd", "0012", 1700000000) != base
        assert sign(Algorithm.SHA256, key, "abcd", "0011", 1700000001) != base
        assert sign(Algorithm.SHA256, key, "abcd", "0011", None) != base
        assert sign(Algorithm.SHA256, b"q" * 32, "abcd", "0011", 1700000000) != base


class TestHelpers:
    def test_constant_time_equals(self):
        assert constant_time_equals("abc123", "abc123")
        assert not constant_time_equals("abc123", "abc124")
        assert not constant_time_equals("abc", "abc123")

    def test_constant_time_equals_accepts_non_ascii(self):
        assert not constant_time_equals("abc", "äbc")

    def test_key_bytes(self):
        assert to_key_bytes("secret") == b"secret"
        assert to_key_bytes(b"secret") == b"secret"

    @pytest.mark.parametrize("key", ["", b""])
    def test_empty_key_rejected(self, key):
        with pytest.raises(ValueError, match="must not be empty"):
            to_key_bytes(key)
