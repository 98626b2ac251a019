import hashlib
import hmac
from enum import StrEnum

CANONICAL_VERSION = "altcha-pow-v1"


class Algorithm(StrEnum):
    """Hash functions a challenge may use."""

    SHA1 = "SHA-1"
    SHA256 = "SHA-256"
    SHA512 = "SHA-512"


_HASHLIB_NAMES = {
    Algorithm.SHA1: "sha1",
    Algorithm.SHA256: "sha256",
    Algorithm.SHA512: "sha512",
}


def parse_algorithm(name: str) -> Algorithm:
    """Return the Algorithm for a name, raising ValueError if unsupported."""
    try:
        return Algorithm(name)
    except ValueError:
        raise ValueError(f"Unsupported algorithm: {name!r}") from None


def to_key_bytes(secret_key: bytes | str) -> bytes:
    key = secret_key.encode() if isinstance(secret_key, str) else bytes(secret_key)
    if not key:
        raise ValueError("Secret key must not be empty")
    return key


def hash_hex(algorithm: Algorithm, data: str) -> str:
    """Hex digest of the UTF-8 encoding of data."""
    return hashlib.new(_HASHLIB_NAMES[algorithm], data.encode()).hexdigest()


def hmac_hex(algorithm: Algorithm, key: bytes, data: str) -> str:
    return hmac.new(key, data.encode(), _HASHLIB_NAMES[algorithm]).hexdigest()


def puzzle_hash(algorithm: Algorithm, salt: str, number: int) -> str:
    """Target hash a solver must reproduce: Hash(salt || decimal(number))."""
    return hash_hex(algorithm, f"{salt}{number}")


def canonicalize(algorithm: Algorithm, challenge: str, salt: str, expires: int | None) -> str:
    """
    Serialize the signed challenge fields.

    Layout: version, algorithm, challenge, salt and expiry (unix seconds, empty
    when absent), joined by newlines. None of the fields can hold a newline.
    """
    return "\n".join(
        [
            CANONICAL_VERSION,
            algorithm.value,
            challenge,
            salt,
            "" if expires is None else str(expires),
        ]
    )


def sign(
    algorithm: Algorithm, key: bytes, challenge: str, salt: str, expires: int | None
) -> str:
    return hmac_hex(algorithm, key, canonicalize(algorithm, challenge, salt, expires))


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two strings without leaking the position of the first difference."""
    return hmac.compare_digest(a.encode(), b.encode())
