"""
Stateless proof-of-work challenges.

A challenge is the hash of a random salt concatenated with a secret number.
The client brute-forces the number and echoes the challenge back together
with the server's HMAC signature, so verification needs nothing but the
payload and the server secret. Nothing is stored between the two calls.
"""

import base64
import json
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import ValidationError

from captcha_service.schemas.challenge import Challenge
from captcha_service.schemas.payload import Payload, decode_payload
from captcha_service.services.crypto_utils import (
    Algorithm,
    constant_time_equals,
    parse_algorithm,
    puzzle_hash,
    sign,
    to_key_bytes,
)

DEFAULT_MAX_NUMBER = 100_000
DEFAULT_SALT_LENGTH = 12
EXPIRES_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class EntropyError(RuntimeError):
    """The system random source failed; no challenge can be issued."""


class VerificationFailure(StrEnum):
    MALFORMED_PAYLOAD = "malformed_payload"
    MISSING_FIELD = "missing_field"
    UNSUPPORTED_ALGORITHM = "unsupported_algorithm"
    EXPIRED = "expired"
    WRONG_SOLUTION = "wrong_solution"
    INVALID_SIGNATURE = "invalid_signature"


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    reason: VerificationFailure | None = None

    def __bool__(self) -> bool:
        return self.valid


def _invalid(reason: VerificationFailure) -> VerificationResult:
    return VerificationResult(valid=False, reason=reason)


def _utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def format_expires(expires: datetime) -> str:
    return _utc(expires).strftime(EXPIRES_FORMAT)


def create_challenge(
    secret_key: bytes | str,
    max_number: int = DEFAULT_MAX_NUMBER,
    salt_length: int = DEFAULT_SALT_LENGTH,
    algorithm: str = Algorithm.SHA256,
    expires: datetime | None = None,
    *,
    number: int | None = None,
    salt: str | None = None,
) -> Challenge:
    """
    Issue a new signed challenge.

    Args:
        secret_key: Server HMAC key, shared with verify_solution.
        max_number: Upper bound (inclusive) of the secret number; sets the difficulty.
        salt_length: Number of random bytes in the salt (hex-encoded, so twice as many chars).
        algorithm: One of the names in Algorithm.
        expires: Optional expiry, truncated to whole seconds. Naive datetimes are UTC.
        number: Fixed secret number instead of a random one.
        salt: Fixed salt instead of a random one.

    Raises:
        ValueError: On invalid arguments.
        EntropyError: If the system random source is unavailable.
    """
    key = to_key_bytes(secret_key)
    algo = parse_algorithm(algorithm)
    if max_number < 1:
        raise ValueError("max_number must be a positive integer")
    if salt_length < 1:
        raise ValueError("salt_length must be a positive integer")
    if number is not None and not 0 <= number <= max_number:
        raise ValueError(f"number must be within [0, {max_number}]")
    if salt is not None and not salt:
        raise ValueError("salt must not be empty")

    try:
        if salt is None:
            salt = secrets.token_hex(salt_length)
        if number is None:
            number = secrets.randbelow(max_number + 1)
    except (OSError, NotImplementedError) as e:
        raise EntropyError("System random source unavailable") from e

    expires_at = None
    expires_str = None
    if expires is not None:
        expires_str = format_expires(expires)
        expires_at = int(_utc(expires).timestamp())

    challenge = puzzle_hash(algo, salt, number)
    signature = sign(algo, key, challenge, salt, expires_at)

    return Challenge(
        algorithm=algo.value,
        challenge=challenge,
        max_number=max_number,
        salt=salt,
        signature=signature,
        expires=expires_str,
    )


def encode_payload(challenge: Challenge, number: int) -> str:
    """Build the base64 payload a client submits for a solved challenge."""
    data = {
        "algorithm": challenge.algorithm,
        "challenge": challenge.challenge,
        "number": number,
        "salt": challenge.salt,
        "signature": challenge.signature,
    }
    if challenge.expires is not None:
        data["expires"] = challenge.expires
    return base64.b64encode(json.dumps(data).encode()).decode()


def verify_solution(
    payload: str | Mapping,
    secret_key: bytes | str,
    *,
    check_expires: bool = True,
    now: datetime | None = None,
) -> VerificationResult:
    """
    Verify a client payload against the server secret.

    Malformed or tampered input is reported through the result, never raised.
    Only an empty secret_key raises ValueError, since that is a server
    misconfiguration.
    """
    key = to_key_bytes(secret_key)

    if isinstance(payload, str):
        try:
            data = decode_payload(payload)
        except ValueError:
            return _invalid(VerificationFailure.MALFORMED_PAYLOAD)
    else:
        data = payload
    if not isinstance(data, Mapping):
        return _invalid(VerificationFailure.MALFORMED_PAYLOAD)

    try:
        solution = Payload.model_validate(dict(data))
    except ValidationError:
        return _invalid(VerificationFailure.MISSING_FIELD)

    try:
        algo = parse_algorithm(solution.algorithm)
    except ValueError:
        return _invalid(VerificationFailure.UNSUPPORTED_ALGORITHM)

    if check_expires and solution.expires is not None:
        current = _utc(now) if now is not None else datetime.now(UTC)
        if current > solution.expires:
            return _invalid(VerificationFailure.EXPIRED)

    expected_hash = puzzle_hash(algo, solution.salt, solution.number)
    expected_signature = sign(
        algo, key, solution.challenge, solution.salt, solution.expires_timestamp()
    )
    # Evaluate both comparisons before branching on either
    hash_ok = constant_time_equals(expected_hash, solution.challenge)
    signature_ok = constant_time_equals(expected_signature, solution.signature)

    if not hash_ok:
        return _invalid(VerificationFailure.WRONG_SOLUTION)
    if not signature_ok:
        return _invalid(VerificationFailure.INVALID_SIGNATURE)
    return VerificationResult(valid=True)
