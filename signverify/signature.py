"""
Signature Functions
===================
HMAC signature computation, constant-time verification and timestamp expiry.
"""

import base64
import binascii
import hmac
from datetime import timedelta
from typing import Union

from .config import DEFAULT_DIGEST
from .exceptions import MalformedTimestampError
from .models import SignatureEncoding

Seconds = Union[int, float, timedelta]

# Unix seconds fit in a signed 64-bit integer
MAX_TIMESTAMP_DIGITS = 19


def compute_digest(canonical: str, key: bytes, digest: str = DEFAULT_DIGEST) -> bytes:
    """Raw HMAC of the UTF-8 canonical string."""
    return hmac.new(key, canonical.encode("utf-8"), digest).digest()


def compute_signature(
    canonical: str,
    key: bytes,
    digest: str = DEFAULT_DIGEST,
    encoding: SignatureEncoding = SignatureEncoding.BASE64,
) -> str:
    """
    Compute the request signature.

    Args:
        canonical: Canonical signing string
        key: Shared secret
        digest: hashlib algorithm name (default: sha256)
        encoding: BASE64 (standard alphabet, padded) or HEX

    Returns:
        Encoded HMAC signature
    """
    raw = compute_digest(canonical, key, digest)
    if SignatureEncoding(encoding) is SignatureEncoding.HEX:
        return raw.hex()
    return base64.b64encode(raw).decode("ascii")


def decode_signature(candidate: str, encoding: SignatureEncoding) -> bytes:
    """
    Strictly decode a supplied signature.

    Raises:
        ValueError: If the candidate is not valid for the encoding
    """
    if SignatureEncoding(encoding) is SignatureEncoding.HEX:
        return bytes.fromhex(candidate)
    try:
        return base64.b64decode(candidate.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError("signature is not valid base64") from e


def verify_signature(
    candidate: str,
    canonical: str,
    key: bytes,
    digest: str = DEFAULT_DIGEST,
    encoding: SignatureEncoding = SignatureEncoding.BASE64,
) -> bool:
    """
    Verify a supplied signature using constant-time comparison.

    Malformed candidates (bad encoding, wrong length) are a failed
    verification, not an error.

    Returns:
        True if signature is valid
    """
    expected = compute_digest(canonical, key, digest)
    try:
        supplied = decode_signature(candidate, encoding)
    except ValueError:
        return False
    return hmac.compare_digest(expected, supplied)


def parse_timestamp(value: str) -> int:
    """
    Parse integer Unix seconds.

    Raises:
        MalformedTimestampError: If value is not a plain ASCII digit string
    """
    text = value.strip()
    if not text or not text.isascii() or not text.isdigit():
        raise MalformedTimestampError(value)
    if len(text) > MAX_TIMESTAMP_DIGITS:
        raise MalformedTimestampError(value)
    return int(text)


def check_expiry(
    timestamp: int,
    window: Seconds,
    now: int,
    clock_skew: Seconds = 0,
) -> bool:
    """
    Check whether a timestamp is inside the accepted window.

    Valid iff ``-clock_skew <= now - timestamp <= window``.

    Args:
        timestamp: Unix timestamp from request
        window: Maximum age
        now: Current Unix time
        clock_skew: Tolerance for timestamps ahead of ``now``

    Returns:
        True if timestamp is acceptable
    """
    age = now - timestamp
    return -_seconds(clock_skew) <= age <= _seconds(window)


def _seconds(value: Seconds) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return value
