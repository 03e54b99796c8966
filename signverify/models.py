"""
Verification Models
===================
Data models and enums for signature verification.
"""

from typing import Optional
from dataclasses import dataclass
from enum import Enum


class VerificationOutcome(str, Enum):
    """Outcome of a signature check."""
    VALID = "valid"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    MISSING_FIELD = "missing_field"


class FieldProblem(str, Enum):
    """Why a required field was unusable."""
    MISSING = "missing"
    MALFORMED = "malformed"
    DUPLICATE = "duplicate"


class DuplicatePolicy(str, Enum):
    """How repeated parameter names are canonicalized."""
    REJECT = "reject"
    FIRST = "first"
    LAST = "last"


class SignatureEncoding(str, Enum):
    """Text encoding of the HMAC digest."""
    BASE64 = "base64"
    HEX = "hex"


@dataclass(frozen=True)
class VerificationResult:
    """Result of verifying one request."""
    outcome: VerificationOutcome
    field: Optional[str] = None
    problem: Optional[FieldProblem] = None

    @property
    def is_valid(self) -> bool:
        return self.outcome is VerificationOutcome.VALID

    @classmethod
    def valid(cls) -> "VerificationResult":
        return cls(VerificationOutcome.VALID)

    @classmethod
    def invalid_signature(cls) -> "VerificationResult":
        return cls(VerificationOutcome.INVALID_SIGNATURE)

    @classmethod
    def expired(cls) -> "VerificationResult":
        return cls(VerificationOutcome.EXPIRED)

    @classmethod
    def missing_field(
        cls,
        name: str,
        problem: FieldProblem = FieldProblem.MISSING,
    ) -> "VerificationResult":
        return cls(VerificationOutcome.MISSING_FIELD, field=name, problem=problem)
