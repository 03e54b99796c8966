"""
Signing Configuration
=====================
Process-wide signing settings, built once at startup and never mutated.
"""

import base64
import binascii
import hmac
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import FrozenSet, Iterable, Optional

from .exceptions import ConfigurationError
from .models import DuplicatePolicy, SignatureEncoding

ENV_PREFIX = "SIGNVERIFY_"

DEFAULT_EXPIRY_WINDOW_SECONDS = 300  # 5 minutes
DEFAULT_SIGNATURE_PARAM = "apiSig"
DEFAULT_TIMESTAMP_PARAM = "timestamp"
DEFAULT_BODY_PARAM = "body"
DEFAULT_DELIMITER = "&"
DEFAULT_DIGEST = "sha256"


@dataclass(frozen=True)
class SigningConfig:
    """Shared secret and request-signing conventions for one deployment."""
    secret_key: bytes
    expiry_window: timedelta = timedelta(seconds=DEFAULT_EXPIRY_WINDOW_SECONDS)
    signature_param_name: str = DEFAULT_SIGNATURE_PARAM
    timestamp_param_name: str = DEFAULT_TIMESTAMP_PARAM
    excluded_param_names: FrozenSet[str] = field(default_factory=frozenset)
    clock_skew: timedelta = timedelta(0)
    delimiter: str = DEFAULT_DELIMITER
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.REJECT
    digest: str = DEFAULT_DIGEST
    signature_encoding: SignatureEncoding = SignatureEncoding.BASE64
    body_param_name: str = DEFAULT_BODY_PARAM

    def __post_init__(self):
        if isinstance(self.secret_key, str):
            object.__setattr__(self, "secret_key", self.secret_key.encode("utf-8"))
        if not self.secret_key:
            raise ConfigurationError("secret_key must not be empty")
        for name in ("expiry_window", "clock_skew"):
            value = getattr(self, name)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                object.__setattr__(self, name, timedelta(seconds=value))
            elif not isinstance(value, timedelta):
                raise ConfigurationError(f"{name} must be a timedelta or seconds")
        if self.expiry_window < timedelta(0):
            raise ConfigurationError("expiry_window must not be negative")
        if self.clock_skew < timedelta(0):
            raise ConfigurationError("clock_skew must not be negative")
        if not self.signature_param_name or not self.timestamp_param_name:
            raise ConfigurationError("signature and timestamp names are required")
        if self.signature_param_name == self.timestamp_param_name:
            raise ConfigurationError("signature and timestamp names must differ")
        if self.timestamp_param_name in self.excluded_param_names:
            raise ConfigurationError("the timestamp must be part of the signed string")
        if not self.delimiter:
            raise ConfigurationError("delimiter must not be empty")
        try:
            hmac.new(b"k", b"", self.digest).digest()
        except (TypeError, ValueError):
            raise ConfigurationError(f"Unsupported digest algorithm: {self.digest}") from None
        object.__setattr__(
            self, "excluded_param_names", frozenset(self.excluded_param_names)
        )
        object.__setattr__(
            self, "duplicate_policy", DuplicatePolicy(self.duplicate_policy)
        )
        object.__setattr__(
            self, "signature_encoding", SignatureEncoding(self.signature_encoding)
        )

    @property
    def unsigned_names(self) -> FrozenSet[str]:
        """Names left out of the canonical string, the signature field included."""
        return self.excluded_param_names | {self.signature_param_name}

    def __repr__(self) -> str:
        return (
            f"SigningConfig(secret_key=<redacted>, expiry_window={self.expiry_window!r}, "
            f"signature_param_name={self.signature_param_name!r}, "
            f"timestamp_param_name={self.timestamp_param_name!r})"
        )

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "SigningConfig":
        """
        Build the configuration from environment variables.

        Args:
            prefix: Variable name prefix (default: SIGNVERIFY_)

        Returns:
            SigningConfig

        Raises:
            ConfigurationError: If the secret is missing or a value is invalid
        """
        raw_key = os.getenv(f"{prefix}SECRET_KEY", "")
        if not raw_key:
            raise ConfigurationError(f"{prefix}SECRET_KEY is not set")

        try:
            return cls(
                secret_key=decode_secret(raw_key),
                expiry_window=timedelta(seconds=int(os.getenv(
                    f"{prefix}EXPIRY_WINDOW_SECONDS", str(DEFAULT_EXPIRY_WINDOW_SECONDS)
                ))),
                clock_skew=timedelta(seconds=int(os.getenv(
                    f"{prefix}CLOCK_SKEW_SECONDS", "0"
                ))),
                signature_param_name=os.getenv(
                    f"{prefix}SIGNATURE_PARAM", DEFAULT_SIGNATURE_PARAM
                ),
                timestamp_param_name=os.getenv(
                    f"{prefix}TIMESTAMP_PARAM", DEFAULT_TIMESTAMP_PARAM
                ),
                excluded_param_names=frozenset(
                    _split_names(os.getenv(f"{prefix}EXCLUDED_PARAMS", ""))
                ),
                delimiter=os.getenv(f"{prefix}DELIMITER", DEFAULT_DELIMITER),
                duplicate_policy=DuplicatePolicy(
                    os.getenv(f"{prefix}DUPLICATE_POLICY", "reject").lower()
                ),
                digest=os.getenv(f"{prefix}DIGEST", DEFAULT_DIGEST).lower(),
                signature_encoding=SignatureEncoding(
                    os.getenv(f"{prefix}SIGNATURE_ENCODING", "base64").lower()
                ),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid signing configuration: {e}") from e


def decode_secret(raw: str) -> bytes:
    """Decode a secret given as plain text or as 'base64:<data>'."""
    raw = raw.strip()
    if raw.startswith("base64:"):
        try:
            return base64.b64decode(raw[len("base64:"):].strip(), validate=True)
        except binascii.Error as e:
            raise ConfigurationError("Secret key is not valid base64") from e
    return raw.encode("utf-8")


def _split_names(value: Optional[str]) -> Iterable[str]:
    return [name.strip() for name in (value or "").split(",") if name.strip()]
