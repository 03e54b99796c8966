"""
Signature Verifier
==================
The per-request verification decision, independent of any HTTP framework.

Checks run in a fixed order:

1. Required fields: signature present, timestamp present and parseable,
   no rejected duplicates.
2. Signature.
3. Expiry.

An expired request that carries a correct signature is reported as
``EXPIRED``; a forged request is ``INVALID_SIGNATURE`` whatever its age.
"""

import time
from typing import Callable, Optional

import structlog

from .canonical import ParamsLike, canonicalize
from .config import SigningConfig
from .exceptions import DuplicateParameterError, MalformedTimestampError
from .models import FieldProblem, VerificationResult
from .params import RequestParameters
from .signature import check_expiry, parse_timestamp, verify_signature

logger = structlog.get_logger(__name__)


def verify_request(
    params: ParamsLike,
    config: SigningConfig,
    now: int,
    signature: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> VerificationResult:
    """
    Verify one request.

    ``signature`` and ``timestamp`` are the values found outside the signed
    parameters (headers). When absent they are looked up in ``params``. A
    timestamp given here is appended to the parameters so it is always
    covered by the signature.

    Args:
        params: Signed request parameters
        config: Signing configuration
        now: Current Unix time in seconds
        signature: Signature from a header, if any
        timestamp: Timestamp from a header, if any

    Returns:
        VerificationResult
    """
    if not isinstance(params, RequestParameters):
        params = RequestParameters(params)
    policy = config.duplicate_policy

    if timestamp is not None:
        params = params.with_item(config.timestamp_param_name, timestamp)

    try:
        if signature is None:
            signature = params.resolve(config.signature_param_name, policy)
        timestamp = params.resolve(config.timestamp_param_name, policy)
    except DuplicateParameterError as e:
        return VerificationResult.missing_field(e.name, FieldProblem.DUPLICATE)

    if not signature:
        return VerificationResult.missing_field(config.signature_param_name)
    if timestamp is None:
        return VerificationResult.missing_field(config.timestamp_param_name)

    try:
        issued_at = parse_timestamp(timestamp)
    except MalformedTimestampError:
        return VerificationResult.missing_field(
            config.timestamp_param_name, FieldProblem.MALFORMED
        )

    try:
        canonical = canonicalize(
            params,
            excluded=config.unsigned_names,
            delimiter=config.delimiter,
            duplicate_policy=policy,
        )
    except DuplicateParameterError as e:
        return VerificationResult.missing_field(e.name, FieldProblem.DUPLICATE)

    if not verify_signature(
        signature,
        canonical,
        config.secret_key,
        digest=config.digest,
        encoding=config.signature_encoding,
    ):
        return VerificationResult.invalid_signature()

    if not check_expiry(issued_at, config.expiry_window, now, config.clock_skew):
        return VerificationResult.expired()

    return VerificationResult.valid()


class SignatureVerifier:
    """
    Verifies signed requests against a shared configuration.

    Holds no per-request state; one instance serves all requests
    concurrently.
    """

    def __init__(
        self,
        config: SigningConfig,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def verify(
        self,
        params: ParamsLike,
        signature: Optional[str] = None,
        timestamp: Optional[str] = None,
        now: Optional[int] = None,
    ) -> VerificationResult:
        result = verify_request(
            params,
            self.config,
            self.now() if now is None else now,
            signature=signature,
            timestamp=timestamp,
        )
        if not result.is_valid:
            logger.debug(
                "signature_verification_failed",
                outcome=result.outcome.value,
                field=result.field,
            )
        return result
