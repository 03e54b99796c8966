"""
signverify
==========
HMAC request-signature verification middleware for Starlette/FastAPI services.
"""

__version__ = "0.1.0"

# Config & Models
from .config import SigningConfig, decode_secret
from .models import (
    DuplicatePolicy,
    FieldProblem,
    SignatureEncoding,
    VerificationOutcome,
    VerificationResult,
)
from .exceptions import (
    ConfigurationError,
    DuplicateParameterError,
    MalformedBodyError,
    MalformedTimestampError,
    SignVerifyError,
)

# Canonicalization & Signing
from .params import (
    BodyDigestSource,
    FormParameterSource,
    HeaderSource,
    ParameterSource,
    QueryParameterSource,
    RequestParameters,
    hash_body,
)
from .canonical import canonicalize
from .signature import (
    check_expiry,
    compute_signature,
    parse_timestamp,
    verify_signature,
)
from .verifier import SignatureVerifier, verify_request
from .headers import create_signed_headers, create_signed_query, sign_params

# Middleware
from .middleware import (
    SignatureVerifyMiddleware,
    default_rejection_response,
    setup_signature_verification,
)
from .no_cache import NoCacheMiddleware

__all__ = [
    # Config & Models
    "SigningConfig",
    "decode_secret",
    "DuplicatePolicy",
    "FieldProblem",
    "SignatureEncoding",
    "VerificationOutcome",
    "VerificationResult",
    "ConfigurationError",
    "DuplicateParameterError",
    "MalformedBodyError",
    "MalformedTimestampError",
    "SignVerifyError",
    # Canonicalization & Signing
    "BodyDigestSource",
    "FormParameterSource",
    "HeaderSource",
    "ParameterSource",
    "QueryParameterSource",
    "RequestParameters",
    "hash_body",
    "canonicalize",
    "check_expiry",
    "compute_signature",
    "parse_timestamp",
    "verify_signature",
    "SignatureVerifier",
    "verify_request",
    "create_signed_headers",
    "create_signed_query",
    "sign_params",
    # Middleware
    "SignatureVerifyMiddleware",
    "default_rejection_response",
    "setup_signature_verification",
    "NoCacheMiddleware",
]
