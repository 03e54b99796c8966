"""
Client Signing
==============
Functions for producing signed requests that SignatureVerifyMiddleware accepts.
"""

import time
from typing import Dict, Optional

from .canonical import ParamsLike, canonicalize
from .config import SigningConfig
from .params import RequestParameters, hash_body
from .signature import compute_signature


def sign_params(
    params: ParamsLike,
    config: SigningConfig,
    timestamp: Optional[int] = None,
    body: Optional[bytes] = None,
) -> str:
    """
    Compute the signature for a parameter set.

    The timestamp is added to the parameters under
    ``config.timestamp_param_name`` before signing. A non-form ``body`` is
    signed through its SHA-256 digest, as the middleware does.

    Args:
        params: Query (or form) parameters without timestamp and signature
        config: Signing configuration
        timestamp: Unix timestamp in seconds (default: now)
        body: Raw non-form request body (optional)

    Returns:
        Encoded signature
    """
    if timestamp is None:
        timestamp = int(time.time())
    signed = RequestParameters(params).with_item(
        config.timestamp_param_name, str(timestamp)
    )
    if body:
        signed = signed.with_item(config.body_param_name, hash_body(body))

    canonical = canonicalize(
        signed,
        excluded=config.unsigned_names,
        delimiter=config.delimiter,
        duplicate_policy=config.duplicate_policy,
    )
    return compute_signature(
        canonical,
        config.secret_key,
        digest=config.digest,
        encoding=config.signature_encoding,
    )


def create_signed_headers(
    params: ParamsLike,
    config: SigningConfig,
    timestamp: Optional[int] = None,
    body: Optional[bytes] = None,
) -> Dict[str, str]:
    """
    Create headers for a signed request.

    Returns:
        Dictionary with the signature and timestamp headers
    """
    if timestamp is None:
        timestamp = int(time.time())
    return {
        config.timestamp_param_name: str(timestamp),
        config.signature_param_name: sign_params(params, config, timestamp, body),
    }


def create_signed_query(
    params: ParamsLike,
    config: SigningConfig,
    timestamp: Optional[int] = None,
) -> Dict[str, str]:
    """
    Return the parameters with timestamp and signature embedded.

    Suitable for a query string or a form body.
    """
    if timestamp is None:
        timestamp = int(time.time())
    signed = dict(RequestParameters(params).multi_items())
    signed[config.timestamp_param_name] = str(timestamp)
    signed[config.signature_param_name] = sign_params(params, config, timestamp)
    return signed
