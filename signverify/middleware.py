"""
Signature Verification Middleware
=================================
Rejects requests whose parameter signature is missing, invalid or expired.

Usage:
    from signverify import SignatureVerifyMiddleware, SigningConfig

    app.add_middleware(
        SignatureVerifyMiddleware,
        config=SigningConfig(secret_key=b"shared-secret"),
    )

Clients send the signature and timestamp either as headers (``apiSig``,
``timestamp`` by default) or as query/form parameters of the same names.
"""

from typing import Callable, Iterable, Optional, Set

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
import structlog

from .config import SigningConfig
from .exceptions import DuplicateParameterError, MalformedBodyError
from .models import FieldProblem, VerificationOutcome, VerificationResult
from .no_cache import NoCacheMiddleware
from .params import HeaderSource, QueryParameterSource, RequestParameters, body_source
from .verifier import SignatureVerifier

logger = structlog.get_logger(__name__)

RejectionHandler = Callable[[VerificationResult], Response]

_REJECTIONS = {
    VerificationOutcome.MISSING_FIELD: (
        400,
        "bad_request",
        "SIGNATURE_FIELD_MISSING",
        "Required signature field is missing or malformed.",
    ),
    VerificationOutcome.INVALID_SIGNATURE: (
        401,
        "unauthorized",
        "SIGNATURE_INVALID",
        "Request signature verification failed.",
    ),
    VerificationOutcome.EXPIRED: (
        401,
        "unauthorized",
        "SIGNATURE_EXPIRED",
        "Request timestamp is outside the allowed window.",
    ),
}


def default_rejection_response(result: VerificationResult) -> JSONResponse:
    """Map a failed verification to a JSON error response."""
    status_code, error, code, message = _REJECTIONS[result.outcome]
    content = {
        "error": error,
        "message": message,
        "code": code,
    }
    if result.field is not None:
        content["field"] = result.field
        content["reason"] = result.problem.value if result.problem else None
    return JSONResponse(status_code=status_code, content=content)


def internal_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
        },
    )


class SignatureVerifyMiddleware(BaseHTTPMiddleware):
    """
    Middleware that verifies the HMAC signature of every request.

    Signed parameters are the query string plus the body: a form body
    contributes its fields, any other non-empty body contributes its
    SHA-256 digest under ``config.body_param_name``. The signature and
    timestamp are read from headers first, then from the parameters.
    """

    def __init__(
        self,
        app,
        config: Optional[SigningConfig] = None,
        excluded_paths: Optional[Set[str]] = None,
        rejection_handler: Optional[RejectionHandler] = None,
        verifier: Optional[SignatureVerifier] = None,
    ):
        super().__init__(app)
        if verifier is None:
            verifier = SignatureVerifier(config or SigningConfig.from_env())
        self.verifier = verifier
        self.config = verifier.config
        self.excluded_paths = set(excluded_paths or ())
        self.rejection_handler = rejection_handler or default_rejection_response

    async def _collect_parameters(self, request: Request) -> RequestParameters:
        body = await request.body()
        return RequestParameters.from_sources(
            QueryParameterSource(request.query_params),
            body_source(
                body,
                request.headers.get("content-type"),
                self.config.body_param_name,
            ),
        )

    async def _verify(self, request: Request) -> VerificationResult:
        try:
            params = await self._collect_parameters(request)
        except MalformedBodyError:
            return VerificationResult.missing_field(
                self.config.body_param_name, FieldProblem.MALFORMED
            )
        headers = HeaderSource(request.headers)
        policy = self.config.duplicate_policy
        try:
            signature = headers.resolve(self.config.signature_param_name, policy)
            timestamp = headers.resolve(self.config.timestamp_param_name, policy)
        except DuplicateParameterError as e:
            return VerificationResult.missing_field(e.name, FieldProblem.DUPLICATE)
        return self.verifier.verify(params, signature=signature, timestamp=timestamp)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if path in self.excluded_paths:
            return await call_next(request)

        try:
            result = await self._verify(request)
        except Exception as e:
            logger.error(
                "signature_verification_error",
                path=path,
                method=request.method,
                error_type=type(e).__name__,
            )
            return internal_error_response()

        if not result.is_valid:
            logger.warning(
                "signature_verification_rejected",
                path=path,
                method=request.method,
                reason=result.outcome.value,
                field=result.field,
            )
            return self.rejection_handler(result)

        logger.debug("signature_verification_passed", path=path)
        return await call_next(request)


def setup_signature_verification(
    app: FastAPI,
    config: Optional[SigningConfig] = None,
    excluded_paths: Optional[Iterable[str]] = None,
    rejection_handler: Optional[RejectionHandler] = None,
    no_cache: bool = True,
) -> None:
    """
    Install signature verification on an application.

    Args:
        app: FastAPI application instance
        config: Signing configuration (default: SigningConfig.from_env())
        excluded_paths: Paths that bypass verification
        rejection_handler: Custom (VerificationResult) -> Response mapping
        no_cache: Also add NoCacheMiddleware (default: True)

    Example:
        from signverify import setup_signature_verification

        app = FastAPI()
        setup_signature_verification(app)  # Uses SIGNVERIFY_* env vars
    """
    config = config or SigningConfig.from_env()

    app.add_middleware(
        SignatureVerifyMiddleware,
        config=config,
        excluded_paths=set(excluded_paths or ()),
        rejection_handler=rejection_handler,
    )
    if no_cache:
        # Added last so it wraps rejections too
        app.add_middleware(NoCacheMiddleware)

    logger.info(
        "signature_verification_configured",
        signature_param=config.signature_param_name,
        timestamp_param=config.timestamp_param_name,
        expiry_window_seconds=int(config.expiry_window.total_seconds()),
    )
