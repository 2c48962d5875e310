"""Global exception handlers for FastAPI.

Typed invoice vault errors map to fixed status codes:

    DecodeError            400  (re-enter the key/hash)
    DecryptionDenied       403  (user declined the wallet prompt)
    DecryptionFailed       422
    MalformedInvoiceError  422
    SubmissionRejected     502  (not retried)
    LedgerReadError        503
    HistoryFetchError      503  (manual retry)
    SessionExpiredError    401
    WalletAuthError        401  (connect signature rejected)
    InvoiceLogError        503  (if anchored: do not resubmit)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    DecodeError,
    DecryptionDenied,
    DecryptionFailed,
    HistoryFetchError,
    InvoiceLogError,
    InvoiceVaultError,
    LedgerReadError,
    MalformedInvoiceError,
    SessionExpiredError,
    SubmissionRejected,
    WalletAuthError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins
ERROR_MAP: list[tuple[type[InvoiceVaultError], int, str]] = [
    (DecodeError, 400, ErrorCodes.DECODE_ERROR),
    (DecryptionDenied, 403, ErrorCodes.DECRYPTION_DENIED),
    (DecryptionFailed, 422, ErrorCodes.DECRYPTION_FAILED),
    (MalformedInvoiceError, 422, ErrorCodes.MALFORMED_INVOICE),
    (SubmissionRejected, 502, ErrorCodes.SUBMISSION_REJECTED),
    (LedgerReadError, 503, ErrorCodes.LEDGER_UNAVAILABLE),
    (HistoryFetchError, 503, ErrorCodes.HISTORY_UNAVAILABLE),
    (SessionExpiredError, 401, ErrorCodes.SESSION_EXPIRED),
    (WalletAuthError, 401, ErrorCodes.NOT_AUTHENTICATED),
    (InvoiceLogError, 503, ErrorCodes.LOG_UNAVAILABLE),
]


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _json_error(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, _request_id(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(InvoiceVaultError)
    async def invoice_vault_error_handler(request: Request, exc: InvoiceVaultError):
        for exc_type, status_code, code in ERROR_MAP:
            if isinstance(exc, exc_type):
                if status_code >= 500:
                    logger.error(f"{code}: {exc}")
                return _json_error(request, status_code, code, str(exc))

        logger.exception("Unmapped invoice vault error")
        return _json_error(request, 500, ErrorCodes.INTERNAL_ERROR, str(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return _json_error(request, 404, ErrorCodes.NOT_FOUND, message)
        return _json_error(request, 400, ErrorCodes.INVALID_REQUEST, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json_error(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json_error(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
