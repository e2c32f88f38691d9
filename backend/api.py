"""FastAPI entrypoint for bank transaction endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response

from backend.factory import TransactionServiceLike, build_transaction_service
from shared import config as _config
from shared.models import (
    ErrorResponse,
    TransactionError,
    TransactionErrorCode,
    TransactionPage,
    TransactionRequest,
    TransactionResponse,
)


logger = logging.getLogger(__name__)


TRANSACTION_ERROR_LABEL = "Transaction Exception"
SYSTEM_ERROR_LABEL = "System Exception"
SYSTEM_ERROR_MESSAGE = "System Internal Exception, please try again later"

_ERROR_STATUS_CODES = {
    TransactionErrorCode.VALIDATION_ERROR: 400,
    TransactionErrorCode.CONFLICT: 400,
    TransactionErrorCode.NOT_FOUND: 400,
    TransactionErrorCode.INTERNAL_ERROR: 500,
}


@lru_cache(maxsize=1)
def get_transaction_service() -> TransactionServiceLike:
    """Return the process-wide transaction service."""

    return build_transaction_service()


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    payload = ErrorResponse(
        status=status_code,
        error=error,
        message=message,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def _system_error_response() -> JSONResponse:
    return _error_response(500, SYSTEM_ERROR_LABEL, SYSTEM_ERROR_MESSAGE)


def _transaction_error_response(error: TransactionError) -> JSONResponse:
    status_code = _ERROR_STATUS_CODES.get(error.code, 500)
    if status_code >= 500:
        logger.error(
            "transaction_internal_error code=%s message=%s details=%s",
            error.code.value,
            error.message,
            error.details,
        )
        return _system_error_response()

    logger.warning("transaction_exception code=%s message=%s", error.code.value, error.message)
    return _error_response(status_code, TRANSACTION_ERROR_LABEL, error.message)


app = FastAPI(
    title="Bank Transactions API",
    description="Create, read, update and delete bank transaction records.",
)

ALLOW_ORIGINS = _config.cors_allow_origins()


@app.middleware("http")
async def log_http_requests(request: Request, call_next):
    """Log incoming requests, HTTP status codes and unexpected errors."""

    logger.info("http_request_received method=%s path=%s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "http_request_failed method=%s path=%s",
            request.method,
            request.url.path,
        )
        raise

    logger.info(
        "http_response_sent method=%s path=%s status_code=%s",
        request.method,
        request.url.path,
        response.status_code,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("cors_allow_origins=%s", ALLOW_ORIGINS)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return malformed bodies and query parameters as transaction errors."""

    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location or 'body'}: {error.get('msg', 'invalid value')}")
    message = "Invalid request: " + "; ".join(problems) if problems else "Invalid request"

    logger.warning(
        "request_validation_failed method=%s path=%s message=%s",
        request.method,
        request.url.path,
        message,
    )
    return _error_response(400, TRANSACTION_ERROR_LABEL, message)


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for unhandled exceptions."""

    logger.exception(
        "unhandled_exception method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
        exc_info=exc,
    )
    return _system_error_response()


@app.get("/health")
def health() -> dict[str, str]:
    """Healthcheck endpoint."""

    return {"status": "ok"}


@app.post(
    "/bank/transactions",
    response_model=TransactionResponse,
    status_code=201,
    tags=["transactions"],
    summary="Create transaction",
)
def create_transaction(request: TransactionRequest) -> Any:
    result = get_transaction_service().create_transaction(request)
    if isinstance(result, TransactionError):
        return _transaction_error_response(result)
    return result


@app.get(
    "/bank/transactions",
    response_model=TransactionPage,
    tags=["transactions"],
    summary="List transactions, most recent first",
)
def list_transactions(
    page: int = Query(default=0),
    size: int = Query(default=10),
) -> Any:
    result = get_transaction_service().get_transactions(page, size)
    if isinstance(result, TransactionError):
        return _transaction_error_response(result)
    return result


@app.get(
    "/bank/transactions/{transaction_id}",
    response_model=TransactionResponse,
    tags=["transactions"],
    summary="Get transaction by id",
)
def get_transaction(transaction_id: str) -> Any:
    result = get_transaction_service().get_transaction_by_id(transaction_id)
    if isinstance(result, TransactionError):
        return _transaction_error_response(result)
    return result


@app.put(
    "/bank/transactions/{transaction_id}",
    response_model=TransactionResponse,
    tags=["transactions"],
    summary="Update transaction",
)
def update_transaction(transaction_id: str, request: TransactionRequest) -> Any:
    result = get_transaction_service().update_transaction(transaction_id, request)
    if isinstance(result, TransactionError):
        return _transaction_error_response(result)
    return result


@app.delete(
    "/bank/transactions/{transaction_id}",
    status_code=204,
    tags=["transactions"],
    summary="Delete transaction by id",
)
def delete_transaction(transaction_id: str) -> Response:
    error = get_transaction_service().delete_transaction(transaction_id)
    if error is not None:
        return _transaction_error_response(error)
    return Response(status_code=204)
