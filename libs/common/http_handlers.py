from __future__ import annotations

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from libs.common.errors import DomainError
from libs.common.logging import get_logger

# 클라이언트는 상태 코드로 결과 종류를 판별하므로 에러 코드별 상태를 고정해요.
_STATUS_BY_ERROR_CODE: dict[str, int] = {
    "AUTH_FAILED": 401,
    "VALIDATION_FAILED": 400,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "RATE_LIMITED": 429,
    "QUOTA_EXHAUSTED": 402,
    "UPSTREAM_TRANSIENT": 502,
    "CONFIGURATION_ERROR": 500,
}


def status_for_error(exc: DomainError) -> int:
    return _STATUS_BY_ERROR_CODE.get(exc.error_code, 400)


def register_exception_handlers(app: FastAPI, logger_name: str) -> None:
    logger = get_logger(logger_name)

    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
        trace_id = str(uuid.uuid4())
        status_code = status_for_error(exc)
        logger.warning(
            "domain_error",
            path=request.url.path,
            method=request.method,
            trace_id=trace_id,
            status_code=status_code,
            error_code=exc.error_code,
            retryable=exc.retryable,
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "error": exc.message,
                "error_code": exc.error_code,
                "trace_id": trace_id,
                "retryable": exc.retryable,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        trace_id = str(uuid.uuid4())
        logger.exception(
            "unhandled_error",
            path=request.url.path,
            method=request.method,
            trace_id=trace_id,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "एक तकनीकी समस्या हुई, कृपया बाद में कोशिश करें",
                "error_code": "INTERNAL_ERROR",
                "trace_id": trace_id,
                "retryable": True,
            },
        )
