"""Operation results and the unified API response wrapper.

Ledger operations never raise for business-rule violations: they return an
OperationResult, which the HTTP layer renders as:
{
    "code": 0,           // 0=success, non-0=error code
    "message": "success",
    "data": { ... },     // null on error
    "timestamp": "...",
    "request_id": "..."
}
"""

import functools
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ParamSpec

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.requests import Request

from src.cl_common.errors import AppError

logger = logging.getLogger(__name__)

P = ParamSpec("P")


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


def success_response(data: Any = None) -> ApiResponse:
    return ApiResponse(code=0, message="success", data=data)


def error_response(code: int, message: str) -> ApiResponse:
    return ApiResponse(code=code, message=message, data=None)


@dataclass(frozen=True)
class OperationResult:
    """Success/failure outcome of one ledger operation."""

    success: bool
    message: str
    data: Any = None
    code: int = 0
    http_status: int = 200

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def failure(cls, error: AppError) -> "OperationResult":
        return cls(
            success=False,
            message=error.message,
            code=error.code,
            http_status=error.http_status,
        )


def returns_result(
    message: str,
) -> Callable[[Callable[P, Awaitable[Any]]], Callable[P, Awaitable[OperationResult]]]:
    """Wrap an async operation so AppError becomes a failed OperationResult.

    The wrapped coroutine returns the payload; `message` is the success text.
    """

    def decorator(
        func: Callable[P, Awaitable[Any]],
    ) -> Callable[P, Awaitable[OperationResult]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> OperationResult:
            try:
                data = await func(*args, **kwargs)
            except AppError as exc:
                logger.info("%s failed: [%d] %s", func.__name__, exc.code, exc.message)
                return OperationResult.failure(exc)
            return OperationResult.ok(message, data)

        return wrapper

    return decorator


def result_response(
    result: OperationResult,
    request: Request,
    success_status: int = 200,
) -> JSONResponse:
    """Render an OperationResult as an ApiResponse with the matching HTTP status."""
    if result.success:
        resp = success_response(jsonable_encoder(result.data))
        resp.message = result.message
        status_code = success_status
    else:
        resp = error_response(result.code, result.message)
        status_code = result.http_status
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(status_code=status_code, content=resp.model_dump())
