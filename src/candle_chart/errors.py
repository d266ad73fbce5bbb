"""Pipeline error taxonomy and the DetailedError shape exposed to callers."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

import httpx
from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    NO_DATA = "NO_DATA"
    SCHEMA_ERROR = "SCHEMA_ERROR"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVICE_ERROR = "SERVICE_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ErrorContext(BaseModel):
    symbol: str | None = None
    endpoint: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DetailedError(BaseModel):
    """Serializable error returned to the upstream caller."""

    code: ErrorCode
    message: str
    retryable: bool
    status_code: int | None = None
    context: ErrorContext = Field(default_factory=ErrorContext)


class ChartPipelineError(Exception):
    """Base class for every failure the pipeline surfaces."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        symbol: str | None = None,
        endpoint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.symbol = symbol
        self.endpoint = endpoint
        self.status_code = status_code

    def to_detail(self) -> DetailedError:
        return DetailedError(
            code=self.code,
            message=self.message,
            retryable=self.retryable,
            status_code=self.status_code,
            context=ErrorContext(symbol=self.symbol, endpoint=self.endpoint),
        )


class NoDataError(ChartPipelineError):
    code = ErrorCode.NO_DATA
    retryable = False


class SchemaError(ChartPipelineError):
    code = ErrorCode.SCHEMA_ERROR
    retryable = False


class InsufficientDataError(ChartPipelineError):
    code = ErrorCode.INSUFFICIENT_DATA
    retryable = True


class NotFoundError(ChartPipelineError):
    code = ErrorCode.NOT_FOUND
    retryable = False


class PipelineTimeoutError(ChartPipelineError):
    code = ErrorCode.TIMEOUT
    retryable = True


class RateLimitedError(ChartPipelineError):
    code = ErrorCode.RATE_LIMITED
    retryable = True


class NetworkError(ChartPipelineError):
    code = ErrorCode.NETWORK_ERROR
    retryable = True


class ServiceError(ChartPipelineError):
    code = ErrorCode.SERVICE_ERROR
    retryable = True


class InvalidRequestError(ChartPipelineError):
    code = ErrorCode.INVALID_REQUEST
    retryable = False


class UnknownPipelineError(ChartPipelineError):
    code = ErrorCode.UNKNOWN_ERROR
    retryable = True


def classify_http_status(
    status_code: int,
    body: str = "",
    *,
    symbol: str | None = None,
    endpoint: str | None = None,
) -> ChartPipelineError:
    """Map a non-2xx response to the matching error kind."""
    detail = f"HTTP {status_code}: {body[:200]}" if body else f"HTTP {status_code}"
    kwargs = {"symbol": symbol, "endpoint": endpoint, "status_code": status_code}
    if status_code == 404:
        return NotFoundError(f"Not found ({detail})", **kwargs)
    if status_code == 429:
        return RateLimitedError(f"Rate limited ({detail})", **kwargs)
    if status_code >= 500:
        return ServiceError(f"Service error ({detail})", **kwargs)
    return UnknownPipelineError(f"Unexpected response ({detail})", **kwargs)


def wrap_exception(
    exc: BaseException,
    *,
    symbol: str | None = None,
    endpoint: str | None = None,
) -> ChartPipelineError:
    """Convert an arbitrary exception into a ChartPipelineError."""
    if isinstance(exc, ChartPipelineError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return PipelineTimeoutError(
            f"Request timed out: {exc}", symbol=symbol, endpoint=endpoint
        )
    if isinstance(exc, httpx.TransportError):
        return NetworkError(
            f"Network failure: {exc}", symbol=symbol, endpoint=endpoint
        )
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_http_status(
            exc.response.status_code,
            exc.response.text,
            symbol=symbol,
            endpoint=endpoint,
        )
    return UnknownPipelineError(str(exc) or type(exc).__name__, symbol=symbol, endpoint=endpoint)


_ERRORS_BY_CODE: dict[ErrorCode, type[ChartPipelineError]] = {
    cls.code: cls
    for cls in (
        NoDataError,
        SchemaError,
        InsufficientDataError,
        NotFoundError,
        PipelineTimeoutError,
        RateLimitedError,
        NetworkError,
        ServiceError,
        InvalidRequestError,
        UnknownPipelineError,
    )
}


def error_from_detail(detail: DetailedError) -> ChartPipelineError:
    """Rebuild the typed exception for a DetailedError (used to raise Failed outcomes)."""
    cls = _ERRORS_BY_CODE.get(detail.code, UnknownPipelineError)
    return cls(
        detail.message,
        symbol=detail.context.symbol,
        endpoint=detail.context.endpoint,
        status_code=detail.status_code,
    )
