"""Error responses for the reelindex HTTP API.

Every error body uses the same envelope:

    {"messages": [{"code": ..., "messageType": ..., "text": ..., "timestamp": ...}]}
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from reelindex.errors import (
    ContentNotFoundError,
    PlatformFetchError,
    ReelIndexError,
    UnsupportedPlatformError,
)

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """Type of message in error response."""

    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"
    EXCEPTION = "Exception"


class Message(BaseModel):
    model_config = {"extra": "forbid", "populate_by_name": True}

    code: str
    message_type: MessageType = Field(alias="messageType")
    text: str
    timestamp: str | None = None


class Result(BaseModel):
    model_config = {"extra": "forbid"}

    messages: list[Message]


def _result(code: str, text: str, message_type: MessageType = MessageType.ERROR) -> Result:
    return Result(
        messages=[
            Message(
                code=code,
                messageType=message_type,
                text=text,
                timestamp=datetime.now(UTC).isoformat(),
            )
        ]
    )


class ApiError(HTTPException):
    """Base exception for API errors."""

    def __init__(
        self,
        status_code: int,
        code: str,
        text: str,
        message_type: MessageType = MessageType.ERROR,
    ):
        self.code = code
        self.text = text
        self.message_type = message_type
        super().__init__(status_code=status_code, detail=text)

    def to_result(self) -> Result:
        return _result(self.code, self.text, self.message_type)


class NotFoundError(ApiError):
    """Resource not found (404)."""

    def __init__(self, resource_type: str, identifier: str):
        super().__init__(
            status_code=404,
            code="NotFound",
            text=f"{resource_type} with identifier '{identifier}' not found",
        )


class BadRequestError(ApiError):
    """Invalid request (400)."""

    def __init__(self, text: str):
        super().__init__(status_code=400, code="BadRequest", text=text)


class BadGatewayError(ApiError):
    """An upstream platform failed (502)."""

    def __init__(self, text: str):
        super().__init__(status_code=502, code="BadGateway", text=text)


class ServiceUnavailableError(ApiError):
    """A backing service is unreachable (503)."""

    def __init__(self, text: str):
        super().__init__(status_code=503, code="ServiceUnavailable", text=text)


def from_domain_error(exc: ReelIndexError) -> ApiError:
    """Map a domain exception onto its HTTP error."""
    if isinstance(exc, ContentNotFoundError):
        return NotFoundError("ContentItem", str(exc.content_id))
    if isinstance(exc, UnsupportedPlatformError):
        return BadRequestError(str(exc))
    if isinstance(exc, PlatformFetchError):
        return BadGatewayError(str(exc))
    return ServiceUnavailableError(str(exc))


async def api_exception_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_result().model_dump(by_alias=True),
    )


async def domain_exception_handler(request: Request, exc: ReelIndexError) -> JSONResponse:
    return await api_exception_handler(request, from_domain_error(exc))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler for unexpected errors."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=_result(
            "InternalServerError", "An unexpected error occurred", MessageType.EXCEPTION
        ).model_dump(by_alias=True),
    )
