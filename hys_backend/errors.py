from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}


class InvalidInputError(ApiError):
    """Caller-supplied parameter rejected before any upstream call."""

    def __init__(self, code: str, message: str):
        super().__init__(status_code=400, code=code, message=message)


class EnibraError(ApiError):
    """Base class for every failure on the Enibra fetch/normalize path."""


class EnibraConfigurationError(EnibraError):
    def __init__(self, missing_fields: list[str]):
        super().__init__(
            status_code=503,
            code="SERVER_NOT_CONFIGURED",
            message="Enibra connection is not configured.",
            details={"missing_fields": list(missing_fields)},
        )
        self.missing_fields = list(missing_fields)


class EnibraTransportError(EnibraError):
    def __init__(self, reason: str, *, status_code: int = 502, code: str = "ENIBRA_UPSTREAM_ERROR"):
        super().__init__(
            status_code=status_code,
            code=code,
            message="Enibra upstream could not be reached.",
        )
        self.reason = reason


class EnibraTimeoutError(EnibraTransportError):
    def __init__(self, reason: str = "deadline exceeded"):
        super().__init__(reason, status_code=504, code="ENIBRA_TIMEOUT")
        self.message = "Enibra upstream did not answer in time."


class EnibraUpstreamStatusError(EnibraError):
    def __init__(self, upstream_status: int):
        super().__init__(
            status_code=502,
            code="ENIBRA_UPSTREAM_STATUS",
            message=f"Enibra upstream answered with HTTP {upstream_status}.",
            details={"upstream_status": upstream_status},
        )
        self.upstream_status = upstream_status


class EnibraHtmlResponseError(EnibraError):
    def __init__(self, upstream_status: int):
        super().__init__(
            status_code=502,
            code="ENIBRA_ERROR_HTML",
            message="Enibra upstream returned an HTML page instead of JSON.",
            details={"upstream_status": upstream_status},
        )
        self.upstream_status = upstream_status


SHAPE_ERROR_CODES = {
    "invalid_json": "INVALID_UPSTREAM_JSON",
    "unrecognized_shape": "UNRECOGNIZED_UPSTREAM_SHAPE",
    "empty_result": "EMPTY_UPSTREAM",
}


class EnibraShapeError(EnibraError):
    def __init__(self, kind: str, detail: str, *, body_preview: str = ""):
        super().__init__(
            status_code=502,
            code=SHAPE_ERROR_CODES.get(kind, "INVALID_UPSTREAM_JSON"),
            message=detail,
        )
        self.kind = kind
        self.body_preview = body_preview


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload = {
        "error": {
            **(details or {}),
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
