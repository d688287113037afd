"""
Response helpers and exception handlers for the HTTP API.

Engine errors are turned into the standard error body, with the HTTP
status chosen by error code.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from campus.common.error_handling import CampusError, ErrorCode, error_response, log_error
from campus.common.logger import app_logger

logger = app_logger.getChild("api")

STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.QUESTION_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.ASSESSMENT_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.WEIGHTS_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.ANSWER_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.ATTEMPT_LIMIT_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.PAST_DUE: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_PUBLISHED: status.HTTP_409_CONFLICT,
    ErrorCode.ATTEMPT_STATE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.ATTEMPT_VERSION_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.DRAFT_STATE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_FOUND_ERROR: status.HTTP_404_NOT_FOUND,
    ErrorCode.ASSESSMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ATTEMPT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.AUTHORIZATION_ERROR: status.HTTP_403_FORBIDDEN,
    ErrorCode.PERSISTENCE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(code: ErrorCode) -> int:
    return STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class APIResponse:
    """Standard API response structure"""

    @staticmethod
    def success(data: Any = None, message: str = "Success") -> Dict[str, Any]:
        """
        Create a success response.

        Args:
            data: Response data
            message: Success message

        Returns:
            Response dictionary
        """
        return {
            "status": "success",
            "message": message,
            "data": data
        }

    @staticmethod
    def error(message: str, details: Optional[Any] = None,
              code: Optional[str] = None) -> Dict[str, Any]:
        """Create an error response."""
        response = {
            "status": "error",
            "message": message
        }
        if details:
            response["details"] = details
        if code:
            response["code"] = code
        return response


async def campus_exception_handler(request: Request, exc: CampusError) -> JSONResponse:
    """Render an engine error with the status matching its code."""
    status_code = status_for(exc.code)
    if status_code >= 500:
        log_error(exc, level=logging.ERROR, include_stack_trace=False,
                  context={"path": request.url.path})
    else:
        logger.debug(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=error_response(exc))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors and return a standardized response.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A JSON response with error details
    """
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": list(error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=APIResponse.error(
            "Validation error", details=error_details, code=ErrorCode.VALIDATION_ERROR.value
        )
    )
