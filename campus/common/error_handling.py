"""
Error Handling System for the Campus Assessment Engine

This module provides the error framework shared by every component:
1. Error codes and severities
2. A custom exception hierarchy mirroring the engine's error taxonomy
   (definition-time validation, attempt preconditions, state conflicts,
   persistence failures)
3. Structured error logging
4. Error response generation for APIs
"""

import logging
import traceback
import json
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for errors"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(Enum):
    """Standard error codes for the assessment engine"""
    # General errors
    UNKNOWN_ERROR = "unknown_error"
    VALIDATION_ERROR = "validation_error"
    AUTHORIZATION_ERROR = "authorization_error"
    NOT_FOUND_ERROR = "not_found_error"

    # Definition-time validation
    QUESTION_INVALID = "question_invalid"
    ASSESSMENT_INVALID = "assessment_invalid"
    WEIGHTS_INVALID = "weights_invalid"
    ANSWER_INVALID = "answer_invalid"

    # Attempt start preconditions
    ATTEMPT_LIMIT_EXCEEDED = "attempt_limit_exceeded"
    PAST_DUE = "past_due"
    NOT_PUBLISHED = "not_published"

    # Lifecycle
    ASSESSMENT_NOT_FOUND = "assessment_not_found"
    ATTEMPT_NOT_FOUND = "attempt_not_found"
    ATTEMPT_STATE_CONFLICT = "attempt_state_conflict"
    ATTEMPT_VERSION_CONFLICT = "attempt_version_conflict"
    DRAFT_STATE_CONFLICT = "draft_state_conflict"

    # Collaborators
    PERSISTENCE_ERROR = "persistence_error"


class ErrorInfo(BaseModel):
    """Structured information about an error"""
    model_config = ConfigDict(use_enum_values=True)

    code: ErrorCode
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    exception_type: Optional[str] = None
    exception_message: Optional[str] = None
    stack_trace: Optional[List[str]] = None
    context: Optional[Dict[str, Any]] = None

    @field_validator('stack_trace', mode='before')
    @classmethod
    def validate_stack_trace(cls, v):
        """Format stack trace if it's a string"""
        if isinstance(v, str):
            return v.splitlines()
        return v


class CampusError(Exception):
    """Base exception class for all assessment engine errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.severity = severity
        self.details = details or {}
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now()

    def to_error_info(self, include_stack_trace: bool = False) -> ErrorInfo:
        """Convert the exception to an ErrorInfo object"""
        stack_trace = None
        if include_stack_trace:
            stack_trace = traceback.format_exc().splitlines()

        details = dict(self.details)
        if self.cause is not None:
            details["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }

        return ErrorInfo(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            severity=self.severity,
            details=details,
            exception_type=type(self).__name__,
            exception_message=str(self),
            stack_trace=stack_trace,
            context=self.context
        )

    def to_dict(self, include_stack_trace: bool = False) -> Dict[str, Any]:
        """Convert the exception to a dictionary"""
        return self.to_error_info(include_stack_trace).model_dump(mode="json")

    def to_json(self, include_stack_trace: bool = False) -> str:
        """Convert the exception to a JSON string"""
        return json.dumps(self.to_dict(include_stack_trace))

    def __str__(self) -> str:
        base_str = f"{self.code.value}: {self.message}"
        if self.details:
            base_str += f" (details: {self.details})"
        if self.cause:
            base_str += f" caused by {type(self.cause).__name__}: {str(self.cause)}"
        return base_str


# ---------------------------------------------------------------------------
# Validation errors (reported to the caller, nothing persisted)
# ---------------------------------------------------------------------------

class ValidationError(CampusError):
    """Error raised when input validation fails"""

    def __init__(
        self,
        message: str,
        errors: Optional[Dict[str, str]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.errors = dict(errors or {})
        details = dict(details or {})
        if self.errors:
            details["errors"] = self.errors
        super().__init__(
            message=message,
            code=code,
            severity=ErrorSeverity.WARNING,
            details=details,
            cause=cause,
            context=context
        )


class QuestionValidationError(ValidationError):
    """A question definition is malformed"""

    def __init__(self, question_id: str, errors: Dict[str, str]):
        self.question_id = question_id
        fields = ", ".join(sorted(errors))
        super().__init__(
            message=f"Question {question_id} is invalid: {fields}",
            errors=errors,
            code=ErrorCode.QUESTION_INVALID,
            details={"question_id": question_id}
        )


class AssessmentValidationError(ValidationError):
    """An assessment definition cannot be saved"""

    def __init__(self, errors: Dict[str, str], assessment_id: Optional[str] = None):
        self.assessment_id = assessment_id
        first = next(iter(errors.values()), "invalid assessment")
        super().__init__(
            message=f"Assessment cannot be saved: {first}",
            errors=errors,
            code=ErrorCode.ASSESSMENT_INVALID,
            details={"assessment_id": assessment_id} if assessment_id else None
        )


class WeightValidationError(ValidationError):
    """Category weights do not form a valid configuration"""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None,
                 total: Optional[float] = None):
        details = {"total_percent": total} if total is not None else None
        super().__init__(
            message=message,
            errors=errors,
            code=ErrorCode.WEIGHTS_INVALID,
            details=details
        )


class AnswerValidationError(ValidationError):
    """A submitted answer does not match its question's type"""

    def __init__(self, question_id: str, message: str):
        self.question_id = question_id
        super().__init__(
            message=message,
            errors={question_id: message},
            code=ErrorCode.ANSWER_INVALID,
            details={"question_id": question_id}
        )


# ---------------------------------------------------------------------------
# Attempt start preconditions (no attempt is created)
# ---------------------------------------------------------------------------

class AttemptPreconditionError(CampusError):
    """Base class for refused attempt starts"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        assessment_id: str,
        student_id: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        details.update({"assessment_id": assessment_id, "student_id": student_id})
        super().__init__(
            message=message,
            code=code,
            severity=ErrorSeverity.INFO,
            details=details
        )
        self.assessment_id = assessment_id
        self.student_id = student_id


class AttemptLimitExceeded(AttemptPreconditionError):
    """The student has used every allowed attempt"""

    def __init__(self, assessment_id: str, student_id: str, attempts_allowed: int):
        super().__init__(
            message=f"No attempts left: {attempts_allowed} of {attempts_allowed} used",
            code=ErrorCode.ATTEMPT_LIMIT_EXCEEDED,
            assessment_id=assessment_id,
            student_id=student_id,
            details={"attempts_allowed": attempts_allowed}
        )


class PastDue(AttemptPreconditionError):
    """The assessment's due time has passed"""

    def __init__(self, assessment_id: str, student_id: str, due_at: datetime):
        super().__init__(
            message=f"This assessment was due {due_at.isoformat()}",
            code=ErrorCode.PAST_DUE,
            assessment_id=assessment_id,
            student_id=student_id,
            details={"due_at": due_at.isoformat()}
        )


class NotPublished(AttemptPreconditionError):
    """The assessment is not open to students"""

    def __init__(self, assessment_id: str, student_id: str, status: str):
        super().__init__(
            message=f"This assessment is not published (status: {status})",
            code=ErrorCode.NOT_PUBLISHED,
            assessment_id=assessment_id,
            student_id=student_id,
            details={"status": status}
        )


# ---------------------------------------------------------------------------
# Lookup, state and authorization errors
# ---------------------------------------------------------------------------

class NotFoundError(CampusError):
    """Error raised when a requested resource is not found"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.NOT_FOUND_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=code,
            severity=ErrorSeverity.WARNING,
            details=details
        )


class AssessmentNotFoundError(NotFoundError):
    """Error raised when an assessment is not found"""

    def __init__(self, assessment_id: str):
        super().__init__(
            message=f"Assessment with ID {assessment_id} not found",
            code=ErrorCode.ASSESSMENT_NOT_FOUND,
            details={"assessment_id": assessment_id}
        )


class AttemptNotFoundError(NotFoundError):
    """Error raised when an attempt is not found"""

    def __init__(self, attempt_id: str):
        super().__init__(
            message=f"Attempt with ID {attempt_id} not found",
            code=ErrorCode.ATTEMPT_NOT_FOUND,
            details={"attempt_id": attempt_id}
        )


class AttemptStateError(CampusError):
    """The requested operation is not allowed in the attempt's current state"""

    def __init__(self, attempt_id: str, state: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} attempt {attempt_id} while it is {state}",
            code=ErrorCode.ATTEMPT_STATE_CONFLICT,
            severity=ErrorSeverity.WARNING,
            details={"attempt_id": attempt_id, "state": state, "operation": operation}
        )
        self.attempt_id = attempt_id
        self.state = state


class AttemptVersionConflict(CampusError):
    """The stored attempt was changed by another writer since it was loaded"""

    def __init__(self, attempt_id: str, expected_version: int, stored_version: Optional[int]):
        super().__init__(
            message=f"Attempt {attempt_id} was changed elsewhere; reload and try again",
            code=ErrorCode.ATTEMPT_VERSION_CONFLICT,
            severity=ErrorSeverity.WARNING,
            details={
                "attempt_id": attempt_id,
                "expected_version": expected_version,
                "stored_version": stored_version,
            }
        )
        self.attempt_id = attempt_id
        self.expected_version = expected_version
        self.stored_version = stored_version


class DraftStateError(CampusError):
    """A content suggestion draft was already confirmed or rejected"""

    def __init__(self, draft_id: str, status: str):
        super().__init__(
            message=f"Draft {draft_id} is already {status}",
            code=ErrorCode.DRAFT_STATE_CONFLICT,
            severity=ErrorSeverity.WARNING,
            details={"draft_id": draft_id, "status": status}
        )


class AuthorizationError(CampusError):
    """Error raised when a staff-only operation is attempted by a non-staff actor"""

    def __init__(self, message: str, user_id: Optional[str] = None,
                 course_id: Optional[str] = None):
        super().__init__(
            message=message,
            code=ErrorCode.AUTHORIZATION_ERROR,
            severity=ErrorSeverity.WARNING,
            details={"user_id": user_id, "course_id": course_id}
        )


class PersistenceError(CampusError):
    """A persistence collaborator call failed; the operation may be retried"""

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        super().__init__(
            message="Your work could not be saved right now. Please try again.",
            code=ErrorCode.PERSISTENCE_ERROR,
            severity=ErrorSeverity.ERROR,
            details={"operation": operation},
            cause=cause
        )
        self.operation = operation


def convert_exception(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    default_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
    default_severity: ErrorSeverity = ErrorSeverity.ERROR,
    context: Optional[Dict[str, Any]] = None
) -> CampusError:
    """
    Convert a standard exception to a CampusError.

    Args:
        exception: The exception to convert
        default_message: Default message if the exception has no message
        default_code: Default error code
        default_severity: Default error severity
        context: Optional additional context

    Returns:
        Converted CampusError
    """
    if isinstance(exception, CampusError):
        if context:
            exception.context.update(context)
        return exception

    return CampusError(
        message=str(exception) or default_message,
        code=default_code,
        severity=default_severity,
        cause=exception,
        context=context
    )


def error_response(
    error: Union[CampusError, Exception],
    include_details: bool = True,
    include_stack_trace: bool = False
) -> Dict[str, Any]:
    """
    Generate a standardized API error response.

    Args:
        error: The error to generate a response for
        include_details: Whether to include error details
        include_stack_trace: Whether to include stack trace

    Returns:
        Standardized error response dictionary
    """
    if not isinstance(error, CampusError):
        error = convert_exception(error)

    error_info = error.to_error_info(include_stack_trace=include_stack_trace)

    response = {
        "status": "error",
        "code": error_info.code,
        "message": error_info.message
    }

    if include_details and error_info.details:
        response["details"] = error_info.details

    return response


def log_error(
    error: Union[CampusError, Exception],
    level: int = logging.ERROR,
    include_stack_trace: bool = True,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log an error with standardized format.

    Args:
        error: The error to log
        level: Logging level
        include_stack_trace: Whether to include stack trace
        context: Additional context to include
    """
    if not isinstance(error, CampusError):
        error = convert_exception(error, context=context)
    elif context:
        error.context.update(context)

    message = f"ERROR [{error.code.value}]: {error.message}"

    if error.context:
        context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
        message += f" (context: {context_str})"

    if error.cause:
        message += f" caused by {type(error.cause).__name__}: {str(error.cause)}"

    if include_stack_trace:
        message += f"\n{traceback.format_exc()}"

    logger.log(level, message)
