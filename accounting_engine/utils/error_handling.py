"""
Error Handling Module for the Accounting Engine

This module provides centralized error handling with:
- Custom exception hierarchy (ledger, period and validation errors)
- Standardized {success: false, error} responses
- Error logging
- Database error translation
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configure logging
logger = logging.getLogger("accounting_engine.errors")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""
    
    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    UNKNOWN_ACTION = "UNKNOWN_ACTION"
    UNSUPPORTED_DECLARATION_TYPE = "UNSUPPORTED_DECLARATION_TYPE"
    UNSUPPORTED_ENTRY_TEMPLATE = "UNSUPPORTED_ENTRY_TEMPLATE"
    
    # Ledger Errors (422)
    IMBALANCED_ENTRY = "IMBALANCED_ENTRY"
    UNKNOWN_ACCOUNT = "UNKNOWN_ACCOUNT"
    NOT_POSTABLE = "NOT_POSTABLE"
    
    # Period Errors (422)
    NO_FISCAL_PERIOD = "NO_FISCAL_PERIOD"
    PERIOD_LOCKED = "PERIOD_LOCKED"
    PERIOD_CLOSED = "PERIOD_CLOSED"
    DRAFT_ENTRIES_REMAIN = "DRAFT_ENTRIES_REMAIN"
    OPEN_PERIODS_REMAIN = "OPEN_PERIODS_REMAIN"
    
    # State Transition Errors (409)
    NOT_DRAFT = "NOT_DRAFT"
    NOT_POSTED = "NOT_POSTED"
    INVALID_PERIOD_TRANSITION = "INVALID_PERIOD_TRANSITION"
    
    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    PERIOD_NOT_FOUND = "PERIOD_NOT_FOUND"
    PARTNER_NOT_FOUND = "PARTNER_NOT_FOUND"
    DECLARATION_NOT_FOUND = "DECLARATION_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    
    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    
    # Reconciliation (logged only)
    RULE_EVALUATION_SKIPPED = "RULE_EVALUATION_SKIPPED"
    
    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"
    
    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(Exception):
    """Base exception for all application exceptions"""
    
    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = _timestamp()
        super().__init__(self.message)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the error envelope"""
        result = {
            "success": False,
            "error": self.message,
            "code": self.code.value,
            "timestamp": self.timestamp,
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""
    
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class InvalidDateRangeException(ValidationException):
    """Invalid date range"""
    
    def __init__(self, start_date: Any, end_date: Any):
        super().__init__(
            message=f"Invalid date range: {start_date} to {end_date}. Start date must not be after end date.",
            code=ErrorCode.INVALID_DATE_RANGE,
            details={"start_date": str(start_date), "end_date": str(end_date)},
        )


class ImbalancedEntryException(ValidationException):
    """Sum of debits differs from sum of credits beyond the tolerance"""
    
    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        super().__init__(
            message=f"Entry is not balanced. Debit: {total_debit}, Credit: {total_credit}",
            code=ErrorCode.IMBALANCED_ENTRY,
            details={
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
                "difference": str(total_debit - total_credit),
            },
        )


class UnknownAccountException(ValidationException):
    """Account code does not resolve to an active account"""
    
    def __init__(self, account_code: str):
        super().__init__(
            message=f"Account not found: {account_code}",
            field="account_code",
            code=ErrorCode.UNKNOWN_ACCOUNT,
            details={"account_code": account_code},
        )


class NotPostableException(ValidationException):
    """Summary account referenced by a journal line"""
    
    def __init__(self, account_code: str):
        super().__init__(
            message=f"Account {account_code} is a summary account and cannot receive postings",
            field="account_code",
            code=ErrorCode.NOT_POSTABLE,
            details={"account_code": account_code},
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""
    
    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID, int]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id is not None:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id is not None else None},
        )


class ConflictException(AppException):
    """Resource conflict exception"""
    
    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class InvalidStateTransitionException(ConflictException):
    """Illegal lifecycle transition (entry or period)"""
    
    def __init__(
        self,
        resource_type: str,
        resource_id: Union[str, UUID],
        current_status: str,
        attempted: str,
        code: ErrorCode,
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message or f"Cannot {attempted} {resource_type.lower()} with status '{current_status}'",
            resource_type=resource_type,
            code=code,
            details={
                "resource_id": str(resource_id),
                "current_status": current_status,
                "attempted": attempted,
            },
        )


class NotDraftException(InvalidStateTransitionException):
    """Only draft entries can be posted or deleted"""
    
    def __init__(self, entry_id: Union[str, UUID], current_status: str, attempted: str = "post"):
        super().__init__(
            resource_type="JournalEntry",
            resource_id=entry_id,
            current_status=current_status,
            attempted=attempted,
            code=ErrorCode.NOT_DRAFT,
            message=f"Only draft entries can be {'posted' if attempted == 'post' else 'deleted'} (status: {current_status})",
        )


class NotPostedException(InvalidStateTransitionException):
    """Only posted entries can be reversed"""
    
    def __init__(self, entry_id: Union[str, UUID], current_status: str):
        super().__init__(
            resource_type="JournalEntry",
            resource_id=entry_id,
            current_status=current_status,
            attempted="reverse",
            code=ErrorCode.NOT_POSTED,
            message=f"Only posted entries can be reversed (status: {current_status})",
        )


class InvalidPeriodTransitionException(InvalidStateTransitionException):
    """Period status can only advance open -> closed -> locked"""
    
    def __init__(self, period_id: Union[str, UUID], current_status: str, attempted: str):
        super().__init__(
            resource_type="FiscalPeriod",
            resource_id=period_id,
            current_status=current_status,
            attempted=attempted,
            code=ErrorCode.INVALID_PERIOD_TRANSITION,
        )


class ConcurrentModificationException(ConflictException):
    """Row changed between read and conditional update; the caller may retry"""
    
    def __init__(self, resource_type: str, resource_id: Union[str, UUID, int]):
        super().__init__(
            message=f"{resource_type} '{resource_id}' was modified concurrently. Retry the operation.",
            resource_type=resource_type,
            code=ErrorCode.CONCURRENT_MODIFICATION,
            details={"resource_id": str(resource_id)},
        )


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""
    
    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class NoFiscalPeriodException(BusinessRuleException):
    """No fiscal period covers the date"""
    
    def __init__(self, on_date: Any):
        super().__init__(
            message=f"No fiscal period exists for date {on_date}",
            rule="DATE_IN_FISCAL_PERIOD",
            code=ErrorCode.NO_FISCAL_PERIOD,
            details={"date": str(on_date)},
        )


class PeriodLockedException(BusinessRuleException):
    """Target period is locked"""
    
    def __init__(self, period_name: str, operation: str = "create entries"):
        super().__init__(
            message=f"Cannot {operation} in locked period '{period_name}'",
            rule="PERIOD_NOT_LOCKED",
            code=ErrorCode.PERIOD_LOCKED,
            details={"period": period_name, "operation": operation},
        )


class PeriodClosedException(BusinessRuleException):
    """Target period is closed and the configured policy blocks it"""
    
    def __init__(self, period_name: str, operation: str = "create entries"):
        super().__init__(
            message=f"Cannot {operation} in closed period '{period_name}'",
            rule="PERIOD_OPEN",
            code=ErrorCode.PERIOD_CLOSED,
            details={"period": period_name, "operation": operation},
        )


class DraftEntriesRemainException(BusinessRuleException):
    """Period close blocked by draft entries"""
    
    def __init__(self, period_name: str, draft_count: int):
        super().__init__(
            message=f"Period '{period_name}' has {draft_count} draft entries. Post or delete them before closing.",
            rule="NO_DRAFT_ENTRIES",
            code=ErrorCode.DRAFT_ENTRIES_REMAIN,
            details={"period": period_name, "draft_count": draft_count},
        )


class OpenPeriodsRemainException(BusinessRuleException):
    """Year lock blocked by periods that are not closed"""
    
    def __init__(self, fiscal_year: int, open_count: int):
        super().__init__(
            message=f"Fiscal year {fiscal_year} has {open_count} periods that are not closed. Close them before locking the year.",
            rule="ALL_PERIODS_CLOSED",
            code=ErrorCode.OPEN_PERIODS_REMAIN,
            details={"fiscal_year": fiscal_year, "open_count": open_count},
        )


class RuleEvaluationSkipped(AppException):
    """
    A reconciliation rule could not be evaluated (invalid regex).
    Raised and handled inside the rule engine; logged, never surfaced.
    """
    
    def __init__(self, rule_id: Union[str, UUID], pattern: str, reason: str):
        super().__init__(
            code=ErrorCode.RULE_EVALUATION_SKIPPED,
            message=f"Rule {rule_id} skipped: invalid pattern '{pattern}' ({reason})",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"rule_id": str(rule_id), "pattern": pattern, "reason": reason},
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "success": False,
        "error": message,
        "code": code.value,
        "timestamp": _timestamp(),
    }
    if field:
        content["field"] = field
    if details:
        content["details"] = details
    
    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )
    
    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    # Map status codes to error codes
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }
    
    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    
    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )
    
    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request body validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    
    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )
    
    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    
    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        # Check for specific constraints
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists. Retry the operation."
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    
    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )
    
    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )
    
    # Internal details are never exposed
    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
