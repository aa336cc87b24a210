"""Error Hierarchy — typed, categorized exceptions for all Kinstone failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; internal errors (500-level) are critical
    - ConflictError (and LockTimeoutError) are safe to retry: no partial state persists
    - to_response() produces the REST envelope; 500-level errors answer generically
      and keep their details in the message and debug_info for the server log

Design Decisions:
    - Single hierarchy with KinstoneError base: FastAPI global handler catches all
    - LockTimeoutError subclasses ConflictError so callers handle both with one retry policy
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

GENERIC_INTERNAL_MESSAGE = "An unexpected error occurred"


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    DATABASE = "database"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    entry_ids: list[str] | None = None
    reward_id: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class KinstoneError(Exception):
    """Base exception for all Kinstone errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    @property
    def retryable(self) -> bool:
        return self.category in (ErrorCategory.CONFLICT, ErrorCategory.TIMEOUT)

    def to_response(self) -> dict:
        """Convert to standardized REST error response.

        500-level errors answer with a generic message and no context;
        the detailed message stays in the server log.
        """
        if self.http_status >= 500:
            return {
                "error": {
                    "code": self.code,
                    "message": GENERIC_INTERNAL_MESSAGE,
                    "category": self.category.value,
                    "severity": self.severity.value,
                    "retryable": self.retryable,
                    "timestamp": self.context.timestamp.isoformat(),
                }
            }
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "retryable": self.retryable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "user_id": self.context.user_id,
                    "entry_ids": self.context.entry_ids,
                    "reward_id": self.context.reward_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class InvalidInputError(KinstoneError):
    """Malformed or self-referential request; caller must correct input."""
    def __init__(
        self, message: str, field: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "INVALID_INPUT", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ResourceNotFoundError(KinstoneError):
    """Referenced user/entry/piece/reward does not exist or is inactive."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(KinstoneError):
    """Concurrency or ownership violation; safe to retry after a backoff."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 400,
        )


class LockTimeoutError(ConflictError):
    """Waiting for a lock held by another in-flight operation took too long."""
    def __init__(
        self, message: str, timeout_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = timeout_ms
        super().__init__(message, ctx)
        self.code = "LOCK_TIMEOUT"
        self.category = ErrorCategory.TIMEOUT
        self.http_status = 409


class CapacityExceededError(KinstoneError):
    """Inventory is full; caller must free a slot first."""
    def __init__(self, capacity: int, context: ErrorContext | None = None):
        super().__init__(
            f"Inventory is full ({capacity}/{capacity})",
            "CAPACITY_EXCEEDED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )
        self.capacity = capacity


# ─── Internal Errors (500-level) ─────────────────────────────────

class InternalError(KinstoneError):
    """Unexpected failure, surfaced generically and logged server-side."""
    def __init__(
        self, message: str, code: str = "INTERNAL_ERROR",
        category: ErrorCategory = ErrorCategory.INTERNAL,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, category, ErrorSeverity.CRITICAL, context, 500,
        )


class DatabaseError(InternalError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE, context,
        )
        self.operation = operation


class LedgerInvariantError(InternalError):
    """current_usage disagrees with the live entry count; the unit of work is aborted."""
    def __init__(
        self, owner_id: str, current_usage: int, live_entries: int,
        context: ErrorContext | None = None,
    ):
        context = context or ErrorContext(user_id=owner_id)
        context.debug_info = {
            "current_usage": current_usage, "live_entries": live_entries,
        }
        super().__init__(
            f"Inventory ledger out of balance for user '{owner_id}': "
            f"current_usage={current_usage}, live entries={live_entries}",
            "LEDGER_INVARIANT_VIOLATED", ErrorCategory.INTERNAL, context,
        )
        self.current_usage = current_usage
        self.live_entries = live_entries


class ImmutableRecordError(InternalError):
    """Attempted to update or delete an append-only record."""
    def __init__(self, record_type: str, record_id: str):
        super().__init__(
            f"{record_type} '{record_id}' is append-only",
            "IMMUTABLE_RECORD", ErrorCategory.INTERNAL,
        )
