"""
Ledger error taxonomy

Ledger operations never raise for expected business-rule failures. Inside a
transaction they raise LedgerError; the operation boundary rolls back and
returns the carried ServiceError as the second element of a (result, error)
pair.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, TypeVar
import enum

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

T = TypeVar("T")


class ErrorCategory(str, enum.Enum):
    NOT_FOUND = "NotFound"
    VALIDATION = "Validation"
    BUSINESS_RULE = "BusinessRule"
    CONSTRAINT = "Constraint"
    DATABASE = "Database"
    UNAUTHORIZED = "Unauthorized"
    CANCELLED = "Cancelled"


class ErrorCode(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    INACTIVE_ENTITY = "INACTIVE_ENTITY"
    BUDGET_NOT_ACTIVE = "BUDGET_NOT_ACTIVE"
    INSUFFICIENT_BUDGET = "INSUFFICIENT_BUDGET"
    EXCEEDS_ALLOCATION = "EXCEEDS_ALLOCATION"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    DESERIALIZATION_FAILURE = "DESERIALIZATION_FAILURE"
    DUPLICATE = "DUPLICATE"
    FOREIGN_KEY = "FOREIGN_KEY"
    DATABASE = "DATABASE"
    UNAUTHORIZED = "UNAUTHORIZED"
    CANCELLED = "CANCELLED"
    SYNC_IN_PROGRESS = "SYNC_IN_PROGRESS"
    REMOTE_OFFLINE = "REMOTE_OFFLINE"


CODE_CATEGORIES = {
    ErrorCode.NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.VALIDATION: ErrorCategory.VALIDATION,
    ErrorCode.INSUFFICIENT_STOCK: ErrorCategory.BUSINESS_RULE,
    ErrorCode.CAPACITY_EXCEEDED: ErrorCategory.BUSINESS_RULE,
    ErrorCode.INACTIVE_ENTITY: ErrorCategory.BUSINESS_RULE,
    ErrorCode.BUDGET_NOT_ACTIVE: ErrorCategory.BUSINESS_RULE,
    ErrorCode.INSUFFICIENT_BUDGET: ErrorCategory.BUSINESS_RULE,
    ErrorCode.EXCEEDS_ALLOCATION: ErrorCategory.BUSINESS_RULE,
    ErrorCode.TYPE_MISMATCH: ErrorCategory.VALIDATION,
    ErrorCode.DESERIALIZATION_FAILURE: ErrorCategory.VALIDATION,
    ErrorCode.DUPLICATE: ErrorCategory.CONSTRAINT,
    ErrorCode.FOREIGN_KEY: ErrorCategory.CONSTRAINT,
    ErrorCode.DATABASE: ErrorCategory.DATABASE,
    ErrorCode.UNAUTHORIZED: ErrorCategory.UNAUTHORIZED,
    ErrorCode.CANCELLED: ErrorCategory.CANCELLED,
    ErrorCode.SYNC_IN_PROGRESS: ErrorCategory.BUSINESS_RULE,
    ErrorCode.REMOTE_OFFLINE: ErrorCategory.DATABASE,
}


@dataclass(frozen=True)
class ServiceError:
    """Failure returned to callers: a message plus its category"""
    code: ErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> ErrorCategory:
        return CODE_CATEGORIES[self.code]

    def __str__(self) -> str:
        return self.message


class LedgerError(Exception):
    """Raised inside a ledger transaction; converted at the operation boundary"""

    def __init__(self, code: ErrorCode, message: str, **details: Any):
        super().__init__(message)
        self.error = ServiceError(code=code, message=message, details=details)

    @classmethod
    def not_found(cls, message: str, **details: Any) -> "LedgerError":
        return cls(ErrorCode.NOT_FOUND, message, **details)

    @classmethod
    def validation(cls, message: str, **details: Any) -> "LedgerError":
        return cls(ErrorCode.VALIDATION, message, **details)


# Engine-specific constraint codes
_PG_UNIQUE = "23505"
_PG_FOREIGN_KEY = "23503"
_PG_NOT_NULL = "23502"
_MSSQL_UNIQUE = (2601, 2627)
_MSSQL_FOREIGN_KEY = 547
_MSSQL_NOT_NULL = 515


def _engine_code(exc: DBAPIError) -> Tuple[Optional[str], Optional[int]]:
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    number = None
    args = getattr(orig, "args", ()) or ()
    if args and isinstance(args[0], int):
        number = args[0]
    return pgcode, number


def translate_db_error(exc: SQLAlchemyError) -> ServiceError:
    """Translate a store failure into the ledger taxonomy"""
    detail = str(getattr(exc, "orig", None) or exc)
    lowered = detail.lower()

    if isinstance(exc, DBAPIError):
        pgcode, number = _engine_code(exc)
        if pgcode == _PG_UNIQUE or number in _MSSQL_UNIQUE or "unique constraint" in lowered:
            return ServiceError(
                ErrorCode.DUPLICATE,
                "A record with this information already exists. Please use unique values.",
                {"db_error": detail},
            )
        if pgcode == _PG_FOREIGN_KEY or number == _MSSQL_FOREIGN_KEY or "foreign key" in lowered:
            return ServiceError(
                ErrorCode.FOREIGN_KEY,
                "Cannot perform this operation because it would violate data relationships. "
                "Please check related records.",
                {"db_error": detail},
            )
        if pgcode == _PG_NOT_NULL or number == _MSSQL_NOT_NULL or "not null constraint" in lowered:
            return ServiceError(
                ErrorCode.VALIDATION,
                "Required information is missing. Please fill in all required fields.",
                {"db_error": detail},
            )
        if isinstance(exc, IntegrityError):
            return ServiceError(ErrorCode.DUPLICATE, f"Constraint violation: {detail}", {"db_error": detail})

    return ServiceError(ErrorCode.DATABASE, f"Database error occurred: {detail}", {"db_error": detail})


def as_service_error(exc: Exception) -> ServiceError:
    if isinstance(exc, LedgerError):
        return exc.error
    if isinstance(exc, SQLAlchemyError):
        return translate_db_error(exc)
    raise TypeError(f"Not a ledger failure: {exc!r}")
