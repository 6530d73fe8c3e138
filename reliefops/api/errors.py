"""
ServiceError -> HTTP response mapping
"""
from decimal import Decimal
from typing import Any
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from reliefops.core.errors import ErrorCategory, ServiceError

STATUS_BY_CATEGORY = {
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.VALIDATION: 422,
    ErrorCategory.BUSINESS_RULE: 409,
    ErrorCategory.CONSTRAINT: 409,
    ErrorCategory.UNAUTHORIZED: 403,
    ErrorCategory.CANCELLED: 409,
    ErrorCategory.DATABASE: 500,
}


def _plain(value: Any) -> Any:
    # Decimal details (available, required...) go out as numbers
    return jsonable_encoder(value, custom_encoder={Decimal: float})


def error_response(error: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_CATEGORY.get(error.category, 500),
        content={
            "error": error.code.value,
            "category": error.category.value,
            "message": error.message,
            "details": _plain(error.details),
        },
    )
