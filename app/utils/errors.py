"""
Error taxonomy shared by services and API routes.

Every failure a request can end with is a ``PortalError`` subclass carrying
an HTTP status, a stable category ``code`` and optional structured
``details``. ``error_response`` renders one into the JSON envelope
``{"ok": false, "error": ..., "code": ..., "details": ...}``.
"""
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse


class PortalError(Exception):
    """Base error for anything surfaced to API callers."""

    status_code = 500
    code = "error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"ok": False, "error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ConfigurationError(PortalError):
    """Required backend settings are missing or unusable."""

    status_code = 500
    code = "configuration"


class AuthenticationError(PortalError):
    """Missing, malformed or expired bearer credential."""

    status_code = 401
    code = "unauthenticated"


class AuthorizationError(PortalError):
    """Valid credential without the required role."""

    status_code = 403
    code = "forbidden"


class InvalidRequestError(PortalError):
    """Request body or parameters could not be used."""

    status_code = 400
    code = "invalid_body"


class EmptyBatchError(InvalidRequestError):
    code = "empty_batch"


class NotFoundError(PortalError):
    status_code = 404
    code = "not_found"


class RowValidationError(PortalError):
    """An import row failed validation; the whole batch is rejected."""

    status_code = 422
    code = "row_validation"

    def __init__(self, row_number: int, product_no: str, message: str, value: Any = None):
        super().__init__(
            f"Row {row_number}: {message}",
            details={"row": row_number, "product_no": product_no, "value": value},
        )
        self.row_number = row_number
        self.product_no = product_no


class StoreError(PortalError):
    """A backing-store call failed; already committed steps stay committed."""

    status_code = 500
    code = "store_error"


def error_response(exc: PortalError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))
