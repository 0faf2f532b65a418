from typing import Any, Dict, List, Optional


class ApiError(Exception):
    """Structured failure rendered as the error envelope.

    Raised where a validation or lookup fails and propagated unchanged to
    the boundary, which turns it into
    ``{statusCode, data: null, message, errors, success: false}``.
    """

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.errors = list(errors or [])
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def success(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "data": None,
            "message": self.message,
            "errors": self.errors,
            "success": False,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.status_code}, {self.message!r})"


class ValidationError(ApiError):
    status_code = 400
    default_message = "Bad request"


class UnauthorizedError(ApiError):
    status_code = 401
    default_message = "Unauthorized request"


class ForbiddenError(ApiError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Conflict"


class InternalError(ApiError):
    status_code = 500
    default_message = "Internal server error"
