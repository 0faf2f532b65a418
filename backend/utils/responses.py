from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from core.config import settings
from utils.api_error import ApiError

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


class ApiResponse:
    """Success envelope plus the cookie changes the boundary should apply."""

    def __init__(
        self,
        status_code: int = 200,
        data: Any = None,
        message: str = "Success",
        cookies: Optional[Dict[str, str]] = None,
        clear_cookies: Optional[List[str]] = None,
        no_store: bool = False,
    ):
        self.status_code = status_code
        self.data = data
        self.message = message
        self.cookies = dict(cookies or {})
        self.clear_cookies = list(clear_cookies or [])
        self.no_store = no_store

    @property
    def success(self) -> bool:
        return self.status_code < 400

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "data": self.data,
            "message": self.message,
            "success": self.success,
        }


Outcome = Union[ApiResponse, ApiError]


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": settings.COOKIE_SAMESITE,
    }


def encode_payload(payload: Any) -> Any:
    """JSON-safe copy of a payload (ObjectIds and datetimes included)."""
    return jsonable_encoder(payload, custom_encoder={ObjectId: str})


def render(outcome: Outcome) -> JSONResponse:
    """Turn a handler outcome into the HTTP response."""
    if isinstance(outcome, ApiError):
        return JSONResponse(content=encode_payload(outcome.to_dict()), status_code=outcome.status_code)

    headers = NO_STORE_HEADERS if outcome.no_store else None
    response = JSONResponse(
        content=encode_payload(outcome.to_dict()),
        status_code=outcome.status_code,
        headers=headers,
    )
    options = _cookie_options()
    for name, value in outcome.cookies.items():
        response.set_cookie(name, value, **options)
    for name in outcome.clear_cookies:
        response.delete_cookie(name, **options)
    return response
