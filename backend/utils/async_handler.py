import time
import functools
import logging

from utils.api_error import ApiError, InternalError
from utils.responses import render

logger = logging.getLogger(__name__)


def async_handler(label: str = None):
    """
    Wrap an async endpoint so every outcome goes through one reporter.

    The wrapped function returns an ``ApiResponse``. An ``ApiError`` it raises
    is forwarded unchanged; anything else is logged and replaced by a generic
    ``InternalError``. Either way ``render`` builds the HTTP response.
    Elapsed time is logged for every call.

    Usage:
        @router.post("/login")
        @async_handler("login")
        async def login(...):
            ...
    """

    def _decorate(func):
        name = label or getattr(func, "__qualname__", getattr(func, "__name__", "handler"))

        @functools.wraps(func)
        async def _aw(*args, **kwargs):
            start = time.perf_counter()
            try:
                outcome = await func(*args, **kwargs)
            except ApiError as e:
                outcome = e
            except Exception:
                logger.exception(f"Unhandled error in {name}")
                outcome = InternalError()
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000.0
                logger.info(f"[timing] {name} took {elapsed_ms:.2f} ms")
            return render(outcome)

        return _aw

    return _decorate
