"""
Fancy Blog - Application errors and exception handlers.

Every error leaves the API as {"message": "..."} with the matching status code.
Services raise the BlogError subclasses below; FastAPI's own validation and
HTTP errors are reshaped into the same envelope.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("fancyblog.errors")


class BlogError(Exception):
    """Base class for errors that map onto an HTTP response."""
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str = None, status_code: int = None):
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class InvalidInput(BlogError):
    status_code = 400
    message = "Invalid input"


class NoFields(InvalidInput):
    message = "No fields to update"


class Unauthenticated(BlogError):
    status_code = 401
    message = "Not authenticated"


class InvalidCredentials(Unauthenticated):
    message = "Incorrect username or password"


class SessionExpired(Unauthenticated):
    message = "Token expired, please login again."


class TokenExpired(Unauthenticated):
    message = "Token expired"


class TokenInvalid(Unauthenticated):
    message = "Invalid token"


class Forbidden(BlogError):
    status_code = 403
    message = "Forbidden"


class NotFound(BlogError):
    status_code = 404
    message = "Not found"


class Conflict(BlogError):
    status_code = 400
    message = "Conflict"


class AccountAlreadyBound(BlogError):
    status_code = 409
    message = "This account has bound to other user."


class TooManyRequests(BlogError):
    status_code = 429
    message = "Rate limit exceeded"


class IllegalPayload(BlogError):
    message = "Illegal payload"


class SigningError(BlogError):
    message = "Failed to sign the token"


def _error_response(status_code: int, message: str, headers: dict = None) -> JSONResponse:
    if status_code == 401:
        headers = {**(headers or {}), "WWW-Authenticate": "Bearer"}
    return JSONResponse({"message": message}, status_code=status_code, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    """Join field-level messages into the single string clients display."""
    messages = []
    for error in exc.errors():
        msg = str(error.get("msg", "Invalid input"))
        # pydantic prefixes messages raised from our validators
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        messages.append(msg)
    return " ".join(messages) or "Invalid input"


async def handle_blog_error(request: Request, exc: BlogError):
    return _error_response(exc.status_code, exc.message)


async def handle_validation_error(request: Request, exc: RequestValidationError):
    return _error_response(400, _validation_message(exc))


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    settings = request.app.state.settings
    message = str(exc) if settings.is_development else "Internal server error"
    return _error_response(500, message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BlogError, handle_blog_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
