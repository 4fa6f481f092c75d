"""Request-level errors and their HTTP rendering."""
from typing import Optional

from fastapi.responses import JSONResponse, PlainTextResponse, Response

# Body kinds
EMPTY = "empty"
TEXT = "text"
JSON = "json"


class ServerError(Exception):
    """Base class for errors that map directly onto an HTTP response."""
    status_code = 500
    body = EMPTY

    def __init__(self, message: str = "", status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if body is not None:
            self.body = body


class BadRequest(ServerError):
    status_code = 400
    body = TEXT


class NotFound(ServerError):
    status_code = 404


class MethodNotAllowed(ServerError):
    status_code = 405


class Conflict(ServerError):
    status_code = 409
    body = JSON


class PayloadTooLarge(ServerError):
    status_code = 413
    body = JSON


class RangeNotSatisfiable(ServerError):
    status_code = 416


class InternalError(ServerError):
    status_code = 500


class UpstreamFailure(ServerError):
    """The storage backend failed; the message is shown to the client."""
    status_code = 500
    body = JSON


class BadRange(ServerError):
    status_code = 501
    body = TEXT

    def __init__(self, message: str = "Bad range"):
        super().__init__(message)


def error_response(error: ServerError) -> Response:
    """Render a ServerError as the response the client sees."""
    if error.body == JSON:
        return JSONResponse({"error": error.message}, status_code=error.status_code)
    if error.body == TEXT:
        return PlainTextResponse(error.message, status_code=error.status_code)
    return Response(status_code=error.status_code)
