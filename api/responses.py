"""
api/responses.py -- The JSON envelope every endpoint answers with.

Shape: {"status": <int>, "message": <str>, "data": <any>, "error": <str>}.
status is always present; the other members are omitted when they are None
so clients can test for key presence instead of null.

Success paths call envelope() from route handlers. Failure paths raise
HTTPException and api/main.py turns the detail into an envelope through
error_response(), so both directions share one shape.
"""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope(
    status: int,
    message: Optional[str] = None,
    data: Any = None,
    error: Optional[str] = None,
) -> JSONResponse:
    """Build the envelope response.

    data goes through jsonable_encoder so Pydantic models and lists of them
    serialize the same way FastAPI's response_model path would. Nested None
    values inside data (e.g. a device's deleted_at) are kept.
    """
    body: dict[str, Any] = {"status": status}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = jsonable_encoder(data)
    if error is not None:
        body["error"] = error
    return JSONResponse(status_code=status, content=body)


def error_response(status: int, detail: Any) -> JSONResponse:
    """Render an HTTPException detail as an error envelope.

    Route code raises detail={"message": ..., "error": ...}; anything else
    (a bare string from Starlette or a dependency) becomes the message.
    """
    if isinstance(detail, dict):
        return envelope(status, message=detail.get("message"), error=detail.get("error"))
    return envelope(status, message=str(detail))
