"""JSON envelope helpers shared by every router.

Every response carries ``success`` and ``message``; successful responses
may carry a ``data`` object.
"""
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder


def success_response(message: str, data: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content: Dict[str, Any] = {"success": True, "message": message}
    if data:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=200, content=content)


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
    )


def validation_error_response(message: str) -> JSONResponse:
    return error_response(message, 422)


def unauthorized_response(message: str = "Unauthorized") -> JSONResponse:
    return error_response(message, 401)


def not_found_response(message: str = "Not found") -> JSONResponse:
    return error_response(message, 404)


def server_error_response(message: str = "Internal server error") -> JSONResponse:
    return error_response(message, 500)
