"""
VU Assistant API - Main Server (FastAPI)
Features:
- Cookie-based JWT authentication with e-mail verification
- Persistent chats backed by MongoDB
- Gemini replies with knowledge-base fallback
- Log anonymization
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from vu_assistant.api import auth, chats, knowledge, search, user
from vu_assistant.engines.db_engine_async import db_engine_async
from vu_assistant.utils.logging_utils import get_logger
from vu_assistant.utils.response_utils import (
    error_response,
    server_error_response,
    success_response,
    validation_error_response,
)

logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db_engine_async.connect()
    logger.info("[Startup] VU Assistant API ready")
    yield
    await db_engine_async.close()
    logger.info("[Shutdown] Database connection closed")


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid {field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return validation_error_response(message)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return server_error_response()


def create_app() -> FastAPI:
    app = FastAPI(title="VU Assistant API", lifespan=lifespan)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(chats.router, prefix="/api/chats", tags=["chats"])
    app.include_router(search.router, prefix="/api/search", tags=["search"])
    app.include_router(user.router, prefix="/api/user", tags=["user"])
    app.include_router(knowledge.router, prefix="/api/knowledge", tags=["knowledge"])

    @app.get("/api/health")
    async def health():
        return success_response(
            "Service is healthy",
            {"status": "ok", "database": db_engine_async.is_connected},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=5000, reload=True)
