import logging

import httpx
import openai
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def llm_http_exception(exc: Exception, fallback: str) -> HTTPException:
    """Map an LLM SDK failure onto the status code and message clients expect."""
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == 401:
            return HTTPException(status_code=401, detail="Invalid API key")
        if exc.status_code == 429:
            return HTTPException(status_code=429, detail="Rate limit exceeded")
        if exc.status_code == 500:
            return HTTPException(status_code=500, detail="OpenAI service error")
    return HTTPException(status_code=500, detail=fallback)


def github_status(exc: Exception) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict):
            content = exc.detail
        else:
            content = {"message": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request data", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"message": "Internal server error"})
