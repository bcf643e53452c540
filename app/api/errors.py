from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.models.errors import ErrorResponse

async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    """
    Routing rejects any method a path does not declare before a handler runs.
    A 405 gets the same JSON shape as every other failure; other HTTP errors
    keep FastAPI's default body.
    """
    if exc.status_code != 405:
        return await http_exception_handler(request, exc)
    return JSONResponse(
        status_code=405,
        content=ErrorResponse(message="Method not allowed").model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )

def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, method_not_allowed_handler)
