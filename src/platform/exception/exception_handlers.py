from typing import Any, Callable, Coroutine

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.responses import Response
import uuid_utils

from src.platform.exception.exceptions import (
    DEFAULT_MESSAGES,
    CustomBaseError,
    DeadlineExceededError,
    DependencyUnavailableError,
    ErrorCode,
)
from src.platform.logging.loguru_io import Logger

# Type alias for exception handlers (compatible with Starlette's expected signature)
ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]


def _error_body(code: ErrorCode, message: str, details: Any = None) -> dict[str, Any]:
    return {'code': code.value, 'message': message, 'details': details or {}}


async def custom_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, CustomBaseError) else CustomBaseError(str(exc))
    headers: dict[str, str] = {}
    if isinstance(error, DependencyUnavailableError | DeadlineExceededError) and error.retry_after:
        headers['Retry-After'] = str(error.retry_after)

    if error.code is ErrorCode.INTERNAL_ERROR:
        return _internal_error_response(request, error)

    return JSONResponse(
        status_code=error.status_code,
        content=_error_body(error.code, error.message, jsonable_encoder(error.details)),
        headers=headers or None,
    )


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, RequestValidationError) else RequestValidationError([])
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(
            ErrorCode.VALIDATION_ERROR,
            DEFAULT_MESSAGES[ErrorCode.VALIDATION_ERROR],
            {'errors': jsonable_encoder(error.errors())},
        ),
    )


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return _internal_error_response(request, exc)


def _internal_error_response(request: Request, exc: Exception) -> JSONResponse:
    # The errorId is the only link between the response and the logged traceback
    error_id = str(uuid_utils.uuid7())
    Logger.base.opt(exception=exc).error(
        f'💥 [INTERNAL-ERROR] errorId={error_id} {request.method} {request.url.path}: '
        f'{type(exc).__name__}: {exc}'
    )
    body = _error_body(ErrorCode.INTERNAL_ERROR, DEFAULT_MESSAGES[ErrorCode.INTERNAL_ERROR])
    body['errorId'] = error_id
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


EXCEPTION_HANDLERS: dict[type[Exception], ExceptionHandler] = {
    CustomBaseError: custom_error_handler,
    RequestValidationError: validation_error_handler,
    Exception: general_500_exception_handler,  # Catch-all for unhandled exceptions
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
