"""HealthTest - API error mapping

Maps pipeline errors onto HTTP responses carrying the user-facing message.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from healthtest.models.api_schemas import ErrorResponse
from healthtest.services.ai.errors import GenerationError

ERROR_STATUS = {
    "EmptyInputError": 400,
    "TraceabilityError": 502,
    "ServiceError": 502,
    "MalformedResponseError": 502,
    "InvalidShapeError": 502,
}


def status_for_error(error_type: str | None) -> int:
    return ERROR_STATUS.get(error_type or "", 500)


async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    body = ErrorResponse(error=exc.message, error_type=type(exc).__name__, details=exc.details)
    return JSONResponse(
        status_code=status_for_error(type(exc).__name__),
        content=body.model_dump(by_alias=True),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GenerationError, generation_error_handler)
