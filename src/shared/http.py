"""HTTP error mapping shared by the coordination and stations APIs."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from shared.errors import InvalidTransition


async def _invalid_transition_handler(_request: Request, exc: InvalidTransition) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    """ValidationError → 400, ObjectNotFoundError → 404, InvalidTransition → 409."""
    register_exception_handlers(app)
    app.add_exception_handler(InvalidTransition, _invalid_transition_handler)
