"""JSON:API error and document responses."""

from typing import Any

from fastapi import HTTPException
from fastapi.responses import JSONResponse

JSON_API_MEDIA_TYPE = "application/vnd.api+json"


def error_object(
    title: str | None = None,
    detail: str | None = None,
    pointer: str | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {}
    if pointer:
        error["source"] = {"pointer": pointer}
    if title:
        error["title"] = title
    if detail:
        error["detail"] = detail
    return error


class ApiError(HTTPException):
    """HTTP error carrying JSON:API error objects."""

    def __init__(self, status_code: int, errors: list[dict[str, Any]]):
        super().__init__(status_code=status_code, detail=errors)
        self.errors = errors

    @classmethod
    def single(
        cls,
        status_code: int,
        title: str | None = None,
        detail: str | None = None,
        pointer: str | None = None,
    ) -> "ApiError":
        return cls(status_code, [error_object(title, detail, pointer)])


def error_response(
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    pointer: str | None = None,
) -> JSONResponse:
    return errors_response(status_code, [error_object(title, detail, pointer)])


def errors_response(status_code: int, errors: list[dict[str, Any]]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"errors": errors},
        media_type=JSON_API_MEDIA_TYPE,
    )


def document_response(
    resource_id: str,
    resource_type: str,
    attributes: dict[str, Any],
    status_code: int = 201,
) -> JSONResponse:
    """Respond with a single JSON:API resource document."""
    return JSONResponse(
        status_code=status_code,
        content={"data": {"id": resource_id, "type": resource_type, "attributes": attributes}},
        media_type=JSON_API_MEDIA_TYPE,
    )
