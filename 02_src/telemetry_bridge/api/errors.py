"""Mapping of error results to HTTP responses."""

from typing import TypeVar

from fastapi import HTTPException

from ..errors import ErrorKind, ErrorResult, is_error_result

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BACKEND: 502,
    ErrorKind.PARTIAL_RESULT: 502,
}

T = TypeVar("T")


def raise_for_error(result: T | ErrorResult) -> T:
    """Return ``result`` unchanged unless it is an ``ErrorResult``."""
    if is_error_result(result):
        raise http_error(result)
    return result


def http_error(error: ErrorResult) -> HTTPException:
    return HTTPException(status_code=STATUS_BY_KIND[error.kind], detail=error.to_dict())
