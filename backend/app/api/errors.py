"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.request_id import get_request_id
from app.domain.common.exceptions import (
	Conflict,
	DomainError,
	Forbidden,
	InvalidArgument,
	NotFound,
	RateLimited,
	StorageError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
	(NotFound, status.HTTP_404_NOT_FOUND),
	(Forbidden, status.HTTP_403_FORBIDDEN),
	(InvalidArgument, status.HTTP_400_BAD_REQUEST),
	(Conflict, status.HTTP_409_CONFLICT),
	(RateLimited, status.HTTP_429_TOO_MANY_REQUESTS),
)


def map_domain_error(exc: DomainError) -> HTTPException:
	for error_type, status_code in _STATUS_BY_ERROR:
		if isinstance(exc, error_type):
			return HTTPException(status_code=status_code, detail=exc.reason)
	return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.reason)


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		payload = {"detail": exc.detail, "request_id": get_request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = {
			"detail": "validation_error",
			"errors": exc.errors(),
			"request_id": get_request_id(request),
		}
		return JSONResponse(status_code=422, content=jsonable_encoder(payload))

	@app.exception_handler(StorageError)
	async def storage_exc_handler(request: Request, exc: StorageError):  # type: ignore[override]
		logger.error("storage failure", extra={"operation": exc.operation}, exc_info=exc.__cause__ or exc)
		payload = {"detail": exc.reason, "request_id": get_request_id(request)}
		return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload)
