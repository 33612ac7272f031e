"""Request id helpers and middleware.

Every request/response pair carries an X-Request-Id header; the id is stored on
request.state and, when observability is enabled, bound into the logging context.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.obs import logging as obs_logging

REQUEST_ID_ATTR = "request_id"
REQUEST_ID_HEADER = "X-Request-Id"


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
	"""Return the id bound to the request (or logging context), else ``default``."""
	if request is not None:
		rid = getattr(request.state, REQUEST_ID_ATTR, None)
		if rid:
			return str(rid)
	return obs_logging.current_request_id() or default


class RequestIdMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		rid = getattr(request.state, REQUEST_ID_ATTR, None) or request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
		setattr(request.state, REQUEST_ID_ATTR, rid)
		response = await call_next(request)
		if REQUEST_ID_HEADER not in response.headers:
			response.headers[REQUEST_ID_HEADER] = rid
		return response
