"""Structured JSON logging with request-scoped context and field redaction."""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.settings import settings

_LOGGER_NAME = "pinpoint"

# Output key -> context variable bound by the HTTP middleware.
_CONTEXT: Dict[str, ContextVar[Optional[str]]] = {
	"request_id": ContextVar("obs_request_id", default=None),
	"route": ContextVar("obs_route", default=None),
	"user_id": ContextVar("obs_user_id", default=None),
	"ip": ContextVar("obs_client_ip", default=None),
}

# Bidder identity and coordinates never reach the log stream
_REDACT_SUBSTRINGS = (
	"token",
	"secret",
	"authorization",
	"password",
	"email",
	"avatar",
	"message",
	"payload",
	"body",
)
_REDACT_EXACT = frozenset({"lat", "lng", "latitude", "longitude", "waypoints"})
_REDACTED = "[redacted]"

_MAX_STRING_LENGTH = 256
_MAX_COLLECTION_ITEMS = 10

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def bind_context(
	*,
	request_id: Optional[str] = None,
	route: Optional[str] = None,
	user_id: Optional[str] = None,
	client_ip: Optional[str] = None,
) -> Dict[str, Token]:
	"""Bind request fields for the current task; pass the result to ``reset_context``."""
	values = {"request_id": request_id, "route": route, "user_id": user_id, "ip": client_ip}
	return {key: _CONTEXT[key].set(value) for key, value in values.items() if value is not None}


def reset_context(tokens: Dict[str, Token]) -> None:
	for key, token in tokens.items():
		_CONTEXT[key].reset(token)


def current_request_id() -> Optional[str]:
	return _CONTEXT["request_id"].get()


def _is_sensitive(key: str) -> bool:
	lowered = key.lower()
	return lowered in _REDACT_EXACT or any(part in lowered for part in _REDACT_SUBSTRINGS)


def _scrub(key: str, value: Any) -> Any:
	if _is_sensitive(key):
		return _REDACTED
	if isinstance(value, str) and len(value) > _MAX_STRING_LENGTH:
		return value[:_MAX_STRING_LENGTH] + "…"
	if isinstance(value, dict):
		items = list(value.items())
		scrubbed = {str(k): _scrub(str(k), v) for k, v in items[:_MAX_COLLECTION_ITEMS]}
		if len(items) > _MAX_COLLECTION_ITEMS:
			scrubbed["…"] = f"+{len(items) - _MAX_COLLECTION_ITEMS} keys"
		return scrubbed
	if isinstance(value, (list, tuple, set, frozenset)):
		items = list(value)
		scrubbed_items = [_scrub(key, item) for item in items[:_MAX_COLLECTION_ITEMS]]
		if len(items) > _MAX_COLLECTION_ITEMS:
			scrubbed_items.append("…")
		return scrubbed_items
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line: base fields, bound context, then scrubbed extras."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		for key, var in _CONTEXT.items():
			value = var.get()
			if value:
				payload[key] = value
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in vars(record).items():
			if key not in _RECORD_ATTRS and key not in payload:
				payload[key] = _scrub(key, value)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Drops a share of INFO records; other levels always pass."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = settings.obs_log_sampling_rate_info
		return rate >= 1.0 or random.random() < max(0.0, rate)


def configure_logging() -> logging.Logger:
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root = logging.getLogger()
	root.handlers[:] = [handler]
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
