from __future__ import annotations

import json
import logging

from app.obs import logging as obs_logging


def _record(**extra) -> logging.LogRecord:
	record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "bid created", None, None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def test_formatter_redacts_identity_and_coordinates() -> None:
	formatter = obs_logging.JSONLogFormatter()
	line = formatter.format(_record(bid_id="b1", email="ada@example.com", lat=45.1, lng=7.2, message_text="hi"))
	payload = json.loads(line)
	assert payload["msg"] == "bid created"
	assert payload["bid_id"] == "b1"
	assert payload["email"] == "[redacted]"
	assert payload["lat"] == "[redacted]"
	assert payload["lng"] == "[redacted]"
	assert payload["message_text"] == "[redacted]"


def test_formatter_includes_bound_request_context() -> None:
	tokens = obs_logging.bind_context(request_id="req-1", route="/bids", user_id="u1")
	try:
		payload = json.loads(obs_logging.JSONLogFormatter().format(_record()))
	finally:
		obs_logging.reset_context(tokens)
	assert payload["request_id"] == "req-1"
	assert payload["route"] == "/bids"
	assert payload["user_id"] == "u1"
	assert obs_logging.current_request_id() is None
