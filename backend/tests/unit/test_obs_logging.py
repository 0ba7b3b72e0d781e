from __future__ import annotations

import json
import logging

import pytest

from app.obs import logging as obs_logging


def _record(msg: str, **extra) -> logging.LogRecord:
	record = logging.LogRecord("groups.test", logging.INFO, __file__, 1, msg, None, None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def test_formatter_includes_bound_context():
	tokens = obs_logging.bind_context(request_id="req-1", transition="join_group", client_ip="10.0.0.1")
	try:
		payload = json.loads(obs_logging.JSONLogFormatter().format(_record("group_transition_rejected")))
	finally:
		obs_logging.reset_context(tokens)

	assert payload["msg"] == "group_transition_rejected"
	assert payload["request_id"] == "req-1"
	assert payload["transition"] == "join_group"
	assert payload["ip"] == "10.0.0.1"
	assert obs_logging.current_request_id() is None


def test_formatter_redacts_sensitive_fields():
	record = _record("http_request", authorization="Bearer abc", description="private text", reason="last_admin")
	payload = json.loads(obs_logging.JSONLogFormatter().format(record))
	assert payload["authorization"] == "[redacted]"
	assert payload["description"] == "[redacted]"
	assert payload["reason"] == "last_admin"


def test_bind_context_skips_none_and_rejects_unknown_fields():
	assert obs_logging.bind_context(route=None) == {}
	with pytest.raises(KeyError):
		obs_logging.bind_context(campus="x")
