"""Tests for structured logging and request_id propagation."""

import json
import logging

from animaforge.core.logging import JsonFormatter, PrettyFormatter, latency_bucket_ms, log_event
from animaforge.features.rewards.ledger import RewardLedger


def test_request_id_in_response_and_logs(client, caplog):
    with caplog.at_level(logging.INFO, logger="animaforge"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"
    assert len({r.request_id for r in records}) == 1


def test_incoming_request_id_is_echoed(client):
    response = client.get("/healthz", headers={"x-request-id": "rid-123"})
    assert response.headers["x-request-id"] == "rid-123"


def test_request_id_in_error_response(client):
    response = client.get("/v1/identities/non-existent/progress")
    rid = response.headers.get("x-request-id")
    assert response.status_code == 404
    assert rid
    payload = response.json()
    assert payload["error"]["request_id"] == rid


def test_service_logs_carry_request_id(client, caplog):
    with caplog.at_level(logging.INFO, logger="animaforge"):
        response = client.post("/v1/identities", json={"identity_id": "i1", "user_id": "u1"})
    rid = response.headers["x-request-id"]
    created = [r for r in caplog.records if r.getMessage() == "identity.created"]
    assert created
    assert created[0].identity_id == "i1"
    assert created[0].request_id == rid


def test_json_formatter_includes_structured_fields():
    record = logging.LogRecord("animaforge", logging.INFO, __file__, 1, "rewards.applied", None, None)
    record.request_id = "rid-1"
    record.user_id = "u1"
    record.event_type = "gate_task"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "rewards.applied"
    assert payload["request_id"] == "rid-1"
    assert payload["user_id"] == "u1"
    assert payload["event_type"] == "gate_task"
    assert "identity_id" not in payload


def test_log_event_truncates_extra(caplog):
    with caplog.at_level(logging.INFO, logger="animaforge"):
        log_event("info", "debug.blob", user_id="u1", extra={"blob": "x" * 900})
    record = caplog.records[-1]
    assert record.blob.endswith("...<truncated>")
    assert len(record.blob) < 600


def test_latency_buckets():
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(5) == "<10ms"
    assert latency_bucket_ms(250) == "100-500ms"
    assert latency_bucket_ms(5000) == ">=1000ms"


def test_reward_event_is_structured(caplog):
    with caplog.at_level(logging.INFO, logger="animaforge"):
        RewardLedger().apply_rewards("u1", coins=5, reason_code="quest", metadata={"note": "n" * 900})
    record = next(r for r in caplog.records if r.getMessage() == "rewards.applied")
    assert record.event_type == "quest"
    assert record.user_id == "u1"
    assert record.coins == "5"
    assert record.note.endswith("...<truncated>")


def test_reset_summary_carries_event_type(services, caplog):
    services.chronos.ensure_profile("u1")
    with caplog.at_level(logging.INFO, logger="animaforge"):
        services.chronos.execute_daily_reset("u1")
    record = next(r for r in caplog.records if r.getMessage() == "chronos.reset_completed")
    assert record.event_type == "chronos.reset"
    assert record.user_id == "u1"
    assert record.errors == "0"


def test_json_formatter_keeps_domain_extras():
    record = logging.LogRecord("animaforge", logging.INFO, __file__, 1, "accrual.task_completed", None, None)
    record.identity_id = "i1"
    record.gate = "core"
    record.points = 0.2
    payload = json.loads(JsonFormatter().format(record))
    assert payload["gate"] == "core"
    assert payload["points"] == 0.2
    assert payload["identity_id"] == "i1"


def test_pretty_formatter_shows_context():
    record = logging.LogRecord("animaforge", logging.WARNING, __file__, 1, "chronos.task_rolled_back", None, None)
    record.request_id = "rid-9"
    record.identity_id = "i1"
    line = PrettyFormatter().format(record)
    assert "[rid=rid-9]" in line
    assert line.endswith("chronos.task_rolled_back (identity_id=i1)")


def test_log_event_renames_reserved_keys(caplog):
    with caplog.at_level(logging.INFO, logger="animaforge"):
        log_event("info", "debug.reserved", extra={"message": "hi", "name": "Monk"})
    record = caplog.records[-1]
    assert record.getMessage() == "debug.reserved"
    assert record.x_message == "hi"
    assert record.x_name == "Monk"
