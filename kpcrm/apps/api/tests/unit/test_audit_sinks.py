"""Tests for access-denial audit records and sinks.

Coverage:
- records carry a token fingerprint, never the token
- FileAuditSink writes one JSON file per record
- a failing sink is logged (AUDIT_WRITE_FAILED) and never raised
- get_default_audit_sink() selection
"""

import json
import logging

from conftest import RecordingAuditSink
from kpcrm_api.audit.auth_audit import (
    EVENT_AUTHENTICATION_DENIED,
    EVENT_AUTHORIZATION_DENIED,
    build_denial_record,
    record_denial,
)
from kpcrm_api.audit.sinks import (
    AuditSink,
    FailingAuditSink,
    FileAuditSink,
    LoggingAuditSink,
    get_default_audit_sink,
)
from kpcrm_api.config.env import Settings
from kpcrm_api.utils.sanitize import fingerprint


def _record(**overrides):
    fields = {
        "event": EVENT_AUTHENTICATION_DENIED,
        "reason": "invalid_token",
        "token": "raw-secret-token",
        "path": "/api/v1/contacts",
        "method": "GET",
        "request_id": "req-1",
    }
    fields.update(overrides)
    return build_denial_record(**fields)


def test_denial_record_fingerprints_token():
    record = _record()
    assert record["token_fingerprint"] == fingerprint("raw-secret-token")
    assert "raw-secret-token" not in json.dumps(record)
    assert record["request"] == {"path": "/api/v1/contacts", "method": "GET", "request_id": "req-1"}
    assert record["ts"].endswith("+00:00")


def test_denial_record_without_token():
    record = _record(token=None, reason="missing_token")
    assert record["token_fingerprint"] is None


def test_record_denial_keys_by_date_and_event():
    sink = RecordingAuditSink()
    record = _record(event=EVENT_AUTHORIZATION_DENIED, reason="insufficient_role", user_id="u1", role="read_only")

    record_denial(sink, record)

    ((key, data),) = sink.records
    assert key.startswith(f"auth/{record['ts'][:10]}/{EVENT_AUTHORIZATION_DENIED}/")
    assert data is record


def test_record_denial_without_sink_is_a_no_op():
    record_denial(None, _record())


def test_failing_sink_is_logged_not_raised(caplog):
    with caplog.at_level(logging.ERROR, logger="kpcrm_api.audit.auth_audit"):
        record_denial(FailingAuditSink(), _record())
    assert any(r.getMessage() == "AUDIT_WRITE_FAILED" for r in caplog.records)


def test_file_sink_writes_json(tmp_path):
    sink = FileAuditSink(str(tmp_path / "audit"))
    sink.put_record("auth/2024-01-15/auth.authentication.denied/abc", {"reason": "timeout"})

    (written,) = (tmp_path / "audit").iterdir()
    assert written.name == "auth_2024-01-15_auth.authentication.denied_abc.json"
    assert json.loads(written.read_text(encoding="utf-8")) == {"reason": "timeout"}


def test_logging_sink_emits_audit_record(caplog):
    with caplog.at_level(logging.WARNING, logger="kpcrm_api.audit"):
        LoggingAuditSink().put_record("k1", {"reason": "timeout"})
    (record,) = [r for r in caplog.records if r.getMessage() == "AUDIT_RECORD"]
    assert record.audit_key == "k1"
    assert record.audit == {"reason": "timeout"}


def test_default_sink_selection(tmp_path):
    assert isinstance(get_default_audit_sink(Settings()), LoggingAuditSink)
    assert isinstance(get_default_audit_sink(None), LoggingAuditSink)

    file_sink = get_default_audit_sink(Settings(auth_audit_dir=str(tmp_path)))
    assert isinstance(file_sink, FileAuditSink)
    assert isinstance(file_sink, AuditSink)
