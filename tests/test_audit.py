import threading

import pytest

from staffapi.service.audit import (
    ANONYMOUS,
    MASKED_PLACEHOLDER,
    NON_JSON_PLACEHOLDER,
    TRUNCATION_MARKER,
    AuditLogger,
    sanitize_request_body,
    sanitize_response_body,
)


@pytest.fixture
def audit(settings):
    return AuditLogger(settings)


class TestSanitizeRequestBody:
    def test_empty(self):
        assert sanitize_request_body("", "application/json") == ""

    def test_non_json(self):
        assert sanitize_request_body("a=1&b=2", "application/x-www-form-urlencoded") == (
            NON_JSON_PLACEHOLDER
        )
        assert sanitize_request_body("hello", None) == NON_JSON_PLACEHOLDER

    @pytest.mark.parametrize(
        "body",
        [
            '{"username":"admin","password":"admin123"}',
            '{"PASSWORD":"x"}',
            '{"refreshToken":"abc"}',
            '{"clientSecret":"abc"}',
        ],
    )
    def test_sensitive_bodies_are_masked(self, body):
        assert sanitize_request_body(body, "application/json; charset=utf-8") == MASKED_PLACEHOLDER

    def test_short_body_kept(self):
        body = '{"firstName":"Ada"}'
        assert sanitize_request_body(body, "application/json") == body

    def test_long_body_truncated(self):
        body = '{"notes":"' + "x" * 600 + '"}'
        result = sanitize_request_body(body, "application/json", limit=500)
        assert result == body[:500] + TRUNCATION_MARKER


class TestSanitizeResponseBody:
    def test_masks_tokens(self):
        assert sanitize_response_body('{"data":{"token":"eyJ..."}}') == MASKED_PLACEHOLDER

    def test_truncates_at_limit(self):
        body = "y" * 1500
        assert sanitize_response_body(body, limit=1000) == "y" * 1000 + TRUNCATION_MARKER

    def test_exact_limit_not_truncated(self):
        body = "z" * 1000
        assert sanitize_response_body(body, limit=1000) == body


class TestAuditLogger:
    def test_request_entry_fields(self, audit):
        audit.record_request(
            correlation_id="cid-1",
            method="POST",
            path="/api/users",
            query="page=2",
            client_address="10.1.1.1",
            user_agent="pytest",
            content_type="application/json",
            body='{"firstName":"Ada"}',
        )

        (entry,) = audit.entries()
        assert entry.kind == "request"
        assert entry.identity == ANONYMOUS
        assert entry.query == "page=2"
        assert entry.body == '{"firstName":"Ada"}'
        assert entry.timestamp.tzinfo is not None

    def test_response_entry_fields(self, audit):
        audit.record_response(
            correlation_id="cid-2",
            method="GET",
            path="/api/users",
            status_code=401,
            duration_ms=1.23456,
            auth_reason="expired",
        )

        (entry,) = audit.entries(kind="response")
        assert entry.status_code == 401
        assert entry.duration_ms == 1.235
        assert entry.auth_reason == "expired"

    def test_filters(self, audit):
        audit.record_request(correlation_id="a", method="GET", path="/")
        audit.record_request(correlation_id="b", method="GET", path="/")
        audit.record_auth_attempt(username="admin", success=True, correlation_id="a")

        assert len(audit.entries(correlation_id="a")) == 2
        assert len(audit.entries(kind="auth")) == 1

    def test_entries_are_immutable(self, audit):
        audit.record_request(correlation_id="a", method="GET", path="/")
        entry = audit.entries()[0]
        with pytest.raises(Exception):
            entry.path = "/tampered"

    def test_buffer_is_bounded(self, settings_factory):
        audit = AuditLogger(settings_factory(audit_max_entries=5))
        for i in range(12):
            audit.record_request(correlation_id=str(i), method="GET", path="/")
        assert [e.correlation_id for e in audit.entries()] == ["7", "8", "9", "10", "11"]

    def test_write_failures_do_not_propagate(self, audit, monkeypatch):
        def _boom(entry):
            raise RuntimeError("disk full")

        monkeypatch.setattr(audit, "_append", _boom)
        audit.record_request(correlation_id="a", method="GET", path="/")
        audit.record_response(
            correlation_id="a", method="GET", path="/", status_code=200, duration_ms=1
        )
        audit.record_auth_attempt(username="admin", success=False, reason="wrong_password")
        assert audit.entries() == []

    def test_concurrent_writes(self, audit):
        def _writer(n):
            for i in range(100):
                audit.record_request(correlation_id=f"{n}-{i}", method="GET", path="/")

        threads = [threading.Thread(target=_writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        entries = audit.entries()
        assert len(entries) == 800
        assert len({e.correlation_id for e in entries}) == 800
