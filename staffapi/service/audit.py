"""Append-only audit trail for requests, responses and login attempts.

Every entry is written to structlog and kept in a bounded in-process
buffer so operators (and tests) can inspect recent activity. Writes are
best-effort: a failure to record is logged and never propagates into the
request being processed.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Deque, List, Optional

from staffapi.config import Settings
from staffapi.logging import get_logger

logger = get_logger(__name__)

ANONYMOUS = "Anonymous"
MASKED_PLACEHOLDER = "[SENSITIVE DATA MASKED]"
NON_JSON_PLACEHOLDER = "[NON-JSON CONTENT]"
TRUNCATION_MARKER = "... [truncated]"

_SENSITIVE_MARKERS = ("password", "token", "secret")


def _contains_sensitive(body: str) -> bool:
    lowered = body.lower()
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def _truncate(body: str, limit: int) -> str:
    if len(body) > limit:
        return body[:limit] + TRUNCATION_MARKER
    return body


def sanitize_request_body(body: str, content_type: Optional[str], *, limit: int = 500) -> str:
    """Render a request body safe for the audit log.

    JSON bodies mentioning a credential are replaced wholesale; other JSON
    bodies are cut at ``limit`` characters. Non-JSON payloads are never logged.
    """
    if not body:
        return ""
    if not content_type or "application/json" not in content_type.lower():
        return NON_JSON_PLACEHOLDER
    if _contains_sensitive(body):
        return MASKED_PLACEHOLDER
    return _truncate(body, limit)


def sanitize_response_body(body: str, *, limit: int = 1000) -> str:
    if not body:
        return ""
    if _contains_sensitive(body):
        return MASKED_PLACEHOLDER
    return _truncate(body, limit)


@dataclass(frozen=True)
class AuditEntry:
    kind: str  # "request", "response" or "auth"
    correlation_id: Optional[str]
    timestamp: datetime
    method: Optional[str] = None
    path: Optional[str] = None
    query: Optional[str] = None
    identity: str = ANONYMOUS
    client_address: str = "Unknown"
    user_agent: Optional[str] = None
    status_code: Optional[int] = None
    duration_ms: Optional[float] = None
    body: str = ""
    auth_outcome: Optional[str] = None
    auth_reason: Optional[str] = None


class AuditLogger:
    """Records audit entries; safe to call from concurrent requests."""

    def __init__(self, settings: Settings) -> None:
        self.request_body_limit = settings.audit_request_body_limit
        self.response_body_limit = settings.audit_response_body_limit
        self._entries: Deque[AuditEntry] = deque(maxlen=settings.audit_max_entries)
        self._lock = threading.Lock()
        self.logger = logger

    def _append(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def record_request(
        self,
        *,
        correlation_id: str,
        method: str,
        path: str,
        query: str = "",
        identity: Optional[str] = None,
        client_address: str = "Unknown",
        user_agent: Optional[str] = None,
        content_type: Optional[str] = None,
        body: str = "",
    ) -> None:
        try:
            entry = AuditEntry(
                kind="request",
                correlation_id=correlation_id,
                timestamp=self._now(),
                method=method,
                path=path,
                query=query,
                identity=identity or ANONYMOUS,
                client_address=client_address,
                user_agent=user_agent,
                body=sanitize_request_body(body, content_type, limit=self.request_body_limit),
            )
            self._append(entry)
            self.logger.info(
                "request",
                correlation_id=entry.correlation_id,
                method=entry.method,
                path=entry.path,
                query=entry.query,
                user=entry.identity,
                client_ip=entry.client_address,
                user_agent=entry.user_agent,
                content_type=content_type or "N/A",
                request_body=entry.body,
            )
        except Exception as exc:
            self.logger.warning("audit_write_failed", phase="request", error=str(exc))

    def record_response(
        self,
        *,
        correlation_id: str,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        identity: Optional[str] = None,
        client_address: str = "Unknown",
        content_type: Optional[str] = None,
        body: str = "",
        auth_reason: Optional[str] = None,
    ) -> None:
        try:
            entry = AuditEntry(
                kind="response",
                correlation_id=correlation_id,
                timestamp=self._now(),
                method=method,
                path=path,
                identity=identity or ANONYMOUS,
                client_address=client_address,
                status_code=status_code,
                duration_ms=round(duration_ms, 3),
                body=sanitize_response_body(body, limit=self.response_body_limit),
                auth_reason=auth_reason,
            )
            self._append(entry)
            if status_code >= 500:
                log_fn = self.logger.error
            elif status_code >= 400:
                log_fn = self.logger.warning
            else:
                log_fn = self.logger.info
            log_fn(
                "response",
                correlation_id=entry.correlation_id,
                method=entry.method,
                path=entry.path,
                status_code=status_code,
                duration_ms=entry.duration_ms,
                user=entry.identity,
                content_type=content_type or "N/A",
                auth_reason=auth_reason,
                response_body=entry.body,
            )
        except Exception as exc:
            self.logger.warning("audit_write_failed", phase="response", error=str(exc))

    def record_auth_attempt(
        self,
        *,
        username: Optional[str],
        success: bool,
        reason: Optional[str] = None,
        client_address: str = "Unknown",
        correlation_id: Optional[str] = None,
    ) -> None:
        try:
            entry = AuditEntry(
                kind="auth",
                correlation_id=correlation_id,
                timestamp=self._now(),
                identity=username or ANONYMOUS,
                client_address=client_address,
                auth_outcome="success" if success else "failure",
                auth_reason=reason,
            )
            self._append(entry)
            log_fn = self.logger.info if success else self.logger.warning
            log_fn(
                "login_succeeded" if success else "login_failed",
                correlation_id=correlation_id,
                user=entry.identity,
                client_ip=client_address,
                reason=reason,
            )
        except Exception as exc:
            self.logger.warning("audit_write_failed", phase="auth", error=str(exc))

    def entries(
        self, *, correlation_id: Optional[str] = None, kind: Optional[str] = None
    ) -> List[AuditEntry]:
        with self._lock:
            snapshot = list(self._entries)
        return [
            e
            for e in snapshot
            if (correlation_id is None or e.correlation_id == correlation_id)
            and (kind is None or e.kind == kind)
        ]
