"""Ordered interceptor chain wrapped around every HTTP request.

The chain runs, outermost first::

    ExceptionBoundary -> SecurityHeaders -> Authentication -> AuditLogging -> router

Each interceptor receives the per-request ``RequestContext`` and the next
handler; it may continue, short-circuit with its own response, or decorate
the response on the way out. Headers collected in ``ctx.response_headers``
are stamped onto whatever response leaves the chain, so short-circuited and
error responses carry them as well.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import iterate_in_threadpool

from staffapi.api.error_handling import ErrorTranslator, error_response
from staffapi.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    set_correlation_id,
)
from staffapi.service.audit import AuditLogger
from staffapi.service.auth import AuthFailure, Identity, TokenValidator

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
MAX_CORRELATION_ID_LENGTH = 128

SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS_HEADER = "Strict-Transport-Security"
HSTS_VALUE = "max-age=31536000; includeSubDomains"

PUBLIC_PATHS = frozenset({"/", "/health", "/info", "/api/auth/login"})
PUBLIC_PREFIXES: Tuple[str, ...] = ("/swagger",)

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def is_public_path(path: str) -> bool:
    """Paths that bypass authentication; case-insensitive, trailing slash ignored."""
    normalized = path.lower()
    if len(normalized) > 1:
        normalized = normalized.rstrip("/") or "/"
    if normalized in PUBLIC_PATHS:
        return True
    return any(normalized.startswith(p) for p in PUBLIC_PREFIXES)


def client_address(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "Unknown"


@dataclass
class RequestContext:
    """Mutable state shared by the interceptors of a single request."""

    request: Request
    correlation_id: str = ""
    client_address: str = "Unknown"
    started: float = field(default_factory=time.perf_counter)
    response_headers: Dict[str, str] = field(default_factory=dict)
    identity: Optional[Identity] = None
    auth_failure: Optional[AuthFailure] = None
    is_public: bool = False
    request_logged: bool = False
    response_logged: bool = False

    @property
    def username(self) -> Optional[str]:
        return self.identity.username if self.identity else None

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


CallNext = Callable[[RequestContext], Awaitable[Response]]


class Interceptor(Protocol):
    async def handle(self, ctx: RequestContext, call_next: CallNext) -> Response:
        ...


def _record_request(audit: AuditLogger, ctx: RequestContext, body: str = "") -> None:
    request = ctx.request
    audit.record_request(
        correlation_id=ctx.correlation_id,
        method=request.method,
        path=request.url.path,
        query=request.url.query,
        identity=ctx.username,
        client_address=ctx.client_address,
        user_agent=request.headers.get("user-agent"),
        content_type=request.headers.get("content-type"),
        body=body,
    )
    ctx.request_logged = True


def _record_response(
    audit: AuditLogger,
    ctx: RequestContext,
    response: Response,
    body: str = "",
) -> None:
    audit.record_response(
        correlation_id=ctx.correlation_id,
        method=ctx.request.method,
        path=ctx.request.url.path,
        status_code=response.status_code,
        duration_ms=ctx.elapsed_ms(),
        identity=ctx.username,
        client_address=ctx.client_address,
        content_type=response.headers.get("content-type"),
        body=body,
        auth_reason=ctx.auth_failure.reason.value if ctx.auth_failure else None,
    )
    ctx.response_logged = True


def _rendered_body(response: Response) -> str:
    body = getattr(response, "body", None)
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode("utf-8", errors="replace")
    return ""


async def _capture_streamed_body(response: Response) -> str:
    """Drain a streamed response and put an equivalent iterator back."""
    chunks: List[bytes] = []
    async for chunk in response.body_iterator:
        chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
    response.body_iterator = iterate_in_threadpool(iter(chunks))
    return b"".join(chunks).decode("utf-8", errors="replace")


class ExceptionBoundary:
    """Outermost stage: assigns the correlation id and turns escaped exceptions into envelopes."""

    def __init__(self, translator: ErrorTranslator, audit: AuditLogger) -> None:
        self.translator = translator
        self.audit = audit

    def _resolve_correlation_id(self, request: Request) -> str:
        incoming = (request.headers.get(CORRELATION_HEADER) or "").strip()
        if len(incoming) > MAX_CORRELATION_ID_LENGTH:
            incoming = ""
        return set_correlation_id(incoming or None)

    async def handle(self, ctx: RequestContext, call_next: CallNext) -> Response:
        ctx.correlation_id = self._resolve_correlation_id(ctx.request)
        ctx.client_address = client_address(ctx.request)
        ctx.request.state.correlation_id = ctx.correlation_id
        ctx.response_headers[CORRELATION_HEADER] = ctx.correlation_id
        bind_request_context(
            method=ctx.request.method,
            path=ctx.request.url.path,
            client_ip=ctx.client_address,
        )
        try:
            return await call_next(ctx)
        except Exception as exc:
            status_code, envelope = self.translator.translate(exc, ctx.correlation_id)
            if status_code >= 500:
                logger.exception(
                    "unhandled_exception",
                    path=ctx.request.url.path,
                    method=ctx.request.method,
                    error_type=type(exc).__name__,
                )
            else:
                logger.warning(
                    "request_failed",
                    path=ctx.request.url.path,
                    method=ctx.request.method,
                    status_code=status_code,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            response = JSONResponse(status_code=status_code, content=envelope.to_wire())
            if ctx.request_logged and not ctx.response_logged:
                _record_response(self.audit, ctx, response, _rendered_body(response))
            return response
        finally:
            clear_request_context()


class SecurityHeaders:
    def __init__(self, *, enable_hsts: bool = True) -> None:
        self.enable_hsts = enable_hsts

    async def handle(self, ctx: RequestContext, call_next: CallNext) -> Response:
        ctx.response_headers.update(SECURITY_HEADERS)
        if self.enable_hsts and ctx.request.url.scheme == "https":
            ctx.response_headers[HSTS_HEADER] = HSTS_VALUE
        return await call_next(ctx)


class Authentication:
    """Rejects protected requests without a valid bearer token.

    A rejection is audited here, since the audit stage behind it never runs.
    """

    def __init__(self, validator: TokenValidator, audit: AuditLogger) -> None:
        self.validator = validator
        self.audit = audit

    async def handle(self, ctx: RequestContext, call_next: CallNext) -> Response:
        request = ctx.request
        ctx.is_public = is_public_path(request.url.path)
        if ctx.is_public:
            return await call_next(ctx)

        outcome = self.validator.validate(request.headers.get("Authorization"))
        if isinstance(outcome, AuthFailure):
            ctx.auth_failure = outcome
            logger.warning(
                "authentication_failed",
                reason=outcome.reason.value,
                path=request.url.path,
                method=request.method,
                client_ip=ctx.client_address,
            )
            response = error_response(401, "Unauthorized", [outcome.message], ctx.correlation_id)
            response.headers["WWW-Authenticate"] = "Bearer"
            _record_request(self.audit, ctx)
            _record_response(self.audit, ctx, response, _rendered_body(response))
            return response

        ctx.identity = outcome
        request.state.identity = outcome
        bind_request_context(user=outcome.username)
        return await call_next(ctx)


class AuditLogging:
    """Writes the request entry before dispatch and the response entry after."""

    def __init__(self, audit: AuditLogger) -> None:
        self.audit = audit

    async def handle(self, ctx: RequestContext, call_next: CallNext) -> Response:
        body = ""
        if ctx.request.method.upper() in _BODY_METHODS:
            raw = await ctx.request.body()
            body = raw.decode("utf-8", errors="replace")
        _record_request(self.audit, ctx, body)

        response = await call_next(ctx)

        if hasattr(response, "body_iterator"):
            response_body = await _capture_streamed_body(response)
        else:
            response_body = _rendered_body(response)
        _record_response(self.audit, ctx, response, response_body)
        return response


class RequestPipeline:
    """Composes interceptors around the router and runs them per request.

    ``dispatch`` has the ``@app.middleware("http")`` signature; the
    middleware's ``call_next`` is the terminal handler of the chain.
    """

    def __init__(self, interceptors: Sequence[Interceptor]) -> None:
        self.interceptors = list(interceptors)

    def _chain(self, terminal: CallNext) -> CallNext:
        handler = terminal
        for interceptor in reversed(self.interceptors):
            handler = partial(interceptor.handle, call_next=handler)
        return handler

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        ctx = RequestContext(request=request)

        async def terminal(inner: RequestContext) -> Response:
            return await call_next(inner.request)

        response = await self._chain(terminal)(ctx)
        for name, value in ctx.response_headers.items():
            response.headers[name] = value
        return response


def build_pipeline(
    *,
    translator: ErrorTranslator,
    audit: AuditLogger,
    validator: TokenValidator,
    enable_hsts: bool,
) -> RequestPipeline:
    return RequestPipeline(
        [
            ExceptionBoundary(translator, audit),
            SecurityHeaders(enable_hsts=enable_hsts),
            Authentication(validator, audit),
            AuditLogging(audit),
        ]
    )
