from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from staffapi.config import Settings
from staffapi.logging import get_logger
from staffapi.service.audit import AuditLogger

logger = get_logger(__name__)

SIGNING_ALGORITHM = "HS256"
BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class CredentialRecord:
    username: str
    password: str
    role: str
    subject_id: str


# Demonstration accounts; passwords are compared in plain text.
DEFAULT_CREDENTIALS = (
    CredentialRecord("admin", "admin123", "Administrator", "admin-001"),
    CredentialRecord("user", "user123", "User", "user-001"),
    CredentialRecord("techhive", "techhive2024", "Manager", "manager-001"),
)


def build_credential_table(
    records: Iterable[CredentialRecord],
) -> Mapping[str, CredentialRecord]:
    """Index credential records by username as a read-only mapping."""
    return MappingProxyType({record.username: record for record in records})


@dataclass(frozen=True)
class Identity:
    subject_id: str
    username: str
    role: str
    token_id: Optional[str] = None


class AuthFailureReason(str, Enum):
    MISSING = "missing"
    MALFORMED_SCHEME = "malformed_scheme"
    EMPTY = "empty"
    EXPIRED = "expired"
    SIGNATURE_INVALID = "signature_invalid"
    CLAIMS_INVALID = "claims_invalid"

    @property
    def message(self) -> str:
        return _FAILURE_MESSAGES[self]


_FAILURE_MESSAGES = {
    AuthFailureReason.MISSING: "Missing Authorization header",
    AuthFailureReason.MALFORMED_SCHEME: "Invalid Authorization header format. Use 'Bearer <token>'",
    AuthFailureReason.EMPTY: "Empty token provided",
    AuthFailureReason.EXPIRED: "Token has expired",
    AuthFailureReason.SIGNATURE_INVALID: "Invalid token",
    AuthFailureReason.CLAIMS_INVALID: "Invalid token",
}


@dataclass(frozen=True)
class AuthFailure:
    reason: AuthFailureReason

    @property
    def message(self) -> str:
        return self.reason.message


class LoginFailureReason(str, Enum):
    MISSING_CREDENTIALS = "missing_credentials"
    UNKNOWN_USER = "unknown_user"
    WRONG_PASSWORD = "wrong_password"


@dataclass(frozen=True)
class LoginFailure:
    reason: LoginFailureReason


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_in: int
    username: str
    role: str
    subject_id: str
    token_id: str
    issued_at: datetime
    expires_at: datetime
    token_type: str = "Bearer"


def _encode_segment(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")


def _decode_segment(segment: str) -> bytes:
    padding = "=" * ((4 - len(segment) % 4) % 4)
    return base64.urlsafe_b64decode(segment + padding)


def _sign(signing_input: str, secret: str) -> str:
    digest = hmac.new(secret.encode(), signing_input.encode(), hashlib.sha256).digest()
    return _encode_segment(digest)


def encode_token(payload: dict[str, Any], secret: str, *, alg: str = SIGNING_ALGORITHM) -> str:
    """Serialize and sign a compact JWT.

    The signature is always HMAC-SHA256; ``alg`` only controls the header so
    callers can build tokens that advertise a different algorithm.
    """
    header = {"alg": alg, "typ": "JWT"}
    header_enc = _encode_segment(json.dumps(header, separators=(",", ":")).encode())
    payload_enc = _encode_segment(json.dumps(payload, separators=(",", ":")).encode())
    signing_input = f"{header_enc}.{payload_enc}"
    return f"{signing_input}.{_sign(signing_input, secret)}"


class TokenIssuer:
    """Checks demo credentials and issues signed, time-limited bearer tokens."""

    def __init__(
        self,
        settings: Settings,
        audit: AuditLogger,
        credentials: Iterable[CredentialRecord] = DEFAULT_CREDENTIALS,
    ) -> None:
        self.settings = settings
        self.audit = audit
        self.credentials = build_credential_table(credentials)
        self.logger = logger

    def issue(
        self,
        username: str,
        password: str,
        *,
        client_address: str = "Unknown",
        correlation_id: Optional[str] = None,
        now: Optional[float] = None,
    ) -> Union[IssuedToken, LoginFailure]:
        failure: Optional[LoginFailureReason] = None
        record = None
        if not username or not password:
            failure = LoginFailureReason.MISSING_CREDENTIALS
        else:
            record = self.credentials.get(username)
            if record is None:
                failure = LoginFailureReason.UNKNOWN_USER
            elif not hmac.compare_digest(record.password.encode(), password.encode()):
                failure = LoginFailureReason.WRONG_PASSWORD

        if failure is not None or record is None:
            failure = failure or LoginFailureReason.UNKNOWN_USER
            self.audit.record_auth_attempt(
                username=username or None,
                success=False,
                reason=failure.value,
                client_address=client_address,
                correlation_id=correlation_id,
            )
            return LoginFailure(failure)

        issued = self._issue_for(record, now=now)
        self.audit.record_auth_attempt(
            username=record.username,
            success=True,
            client_address=client_address,
            correlation_id=correlation_id,
        )
        return issued

    def _issue_for(self, record: CredentialRecord, *, now: Optional[float] = None) -> IssuedToken:
        issued_at = int(time.time() if now is None else now)
        ttl = self.settings.token_ttl_seconds
        expires_at = issued_at + ttl
        token_id = str(uuid.uuid4())
        payload = {
            "iss": self.settings.jwt_issuer,
            "aud": self.settings.jwt_audience,
            "sub": record.subject_id,
            "name": record.username,
            "role": record.role,
            "jti": token_id,
            "iat": issued_at,
            "exp": expires_at,
        }
        return IssuedToken(
            token=encode_token(payload, self.settings.jwt_secret),
            expires_in=ttl,
            username=record.username,
            role=record.role,
            subject_id=record.subject_id,
            token_id=token_id,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )


class TokenValidator:
    """Turns an Authorization header into an Identity or a typed rejection.

    Validation is a pure function of the token, the signing secret and the
    clock, so one instance is shared by all requests without locking.
    """

    def __init__(self, settings: Settings) -> None:
        self.secret = settings.jwt_secret
        self.issuer = settings.jwt_issuer
        self.audience = settings.jwt_audience

    def validate(
        self, authorization: Optional[str], *, now: Optional[float] = None
    ) -> Union[Identity, AuthFailure]:
        if not authorization:
            return AuthFailure(AuthFailureReason.MISSING)
        if not authorization.lower().startswith(BEARER_PREFIX):
            return AuthFailure(AuthFailureReason.MALFORMED_SCHEME)
        token = authorization[len(BEARER_PREFIX):].strip()
        if not token:
            return AuthFailure(AuthFailureReason.EMPTY)
        return self.validate_token(token, now=now)

    def validate_token(
        self, token: str, *, now: Optional[float] = None
    ) -> Union[Identity, AuthFailure]:
        try:
            header_b64, payload_b64, sig_b64 = token.split(".")
            header = json.loads(_decode_segment(header_b64))
            payload = json.loads(_decode_segment(payload_b64))
        except (ValueError, TypeError):
            logger.warning("jwt_decode_failed")
            return AuthFailure(AuthFailureReason.SIGNATURE_INVALID)
        if not isinstance(header, dict) or not isinstance(payload, dict):
            return AuthFailure(AuthFailureReason.SIGNATURE_INVALID)

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            return AuthFailure(AuthFailureReason.CLAIMS_INVALID)
        current = time.time() if now is None else now
        # No clock-skew allowance
        if exp <= current:
            return AuthFailure(AuthFailureReason.EXPIRED)

        expected_sig = _sign(f"{header_b64}.{payload_b64}", self.secret)
        if not hmac.compare_digest(expected_sig.encode(), sig_b64.encode()):
            return AuthFailure(AuthFailureReason.SIGNATURE_INVALID)

        if header.get("alg") != SIGNING_ALGORITHM:
            logger.warning("jwt_invalid_algorithm", alg=header.get("alg"))
            return AuthFailure(AuthFailureReason.CLAIMS_INVALID)
        if payload.get("iss") != self.issuer:
            return AuthFailure(AuthFailureReason.CLAIMS_INVALID)
        aud = payload.get("aud")
        if isinstance(aud, str):
            valid_aud = aud == self.audience
        elif isinstance(aud, list):
            valid_aud = self.audience in aud
        else:
            valid_aud = False
        if not valid_aud:
            return AuthFailure(AuthFailureReason.CLAIMS_INVALID)

        subject, username, role = payload.get("sub"), payload.get("name"), payload.get("role")
        if not all(isinstance(v, str) and v for v in (subject, username, role)):
            return AuthFailure(AuthFailureReason.CLAIMS_INVALID)
        jti = payload.get("jti")
        return Identity(
            subject_id=subject,
            username=username,
            role=role,
            token_id=jti if isinstance(jti, str) else None,
        )
