"""Unit tests for token issuing and validation."""

import time

import pytest

from staffapi.service.audit import AuditLogger
from staffapi.service.auth import (
    AuthFailure,
    AuthFailureReason,
    Identity,
    IssuedToken,
    LoginFailure,
    LoginFailureReason,
    TokenIssuer,
    TokenValidator,
    encode_token,
)


@pytest.fixture
def audit(settings):
    return AuditLogger(settings)


@pytest.fixture
def issuer(settings, audit):
    return TokenIssuer(settings, audit)


@pytest.fixture
def validator(settings):
    return TokenValidator(settings)


def _claims(settings, **overrides):
    now = int(time.time())
    claims = {
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "sub": "admin-001",
        "name": "admin",
        "role": "Administrator",
        "jti": "token-1",
        "iat": now,
        "exp": now + 600,
    }
    claims.update(overrides)
    return claims


class TestTokenIssuer:
    def test_issue_success(self, issuer, audit):
        issued = issuer.issue("admin", "admin123", client_address="10.0.0.5")

        assert isinstance(issued, IssuedToken)
        assert issued.token.count(".") == 2
        assert issued.token_type == "Bearer"
        assert issued.expires_in == 3600
        assert issued.role == "Administrator"
        assert issued.subject_id == "admin-001"
        assert (issued.expires_at - issued.issued_at).total_seconds() == 3600

        entries = audit.entries(kind="auth")
        assert len(entries) == 1
        assert entries[0].auth_outcome == "success"
        assert entries[0].identity == "admin"
        assert entries[0].client_address == "10.0.0.5"

    @pytest.mark.parametrize(
        "username,password,reason",
        [
            ("admin", "wrong", LoginFailureReason.WRONG_PASSWORD),
            ("ghost", "admin123", LoginFailureReason.UNKNOWN_USER),
            ("", "admin123", LoginFailureReason.MISSING_CREDENTIALS),
            ("admin", "", LoginFailureReason.MISSING_CREDENTIALS),
        ],
    )
    def test_issue_failures_are_audited_once(self, issuer, audit, username, password, reason):
        outcome = issuer.issue(username, password)

        assert outcome == LoginFailure(reason)
        entries = audit.entries(kind="auth")
        assert len(entries) == 1
        assert entries[0].auth_outcome == "failure"
        assert entries[0].auth_reason == reason.value

    def test_usernames_are_case_sensitive(self, issuer):
        outcome = issuer.issue("ADMIN", "admin123")
        assert isinstance(outcome, LoginFailure)

    def test_each_demo_account_gets_its_role(self, issuer, validator):
        for username, password, role in [
            ("admin", "admin123", "Administrator"),
            ("user", "user123", "User"),
            ("techhive", "techhive2024", "Manager"),
        ]:
            issued = issuer.issue(username, password)
            identity = validator.validate(f"Bearer {issued.token}")
            assert identity.role == role
            assert identity.username == username

    def test_credential_table_is_read_only(self, issuer):
        with pytest.raises(TypeError):
            issuer.credentials["mallory"] = None


class TestTokenValidator:
    def test_round_trip_identity(self, issuer, validator):
        issued = issuer.issue("admin", "admin123")
        identity = validator.validate(f"Bearer {issued.token}")

        assert identity == Identity(
            subject_id="admin-001",
            username="admin",
            role="Administrator",
            token_id=issued.token_id,
        )

    def test_validation_is_repeatable(self, issuer, validator):
        issued = issuer.issue("user", "user123")
        header = f"Bearer {issued.token}"
        assert validator.validate(header) == validator.validate(header)

    def test_scheme_is_case_insensitive(self, issuer, validator):
        issued = issuer.issue("user", "user123")
        assert isinstance(validator.validate(f"bearer {issued.token}"), Identity)

    @pytest.mark.parametrize(
        "header,reason",
        [
            (None, AuthFailureReason.MISSING),
            ("", AuthFailureReason.MISSING),
            ("Basic dXNlcjpwYXNz", AuthFailureReason.MALFORMED_SCHEME),
            ("Bearer", AuthFailureReason.MALFORMED_SCHEME),
            ("Bearer    ", AuthFailureReason.EMPTY),
            ("Bearer not-a-jwt", AuthFailureReason.SIGNATURE_INVALID),
            ("Bearer a.b.c", AuthFailureReason.SIGNATURE_INVALID),
        ],
    )
    def test_header_failures(self, validator, header, reason):
        assert validator.validate(header) == AuthFailure(reason)

    def test_expired_token(self, issuer, validator):
        issued = issuer.issue("admin", "admin123", now=time.time() - 7200)
        outcome = validator.validate(f"Bearer {issued.token}")
        assert outcome == AuthFailure(AuthFailureReason.EXPIRED)
        assert outcome.message == "Token has expired"

    def test_expiry_boundary_has_no_skew(self, issuer, validator):
        issued = issuer.issue("admin", "admin123", now=1_000_000)
        header = f"Bearer {issued.token}"

        assert isinstance(validator.validate(header, now=1_000_000 + 3599), Identity)
        assert validator.validate(header, now=1_000_000 + 3600) == AuthFailure(
            AuthFailureReason.EXPIRED
        )

    def test_expiry_is_checked_before_signature(self, settings, validator):
        token = encode_token(_claims(settings, exp=int(time.time()) - 10), "x" * 40)
        assert validator.validate(f"Bearer {token}") == AuthFailure(AuthFailureReason.EXPIRED)

    def test_wrong_secret(self, settings, validator):
        token = encode_token(_claims(settings), "another-secret-that-is-long-enough!!")
        assert validator.validate_token(token) == AuthFailure(AuthFailureReason.SIGNATURE_INVALID)

    def test_tampered_payload(self, settings, validator):
        token = encode_token(_claims(settings), settings.jwt_secret)
        forged = encode_token(_claims(settings, role="Administrator", name="mallory"), "k" * 40)
        header, _, signature = token.split(".")
        _, payload, _ = forged.split(".")
        outcome = validator.validate_token(f"{header}.{payload}.{signature}")
        assert outcome == AuthFailure(AuthFailureReason.SIGNATURE_INVALID)

    def test_wrong_algorithm_header(self, settings, validator):
        token = encode_token(_claims(settings), settings.jwt_secret, alg="none")
        assert validator.validate_token(token) == AuthFailure(AuthFailureReason.CLAIMS_INVALID)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"iss": "SomeoneElse"},
            {"aud": "Other.Audience"},
            {"aud": ["Other.Audience"]},
            {"role": None},
            {"sub": ""},
            {"exp": "tomorrow"},
        ],
    )
    def test_claims_invalid(self, settings, validator, overrides):
        token = encode_token(_claims(settings, **overrides), settings.jwt_secret)
        assert validator.validate_token(token) == AuthFailure(AuthFailureReason.CLAIMS_INVALID)

    def test_audience_list_is_accepted(self, settings, validator):
        claims = _claims(settings, aud=["Other.Audience", settings.jwt_audience])
        token = encode_token(claims, settings.jwt_secret)
        assert isinstance(validator.validate_token(token), Identity)

    def test_failure_messages(self):
        assert AuthFailureReason.MISSING.message == "Missing Authorization header"
        assert (
            AuthFailureReason.MALFORMED_SCHEME.message
            == "Invalid Authorization header format. Use 'Bearer <token>'"
        )
        assert AuthFailureReason.EMPTY.message == "Empty token provided"
        assert AuthFailureReason.SIGNATURE_INVALID.message == "Invalid token"
        assert AuthFailureReason.CLAIMS_INVALID.message == "Invalid token"
