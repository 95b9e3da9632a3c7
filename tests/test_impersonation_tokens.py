import base64
import json

import pytest

from src.support.tokens import (
    TOKEN_TTL_SECONDS,
    _sign,
    generate_impersonation_token,
    validate_impersonation_token,
)

SECRET = "unit-test-secret"
NOW = 1_700_000_000


def _token(**overrides) -> str:
    params = {"session_id": "ss-1", "organization_id": "org-1", "mode": "read", "now": NOW}
    params.update(overrides)
    return generate_impersonation_token(SECRET, **params)


def _forge(payload) -> str:
    encoded = base64.urlsafe_b64encode(json.dumps(payload).encode()).rstrip(b"=").decode()
    return f"{encoded}.{_sign(SECRET, encoded)}"


def test_round_trip_returns_payload() -> None:
    payload = validate_impersonation_token(SECRET, _token(mode="write"), now=NOW + 10)

    assert payload is not None
    assert payload.session_id == "ss-1"
    assert payload.organization_id == "org-1"
    assert payload.mode == "write"
    assert payload.iat == NOW
    assert payload.exp == NOW + TOKEN_TTL_SECONDS


def test_wire_format_is_unpadded_base64url() -> None:
    token = _token()
    encoded, signature = token.split(".")

    assert "=" not in token
    assert "+" not in token and "/" not in token
    decoded = json.loads(base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)))
    assert decoded == {
        "sessionId": "ss-1",
        "organizationId": "org-1",
        "mode": "read",
        "iat": NOW,
        "exp": NOW + TOKEN_TTL_SECONDS,
    }
    assert len(signature) == 43


def test_expired_token_is_rejected() -> None:
    token = _token()

    assert validate_impersonation_token(SECRET, token, now=NOW + TOKEN_TTL_SECONDS) is not None
    assert validate_impersonation_token(SECRET, token, now=NOW + TOKEN_TTL_SECONDS + 1) is None


def test_every_altered_signature_character_is_rejected() -> None:
    token = _token()
    encoded, signature = token.split(".")

    for index, char in enumerate(signature):
        replacement = "A" if char != "A" else "B"
        tampered = f"{encoded}.{signature[:index]}{replacement}{signature[index + 1:]}"
        assert validate_impersonation_token(SECRET, tampered, now=NOW) is None


def test_altered_payload_is_rejected() -> None:
    encoded, signature = _token().split(".")
    forged_payload = base64.urlsafe_b64encode(json.dumps({
        "sessionId": "ss-1",
        "organizationId": "org-2",
        "mode": "write",
        "iat": NOW,
        "exp": NOW + TOKEN_TTL_SECONDS,
    }).encode()).rstrip(b"=").decode()

    assert validate_impersonation_token(SECRET, f"{forged_payload}.{signature}", now=NOW) is None


def test_wrong_secret_is_rejected() -> None:
    assert validate_impersonation_token("another-secret", _token(), now=NOW) is None


@pytest.mark.parametrize(
    "token",
    ["", "no-dot", "a.b.c", ".sig", "payload.", "%%%.###", "é.abc", "abc.ü", "abc\n.sig"],
)
def test_malformed_tokens_are_rejected(token) -> None:
    assert validate_impersonation_token(SECRET, token, now=NOW) is None


@pytest.mark.parametrize(
    "payload",
    [
        {"sessionId": "ss-1", "organizationId": "org-1", "mode": "admin", "iat": NOW, "exp": NOW + 300},
        {"sessionId": "ss-1", "organizationId": "org-1", "mode": "read", "iat": True, "exp": NOW + 300},
        {"sessionId": "ss-1", "organizationId": "org-1", "mode": "read", "iat": NOW, "exp": "later"},
        {"sessionId": 7, "organizationId": "org-1", "mode": "read", "iat": NOW, "exp": NOW + 300},
        {"organizationId": "org-1", "mode": "read", "iat": NOW, "exp": NOW + 300},
        ["not", "an", "object"],
    ],
)
def test_correctly_signed_but_malformed_payloads_are_rejected(payload) -> None:
    assert validate_impersonation_token(SECRET, _forge(payload), now=NOW) is None


def test_invalid_mode_cannot_be_minted() -> None:
    with pytest.raises(ValueError):
        _token(mode="admin")
