"""Short-lived signed handoff tokens for support impersonation.

Wire format: ``base64url(json(payload)) + "." + base64url(hmac_sha256(secret, encoded_payload))``,
both parts unpadded. The payload carries ``sessionId``, ``organizationId``,
``mode`` (``read`` or ``write``), ``iat`` and ``exp`` in whole seconds.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import re
import time
from dataclasses import dataclass

from src.config import settings
from src.domain.errors import AuthorizationError, NotFoundError, SessionStateError
from src.observability import log_support_event
from src.support.audit import ACCESS_LEVEL_WRITE, record_support_event
from src.support.sessions import (
    SESSION_TYPE_SUPPORT_MODE,
    is_session_active,
    load_support_session,
)

TOKEN_TTL_SECONDS = 300
MODE_READ = "read"
MODE_WRITE = "write"
MODES = (MODE_READ, MODE_WRITE)

_BASE64URL_SEGMENT = re.compile(r"[A-Za-z0-9_-]+")


def _now() -> int:
    return int(time.time())


@dataclass(frozen=True)
class ImpersonationTokenPayload:
    session_id: str
    organization_id: str
    mode: str
    iat: int
    exp: int

    def to_wire(self) -> dict:
        return {
            "sessionId": self.session_id,
            "organizationId": self.organization_id,
            "mode": self.mode,
            "iat": self.iat,
            "exp": self.exp,
        }


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)


def _sign(secret: str, encoded_payload: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), encoded_payload.encode("ascii"), hashlib.sha256).digest()
    return _b64encode(digest)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def generate_impersonation_token(
    secret: str,
    *,
    session_id: str,
    organization_id: str,
    mode: str,
    now: int | None = None,
    ttl_seconds: int = TOKEN_TTL_SECONDS,
) -> str:
    if mode not in MODES:
        raise ValueError(f"Invalid impersonation mode: {mode}")
    issued_at = _now() if now is None else now
    payload = ImpersonationTokenPayload(
        session_id=session_id,
        organization_id=organization_id,
        mode=mode,
        iat=issued_at,
        exp=issued_at + ttl_seconds,
    )
    encoded = _b64encode(json.dumps(payload.to_wire(), separators=(",", ":")).encode("utf-8"))
    return f"{encoded}.{_sign(secret, encoded)}"


def validate_impersonation_token(
    secret: str,
    token: str,
    now: int | None = None,
) -> ImpersonationTokenPayload | None:
    """Return the payload of a well-formed, correctly signed, unexpired token, else None."""
    if not isinstance(token, str) or token.count(".") != 1:
        return None
    encoded, signature = token.split(".")
    if not _BASE64URL_SEGMENT.fullmatch(encoded) or not _BASE64URL_SEGMENT.fullmatch(signature):
        return None
    if not hmac.compare_digest(_sign(secret, encoded).encode("ascii"), signature.encode("ascii")):
        return None

    try:
        data = json.loads(_b64decode(encoded).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    session_id = data.get("sessionId")
    organization_id = data.get("organizationId")
    mode = data.get("mode")
    iat = data.get("iat")
    exp = data.get("exp")
    if not isinstance(session_id, str) or not session_id:
        return None
    if not isinstance(organization_id, str) or not organization_id:
        return None
    if mode not in MODES or not _is_int(iat) or not _is_int(exp):
        return None

    current = _now() if now is None else now
    if exp < current:
        return None
    return ImpersonationTokenPayload(
        session_id=session_id,
        organization_id=organization_id,
        mode=mode,
        iat=iat,
        exp=exp,
    )


def issue_impersonation_token(
    *,
    super_admin_id: str,
    session_id: str,
    organization_id: str,
    mode: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    session = load_support_session(session_id)
    if session is None or session.get("super_admin_user_id") != super_admin_id:
        raise NotFoundError("Support session not found")
    if session.get("organization_id") != organization_id:
        raise AuthorizationError("Support session does not match organization")
    if not is_session_active(session):
        raise SessionStateError("Support session is no longer active")
    if mode == MODE_WRITE and session.get("session_type") != SESSION_TYPE_SUPPORT_MODE:
        raise AuthorizationError("Write access requires support mode")

    ttl = settings.impersonation_token_ttl_seconds
    token = generate_impersonation_token(
        settings.impersonation_signing_secret(),
        session_id=session_id,
        organization_id=organization_id,
        mode=mode,
        ttl_seconds=ttl,
    )
    record_support_event(
        session_id=session_id,
        super_admin_id=super_admin_id,
        organization_id=organization_id,
        action="impersonation_token_issued",
        description=f"Impersonation token issued ({mode})",
        details={"mode": mode, "expires_in": ttl},
        access_level=ACCESS_LEVEL_WRITE if mode == MODE_WRITE else "read",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    log_support_event(
        "impersonation_token_issued",
        metric="impersonation.tokens_issued",
        labels={"mode": mode},
        session_id=session_id,
        organization_id=organization_id,
        mode=mode,
    )
    return {"token": token, "expiresIn": ttl}
