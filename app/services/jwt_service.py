"""
JWT Service — access token generation and verification.

The identity provider issues the tokens in production; ``generate_access_token``
exists for local tooling and tests, signing with the same shared secret.

Access token:  15 minutes (configurable via JWT_ACCESS_EXPIRES)
Algorithm:     HS256

Token payload:
{
    "sub": <external user id>,
    "role": "admin" | "tester" | "customer",
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 900       # 15 minutes
ALGORITHM = "HS256"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user_id: str, role: str | None) -> str:
    """Generate a short-lived access token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])

    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")

    return payload
