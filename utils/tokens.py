"""Bearer token helpers for user and organization actors (HS256 JWT)."""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from flask import current_app

ACTOR_ROLES: tuple[str, ...] = ("user", "organization")


def create_access_token(role: str, actor_id: int, expires_in: Optional[timedelta] = None) -> str:
    if role not in ACTOR_ROLES:
        raise ValueError(f"Unknown actor role: {role}")
    now = datetime.now(timezone.utc)
    lifetime = expires_in or timedelta(hours=int(current_app.config.get("JWT_EXPIRES_HOURS", 24)))
    payload = {
        "sub": str(actor_id),
        "role": role,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET"], algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """Decode and verify a bearer token.

    Raises:
        jwt.InvalidTokenError: signature, expiry, or claim problems.
    """
    claims = jwt.decode(token, current_app.config["JWT_SECRET"], algorithms=["HS256"])
    if claims.get("role") not in ACTOR_ROLES:
        raise jwt.InvalidTokenError("Unknown actor role")
    try:
        claims["sub"] = int(claims["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Invalid subject") from exc
    return claims


def bearer_from_header(header_value: Optional[str]) -> Optional[str]:
    if not header_value or not header_value.startswith("Bearer "):
        return None
    token = header_value[len("Bearer "):].strip()
    return token or None
