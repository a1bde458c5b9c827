"""Access credential minting and verification.

Access credentials are short-lived HS256 JWTs scoped to one group:

- sub: user id
- gid: active group id
- role: owner | admin | member, as derived when the credential was minted
- aud: the configured access audience
- iat / exp: issue and expiry timestamps

A role change is only reflected after the next refresh or group switch.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict

from jose import jwt, JWTError

from photodrop import clock
from photodrop.auth.config import get_auth_settings
from photodrop.auth.roles import GroupRole

ACCESS_TOKEN_TYPE = "access"


@dataclass(frozen=True)
class AccessClaims:
    """Verified contents of an access credential."""

    user_id: uuid.UUID
    group_id: uuid.UUID
    role: GroupRole


def create_access_token(user_id: uuid.UUID, group_id: uuid.UUID, role: GroupRole) -> str:
    """Mint an access credential for ``user_id`` acting in ``group_id``."""
    settings = get_auth_settings()
    now = clock.utcnow()
    expires_at = now + timedelta(minutes=settings.access_token_ttl_minutes)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "gid": str(group_id),
        "role": GroupRole(role).value,
        "type": ACCESS_TOKEN_TYPE,
        "jti": secrets.token_urlsafe(8),
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> AccessClaims:
    """Verify an access credential and return its claims.

    Verification checks:
    - signature matches the configured secret
    - token is not expired (exp claim)
    - audience matches (aud claim)
    - the token is an access credential carrying sub, gid and a known role

    Args:
        token: Bearer value from the Authorization header

    Returns:
        AccessClaims: user, active group and role

    Raises:
        JWTError: If the token is malformed, expired or fails verification
    """
    settings = get_auth_settings()
    decoded = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options={
            "verify_signature": True,
            "verify_exp": True,
            "verify_aud": True,
        },
    )
    if decoded.get("type") != ACCESS_TOKEN_TYPE:
        raise JWTError("Not an access token")
    try:
        return AccessClaims(
            user_id=uuid.UUID(str(decoded["sub"])),
            group_id=uuid.UUID(str(decoded["gid"])),
            role=GroupRole(decoded["role"]),
        )
    except (KeyError, ValueError) as e:
        raise JWTError(f"Malformed access token claims: {e}")
