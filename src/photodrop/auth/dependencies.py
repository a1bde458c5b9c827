"""FastAPI dependencies for authentication and group-scoped authorization."""

import uuid
from typing import Optional, Type, TypeVar

from fastapi import Depends, Header
from jose import JWTError
from sqlalchemy.orm import Query, Session

from photodrop.auth.errors import Forbidden, NotFound, Unauthenticated
from photodrop.auth.jwt import AccessClaims, decode_access_token

ModelT = TypeVar("ModelT")


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()


async def get_auth_context(
    authorization: Optional[str] = Header(None),
) -> AccessClaims:
    """Resolve the caller's (user, active group, role) from the bearer credential.

    No database lookup happens here: the role is the one captured when the
    credential was minted, and may lag a role change until the next refresh.

    Raises:
        Unauthenticated: missing, malformed, expired or tampered credential
    """
    token = _extract_bearer_token(authorization)
    if token is None:
        raise Unauthenticated()
    try:
        return decode_access_token(token)
    except JWTError:
        raise Unauthenticated("Invalid or expired access token")


async def get_optional_auth_context(
    authorization: Optional[str] = Header(None),
) -> Optional[AccessClaims]:
    """Like get_auth_context, but None when no credential is presented."""
    if not authorization:
        return None
    return await get_auth_context(authorization)


async def require_admin(
    claims: AccessClaims = Depends(get_auth_context),
) -> AccessClaims:
    """Require owner or admin authority in the active group."""
    if not claims.role.is_admin:
        raise Forbidden()
    return claims


async def require_owner(
    claims: AccessClaims = Depends(get_auth_context),
) -> AccessClaims:
    """Require the caller to own the active group."""
    if not claims.role.is_owner:
        raise Forbidden("Only the group owner can perform this action")
    return claims


def ensure_active_group(claims: AccessClaims, group_id: uuid.UUID) -> None:
    """Treat any group other than the active one as nonexistent."""
    if group_id != claims.group_id:
        raise NotFound("Group not found")


def scoped_query(db: Session, model: Type[ModelT], claims: AccessClaims) -> Query:
    """Query ``model`` restricted to rows of the caller's active group."""
    return db.query(model).filter(model.group_id == claims.group_id)


def get_scoped_or_404(
    db: Session,
    model: Type[ModelT],
    resource_id: uuid.UUID,
    claims: AccessClaims,
) -> ModelT:
    """Fetch a group-scoped row by id.

    A row that exists in another group is reported exactly like a row that
    does not exist at all.
    """
    row = scoped_query(db, model, claims).filter(model.id == resource_id).first()
    if row is None:
        raise NotFound()
    return row
