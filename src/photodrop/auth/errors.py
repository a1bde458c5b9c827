"""Auth and group administration errors.

Each error carries the HTTP status it maps to and a stable ``code`` that
clients switch on (for example to show "Link not valid" for any of the
credential errors).
"""

from typing import Optional


class AuthError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 400
    code = "auth_error"
    message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    @property
    def headers(self) -> Optional[dict]:
        return None


# ---------------------------------------------------------------------------
# credential errors
# ---------------------------------------------------------------------------

class InvalidToken(AuthError):
    code = "invalid_token"
    message = "Invalid link"


class ExpiredToken(AuthError):
    code = "expired_token"
    message = "This link has expired"


class TokenAlreadyUsed(AuthError):
    code = "token_already_used"
    message = "This link has already been used"


class InvalidRefresh(AuthError):
    status_code = 401
    code = "invalid_refresh"
    message = "Session expired, please sign in again"


# ---------------------------------------------------------------------------
# authorization errors
# ---------------------------------------------------------------------------

class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthenticated"
    message = "Not authenticated"

    @property
    def headers(self) -> Optional[dict]:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    message = "You do not have permission to perform this action"


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class NoSuchMembership(AuthError):
    status_code = 404
    code = "no_such_membership"
    message = "No membership for this email"


class NotAMember(AuthError):
    status_code = 404
    code = "not_a_member"
    message = "Group not found"


class NoLongerAMember(AuthError):
    status_code = 403
    code = "no_longer_a_member"
    message = "You are no longer a member of this group"


# ---------------------------------------------------------------------------
# request and invariant errors
# ---------------------------------------------------------------------------

class InvalidRequest(AuthError):
    code = "invalid_request"
    message = "Invalid request"


class NameRequired(AuthError):
    code = "name_required"
    message = "Name is required"


class AlreadyAMember(AuthError):
    code = "already_a_member"
    message = "This person is already a member of the group"


class CannotModifyOwner(AuthError):
    status_code = 403
    code = "cannot_modify_owner"
    message = "The group owner cannot be modified"


class LastAdminProtection(AuthError):
    code = "last_admin_protection"
    message = "A group must keep at least one admin"
