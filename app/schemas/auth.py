"""Auth-related schemas."""

from uuid import UUID

from pydantic import BaseModel

from app.db.enums import Role


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by get_current_session. ``org_id`` is set for client users;
    ``sales_user_id`` for users with a sales profile.
    """
    user_id: UUID
    role: Role
    email: str
    full_name: str | None = None
    org_id: UUID | None = None
    sales_user_id: UUID | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class MeResponse(BaseModel):
    """Response schema for GET /api/auth/me."""
    user_id: UUID
    email: str
    full_name: str | None
    role: Role
    org_id: UUID | None
    sales_user_id: UUID | None
