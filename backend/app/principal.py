"""Actors on whose behalf core operations run."""

from __future__ import annotations

from dataclasses import dataclass

from app.core.enums import RoleName
from app.core.exceptions import UnauthorizedActionException


@dataclass(frozen=True)
class Actor:
    """An authenticated school member.

    Every public core operation takes one explicitly; role and school are
    resolved from the users table, never from ambient request state.
    """

    user_id: str
    role: RoleName
    school_id: str

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN

    @property
    def is_instructor(self) -> bool:
        return self.role == RoleName.INSTRUCTOR

    @property
    def is_student(self) -> bool:
        return self.role == RoleName.STUDENT

    def require_role(self, *roles: RoleName) -> None:
        if self.role not in roles:
            raise UnauthorizedActionException(
                role=self.role.value, allowed=[r.value for r in roles]
            )
