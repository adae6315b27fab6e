"""
Caller Identity - Who is invoking a core operation
"""

from dataclasses import dataclass
from uuid import UUID

from taskledger.models.user import UserRole


@dataclass(frozen=True)
class Identity:
    """Resolved caller: user id plus role"""
    user_id: UUID
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def can_act_on(self, owner_id: UUID) -> bool:
        """Owners act on their own records; admins on anyone's"""
        return self.is_admin or self.user_id == owner_id

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(user_id=user.id, role=user.role)
