"""
Identity of the acting user.

Authentication happens upstream; the gateway forwards the resolved user id
and role as headers. The core only needs to know whether the caller is an
admin (to decide how much of a conflicting booking to reveal).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Depends, Header, HTTPException, status


class Role(str, Enum):
    ADMIN = "ADMIN"
    STANDARD = "STANDARD"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role = Role.STANDARD

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


async def get_current_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: str = Header(default=Role.STANDARD.value),
) -> Identity:
    """Resolve the caller from gateway headers. Raises 401 when absent."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        role = Role(x_user_role.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role: {x_user_role}",
        )
    return Identity(user_id=x_user_id, role=role)


async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return identity
