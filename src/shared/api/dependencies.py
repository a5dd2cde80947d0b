"""
Shared API Dependencies
=======================

Caller identity for the HTTP surface. Authentication happens upstream;
the gate forwards the authenticated user in request headers.
"""

from dataclasses import dataclass

from fastapi import Header, HTTPException, status

from src.config import UserRole, VALID_ROLES


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as forwarded by the gate."""
    id: str
    role: UserRole


async def get_actor(
    x_actor_id: str = Header(..., alias="X-Actor-Id", min_length=1),
    x_actor_role: str = Header(UserRole.REPORTER.value, alias="X-Actor-Role"),
) -> Actor:
    role = x_actor_role.strip().upper()
    if role not in VALID_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid X-Actor-Role: {x_actor_role}"
        )
    return Actor(id=x_actor_id, role=UserRole(role))
