"""
Shared request dependencies
"""
from fastapi import Header

from backoffice.core.actor import Actor
from backoffice.core.errors import ValidationError
from backoffice.models.staff import StaffRole


async def get_actor(
    x_actor_id: str = Header(...),
    x_actor_name: str = Header(...),
    x_actor_role: str = Header(...)
) -> Actor:
    """Acting staff member, supplied by the gateway in X-Actor-* headers"""
    try:
        role = StaffRole(x_actor_role)
    except ValueError:
        raise ValidationError(f"Invalid X-Actor-Role: {x_actor_role}")
    return Actor(id=x_actor_id, name=x_actor_name, role=role)
