"""
Request Dependencies

The caller's identity arrives in headers set by the authenticating gateway
in front of this service and is trusted as given.
"""

from typing import Optional

from fastapi import Header, HTTPException

from stockledger.inventory.identity import Actor, Role


async def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Actor:
    role = None
    if x_user_role:
        try:
            role = Role(x_user_role.lower())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown role '{x_user_role}'") from None
    return Actor(user_id=x_user_id, role=role)
