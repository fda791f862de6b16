"""
Caller Identity

The service does not authenticate. An upstream gateway supplies the user id
and role; they are carried explicitly into every write as an Actor.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from stockledger.config import get_settings
from stockledger.inventory.exceptions import PermissionDenied


class Role(str, Enum):
    ADMIN = "admin"
    CASHIER = "cashier"
    STOCKIST = "stockist"


@dataclass(frozen=True)
class Actor:
    user_id: Optional[str]
    role: Optional[Role] = None

    @property
    def role_name(self) -> Optional[str]:
        return self.role.value if self.role else None


SYSTEM_ACTOR = Actor(user_id=None, role=Role.ADMIN)


def require_role(actor: Actor, allowed: Iterable[str], action: str) -> None:
    if actor.role_name not in set(allowed):
        raise PermissionDenied(actor.role_name, action)


def require_writer(actor: Actor, action: str) -> None:
    """Catalog, stock and unit writes"""
    require_role(actor, get_settings().security.write_roles, action)


def require_reconciler(actor: Actor) -> None:
    require_role(actor, get_settings().security.reconcile_roles, "reconcile stock snapshots")
