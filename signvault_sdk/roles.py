"""
Caller roles and the authority that assigns them.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """
    Authorization level of a caller.

    ADMIN satisfies every role; SIGNER only satisfies SIGNER.
    """
    ADMIN = "admin"
    SIGNER = "signer"

    def satisfies(self, required: "Role") -> bool:
        return self is Role.ADMIN or self is Role(required)


class RoleAuthority(ABC):
    """Answers which role, if any, a caller holds"""

    @abstractmethod
    def role_of(self, caller: str) -> Optional[Role]:
        """
        Args:
            caller: Caller principal, as text

        Returns:
            The caller's role, or None for unknown callers
        """
        pass


class StaticRoleAuthority(RoleAuthority):
    """Role assignments held in memory"""

    def __init__(self, roles: Optional[Dict[str, Role]] = None):
        self._roles: Dict[str, Role] = {caller: Role(role) for caller, role in (roles or {}).items()}

    def grant(self, caller: str, role: Role) -> None:
        self._roles[caller] = Role(role)
        logger.info("Granted %s to %s", Role(role).value, caller)

    def revoke(self, caller: str) -> None:
        if self._roles.pop(caller, None) is not None:
            logger.info("Revoked role of %s", caller)

    def role_of(self, caller: str) -> Optional[Role]:
        return self._roles.get(caller)
