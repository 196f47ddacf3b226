"""
The acting principal handed to the core by the authentication layer
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    CUSTOMER = "user"
    STAFF = "baker"
    ADMIN = "admin"
    SYSTEM = "system"


SYSTEM_UID = "system"


@dataclass(frozen=True)
class Principal:
    uid: Optional[str]
    role: Role = Role.CUSTOMER

    @property
    def is_authenticated(self) -> bool:
        return bool(self.uid)

    @property
    def actor_id(self) -> str:
        """Value recorded in ``updatedBy`` history fields"""
        return self.uid or SYSTEM_UID

    @classmethod
    def guest(cls) -> "Principal":
        return cls(uid=None, role=Role.CUSTOMER)

    @classmethod
    def system(cls) -> "Principal":
        return cls(uid=SYSTEM_UID, role=Role.SYSTEM)
