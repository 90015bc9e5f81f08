"""Authenticated actor supplied by the identity collaborator."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class Role(str, Enum):
    """Actor roles."""
    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"


class Actor(BaseModel):
    """Opaque identity: who is acting and in which role."""
    id: str = Field(..., min_length=1, description="User ID")
    role: Role = Field(default=Role.USER)

    @property
    def is_moderator(self) -> bool:
        return self.role == Role.ADMIN

    def owns(self, owner_id: Optional[str]) -> bool:
        return owner_id is not None and str(owner_id) == self.id
