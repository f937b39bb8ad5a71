"""Authentication schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class ActorRole(str, Enum):
    """Role carried in the access token."""

    REQUESTER = "requester"
    PROVIDER = "provider"


class Actor(BaseModel):
    """Authenticated caller decoded from a bearer token."""

    id: UUID
    role: ActorRole
    name: str = ""

    @property
    def is_provider(self) -> bool:
        """Check if the caller is counseling staff."""
        return self.role == ActorRole.PROVIDER

    @property
    def is_requester(self) -> bool:
        """Check if the caller is a student requester."""
        return self.role == ActorRole.REQUESTER
