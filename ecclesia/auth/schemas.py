"""Pydantic schemas for the authenticated caller."""

from uuid import UUID

from pydantic import BaseModel, Field


class CallerResponse(BaseModel):
    """Identity extracted from the bearer token.

    Only ``id`` is guaranteed; the identity provider may add display claims.
    """

    id: UUID = Field(..., description="Caller ID (token subject)")
    email: str | None = None
    name: str | None = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.email:
            return self.email.split("@", 1)[0]
        return "Student"
