"""
Pydantic models for records held by the credential store.
"""

from typing import Set

from pydantic import BaseModel, Field


class UserRecord(BaseModel):
    """One user's password and role memberships."""

    user_name: str = Field(description="Unique user name, the record key.")
    password: str = Field(default="", description="Password as stored in the file.")
    roles: Set[str] = Field(
        default_factory=set, description="Role names held by the user."
    )
