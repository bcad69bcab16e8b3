from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CustomData(BaseModel):
    """
    Application-specific payload attached to a user.

    Stored and returned verbatim. Keys beyond `random` are accepted and kept.
    """
    model_config = ConfigDict(extra="allow")

    random: int = Field(..., ge=0, description="Application counter")


# PUBLIC_INTERFACE
class User(BaseModel):
    """User record as stored by every repository backend."""
    id: UUID = Field(..., description="Caller-assigned unique identifier")
    name: str = Field(..., min_length=1, description="Display name")
    birth_date: date = Field(..., description="Birth date (no time component)")
    custom_data: CustomData = Field(..., description="Opaque application payload")
    created_at: Optional[datetime] = Field(
        default=None, description="Set by the store at creation (UTC)"
    )
    updated_at: Optional[datetime] = Field(
        default=None, description="Set by the store on every update (UTC)"
    )

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v

    @field_validator("birth_date", mode="before")
    @classmethod
    def _reject_datetime(cls, v):
        # datetime is a date subclass; a time component is not allowed here
        if isinstance(v, datetime):
            raise ValueError("birth_date must be a calendar date without time")
        return v

    def stamped(
        self,
        *,
        created_at: Optional[datetime],
        updated_at: Optional[datetime],
    ) -> "User":
        """
        Return an owned copy with the store-managed timestamps replaced.

        custom_data is reduced to its JSON form so every backend hands back
        the same values.
        """
        return self.model_copy(
            update={
                "custom_data": CustomData.model_validate(
                    self.custom_data.model_dump(mode="json")
                ),
                "created_at": created_at,
                "updated_at": updated_at,
            },
        )

    def storage_values(self) -> dict:
        """Mutable columns as plain values for the relational backend."""
        return {
            "name": self.name,
            "birth_date": self.birth_date,
            "custom_data": self.custom_data.model_dump(mode="json"),
        }
