"""
Base Pydantic models shared by the API schemas.

Request models use StrictRequest (extra="forbid") so unknown fields are
rejected with a 422 instead of being silently dropped.
"""

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """Base for request bodies: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class StrictResponse(BaseModel):
    """Base for responses built from ORM rows."""

    model_config = ConfigDict(from_attributes=True)
