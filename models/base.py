"""
Base schemas shared by all models.
"""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Accept both field names and camelCase wire aliases
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        populate_by_name=True
    )


class WireSchema(BaseModel):
    """
    Base for request/response payloads carrying caller data verbatim.

    No whitespace trimming: row headers and values must reach the mapper untouched.
    """
    model_config = ConfigDict(
        populate_by_name=True
    )
