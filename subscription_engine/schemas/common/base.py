"""
Base schema classes with common configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

__all__ = [
    "BaseSchema",
    "FrozenSchema",
]


class BaseSchema(BaseModel):
    """
    Base schema with common Pydantic configuration.

    Snapshots handed to the engine inherit from this. The engine never
    assigns to a snapshot it was given; it returns a copy built with
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        # Keep enums as Enum instances to retain full type information;
        # callers can still access `.value` if needed.
        use_enum_values=False,
        arbitrary_types_allowed=True,
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class FrozenSchema(BaseSchema):
    """Immutable schema for catalog entries and audit records."""

    model_config = ConfigDict(frozen=True)
