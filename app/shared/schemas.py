"""Shared Pydantic base schemas"""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict

from ..practice_time import to_naive_utc


def _to_camel(s: str) -> str:
    """Convert snake_case to camelCase for JSON aliasing."""
    parts = s.split("_")
    return parts[0] + "".join(p.capitalize() or "_" for p in parts[1:])


# Incoming timestamps may carry an offset; storage is naive UTC
UTCDateTime = Annotated[datetime, AfterValidator(to_naive_utc)]


class CamelModel(BaseModel):
    """
    Base for request and response bodies.

    - camelCase JSON (the browser client's convention), snake_case in Python
    - accepts either spelling on input
    - reads attributes straight off ORM objects
    """

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        alias_generator=_to_camel,
    )


class MessageResponse(CamelModel):
    message: str


class CountResponse(CamelModel):
    count: int


class BulkResult(CamelModel):
    updated: int
