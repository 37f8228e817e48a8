"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from conclave.db.time import ensure_utc

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class CamelModel(BaseModel):
    """Base schema using camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DeletedResponse(CamelModel):
    deleted: bool = True


class RemovedResponse(CamelModel):
    removed: bool = True


class UpdatedResponse(CamelModel):
    updated: bool = True
