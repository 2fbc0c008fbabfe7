"""Collector request and response schemas."""

from typing import Any

from pydantic import BaseModel, Field


class CollectBatch(BaseModel):
    """Batch posted by the tracking snippet.

    Records stay untyped here so a bad record is reported by its index in the
    batch rather than rejected by request parsing.
    """

    records: list[dict[str, Any]] = Field(default_factory=list, max_length=1000)


class CollectResponse(BaseModel):
    accepted: int
