"""Typed response models."""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, FrozenSet, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from authdispatch.errors import MalformedResponse


class APIResponse(BaseModel):
    """Base class for typed responses.

    ``compatible_versions`` lists the request protocol versions this response
    type knows how to read; requests check it when they are constructed.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    compatible_versions: ClassVar[FrozenSet[str]] = frozenset({"v1"})

    @classmethod
    def supports(cls, version: str) -> bool:
        return version in cls.compatible_versions

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]):
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponse(
                f"{cls.__name__} could not be built from payload: {exc.error_count()} error(s)"
            ) from exc


class EmptyResponse(APIResponse):
    """Response for calls whose payload carries nothing the caller needs."""


class DownloadResponse(APIResponse):
    """Where a downloaded body was written."""

    path: Path
    size_bytes: int = Field(alias="sizeBytes", ge=0)
