"""Measurement data structures shared by the capture agent and the resolver."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

FINGERPRINT_PATTERN = r"^[0-9a-f]{32}$"


class MediaKind(str, Enum):
    IMAGE = "IMG"
    VIDEO = "VIDEO"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> Optional["MediaKind"]:
        """Map an upper-case tag name to its media kind, or None if not media."""
        for kind in cls:
            if kind.value == tag:
                return kind
        return None


class MeasurementRecord(BaseModel):
    """One visit's observed intrinsic size for one element."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(ge=0)
    height: int = Field(ge=0)
    fingerprint: str = Field(pattern=FINGERPRINT_PATTERN)

    @property
    def dimensions(self) -> tuple[int, int]:
        return (self.width, self.height)


class ElementData(BaseModel):
    """Per-element data stored for a visit. Only intrinsic dimensions are modelled."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    intrinsic_dimensions: Optional[MeasurementRecord] = Field(
        default=None, alias="intrinsicDimensions"
    )


class Agreed(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int
    height: int


class NoConsensus(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str  # empty, disagreement, stale


ConsensusResult = Union[Agreed, NoConsensus]


def element_data_schema() -> dict:
    """JSON schema of the per-element ``intrinsicDimensions`` contribution."""
    schema = MeasurementRecord.model_json_schema()
    schema.pop("title", None)
    return {"intrinsicDimensions": schema}
