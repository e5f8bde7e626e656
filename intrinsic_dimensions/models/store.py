"""Measurement store data structures — per-page visit history."""

from __future__ import annotations

from pydantic import BaseModel, Field

from intrinsic_dimensions.models.measurement import ElementData


class VisitRecord(BaseModel):
    visit_id: str
    url: str
    captured_at: str  # ISO timestamp
    elements: dict[str, ElementData] = Field(default_factory=dict)
    # key: element path


class PageMeasurements(BaseModel):
    page_id: str
    url: str
    visits: list[VisitRecord] = Field(default_factory=list)
    last_captured: str = ""


class MeasurementStore(BaseModel):
    target_url: str = ""
    last_updated: str = ""
    pages: dict[str, PageMeasurements] = Field(default_factory=dict)
