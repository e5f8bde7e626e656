"""Configuration models for the intrinsic dimensions optimizer."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720


class AttributeConfig(BaseModel):
    path_attribute: str = "data-od-xpath"
    fingerprint_attribute: str = "data-od-intrinsic-dimensions-src-hash"

    @field_validator("path_attribute", "fingerprint_attribute")
    @classmethod
    def lowercase_attribute(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("Attribute name must not be empty")
        return v


class ResolverConfig(BaseModel):
    max_bookmarks: int = Field(default=10, ge=0)
    max_seek_ops: int = Field(default=1000, ge=0)


class CaptureConfig(BaseModel):
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    user_agent: Optional[str] = None
    headless: bool = True
    navigation_timeout_ms: int = 30000
    # 0 flushes whatever has loaded at finalize time without waiting
    settle_timeout_seconds: float = Field(default=0.0, ge=0.0)


class DimensionsConfig(BaseModel):
    # Target
    target_url: str = ""

    # Measurement store
    store_path: str = ".intrinsic-dimensions/store.json"
    max_visits_per_page: int = Field(default=20, ge=1)

    # Markup
    attributes: AttributeConfig = Field(default_factory=AttributeConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)

    # Browser capture
    capture: CaptureConfig = Field(default_factory=CaptureConfig)

    @classmethod
    def load(cls, path: str | Path) -> "DimensionsConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
