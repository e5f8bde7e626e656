"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from intrinsic_dimensions.fingerprint import fingerprint
from intrinsic_dimensions.models.config import (
    AttributeConfig,
    CaptureConfig,
    DimensionsConfig,
    ResolverConfig,
    ViewportConfig,
)
from intrinsic_dimensions.models.measurement import MeasurementRecord
from intrinsic_dimensions.store.measurement_store import MeasurementStoreManager


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def dimensions_config(tmp_path: Path) -> DimensionsConfig:
    """Create a test configuration with the store under tmp_path."""
    return DimensionsConfig(
        target_url="https://example.com/",
        store_path=str(tmp_path / "store" / "store.json"),
        max_visits_per_page=5,
        attributes=AttributeConfig(),
        resolver=ResolverConfig(max_bookmarks=10, max_seek_ops=1000),
        capture=CaptureConfig(viewport=ViewportConfig(width=1280, height=720)),
    )


@pytest.fixture
def temp_config_file(dimensions_config: DimensionsConfig, tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_file = tmp_path / "dimensions-config.json"
    dimensions_config.save(config_file)
    return config_file


# ============================================================================
# Measurement Fixtures
# ============================================================================


@pytest.fixture
def fp_a() -> str:
    return fingerprint(["a.jpg"])


@pytest.fixture
def fp_b() -> str:
    return fingerprint(["b.jpg"])


@pytest.fixture
def record_a(fp_a: str) -> MeasurementRecord:
    """800x600 measurement of a.jpg."""
    return MeasurementRecord(width=800, height=600, fingerprint=fp_a)


@pytest.fixture
def store_manager(tmp_path: Path) -> MeasurementStoreManager:
    return MeasurementStoreManager(
        tmp_path / "store.json", target_url="https://example.com/", max_visits_per_page=3,
    )
