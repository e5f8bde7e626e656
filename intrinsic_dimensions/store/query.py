"""Read-only view over historical measurements, keyed by element path."""

from __future__ import annotations

from typing import Mapping, Optional, Protocol, Sequence

from intrinsic_dimensions.models.measurement import MeasurementRecord

SampleSet = Sequence[Optional[MeasurementRecord]]


class MeasurementQuery(Protocol):
    def samples(self, path: str) -> SampleSet:
        """Return every stored sample for ``path`` across completed visits."""
        ...


class InMemoryMeasurementQuery:
    """MeasurementQuery backed by a plain mapping."""

    def __init__(self, samples_by_path: Mapping[str, SampleSet] | None = None):
        self._samples_by_path = dict(samples_by_path or {})

    def samples(self, path: str) -> SampleSet:
        return tuple(self._samples_by_path.get(path, ()))
