"""Unanimous-agreement rule over an element's historical measurements."""

from __future__ import annotations

from typing import Optional, Sequence

from intrinsic_dimensions.models.measurement import (
    Agreed,
    ConsensusResult,
    MeasurementRecord,
    NoConsensus,
)


def resolve_consensus(
    samples: Sequence[Optional[MeasurementRecord]], current_fingerprint: str
) -> ConsensusResult:
    """Decide whether the stored samples can be replayed onto the current element.

    Samples missing intrinsic dimensions are ignored. Every remaining record
    must be identical to the first one; any variation means the element's
    content or position is not stable enough to trust. The representative
    fingerprint must then match the fingerprint of the current markup.
    """
    records = [record for record in samples if record is not None]
    if not records:
        return NoConsensus(reason="empty")

    representative = records[0]
    for record in records[1:]:
        if record != representative:
            return NoConsensus(reason="disagreement")

    if representative.fingerprint != current_fingerprint:
        return NoConsensus(reason="stale")

    return Agreed(width=representative.width, height=representative.height)
