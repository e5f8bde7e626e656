"""Capture agent — records intrinsic sizes of media elements during one visit."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Protocol

from pydantic import ValidationError

from intrinsic_dimensions.models.config import AttributeConfig
from intrinsic_dimensions.models.measurement import MeasurementRecord, MediaKind

logger = logging.getLogger(__name__)


class MediaElement(Protocol):
    """A rendered IMG or VIDEO element."""

    kind: MediaKind

    async def get_attribute(self, name: str) -> Optional[str]: ...

    async def is_ready(self) -> bool:
        """Image finished loading, or video metadata available."""
        ...

    async def wait_until_ready(self) -> None:
        """Resolve once the load/loadedmetadata event has fired."""
        ...

    async def intrinsic_size(self) -> tuple[int, int]:
        """naturalWidth/naturalHeight for images, videoWidth/videoHeight for videos."""
        ...


class CaptureContext:
    """Measurements accumulated for one page visit."""

    def __init__(self) -> None:
        self.records: dict[str, MeasurementRecord] = {}
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def extend_element_data(self, path: str, record: MeasurementRecord) -> None:
        self.records[path] = record

    def add_pending(self, task: asyncio.Task) -> None:
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def finalize(self) -> dict[str, dict]:
        """Flush what has been captured so far as per-element data.

        Captures still waiting on their media are not included.
        """
        if self._pending:
            logger.debug("Finalizing with %d captures still pending", len(self._pending))
        return {
            path: {"intrinsicDimensions": record.model_dump()}
            for path, record in self.records.items()
        }

    async def settle(self, timeout: float) -> None:
        """Wait up to ``timeout`` seconds for pending captures to complete."""
        if not self._pending or timeout <= 0:
            return
        _, still_pending = await asyncio.wait(set(self._pending), timeout=timeout)
        if still_pending:
            logger.debug("%d captures did not complete within %.1fs", len(still_pending), timeout)

    def close(self) -> None:
        """Cancel captures that never completed."""
        for task in list(self._pending):
            task.cancel()


async def capture_intrinsic_dimensions(
    element: MediaElement, path: str, stamped_fingerprint: str, context: CaptureContext
) -> Optional[MeasurementRecord]:
    """Measure the element and store the record under its path."""
    width, height = await element.intrinsic_size()
    try:
        record = MeasurementRecord(width=width, height=height, fingerprint=stamped_fingerprint)
    except ValidationError as e:
        logger.warning("Discarding measurement for %s: %s", path, e)
        return None
    context.extend_element_data(path, record)
    logger.debug("Captured %dx%d for %s %s", width, height, element.kind.value, path)
    return record


async def _capture_when_ready(
    element: MediaElement, path: str, stamped_fingerprint: str, context: CaptureContext
) -> None:
    try:
        await element.wait_until_ready()
        await capture_intrinsic_dimensions(element, path, stamped_fingerprint, context)
    except Exception as e:
        logger.debug("Deferred capture for %s failed: %s", path, e)


async def initialize(
    elements: Iterable[MediaElement],
    context: Optional[CaptureContext] = None,
    attributes: Optional[AttributeConfig] = None,
) -> CaptureContext:
    """Observe media elements stamped by the server and capture their sizes.

    Ready elements are captured before this returns; the rest are captured
    when their media resolves.
    """
    context = context or CaptureContext()
    attributes = attributes or AttributeConfig()

    for element in elements:
        try:
            path = await element.get_attribute(attributes.path_attribute)
            stamped_fingerprint = await element.get_attribute(attributes.fingerprint_attribute)
            if not path or not stamped_fingerprint:
                continue
            ready = await element.is_ready()
        except Exception as e:
            logger.warning("Skipping media element: %s", e)
            continue

        if ready:
            try:
                await capture_intrinsic_dimensions(element, path, stamped_fingerprint, context)
            except Exception as e:
                logger.warning("Capture failed for %s: %s", path, e)
        else:
            task = asyncio.ensure_future(
                _capture_when_ready(element, path, stamped_fingerprint, context)
            )
            context.add_pending(task)

    return context
