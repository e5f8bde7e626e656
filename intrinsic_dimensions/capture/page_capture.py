"""Playwright bindings for the capture agent."""

from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import ElementHandle, Page

from intrinsic_dimensions.capture.agent import CaptureContext, initialize
from intrinsic_dimensions.models.config import AttributeConfig
from intrinsic_dimensions.models.measurement import MediaKind

logger = logging.getLogger(__name__)

_READY_SCRIPTS = {
    MediaKind.IMAGE: "el => el.complete",
    MediaKind.VIDEO: "el => el.readyState >= HTMLMediaElement.HAVE_METADATA",
}

# Checked again inside the page so an event firing between calls is not missed
_WAIT_SCRIPTS = {
    MediaKind.IMAGE: """el => el.complete || new Promise(resolve => {
        el.addEventListener('load', () => resolve(true), { once: true });
    })""",
    MediaKind.VIDEO: """el => el.readyState >= HTMLMediaElement.HAVE_METADATA || new Promise(resolve => {
        el.addEventListener('loadedmetadata', () => resolve(true), { once: true });
    })""",
}

_SIZE_SCRIPTS = {
    MediaKind.IMAGE: "el => [el.naturalWidth, el.naturalHeight]",
    MediaKind.VIDEO: "el => [el.videoWidth, el.videoHeight]",
}


class PlaywrightMediaElement:
    """MediaElement backed by a Playwright element handle."""

    def __init__(self, handle: ElementHandle, kind: MediaKind):
        self.handle = handle
        self.kind = kind

    async def get_attribute(self, name: str) -> Optional[str]:
        return await self.handle.get_attribute(name)

    async def is_ready(self) -> bool:
        return bool(await self.handle.evaluate(_READY_SCRIPTS[self.kind]))

    async def wait_until_ready(self) -> None:
        await self.handle.evaluate(_WAIT_SCRIPTS[self.kind])

    async def intrinsic_size(self) -> tuple[int, int]:
        width, height = await self.handle.evaluate(_SIZE_SCRIPTS[self.kind])
        return int(width), int(height)


async def discover_media_elements(
    page: Page, attributes: Optional[AttributeConfig] = None
) -> list[PlaywrightMediaElement]:
    """Find media elements carrying both the path and fingerprint attributes."""
    attributes = attributes or AttributeConfig()
    elements: list[PlaywrightMediaElement] = []
    for kind in MediaKind:
        selector = (
            f"{kind.value.lower()}"
            f"[{attributes.path_attribute}][{attributes.fingerprint_attribute}]"
        )
        handles = await page.query_selector_all(selector)
        elements.extend(PlaywrightMediaElement(handle, kind) for handle in handles)
    logger.debug("Discovered %d stamped media elements", len(elements))
    return elements


async def capture_page(
    page: Page,
    attributes: Optional[AttributeConfig] = None,
    settle_timeout: float = 0.0,
) -> dict[str, dict]:
    """Run one capture session on a loaded page and return its element data."""
    elements = await discover_media_elements(page, attributes)
    context = await initialize(elements, CaptureContext(), attributes)
    await context.settle(settle_timeout)
    try:
        return context.finalize()
    finally:
        context.close()
