"""Pipeline orchestrator — coordinates optimize, capture, and store stages."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from playwright.async_api import async_playwright

from intrinsic_dimensions.capture.page_capture import capture_page
from intrinsic_dimensions.models.config import DimensionsConfig
from intrinsic_dimensions.models.measurement import element_data_schema
from intrinsic_dimensions.models.store import VisitRecord
from intrinsic_dimensions.resolver.optimizer import OptimizationResult, optimize_markup
from intrinsic_dimensions.store.measurement_store import MeasurementStoreManager
from intrinsic_dimensions.utils.browser import (
    create_capture_context,
    launch_browser,
    serve_markup,
)

logger = logging.getLogger(__name__)


class Orchestrator:
    """Coordinates the measure → store → replay feedback loop."""

    def __init__(self, config: DimensionsConfig):
        self.config = config
        self.store_manager = MeasurementStoreManager(
            store_path=Path(config.store_path),
            target_url=config.target_url,
            max_visits_per_page=config.max_visits_per_page,
        )

    def run_optimize(self, markup: str, url: Optional[str] = None) -> OptimizationResult:
        """Apply stored measurements for ``url`` to server-rendered markup."""
        url = url or self.config.target_url
        store = self.store_manager.load()
        query = self.store_manager.query_for(store, url)
        return optimize_markup(markup, query, self.config)

    async def run_capture(self, url: Optional[str] = None, markup: Optional[str] = None) -> VisitRecord:
        """Visit a page in a browser, capture media sizes and store them.

        When ``markup`` is given it is served as the document for ``url``;
        otherwise the live page is loaded.
        """
        url = url or self.config.target_url
        capture_config = self.config.capture
        start = time.time()

        async with async_playwright() as p:
            browser = await launch_browser(p, headless=capture_config.headless)
            try:
                context = await create_capture_context(
                    browser,
                    viewport={
                        "width": capture_config.viewport.width,
                        "height": capture_config.viewport.height,
                    },
                    user_agent=capture_config.user_agent,
                )
                page = await context.new_page()
                if markup is not None:
                    await serve_markup(page, url, markup)
                await page.goto(
                    url, wait_until="load", timeout=capture_config.navigation_timeout_ms,
                )
                contribution = await capture_page(
                    page, self.config.attributes, capture_config.settle_timeout_seconds,
                )
                await context.close()
            finally:
                await browser.close()

        store = self.store_manager.load()
        visit = self.store_manager.ingest(store, url, contribution)
        self.store_manager.save(store)
        logger.info(
            "Captured %d elements on %s in %.1fs",
            len(visit.elements), url, time.time() - start,
        )
        return visit

    def run_capture_only(self, url: Optional[str] = None, markup: Optional[str] = None) -> VisitRecord:
        return asyncio.run(self.run_capture(url, markup))

    def run_cycle(self, markup: str, url: Optional[str] = None) -> tuple[OptimizationResult, VisitRecord]:
        """Optimize markup with current data, then serve it to a capture visit."""
        result = self.run_optimize(markup, url)
        visit = self.run_capture_only(url, result.html)
        return result, visit

    def get_samples_summary(self) -> list[dict]:
        return self.store_manager.summarize(self.store_manager.load())

    def get_schema(self) -> dict:
        return element_data_schema()

    def reset_store(self) -> None:
        self.store_manager.reset()
