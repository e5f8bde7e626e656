"""Measurement store — persists per-visit element measurements as JSON."""

from __future__ import annotations

import json
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from intrinsic_dimensions.models.measurement import ElementData, MeasurementRecord
from intrinsic_dimensions.models.store import MeasurementStore, PageMeasurements, VisitRecord
from intrinsic_dimensions.store.query import InMemoryMeasurementQuery
from intrinsic_dimensions.url_utils import normalize_url, page_id_from_url

logger = logging.getLogger(__name__)


class MeasurementStoreManager:
    """Manages the measurement store JSON file."""

    def __init__(self, store_path: Path, target_url: str = "", max_visits_per_page: int = 20):
        self.path = store_path
        self.target_url = target_url
        self.max_visits_per_page = max_visits_per_page

    def load(self) -> MeasurementStore:
        """Load store from disk, or create a new one."""
        if self.path.exists():
            try:
                with open(self.path) as f:
                    data = json.load(f)
                return MeasurementStore(**data)
            except Exception as e:
                logger.warning("Failed to load measurement store: %s. Creating new.", e)
        return MeasurementStore(target_url=self.target_url)

    def save(self, store: MeasurementStore) -> None:
        """Persist store to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        store.last_updated = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        with open(self.path, "w") as f:
            json.dump(store.model_dump(by_alias=True), f, indent=2)
        logger.debug("Saved measurement store to %s", self.path)

    def reset(self) -> None:
        if self.path.exists():
            self.path.unlink()
        logger.info("Measurement store reset")

    def ingest(
        self,
        store: MeasurementStore,
        url: str,
        contribution: Mapping[str, Mapping[str, Any]],
        visit_id: Optional[str] = None,
    ) -> VisitRecord:
        """Append one visit's per-element data for a page.

        Entries that do not validate are dropped; the rest of the visit is kept.
        Only the most recent ``max_visits_per_page`` visits are retained.
        """
        elements: dict[str, ElementData] = {}
        for path, data in contribution.items():
            try:
                elements[path] = ElementData.model_validate(data)
            except ValidationError as e:
                logger.warning("Dropping invalid element data for %s: %s", path, e)

        now = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        visit = VisitRecord(
            visit_id=visit_id or f"visit_{uuid.uuid4().hex[:8]}",
            url=url,
            captured_at=now,
            elements=elements,
        )

        page_id = page_id_from_url(url)
        if page_id not in store.pages:
            store.pages[page_id] = PageMeasurements(page_id=page_id, url=normalize_url(url))
        page = store.pages[page_id]
        page.visits.append(visit)
        page.last_captured = now
        if len(page.visits) > self.max_visits_per_page:
            page.visits = page.visits[-self.max_visits_per_page:]

        logger.info("Stored %d element measurements for %s", len(elements), url)
        return visit

    def query_for(self, store: MeasurementStore, url: str) -> InMemoryMeasurementQuery:
        """Build the per-path sample view for one page."""
        samples: dict[str, list[Optional[MeasurementRecord]]] = {}
        page = store.pages.get(page_id_from_url(url))
        if page is not None:
            for visit in page.visits:
                for path, element in visit.elements.items():
                    samples.setdefault(path, []).append(element.intrinsic_dimensions)
        return InMemoryMeasurementQuery(samples)

    def summarize(self, store: MeasurementStore) -> list[dict[str, Any]]:
        """Per-page counts of visits and measured elements."""
        rows = []
        for page in store.pages.values():
            paths = {path for visit in page.visits for path in visit.elements}
            rows.append({
                "page_id": page.page_id,
                "url": page.url,
                "visits": len(page.visits),
                "elements": len(paths),
                "last_captured": page.last_captured,
            })
        return sorted(rows, key=lambda r: r["url"])
