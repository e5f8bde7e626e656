"""Document pass — runs the intrinsic dimensions visitor over every tag."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from intrinsic_dimensions.models.config import DimensionsConfig
from intrinsic_dimensions.resolver.tag_processor import HtmlTagProcessor
from intrinsic_dimensions.resolver.visitor import TagVisitorContext, visit_tag
from intrinsic_dimensions.store.query import MeasurementQuery

logger = logging.getLogger(__name__)


class OptimizationResult(BaseModel):
    html: str
    tracked_paths: list[str] = Field(default_factory=list)
    applied: dict[str, tuple[int, int]] = Field(default_factory=dict)


def optimize_markup(
    markup: str, query: MeasurementQuery, config: DimensionsConfig | None = None
) -> OptimizationResult:
    """Stamp fingerprints on media tags and apply agreed dimensions."""
    config = config or DimensionsConfig()
    processor = HtmlTagProcessor(
        markup,
        max_bookmarks=config.resolver.max_bookmarks,
        max_seek_ops=config.resolver.max_seek_ops,
    )
    context = TagVisitorContext(
        processor=processor, query=query, attributes=config.attributes,
    )

    while processor.next_tag():
        visit_tag(context)

    logger.info(
        "Optimized document: %d media tags tracked, %d given dimensions",
        len(context.tracked_paths), len(context.applied),
    )
    return OptimizationResult(
        html=processor.get_updated_html(),
        tracked_paths=context.tracked_paths,
        applied=context.applied,
    )
