"""Tag visitor that injects captured intrinsic dimensions into IMG and VIDEO tags."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from intrinsic_dimensions.fingerprint import fingerprint
from intrinsic_dimensions.models.config import AttributeConfig
from intrinsic_dimensions.models.measurement import Agreed, MediaKind
from intrinsic_dimensions.resolver.consensus import resolve_consensus
from intrinsic_dimensions.resolver.tag_processor import (
    META_ATTRIBUTE_PREFIX,
    AttributeValue,
    HtmlTagProcessor,
    TagProcessorError,
)
from intrinsic_dimensions.store.query import MeasurementQuery

logger = logging.getLogger(__name__)

_DIMENSION_RE = re.compile(r"^[0-9]+%?$")


@dataclass
class TagVisitorContext:
    """State shared between the document pass and the visitor for one tag."""

    processor: HtmlTagProcessor
    query: MeasurementQuery
    attributes: AttributeConfig = field(default_factory=AttributeConfig)
    tracked_paths: list[str] = field(default_factory=list)
    applied: dict[str, tuple[int, int]] = field(default_factory=dict)

    def track_tag(self) -> str:
        """Flag the current tag for measurement on future visits and return its path."""
        path = self.processor.get_xpath() or ""
        self.processor.set_attribute(self.attributes.path_attribute, path)
        if path not in self.tracked_paths:
            self.tracked_paths.append(path)
        return path


def is_valid_dimension(value: AttributeValue) -> bool:
    """Whether a width/height attribute value is usable as-is (``100`` or ``100%``)."""
    return isinstance(value, str) and _DIMENSION_RE.match(value.strip()) is not None


def _collect_video_sources(processor: HtmlTagProcessor) -> Optional[list[str]]:
    """Read SOURCE children of the current VIDEO and rewind. None if the rewind fails."""
    try:
        bookmark = processor.mark()
    except TagProcessorError as e:
        logger.warning("Cannot bookmark VIDEO at %s: %s", processor.get_xpath(), e)
        return None

    sources: list[str] = []
    try:
        while processor.next_tag():
            tag = processor.get_tag()
            if tag == "SOURCE":
                src = processor.get_attribute("src")
                if isinstance(src, str):
                    sources.append(src)
            elif tag == MediaKind.VIDEO.value:
                # Closing tag reached
                break
        processor.restore(bookmark)
    except TagProcessorError as e:
        logger.warning("Cannot seek back to VIDEO: %s", e)
        return None
    finally:
        processor.release(bookmark)
    return sources


def _collect_sources(processor: HtmlTagProcessor, kind: MediaKind) -> Optional[list[str]]:
    sources: list[str] = []
    src = processor.get_attribute("src")
    if isinstance(src, str):
        sources.append(src)
    elif kind is MediaKind.VIDEO:
        video_sources = _collect_video_sources(processor)
        if video_sources is None:
            return None
        sources.extend(video_sources)

    if kind is MediaKind.IMAGE:
        srcset = processor.get_attribute("srcset")
        if isinstance(srcset, str):
            sources.append(srcset)
    return sources


def visit_tag(context: TagVisitorContext) -> bool:
    """Visit the current tag. Returns True when dimensions were injected."""
    processor = context.processor
    if processor.is_tag_closer():
        return False
    kind = MediaKind.from_tag(processor.get_tag())
    if kind is None:
        return False

    # Width and height already supplied, nothing to learn or apply
    if is_valid_dimension(processor.get_attribute("width")) and is_valid_dimension(
        processor.get_attribute("height")
    ):
        return False

    # Track even without consensus so samples keep accumulating
    path = context.track_tag()

    sources = _collect_sources(processor, kind)
    if sources is None:
        return False
    current_fingerprint = fingerprint(sources)
    fingerprint_attribute = context.attributes.fingerprint_attribute
    if fingerprint_attribute.startswith(META_ATTRIBUTE_PREFIX):
        processor.set_meta_attribute(
            fingerprint_attribute[len(META_ATTRIBUTE_PREFIX):], current_fingerprint
        )
    else:
        processor.set_attribute(fingerprint_attribute, current_fingerprint)

    samples = context.query.samples(path)
    if not samples:
        return False

    result = resolve_consensus(samples, current_fingerprint)
    if not isinstance(result, Agreed):
        logger.debug("No consensus for %s (%s)", path, result.reason)
        return False

    processor.set_attribute("width", str(result.width))
    processor.set_attribute("height", str(result.height))
    if kind is MediaKind.VIDEO:
        style = f"height: auto; width: 100%; aspect-ratio: {result.width} / {result.height};"
        old_style = processor.get_attribute("style")
        if isinstance(old_style, str):
            style += old_style
        processor.set_attribute("style", style)

    context.applied[path] = (result.width, result.height)
    logger.debug("Applied %dx%d to %s %s", result.width, result.height, kind.value, path)
    return True
