"""Tests for the capture agent and its per-visit capture context."""

import asyncio
from typing import Optional

import pytest

from intrinsic_dimensions.capture.agent import CaptureContext, initialize
from intrinsic_dimensions.fingerprint import fingerprint
from intrinsic_dimensions.models.config import AttributeConfig
from intrinsic_dimensions.models.measurement import MediaKind

FP = fingerprint(["a.jpg"])
IMG_PATH = "/*[1][self::BODY]/*[1][self::IMG]"


class FakeMediaElement:
    """In-memory stand-in for a rendered IMG/VIDEO."""

    def __init__(
        self,
        kind: MediaKind = MediaKind.IMAGE,
        path: Optional[str] = IMG_PATH,
        stamped: Optional[str] = FP,
        size: tuple[int, int] = (800, 600),
        ready: bool = True,
    ):
        self.kind = kind
        self.attributes = {}
        if path is not None:
            self.attributes["data-od-xpath"] = path
        if stamped is not None:
            self.attributes["data-od-intrinsic-dimensions-src-hash"] = stamped
        self.size = size
        self.ready = ready
        self._loaded: Optional[asyncio.Event] = None

    def _event(self) -> asyncio.Event:
        if self._loaded is None:
            self._loaded = asyncio.Event()
        return self._loaded

    async def get_attribute(self, name):
        return self.attributes.get(name)

    async def is_ready(self):
        return self.ready

    async def wait_until_ready(self):
        if not self.ready:
            await self._event().wait()

    async def intrinsic_size(self):
        return self.size

    def finish_loading(self):
        self.ready = True
        self._event().set()


class TestInitialize:

    @pytest.mark.asyncio
    async def test_complete_image_captured_before_finalize(self):
        context = await initialize([FakeMediaElement()])
        assert context.finalize() == {
            IMG_PATH: {"intrinsicDimensions": {"width": 800, "height": 600, "fingerprint": FP}},
        }

    @pytest.mark.asyncio
    async def test_loading_image_absent_from_finalize(self):
        element = FakeMediaElement(ready=False)
        context = await initialize([element])
        assert context.finalize() == {}
        assert context.pending_count == 1
        context.close()

    @pytest.mark.asyncio
    async def test_loading_image_captured_once_loaded(self):
        element = FakeMediaElement(ready=False, size=(1024, 768))
        context = await initialize([element])
        element.finish_loading()
        await context.settle(1.0)

        data = context.finalize()
        assert data[IMG_PATH]["intrinsicDimensions"]["width"] == 1024
        assert data[IMG_PATH]["intrinsicDimensions"]["height"] == 768
        assert context.pending_count == 0

    @pytest.mark.asyncio
    async def test_video_with_metadata(self):
        path = "/*[1][self::BODY]/*[1][self::VIDEO]"
        video_fp = fingerprint(["v.mp4"])
        element = FakeMediaElement(kind=MediaKind.VIDEO, path=path, stamped=video_fp, size=(640, 360))
        context = await initialize([element])
        assert context.records[path].dimensions == (640, 360)
        assert context.records[path].fingerprint == video_fp

    @pytest.mark.asyncio
    async def test_uses_stamped_fingerprint(self):
        stamped = fingerprint(["whatever-the-server-saw.jpg"])
        context = await initialize([FakeMediaElement(stamped=stamped)])
        assert context.records[IMG_PATH].fingerprint == stamped

    @pytest.mark.asyncio
    async def test_unstamped_elements_skipped(self):
        context = await initialize([
            FakeMediaElement(path=None),
            FakeMediaElement(stamped=None),
            FakeMediaElement(path=""),
        ])
        assert context.finalize() == {}
        assert context.pending_count == 0

    @pytest.mark.asyncio
    async def test_malformed_stamp_discarded(self):
        context = await initialize([FakeMediaElement(stamped="not-a-digest")])
        assert context.finalize() == {}

    @pytest.mark.asyncio
    async def test_custom_attribute_names(self):
        element = FakeMediaElement(path=None, stamped=None)
        element.attributes = {"data-path": "/p", "data-hash": FP}
        attributes = AttributeConfig(path_attribute="data-path", fingerprint_attribute="data-hash")
        context = await initialize([element], attributes=attributes)
        assert "/p" in context.records

    @pytest.mark.asyncio
    async def test_failing_element_skipped(self):
        class Detached(FakeMediaElement):
            async def is_ready(self):
                raise RuntimeError("Element is not attached to the DOM")

        other = FakeMediaElement(path="/other")
        context = await initialize([Detached(), other])
        assert list(context.records) == ["/other"]

    @pytest.mark.asyncio
    async def test_deferred_failure_contributes_nothing(self):
        class Broken(FakeMediaElement):
            async def intrinsic_size(self):
                raise RuntimeError("Target closed")

        element = Broken(ready=False)
        context = await initialize([element])
        element.finish_loading()
        await context.settle(1.0)
        assert context.finalize() == {}

    @pytest.mark.asyncio
    async def test_reuses_given_context(self):
        context = CaptureContext()
        returned = await initialize([FakeMediaElement()], context)
        assert returned is context
        assert IMG_PATH in context.records


class TestCaptureContext:

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self):
        first = await initialize([FakeMediaElement(path="/a")])
        second = await initialize([FakeMediaElement(path="/b")])
        assert list(first.finalize()) == ["/a"]
        assert list(second.finalize()) == ["/b"]

    @pytest.mark.asyncio
    async def test_settle_without_timeout_does_not_wait(self):
        element = FakeMediaElement(ready=False)
        context = await initialize([element])
        await context.settle(0)
        assert context.pending_count == 1
        context.close()

    @pytest.mark.asyncio
    async def test_settle_gives_up_after_timeout(self):
        context = await initialize([FakeMediaElement(ready=False)])
        await context.settle(0.01)
        assert context.finalize() == {}
        context.close()

    @pytest.mark.asyncio
    async def test_close_cancels_pending(self):
        element = FakeMediaElement(ready=False)
        context = await initialize([element])
        context.close()
        await asyncio.sleep(0)
        element.finish_loading()
        await asyncio.sleep(0.01)
        assert context.finalize() == {}

    @pytest.mark.asyncio
    async def test_finalize_is_a_snapshot(self):
        element = FakeMediaElement(ready=False, path="/late")
        context = await initialize([FakeMediaElement(path="/early"), element])
        flushed = context.finalize()
        element.finish_loading()
        await context.settle(1.0)
        assert list(flushed) == ["/early"]
        assert sorted(context.finalize()) == ["/early", "/late"]
