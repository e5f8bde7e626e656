"""Tests for the JSON measurement store."""

import json

from intrinsic_dimensions.fingerprint import fingerprint
from intrinsic_dimensions.models.measurement import MeasurementRecord
from intrinsic_dimensions.models.store import MeasurementStore
from intrinsic_dimensions.store.measurement_store import MeasurementStoreManager
from intrinsic_dimensions.url_utils import normalize_url, page_id_from_url

URL = "https://example.com/"


def _contribution(width=800, height=600, sources=("a.jpg",), path="/img"):
    return {
        path: {
            "intrinsicDimensions": {
                "width": width,
                "height": height,
                "fingerprint": fingerprint(list(sources)),
            },
        },
    }


class TestLoadSave:

    def test_load_creates_new_when_missing(self, store_manager):
        store = store_manager.load()
        assert store.target_url == "https://example.com/"
        assert store.pages == {}

    def test_load_handles_corrupt_file(self, store_manager):
        store_manager.path.write_text("not valid json {{{")
        store = store_manager.load()
        assert store.pages == {}

    def test_save_creates_parent_dirs(self, tmp_path):
        manager = MeasurementStoreManager(tmp_path / "deep" / "nested" / "store.json")
        manager.save(MeasurementStore())
        assert manager.path.exists()

    def test_save_sets_last_updated(self, store_manager):
        store = MeasurementStore()
        store_manager.save(store)
        assert store.last_updated != ""

    def test_saved_with_camel_case_key(self, store_manager):
        store = store_manager.load()
        store_manager.ingest(store, URL, _contribution())
        store_manager.save(store)
        raw = json.loads(store_manager.path.read_text())
        page = next(iter(raw["pages"].values()))
        assert "intrinsicDimensions" in page["visits"][0]["elements"]["/img"]

    def test_roundtrip_preserves_records(self, store_manager, record_a):
        store = store_manager.load()
        store_manager.ingest(store, URL, _contribution())
        store_manager.save(store)

        loaded = store_manager.load()
        samples = store_manager.query_for(loaded, URL).samples("/img")
        assert list(samples) == [record_a]

    def test_reset_deletes_file(self, store_manager):
        store_manager.save(MeasurementStore())
        store_manager.reset()
        assert not store_manager.path.exists()
        store_manager.reset()


class TestIngest:

    def test_appends_visit(self, store_manager):
        store = store_manager.load()
        visit = store_manager.ingest(store, URL, _contribution(), visit_id="visit_1")
        page = store.pages[page_id_from_url(URL)]
        assert page.visits == [visit]
        assert visit.visit_id == "visit_1"
        assert page.url == normalize_url(URL)
        assert page.last_captured != ""

    def test_generates_visit_id(self, store_manager):
        visit = store_manager.ingest(store_manager.load(), URL, _contribution())
        assert visit.visit_id.startswith("visit_")

    def test_trims_to_retention(self, store_manager):
        store = store_manager.load()
        for i in range(5):
            store_manager.ingest(store, URL, _contribution(width=i), visit_id=f"v{i}")
        visits = store.pages[page_id_from_url(URL)].visits
        assert [v.visit_id for v in visits] == ["v2", "v3", "v4"]

    def test_invalid_entries_dropped(self, store_manager):
        contribution = {
            **_contribution(path="/ok"),
            **_contribution(path="/negative", width=-1),
            "/bad-hash": {"intrinsicDimensions": {"width": 1, "height": 1, "fingerprint": "zz"}},
            "/not-a-dict": "oops",
        }
        visit = store_manager.ingest(store_manager.load(), URL, contribution)
        assert list(visit.elements) == ["/ok"]

    def test_element_without_dimensions_kept(self, store_manager):
        visit = store_manager.ingest(store_manager.load(), URL, {"/lcp": {"isLCP": True}})
        assert visit.elements["/lcp"].intrinsic_dimensions is None

    def test_same_page_with_trailing_slash(self, store_manager):
        store = store_manager.load()
        store_manager.ingest(store, "https://example.com/about", _contribution())
        store_manager.ingest(store, "https://example.com/about/", _contribution())
        assert len(store.pages) == 1


class TestQueryFor:

    def test_collects_samples_across_visits(self, store_manager):
        store = store_manager.load()
        store_manager.ingest(store, URL, _contribution(width=800))
        store_manager.ingest(store, URL, _contribution(width=400))
        samples = store_manager.query_for(store, URL).samples("/img")
        assert [s.width for s in samples] == [800, 400]

    def test_missing_dimensions_reported_as_none(self, store_manager):
        store = store_manager.load()
        store_manager.ingest(store, URL, _contribution())
        store_manager.ingest(store, URL, {"/img": {}})
        samples = store_manager.query_for(store, URL).samples("/img")
        assert isinstance(samples[0], MeasurementRecord)
        assert samples[1] is None

    def test_unknown_page(self, store_manager):
        query = store_manager.query_for(store_manager.load(), "https://other.example/")
        assert query.samples("/img") == ()

    def test_pages_are_separate(self, store_manager):
        store = store_manager.load()
        store_manager.ingest(store, "https://example.com/a", _contribution())
        query = store_manager.query_for(store, "https://example.com/b")
        assert query.samples("/img") == ()


class TestSummarize:

    def test_counts_visits_and_elements(self, store_manager):
        store = store_manager.load()
        store_manager.ingest(store, URL, _contribution(path="/one"))
        store_manager.ingest(store, URL, {**_contribution(path="/one"), **_contribution(path="/two")})
        rows = store_manager.summarize(store)
        assert len(rows) == 1
        assert rows[0]["visits"] == 2
        assert rows[0]["elements"] == 2
        assert rows[0]["url"] == "https://example.com/"


class TestUrlUtils:

    def test_strips_fragment(self):
        assert normalize_url("https://example.com/a#top") == "https://example.com/a"

    def test_sorts_query(self):
        assert normalize_url("https://example.com/a?z=1&a=2") == "https://example.com/a?a=2&z=1"

    def test_lowercases_host(self):
        assert page_id_from_url("https://EXAMPLE.com/") == page_id_from_url("https://example.com")
