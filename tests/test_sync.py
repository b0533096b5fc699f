"""
Tests for rate limiting, sync state persistence and the page crawler.
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from notiongraph.extraction import BlockTreeProcessor
from notiongraph.importers.mock import MockStore, make_block, make_page
from notiongraph.models import OperationStatus, RunStats
from notiongraph.models.canonical import EPOCH_ZERO
from notiongraph.ratelimit import RateLimiter
from notiongraph.sync import CrawlPhase, PageCrawler, SyncStateStore


class FakeClock:
    """Manual clock whose sleep advances time instead of waiting."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestRateLimiter(unittest.IsolatedAsyncioTestCase):
    """Test minimum spacing between remote calls."""

    def setUp(self):
        self.clock = FakeClock()
        self.limiter = RateLimiter(350, clock=self.clock, sleep=self.clock.sleep)

    async def test_first_call_is_not_delayed(self):
        self.assertEqual(await self.limiter.wait(), 0.0)
        self.assertEqual(self.clock.sleeps, [])

    async def test_back_to_back_calls_are_spaced(self):
        """Test two immediate calls are at least 350ms apart."""
        await self.limiter.wait()
        first = self.clock.now
        await self.limiter.wait()
        second = self.clock.now

        self.assertGreaterEqual(second - first, 0.35 - 1e-9)
        self.assertEqual(len(self.clock.sleeps), 1)

    async def test_call_after_interval_is_not_delayed(self):
        """Test a call 500ms after the previous one incurs no added delay."""
        await self.limiter.wait()
        self.clock.now += 0.5
        self.assertEqual(await self.limiter.wait(), 0.0)
        self.assertEqual(self.clock.sleeps, [])

    async def test_partial_wait(self):
        await self.limiter.wait()
        self.clock.now += 0.1
        self.assertAlmostEqual(await self.limiter.wait(), 0.25)

    async def test_spacing_is_shared_by_all_callers(self):
        """Test one limiter spaces calls made by different components."""
        processor = BlockTreeProcessor(MockStore(), self.limiter)
        await self.limiter.wait()
        await processor.fetch_all("page")
        self.assertAlmostEqual(self.clock.sleeps[0], 0.35)


class TestSyncStateStore(unittest.TestCase):
    """Test sync state loading, comparison and persistence."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.state_path = Path(self.temp_dir) / "sync_state.json"
        self.store = SyncStateStore(str(self.state_path))

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_missing_file_starts_fresh(self):
        state = self.store.load()
        self.assertEqual(state.last_sync_time, EPOCH_ZERO)
        self.assertEqual(state.processed_pages, {})

    def test_corrupt_file_starts_fresh(self):
        """Test corrupt JSON never fails the caller."""
        self.state_path.write_text("{not json")
        self.assertEqual(self.store.load().processed_pages, {})

    def test_wrong_schema_starts_fresh(self):
        self.state_path.write_text(json.dumps(["not", "a", "state"]))
        self.assertEqual(self.store.load().processed_pages, {})

    def test_should_process_uses_inequality(self):
        """Test any timestamp difference counts as a change."""
        self.store.load()
        self.assertTrue(self.store.should_process("page", "2024-05-01T00:00:00.000Z"))

        self.store.record("page", "2024-05-01T00:00:00.000Z")
        self.assertFalse(self.store.should_process("page", "2024-05-01T00:00:00.000Z"))
        self.assertTrue(self.store.should_process("page", "2024-06-01T00:00:00.000Z"))
        # An older-looking timestamp is still a change
        self.assertTrue(self.store.should_process("page", "2023-01-01T00:00:00.000Z"))

    def test_ids_are_hyphen_insensitive(self):
        self.store.load()
        self.store.record("abc-def", "t1")
        self.assertFalse(self.store.should_process("abcdef", "t1"))
        self.assertEqual(self.store.recorded_timestamp("ab-cdef"), "t1")

    def test_persist_and_reload(self):
        """Test the state file round trip and its JSON schema."""
        self.store.load()
        self.store.record("abc-def", "t1")
        self.store.persist()

        raw = json.loads(self.state_path.read_text())
        self.assertEqual(raw["processedPages"], {"abcdef": "t1"})
        self.assertNotEqual(raw["lastSyncTime"], EPOCH_ZERO)

        reloaded = SyncStateStore(str(self.state_path))
        self.assertTrue(reloaded.should_process("abcdef", "t1"))  # not loaded yet
        reloaded.load()
        self.assertFalse(reloaded.should_process("abcdef", "t1"))
        self.assertEqual(list(Path(self.temp_dir).glob(".sync_state_*")), [])

    def test_load_normalizes_legacy_keys(self):
        self.state_path.write_text(json.dumps({
            "lastSyncTime": EPOCH_ZERO,
            "processedPages": {"ABC-DEF": "t1"}
        }))
        self.store.load()
        self.assertFalse(self.store.should_process("abcdef", "t1"))

    def test_missing_timestamp_is_remembered(self):
        """Test a document without an edit timestamp is unchanged on the next check."""
        self.store.load()
        self.store.record("c", None)
        self.assertFalse(self.store.should_process("c", None))
        self.assertTrue(self.store.should_process("c", "t1"))

    def test_null_timestamp_in_file_keeps_state(self):
        """Test a null entry does not discard the rest of the persisted state."""
        self.state_path.write_text(json.dumps({
            "lastSyncTime": EPOCH_ZERO,
            "processedPages": {"a": "t1", "b": None}
        }))
        self.store.load()

        self.assertFalse(self.store.should_process("a", "t1"))
        self.assertFalse(self.store.should_process("b", None))

        self.store.persist()
        self.assertIsNone(json.loads(self.state_path.read_text())["processedPages"]["b"])

    def test_reset(self):
        self.store.load()
        self.store.record("a", "t1")
        self.store.reset()
        self.assertTrue(self.store.should_process("a", "t1"))


class CrawlerTestCase(unittest.IsolatedAsyncioTestCase):
    """Shared fixtures for crawler tests."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.state_store = SyncStateStore(str(Path(self.temp_dir) / "sync_state.json"))
        self.state_store.load()
        self.store = MockStore()
        self.stats = RunStats()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def make_crawler(self, search_sweep: bool = False) -> PageCrawler:
        limiter = RateLimiter(0)
        processor = BlockTreeProcessor(self.store, limiter, stats=self.stats)
        return PageCrawler(self.store, limiter, self.state_store, processor,
                           stats=self.stats, search_sweep=search_sweep)


class TestHierarchyWalk(CrawlerTestCase):
    """Test the hierarchy walk phase."""

    async def test_cycle_and_diamond_visit_each_page_once(self):
        """Test a cyclic, diamond-shaped hierarchy is visited once per page."""
        self.store.add_page(make_page("root"), [
            make_block("a", "child_page", title="A"),
            make_block("b", "child_page", title="B"),
        ])
        self.store.add_page(make_page("a"), [
            make_block("c", "child_page", title="C"),
            make_block("root", "child_page", title="Root"),
        ])
        self.store.add_page(make_page("b"), [make_block("c", "child_page", title="C")])
        self.store.add_page(make_page("c"), [make_block("a", "child_page", title="A")])

        result = await self.make_crawler().crawl("root")

        self.assertEqual([d.id for d in result.documents], ["root", "a", "c", "b"])
        fetched = self.store.calls_for("get_document")
        self.assertEqual(sorted(fetched), ["a", "b", "c", "root"])

    async def test_hyphenated_child_ids_share_the_visited_set(self):
        self.store.add_page(make_page("aaaa-bbbb"), [make_block("cccc-dddd", "child_page", title="C")])
        self.store.add_page(make_page("ccccdddd"), [make_block("aaaabbbb", "child_page", title="A")])

        result = await self.make_crawler().crawl("aaaabbbb")

        self.assertEqual(len(result.documents), 2)
        self.assertEqual(len(self.store.calls_for("get_document")), 2)

    async def test_unchanged_page_contributes_nothing(self):
        """Test an unchanged page is skipped without exploring its children."""
        self.store.add_page(make_page("parent", last_edited_time="T"), [
            make_block("child", "child_page", title="Child"),
        ])
        self.store.add_page(make_page("child"))
        self.state_store.record("parent", "T")

        result = await self.make_crawler().crawl("parent")

        self.assertEqual(result.documents, [])
        self.assertEqual(self.store.calls_for("list_child_blocks"), [])
        self.assertNotIn("child", self.store.calls_for("get_document"))
        self.assertEqual(self.stats.count(OperationStatus.SKIPPED, "crawl_page"), 1)

    async def test_changed_page_is_recorded(self):
        self.store.add_page(make_page("page", last_edited_time="2023-01-01T00:00:00.000Z"))
        self.state_store.record("page", "2024-01-01T00:00:00.000Z")

        result = await self.make_crawler().crawl("page")

        self.assertEqual([d.id for d in result.documents], ["page"])
        self.assertEqual(self.state_store.recorded_timestamp("page"), "2023-01-01T00:00:00.000Z")

    async def test_child_pages_nested_in_blocks_are_found(self):
        self.store.add_page(make_page("root"), [make_block("toggle", "toggle", has_children=True)])
        self.store.set_children("toggle", [make_block("nested", "child_page", title="Nested")])
        self.store.add_page(make_page("nested"))

        result = await self.make_crawler().crawl("root")
        self.assertEqual([d.id for d in result.documents], ["root", "nested"])

    async def test_failing_page_does_not_abort_crawl(self):
        """Test per-page failures are logged and contribute nothing."""
        self.store.add_page(make_page("root"), [
            make_block("broken", "child_page", title="Broken"),
            make_block("hidden", "child_page", title="Hidden"),
            make_block("fine", "child_page", title="Fine"),
        ])
        self.store.add_page(make_page("broken"))
        self.store.add_page(make_page("fine"))
        self.store.fail("broken")
        self.store.hide("hidden")

        result = await self.make_crawler().crawl("root")

        self.assertEqual([d.id for d in result.documents], ["root", "fine"])
        self.assertEqual(self.stats.count(OperationStatus.FAILED, "crawl_page"), 1)
        self.assertEqual(self.stats.count(OperationStatus.SKIPPED, "crawl_page"), 1)

    async def test_state_is_persisted_after_crawl(self):
        self.store.add_page(make_page("root-page", last_edited_time="T1"))
        crawler = self.make_crawler()

        await crawler.crawl("root-page")

        self.assertEqual(crawler.phase, CrawlPhase.DONE)
        saved = json.loads(self.state_store.state_path.read_text())
        self.assertEqual(saved["processedPages"], {"rootpage": "T1"})

    async def test_state_is_persisted_when_crawl_aborts(self):
        crawler = self.make_crawler()
        self.state_store.record("seen", "T1")

        with patch.object(crawler, "walk_hierarchy", side_effect=RuntimeError("boom")):
            with self.assertRaises(RuntimeError):
                await crawler.crawl("root")

        self.assertTrue(self.state_store.state_path.exists())
        self.assertEqual(crawler.phase, CrawlPhase.DONE)


class TestSearchSweep(CrawlerTestCase):
    """Test the recently-edited search sweep phase."""

    async def test_sweep_adds_unreachable_pages_once(self):
        """Test pages outside the hierarchy are collected without duplicates."""
        self.store.add_page(make_page("root", last_edited_time="2024-01-01T00:00:00.000Z"))
        self.store.add_page(make_page("orphan", last_edited_time="2024-03-01T00:00:00.000Z"))
        self.store.add_page(make_page("known", last_edited_time="2024-02-01T00:00:00.000Z"))
        self.state_store.record("known", "2024-02-01T00:00:00.000Z")

        result = await self.make_crawler(search_sweep=True).crawl("root")

        self.assertEqual([d.id for d in result.hierarchy], ["root"])
        self.assertEqual([d.id for d in result.search], ["orphan"])
        self.assertEqual(self.state_store.recorded_timestamp("orphan"), "2024-03-01T00:00:00.000Z")

    async def test_sweep_follows_cursors(self):
        for index in range(5):
            self.store.add_page(make_page(f"page-{index}", last_edited_time=f"2024-01-0{index + 1}T00:00:00.000Z"))

        crawler = self.make_crawler(search_sweep=True)
        crawler.page_size = 2
        result = await crawler.crawl(None)

        self.assertEqual(len(result.search), 5)
        self.assertEqual(result.search[0].id, "page-4")
        self.assertEqual(len(self.store.calls_for("search")), 3)

    async def test_sweep_matches_hyphenated_ids(self):
        self.store.add_page(make_page("aaaabbbb"))
        self.store.search_results = [make_page("aaaa-bbbb")]

        result = await self.make_crawler(search_sweep=True).crawl("aaaabbbb")

        self.assertEqual(len(result.documents), 1)

    async def test_search_failure_keeps_hierarchy_results(self):
        self.store.add_page(make_page("root"))
        self.store.fail("")

        result = await self.make_crawler(search_sweep=True).crawl("root")

        self.assertEqual([d.id for d in result.documents], ["root"])
        self.assertEqual(self.stats.count(OperationStatus.FAILED, "search"), 1)


if __name__ == '__main__':
    unittest.main()
