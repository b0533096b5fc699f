"""
End-to-end tests for the graph pipeline, the Notion API store and the
command line entry point.
"""

import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import httpx

import main
from notiongraph.config import ConfigManager
from notiongraph.database import DatabaseManager
from notiongraph.importers import MockStore, NotionAPIStore, ObjectNotFoundError, RemoteStoreError
from notiongraph.models import NodeType, OperationStatus, PageNode
from notiongraph.pipeline import GraphPipeline, log_permission_summary
from notiongraph.ratelimit import RateLimiter


def write_config(directory: Path, database_enabled: bool = True) -> Path:
    config_path = directory / "config.yaml"
    config_path.write_text(f"""
notion:
  root_page_id: null
crawl:
  rate_limit_ms: 0
  ignore_inline_linked_databases: false
paths:
  state_file: "{directory / 'state' / 'sync_state.json'}"
  output_file: "{directory / 'public' / 'graph.json'}"
  log_file: "{directory / 'notiongraph.log'}"
database:
  enabled: {str(database_enabled).lower()}
  filename: "{directory / 'runs.db'}"
""")
    return config_path


class TestGraphPipeline(unittest.IsolatedAsyncioTestCase):
    """Test a full crawl -> extract -> cluster -> write run on the sample workspace."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config = ConfigManager(str(write_config(self.temp_dir)))
        self.store = MockStore.sample()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def make_pipeline(self, database=None) -> GraphPipeline:
        return GraphPipeline(self.store, self.config, database=database, limiter=RateLimiter(0))

    async def test_sample_run(self):
        """Test the sample workspace produces the expected graph document."""
        document = await self.make_pipeline().run(MockStore.SAMPLE_ROOT_ID)

        nodes = {node.id: node for node in document.nodes}
        self.assertEqual(list(nodes), ["root0001", "people0001", "journal0001",
                                       "hidden0001", "projects0001", "projb"])
        self.assertEqual(nodes["hidden0001"].type, NodeType.UNKNOWN)
        self.assertEqual(nodes["journal0001"].type, NodeType.PAGE)
        self.assertEqual(nodes["projb"].type, NodeType.DATABASE_ITEM)
        self.assertEqual(nodes["projb"].tags, ["active"])
        self.assertEqual(nodes["root0001"].label, "Knowledge Base")

        self.assertEqual(len(document.edges), 6)
        self.assertIn(("projects0001", "projb", "relation"),
                      [(e.source, e.target, e.type.value) for e in document.edges])
        for edge in document.edges:
            self.assertIn(edge.source, nodes)
            self.assertIn(edge.target, nodes)

        self.assertEqual(len(document.clusters.by_connections), 1)
        self.assertEqual([c.id for c in document.clusters.by_tags],
                         ["tag-hub", "tag-directory", "tag-work", "tag-active", "uncategorized"])

        written = json.loads(Path(self.config.output_filename).read_text())
        self.assertEqual(len(written["nodes"]), 6)
        self.assertIn("byConnections", written["clusters"])
        self.assertTrue(Path(self.config.state_filename).exists())

    async def test_second_run_without_changes(self):
        """Test an unchanged workspace leaves the graph untouched."""
        await self.make_pipeline().run(MockStore.SAMPLE_ROOT_ID)
        output = Path(self.config.output_filename)
        before = output.read_text()

        self.assertIsNone(await self.make_pipeline().run(MockStore.SAMPLE_ROOT_ID))
        self.assertEqual(output.read_text(), before)

    async def test_edit_is_picked_up(self):
        await self.make_pipeline().run(MockStore.SAMPLE_ROOT_ID)
        self.store.pages["journal0001"]["last_edited_time"] = "2024-03-01T00:00:00.000Z"

        document = await self.make_pipeline().run(MockStore.SAMPLE_ROOT_ID)

        self.assertEqual([node.id for node in document.nodes], ["journal0001", "projb"])

    async def test_full_resync(self):
        await self.make_pipeline().run(MockStore.SAMPLE_ROOT_ID)
        document = await self.make_pipeline().run(MockStore.SAMPLE_ROOT_ID, full_resync=True)
        self.assertEqual(len(document.nodes), 6)

    async def test_runs_are_recorded(self):
        """Test each run lands in the DuckDB ledger with its outcomes."""
        with DatabaseManager(self.config.database_filename) as db:
            db.initialize_database()
            await self.make_pipeline(db).run(MockStore.SAMPLE_ROOT_ID)
            await self.make_pipeline(db).run(MockStore.SAMPLE_ROOT_ID)

            runs = db.list_runs()
            self.assertEqual(len(runs), 2)
            first = runs[-1]
            self.assertTrue(first["success"])
            self.assertEqual(first["documents"], 5)
            self.assertEqual(first["nodes"], 6)
            self.assertEqual(runs[0]["documents"], 0)

            skipped = db.get_outcomes(first["run_id"], OperationStatus.SKIPPED)
            self.assertIn("hidden-0001", [outcome.subject_id for outcome in skipped])

    async def test_failed_run_is_recorded(self):
        with DatabaseManager(self.config.database_filename) as db:
            db.initialize_database()
            pipeline = self.make_pipeline(db)

            with patch("notiongraph.pipeline.generate_clusters", side_effect=RuntimeError("boom")):
                with self.assertRaises(RuntimeError):
                    await pipeline.run(MockStore.SAMPLE_ROOT_ID)

            run = db.list_runs()[0]
            self.assertFalse(run["success"])
            self.assertEqual(run["error_message"], "boom")

    def test_permission_summary(self):
        nodes = [
            PageNode(id="a", label="A", url="u", type=NodeType.PAGE),
            PageNode(id="b", label="Unknown Page", url="u", type=NodeType.UNKNOWN),
        ]
        self.assertEqual(log_permission_summary(nodes), 1)


class TestNotionAPIStore(unittest.IsolatedAsyncioTestCase):
    """Test the Notion store against a mocked HTTP transport."""

    def setUp(self):
        self.requests = []
        self.responses = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, payload = self.responses.get(request.url.path, (200, {}))
        if isinstance(payload, bytes):
            return httpx.Response(status, content=payload)
        return httpx.Response(status, json=payload)

    def make_store(self) -> NotionAPIStore:
        return NotionAPIStore("secret-token", transport=httpx.MockTransport(self.handler))

    async def test_get_document_sends_headers(self):
        self.responses["/v1/pages/abc"] = (200, {"object": "page", "id": "abc"})

        async with self.make_store() as store:
            page = await store.get_document("abc")

        self.assertEqual(page["id"], "abc")
        request = self.requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(request.headers["Authorization"], "Bearer secret-token")
        self.assertEqual(request.headers["Notion-Version"], "2022-06-28")

    async def test_list_child_blocks_pagination(self):
        self.responses["/v1/blocks/abc/children"] = (200, {
            "results": [{"id": "b1", "type": "paragraph"}], "has_more": True, "next_cursor": "cur-2"
        })

        async with self.make_store() as store:
            page = await store.list_child_blocks("abc", cursor="cur-1", page_size=10)

        self.assertEqual(page.next_cursor, "cur-2")
        self.assertTrue(page.has_more)
        params = self.requests[0].url.params
        self.assertEqual(params["start_cursor"], "cur-1")
        self.assertEqual(params["page_size"], "10")

    async def test_search_body(self):
        """Test search asks for pages sorted by most recent edit."""
        self.responses["/v1/search"] = (200, {"results": [], "has_more": False, "next_cursor": None})

        async with self.make_store() as store:
            await store.search(cursor="next", page_size=50)

        request = self.requests[0]
        body = json.loads(request.content)
        self.assertEqual(request.method, "POST")
        self.assertEqual(body["sort"], {"direction": "descending", "timestamp": "last_edited_time"})
        self.assertEqual(body["filter"], {"property": "object", "value": "page"})
        self.assertEqual(body["start_cursor"], "next")
        self.assertEqual(body["page_size"], 50)

    async def test_query_database(self):
        self.responses["/v1/databases/db/query"] = (200, {"results": [{"id": "i1"}], "has_more": False})

        async with self.make_store() as store:
            page = await store.query_database("db")

        self.assertEqual(self.requests[0].method, "POST")
        self.assertEqual(page.results, [{"id": "i1"}])
        self.assertIsNone(page.next_cursor)

    async def test_not_found(self):
        self.responses["/v1/pages/missing"] = (404, {"object": "error", "code": "object_not_found"})

        async with self.make_store() as store:
            with self.assertRaises(ObjectNotFoundError):
                await store.get_document("missing")

    async def test_unreadable_success_body(self):
        """Test a 2xx response that is not JSON surfaces as a store error."""
        self.responses["/v1/pages/abc"] = (200, b"<html>maintenance</html>")

        async with self.make_store() as store:
            with self.assertRaises(RemoteStoreError) as ctx:
                await store.get_document("abc")

        self.assertNotIsInstance(ctx.exception, ObjectNotFoundError)

    async def test_server_error(self):
        self.responses["/v1/databases/db"] = (500, {"object": "error", "code": "internal_server_error"})

        async with self.make_store() as store:
            with self.assertRaises(RemoteStoreError) as ctx:
                await store.get_database_schema("db")

        self.assertNotIsInstance(ctx.exception, ObjectNotFoundError)

    async def test_from_config_reads_token(self):
        config = ConfigManager("does-not-exist.yaml")

        with patch.dict(os.environ, {"NOTION_TOKEN": "env-token"}):
            store = NotionAPIStore.from_config(config)
        try:
            self.assertEqual(store.client.headers["Authorization"], "Bearer env-token")
        finally:
            await store.close()

    def test_from_config_without_token(self):
        config = ConfigManager("does-not-exist.yaml")
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(RemoteStoreError):
                NotionAPIStore.from_config(config)


class TestMain(unittest.TestCase):
    """Test the command line entry point."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config_path = write_config(self.temp_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    @patch("main.setup_logging")
    def test_mock_importer_run(self, _setup_logging):
        main.main(["--config", str(self.config_path), "--importer", "mock"])

        graph = json.loads((self.temp_dir / "public" / "graph.json").read_text())
        self.assertEqual(len(graph["nodes"]), 6)
        self.assertTrue((self.temp_dir / "runs.db").exists())

    @patch("main.setup_logging")
    def test_output_override(self, _setup_logging):
        output = self.temp_dir / "custom.json"
        main.main(["--config", str(self.config_path), "--importer", "mock", "--output", str(output)])
        self.assertTrue(output.exists())

    @patch("main.setup_logging")
    def test_missing_token_exits_with_error(self, _setup_logging):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(SystemExit) as ctx:
                main.main(["--config", str(self.config_path), "--importer", "notion"])
        self.assertEqual(ctx.exception.code, 1)

    def test_arguments(self):
        args = main.parse_arguments(["--full", "--root-page", "abc"])
        self.assertTrue(args.full)
        self.assertEqual(args.root_page, "abc")
        self.assertEqual(args.importer, "notion")


if __name__ == '__main__':
    unittest.main()
