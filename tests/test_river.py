"""River tests."""

import json

import pytest
from click.testing import CliRunner
from mock import patch

from rethinksync import __version__, settings
from rethinksync.constants import TERMINATED
from rethinksync.exc import ConfigError, InvalidMappingError, SourceError
from rethinksync.river import main, River
from rethinksync.source import Upsert
from rethinksync.worker import TableWorker

from .testing_utils import FakeSearchClient, FakeSource, FakeTable, wait_for


def river_doc(**tables):
    return {
        "type": "rethinkdb",
        "rethinkdb": {
            "host": "localhost",
            "port": 28015,
            "databases": {"blog": tables},
        },
    }


@pytest.fixture(scope="function")
def doc():
    return river_doc(
        posts={"backfill": False},
        comments={"backfill": False},
    )


@pytest.fixture(scope="function")
def tables():
    return {
        ("blog", "posts"): FakeTable(),
        ("blog", "comments"): FakeTable(),
    }


@pytest.fixture(scope="function")
def river(doc, tables, search_client):
    river = River(doc, search_client=search_client, source=FakeSource(tables))
    yield river
    river.stop(timeout=5)


class TestRiver(object):
    """River tests."""

    def test_mappings(self, river):
        assert len(river.mappings) == 2
        assert river.mappings.get("blog", "posts").index == "blog"
        assert river.recorder.retry_on_conflict == 3
        assert river.recorder.index == settings.RIVER_INDEX
        assert river.recorder.name == settings.RIVER_NAME

    def test_invalid_mapping(self, search_client, tables):
        with pytest.raises(InvalidMappingError):
            River(
                river_doc(posts={"backfil": True}),
                search_client=search_client,
                source=FakeSource(tables),
            )

    def test_start_is_idempotent(self, river, tables):
        river.start()
        river.start()
        assert len(river.workers) == 2
        assert len(river.threads) == 2
        assert wait_for(
            lambda: all(len(table.cursors) == 1 for table in tables.values())
        )

    def test_stop_is_idempotent(self, river):
        river.start()
        with patch("rethinksync.river.logger") as mock_logger:
            river.stop(timeout=5)
            river.stop(timeout=5)
        mock_logger.info.assert_called_once_with("Closing rethinkdb river")
        assert river.alive == []
        for worker in river.workers:
            assert worker.state == TERMINATED
            assert worker.error is None

    def test_start_after_stop(self, river):
        river.stop(timeout=5)
        river.start()
        assert river.workers == []

    def test_shutdown_is_set_before_interrupt(self, river, tables):
        seen = []
        interrupt = TableWorker.interrupt

        def spy(worker):
            seen.append(worker.shutdown.is_set())
            interrupt(worker)

        river.start()
        assert wait_for(
            lambda: all(len(table.cursors) == 1 for table in tables.values())
        )
        with patch.object(TableWorker, "interrupt", spy):
            river.stop(timeout=5)
        assert seen == [True, True]

    def test_fatal_error_is_isolated(self, doc, search_client):
        posts = FakeTable()
        comments = FakeTable(feeds=[[SourceError("Out of memory")]])
        river = River(
            doc,
            search_client=search_client,
            source=FakeSource(
                {("blog", "posts"): posts, ("blog", "comments"): comments}
            ),
        )
        river.start()
        posts_worker, comments_worker = river.workers
        assert wait_for(lambda: comments_worker.state == TERMINATED)
        assert comments_worker.error is not None

        assert wait_for(lambda: len(posts.cursors) == 1)
        posts.emit(Upsert({"id": 7, "title": "Still here"}))
        assert wait_for(lambda: ("blog", "7") in search_client.documents)
        assert river.alive == [posts_worker]
        river.stop(timeout=5)
        assert posts_worker.error is None

    def test_wait_returns_when_every_worker_exits(self, search_client):
        table = FakeTable(feeds=[[SourceError("Out of memory")]])
        river = River(
            river_doc(posts={"backfill": False}),
            search_client=search_client,
            source=FakeSource({("blog", "posts"): table}),
        )
        river.start()
        river.wait(interval=0.01)
        assert river.alive == []
        assert not river.shutdown.is_set()
        river.stop(timeout=5)

    def test_load(self, doc, tables, search_client):
        search_client.put_document("river", "_meta", doc)
        river = River.load(
            search_client,
            index="river",
            name="_meta",
            source=FakeSource(tables),
        )
        assert river.doc == doc
        assert river.recorder.index == "river"
        assert river.recorder.name == "_meta"

    def test_load_missing_document(self, search_client):
        with pytest.raises(ConfigError) as excinfo:
            River.load(search_client, index="river", name="_meta")
        assert excinfo.value.value == "River document river/_meta not found"

    @patch("rethinksync.river.sys")
    def test_status(self, mock_sys, river):
        river.start()
        river._status()
        assert mock_sys.stdout.write.call_count == 2
        line = mock_sys.stdout.write.call_args_list[0][0][0]
        assert line.startswith("River blog.posts [")
        assert "Elasticsearch: [0]" in line


class TestMain(object):
    """Command line tests."""

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert result.output == f"Version: {__version__}\n"

    def test_mutually_exclusive_options(self, tmp_path):
        path = tmp_path / "river.json"
        path.write_text("{}")
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["--config", str(path), "--schema_url", "http://example.com"],
        )
        assert result.exit_code != 0
        assert "is mutually exclusive with" in result.output

    def test_missing_river_document(self):
        runner = CliRunner()
        with patch(
            "rethinksync.river.SearchClient", return_value=FakeSearchClient()
        ):
            result = runner.invoke(main, [])
        assert result.exit_code == 2
        assert "not found" in result.output

    def _run(self, search_client, args):
        runner = CliRunner()
        with patch(
            "rethinksync.river.SearchClient", return_value=search_client
        ), patch("rethinksync.river.signal"), patch.object(
            River, "start"
        ), patch.object(
            River, "wait"
        ):
            return runner.invoke(main, args)

    def test_stores_river_document(self, tmp_path):
        path = tmp_path / "river.json"
        path.write_text(
            json.dumps({"databases": {"blog": {"posts": {"backfill": True}}}})
        )
        search_client = FakeSearchClient()
        result = self._run(search_client, ["--config", str(path)])
        assert result.exit_code == 0, result.output
        assert search_client.documents[
            (settings.RIVER_INDEX, settings.RIVER_NAME)
        ] == {
            "type": "rethinkdb",
            "rethinkdb": {"databases": {"blog": {"posts": {"backfill": True}}}},
        }

    def test_keeps_existing_river_document(self, tmp_path):
        path = tmp_path / "river.json"
        path.write_text(
            json.dumps({"databases": {"blog": {"posts": {"backfill": True}}}})
        )
        key = (settings.RIVER_INDEX, settings.RIVER_NAME)
        existing = river_doc(posts={"backfill": False})
        search_client = FakeSearchClient()
        search_client.documents[key] = existing

        result = self._run(search_client, ["--config", str(path)])
        assert result.exit_code == 0, result.output
        assert search_client.documents[key] == existing

        result = self._run(
            search_client, ["--config", str(path), "--overwrite"]
        )
        assert result.exit_code == 0, result.output
        assert search_client.documents[key]["rethinkdb"]["databases"] == {
            "blog": {"posts": {"backfill": True}}
        }
