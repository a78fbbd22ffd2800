"""RethinkSync River: one table worker per mapping."""

import logging
import signal
import sys
import threading
import typing as t

import click

from . import __version__, settings
from .constants import RETHINKDB
from .exc import ConfigError
from .mapping import MappingSet
from .progress import ProgressRecorder
from .search_client import SearchClient
from .source import RethinkDBSource, Source
from .utils import (
    config_loader,
    format_number,
    MutuallyExclusiveOption,
    show_settings,
    threaded,
    Timer,
)
from .worker import TableWorker

logger = logging.getLogger(__name__)


class River(object):
    """
    Own the table workers and the shutdown token they share.

    doc = {
        'type': 'rethinkdb',
        'rethinkdb': {
            'host': 'localhost',
            'port': 28015,
            'databases': {'blog': {'posts': {'backfill': True}}},
        },
    }
    """

    def __init__(
        self,
        doc: dict,
        search_client: t.Optional[SearchClient] = None,
        source: t.Optional[Source] = None,
        batch_size: t.Optional[int] = None,
        index: t.Optional[str] = None,
        name: t.Optional[str] = None,
    ):
        self.doc: dict = doc
        section: dict = doc.get(RETHINKDB, doc)
        self.mappings: MappingSet = MappingSet.from_config(section)
        self.source: Source = source or RethinkDBSource.from_config(section)
        self.search_client: SearchClient = search_client or SearchClient()
        self.recorder: ProgressRecorder = ProgressRecorder(
            self.search_client,
            self.mappings.total_size,
            index=index,
            name=name,
        )
        self.batch_size: t.Optional[int] = batch_size
        self.shutdown: threading.Event = threading.Event()
        self.workers: t.List[TableWorker] = []
        self.threads: t.List[threading.Thread] = []
        self._started: bool = False
        self._stopped: bool = False
        self._lock: threading.RLock = threading.RLock()

    @classmethod
    def load(
        cls,
        search_client: SearchClient,
        index: t.Optional[str] = None,
        name: t.Optional[str] = None,
        **kwargs,
    ) -> "River":
        """Build the river from the document stored in the search cluster."""
        index = index or settings.RIVER_INDEX
        name = name or settings.RIVER_NAME
        doc: t.Optional[dict] = search_client.get_document(index, name)
        if doc is None:
            raise ConfigError(f"River document {index}/{name} not found")
        return cls(
            doc, search_client=search_client, index=index, name=name, **kwargs
        )

    @property
    def alive(self) -> t.List[TableWorker]:
        """Workers whose thread is still running."""
        return [
            worker
            for worker, thread in zip(self.workers, self.threads)
            if thread.is_alive()
        ]

    def start(self) -> None:
        with self._lock:
            if self._started or self._stopped:
                return
            self._started = True
            logger.info(
                f"Starting rethinkdb river with {len(self.mappings)} tables "
                f"from {self.source.address}"
            )
            for mapping in self.mappings:
                worker: TableWorker = TableWorker(
                    mapping,
                    self.source,
                    self.search_client,
                    self.recorder,
                    self.shutdown,
                    batch_size=self.batch_size,
                )
                self.workers.append(worker)
                self.threads.append(worker.start())

    def stop(self, timeout: t.Optional[float] = None) -> None:
        """
        Stop every worker.

        The shutdown token is set before any worker is interrupted so that
        errors raised by the interruption are recognised as shutdown noise.
        """
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        logger.info("Closing rethinkdb river")
        self.shutdown.set()
        for worker in self.workers:
            worker.interrupt()
        timeout = timeout or settings.SHUTDOWN_TIMEOUT
        for thread in self.threads:
            thread.join(timeout)

    def join(self, timeout: t.Optional[float] = None) -> None:
        for thread in self.threads:
            thread.join(timeout)

    def wait(self, interval: float = 1.0) -> None:
        """Block until shutdown is requested or every worker has exited."""
        while self.alive and not self.shutdown.wait(interval):
            pass

    @threaded
    def status(self) -> None:
        while not self.shutdown.wait(settings.LOG_INTERVAL):
            self._status()

    def _status(self) -> None:
        for worker in self.workers:
            sys.stdout.write(
                f"River {worker.mapping.db}.{worker.mapping.table} "
                f"[{worker.state}] "
                f"Backfill: [{format_number(worker.count['backfilled'])}] => "
                f"Changes: [{format_number(worker.count['synced'])}] => "
                f"{self.search_client.name}: "
                f"[{format_number(self.search_client.doc_count)}]...\n"
            )
        sys.stdout.flush()


@click.command()
@click.option(
    "--config",
    "-c",
    help="River config",
    type=click.Path(exists=True),
    default=settings.SCHEMA,
    show_default=True,
    cls=MutuallyExclusiveOption,
    mutually_exclusive=["s3_schema_url", "schema_url"],
)
@click.option(
    "--schema_url",
    help="URL for river config",
    type=click.STRING,
    default=settings.SCHEMA_URL,
    show_default=True,
    cls=MutuallyExclusiveOption,
    mutually_exclusive=["config", "s3_schema_url"],
)
@click.option(
    "--s3_schema_url",
    help="S3 URL for river config",
    type=click.STRING,
    default=settings.S3_SCHEMA_URL,
    show_default=True,
    cls=MutuallyExclusiveOption,
    mutually_exclusive=["config", "schema_url"],
)
@click.option(
    "--overwrite",
    is_flag=True,
    default=False,
    help="Replace the stored river document (resets backfill flags)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Turn on verbosity",
)
@click.option(
    "--version",
    is_flag=True,
    default=False,
    help="Show version info",
)
def main(
    config: str,
    schema_url: str,
    s3_schema_url: str,
    overwrite: bool,
    verbose: bool,
    version: bool,
) -> None:
    """Mirror RethinkDB tables into Elasticsearch/OpenSearch."""
    if version:
        sys.stdout.write(f"Version: {__version__}\n")
        return

    search_client: SearchClient = SearchClient()
    index: str = settings.RIVER_INDEX
    name: str = settings.RIVER_NAME

    if config or schema_url or s3_schema_url:
        doc: dict = config_loader(
            config=config, schema_url=schema_url, s3_schema_url=s3_schema_url
        )
        if overwrite or search_client.get_document(index, name) is None:
            logger.info(f"Storing river document {index}/{name}")
            search_client.put_document(index, name, doc)
        else:
            logger.info(
                f"River document {index}/{name} exists, "
                f"use --overwrite to replace it"
            )

    try:
        river: River = River.load(search_client, index=index, name=name)
    except ConfigError as e:
        raise click.UsageError(
            f"{e.value}. Provide --config (or SCHEMA env var), "
            f"--schema_url (or SCHEMA_URL env var) or "
            f"--s3_schema_url (or S3_SCHEMA_URL env var)."
        )

    show_settings(
        doc=river.doc,
        config=config,
        schema_url=schema_url,
        s3_schema_url=s3_schema_url,
    )

    def handler(signum, frame) -> None:
        logger.info(f"Received signal {signum}")
        river.stop()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)

    with Timer():
        river.start()
        if verbose:
            river.status()
        river.wait()
        river.stop()
        search_client.close()


if __name__ == "__main__":
    main()
