"""RethinkSync TableWorker.

One worker keeps one mapping's index converged with its source table:

1. Connect to the source and resolve the table's primary key.
2. Open the change feed cursor.
3. Backfill the table if required. The cursor is already open, so
   changes made while backfilling are queued rather than missed.
4. Apply every change from the cursor to the index.
5. On a transient source error, reconnect with exponential backoff.
   Any other error terminates this worker only.
"""

import logging
import threading
import typing as t

from . import settings
from .constants import (
    BACKFILLING,
    CONNECTING,
    RECONNECTING,
    RECOVERABLE_ERRORS,
    STREAMING,
    TERMINATED,
)
from .exc import SourceError
from .mapping import Mapping
from .progress import ProgressRecorder
from .search_client import SearchClient
from .sink import BulkSink
from .source import ChangeEvent, Connection, Cursor, Delete, Source
from .utils import format_number, threaded

logger = logging.getLogger(__name__)


def next_backoff(
    backoff: float, maximum: t.Optional[float] = None
) -> float:
    """Double the reconnect delay up to the ceiling."""
    maximum = maximum or settings.RECONNECT_MAX_BACKOFF
    return min(backoff * 2, maximum)


def error_message(error: Exception) -> str:
    if isinstance(error, SourceError):
        return str(error.value)
    return str(error)


def is_transient(error: Exception) -> bool:
    """True if the error matches a known transient source failure."""
    message: str = error_message(error)
    return any(pattern.search(message) for pattern in RECOVERABLE_ERRORS)


class TableWorker(object):
    """Backfill and tail the change feed of a single mapping."""

    def __init__(
        self,
        mapping: Mapping,
        source: Source,
        search_client: SearchClient,
        recorder: ProgressRecorder,
        shutdown: threading.Event,
        batch_size: t.Optional[int] = None,
    ):
        self.mapping: Mapping = mapping
        self.source: Source = source
        self.search_client: SearchClient = search_client
        self.recorder: ProgressRecorder = recorder
        self.shutdown: threading.Event = shutdown
        self.batch_size: int = batch_size or settings.BACKFILL_BATCH_SIZE
        self.label: str = f"[{mapping.db}.{mapping.table}]"
        self.sink: BulkSink = BulkSink(search_client, mapping, batch_size=1)

        self.connection: t.Optional[Connection] = None
        self.cursor: t.Optional[Cursor] = None
        self.primary_key: t.Optional[str] = None
        self.backfill_required: bool = mapping.backfill
        self.backoff: float = settings.RECONNECT_INITIAL_BACKOFF
        self.state: str = CONNECTING
        self.error: t.Optional[Exception] = None
        self.count: dict = dict(synced=0, backfilled=0)
        self._backfill_connection: t.Optional[Connection] = None
        self._lock: threading.Lock = threading.Lock()

    def is_recoverable(self, error: Exception) -> bool:
        # never recover into a connection that is about to be torn down
        if self.shutdown.is_set():
            return False
        return is_transient(error)

    @threaded
    def start(self) -> None:
        """Run the worker in its own thread and return the thread."""
        self.run()

    def run(self) -> None:
        try:
            while not self.shutdown.is_set():
                try:
                    if self.connection is None:
                        self.connect()
                    self.stream()
                except SourceError as e:
                    if self.shutdown.is_set():
                        break
                    logger.error(f"{self.label} Worker has a problem: {e.value}")
                    if not self.is_recoverable(e):
                        logger.info(
                            f"{self.label} This probably isn't recoverable, "
                            f"bailing."
                        )
                        raise
                    logger.info(
                        f"{self.label} I think this is recoverable. "
                        f"Hang on a second..."
                    )
                    self.reconnect()
        except Exception as e:
            if not self.shutdown.is_set():
                self.error = e
                logger.exception(f"{self.label} failed due to exception: {e}")
        finally:
            logger.info(f"{self.label} thread shutting down")
            self.close()
            self.state = TERMINATED

    def connect(self) -> None:
        self.state = CONNECTING
        connection: Connection = self.source.connect()
        with self._lock:
            self.connection = connection
        connection.use(self.mapping.db)
        self.primary_key = connection.primary_key_field(self.mapping.table)
        logger.debug(f"{self.label} primary key is {self.primary_key}")

    def reconnect(self) -> None:
        """
        Release the connection and reconnect with exponential backoff.

        The delay keeps growing across failed attempts and only resets
        once a connection succeeds.
        """
        self.state = RECONNECTING
        self.close()
        while not self.shutdown.is_set():
            if self.shutdown.wait(self.backoff):
                return
            logger.info(
                f"{self.label} Attempting to reconnect to {self.source.address}"
            )
            try:
                self.connect()
            except SourceError as e:
                self.close()
                self.backoff = next_backoff(self.backoff)
                logger.error(
                    f"{self.label} Reconnect failed ({e.value}), waiting "
                    f"{int(self.backoff * 1000)}ms before trying again"
                )
                continue
            logger.info(f"{self.label} Reconnection successful.")
            # reset on connect, not on a healthy feed: a feed that fails
            # again straight away is retried after the initial delay
            self.backoff = settings.RECONNECT_INITIAL_BACKOFF
            return

    def stream(self) -> None:
        self.state = STREAMING
        cursor: Cursor = self.connection.open_change_cursor(
            self.mapping.table
        )
        with self._lock:
            self.cursor = cursor
        # an interrupt may have run before the cursor was registered
        if self.shutdown.is_set():
            return
        if self.backfill_required:
            self.backfill()
            self.state = STREAMING
        for event in cursor:
            if self.shutdown.is_set():
                return
            self.apply(event)
            self.count["synced"] += 1
            if self.count["synced"] % settings.SYNC_LOG_EVERY == 0:
                logger.info(
                    f"{self.label} Synced "
                    f"{format_number(self.count['synced'])} documents"
                )
        self._release_cursor()

    def apply(self, event: ChangeEvent) -> None:
        doc_id: str = event.key(self.primary_key)
        if isinstance(event, Delete):
            self.sink.delete(doc_id)
        else:
            self.sink.upsert(doc_id, event.document)

    def backfill(self) -> None:
        """
        Copy the whole table into the index over a separate connection.

        The flag is only cleared if every document was written.
        """
        self.state = BACKFILLING
        connection: Connection = self.source.connect()
        with self._lock:
            self._backfill_connection = connection
        try:
            connection.use(self.mapping.db)
            logger.info(f"{self.label} Beginning backfill of documents")
            # only used for progress, rows may change while we scan
            total: int = connection.approximate_row_count(self.mapping.table)
            sink: BulkSink = BulkSink(
                self.search_client, self.mapping, batch_size=self.batch_size
            )
            decile: int = 0
            cursor: Cursor = connection.scan_table(self.mapping.table)
            try:
                for doc in cursor:
                    if self.shutdown.is_set():
                        logger.info(f"{self.label} Backfill abandoned")
                        return
                    sink.add_upsert(str(doc[self.primary_key]), doc)
                    self.count["backfilled"] += 1
                    if total > 0:
                        new_decile: int = (sink.attempted * 10) // total
                        if new_decile != decile:
                            decile = new_decile
                            logger.info(
                                f"{self.label} backfill {decile}0% complete "
                                f"({format_number(sink.attempted)} documents)"
                            )
                sink.flush()
            finally:
                cursor.close()

            if sink.failed > 0:
                logger.info(
                    f"{self.label} Attempted to backfill {sink.attempted} "
                    f"items, {sink.attempted - sink.failed} succeeded and "
                    f"{sink.failed} failed."
                )
                logger.info(
                    f"{self.label} Unique failure reasons were: "
                    f"{sorted(sink.failure_reasons)}"
                )
                self.backfill_required = True
            else:
                logger.info(
                    f"{self.label} Backfilled {sink.attempted} items. "
                    f"Turning off backfill in settings"
                )
                self.backfill_required = False
            self.recorder.record(self.mapping, self.backfill_required)
        finally:
            with self._lock:
                self._backfill_connection = None
            self._close_quietly(connection)

    def interrupt(self) -> None:
        """Unblock a worker waiting on its cursor. Called by the River."""
        with self._lock:
            connection, self._backfill_connection = (
                self._backfill_connection,
                None,
            )
        if connection is not None:
            self._close_quietly(connection)
        self.close()

    def close(self) -> None:
        """Release the cursor and connection. Safe to call repeatedly."""
        with self._lock:
            cursor, self.cursor = self.cursor, None
            connection, self.connection = self.connection, None
        if cursor is not None:
            self._close_quietly(cursor)
        if connection is not None:
            self._close_quietly(connection)

    def _release_cursor(self) -> None:
        with self._lock:
            cursor, self.cursor = self.cursor, None
        if cursor is not None:
            self._close_quietly(cursor)

    def _close_quietly(self, resource: t.Union[Connection, Cursor]) -> None:
        try:
            resource.close()
        except SourceError as e:
            logger.debug(f"{self.label} Error while closing: {e.value}")
