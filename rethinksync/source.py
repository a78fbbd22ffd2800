"""RethinkSync change feed source."""

import logging
import typing as t
from abc import ABC, abstractmethod
from contextlib import contextmanager

from rethinkdb import RethinkDB
from rethinkdb.errors import ReqlError

from . import settings
from .constants import NEW_VAL, OLD_VAL, RETHINKDB
from .exc import SourceError

logger = logging.getLogger(__name__)


class ChangeEvent(object):
    """A single change delivered by a change feed cursor."""

    __slots__ = ("document",)

    def __init__(self, document: t.Dict[str, t.Any]):
        self.document: t.Dict[str, t.Any] = document

    def key(self, primary_key: str) -> str:
        """Return the document id used in the target index."""
        return str(self.document[primary_key])

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self.document == other.document

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.document!r})"


class Upsert(ChangeEvent):
    """Insert or update carrying the new document."""


class Delete(ChangeEvent):
    """Delete carrying the last known document."""


def change_event(change: dict) -> ChangeEvent:
    """
    Convert a raw change feed record into a change event.

    change = {
        'new_val': {'id': 1, 'title': 'foo'},
        'old_val': None,
    }
    """
    new_val: t.Optional[dict] = change.get(NEW_VAL)
    if new_val is not None:
        return Upsert(new_val)
    return Delete(change.get(OLD_VAL) or {})


class Cursor(ABC):
    """Iterates change events or documents until closed or exhausted."""

    @abstractmethod
    def __iter__(self) -> t.Iterator:
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the cursor. Closing twice is a no-op."""
        pass


class Connection(ABC):
    """A connection to the change feed source."""

    @abstractmethod
    def use(self, database: str) -> None:
        pass

    @abstractmethod
    def open_change_cursor(self, table: str) -> Cursor:
        """Return a cursor of ChangeEvent for the table."""
        pass

    @abstractmethod
    def scan_table(self, table: str) -> Cursor:
        """Return a cursor over every document currently in the table."""
        pass

    @abstractmethod
    def approximate_row_count(self, table: str) -> int:
        pass

    @abstractmethod
    def primary_key_field(self, table: str) -> str:
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the connection. Closing twice is a no-op."""
        pass


class Source(ABC):
    """Connection factory handed to every table worker."""

    @abstractmethod
    def connect(self) -> Connection:
        pass

    @property
    def address(self) -> str:
        return "unknown"


@contextmanager
def reql_errors() -> t.Generator[None, None, None]:
    """Surface driver and socket failures as SourceError."""
    try:
        yield
    except (ReqlError, OSError) as e:
        raise SourceError(str(e)) from e


class RethinkDBCursor(Cursor):
    def __init__(
        self,
        cursor: t.Any,
        transform: t.Optional[t.Callable[[dict], t.Any]] = None,
    ):
        self._cursor: t.Any = cursor
        self._transform: t.Optional[t.Callable[[dict], t.Any]] = transform
        self._closed: bool = False

    def __iter__(self) -> t.Iterator:
        with reql_errors():
            for item in self._cursor:
                yield self._transform(item) if self._transform else item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with reql_errors():
            self._cursor.close()


class RethinkDBConnection(Connection):
    def __init__(self, r: RethinkDB, conn: t.Any):
        self.r: RethinkDB = r
        self._conn: t.Any = conn

    def use(self, database: str) -> None:
        self._conn.use(database)

    def open_change_cursor(self, table: str) -> Cursor:
        with reql_errors():
            cursor = self.r.table(table).changes().run(self._conn)
        return RethinkDBCursor(cursor, transform=change_event)

    def scan_table(self, table: str) -> Cursor:
        with reql_errors():
            cursor = self.r.table(table).run(self._conn)
        return RethinkDBCursor(cursor)

    def approximate_row_count(self, table: str) -> int:
        with reql_errors():
            return int(self.r.table(table).count().run(self._conn))

    def primary_key_field(self, table: str) -> str:
        with reql_errors():
            info: dict = self.r.table(table).info().run(self._conn)
        return str(info["primary_key"])

    def close(self) -> None:
        if not self._conn.is_open():
            return
        with reql_errors():
            self._conn.close(noreply_wait=False)


class RethinkDBSource(Source):
    """
    Open connections to a RethinkDB server.

    The default connection parameters are:
    host = 'localhost', port = 28015
    """

    def __init__(
        self,
        host: t.Optional[str] = None,
        port: t.Optional[int] = None,
        auth_key: t.Optional[str] = None,
        timeout: t.Optional[int] = None,
    ):
        self.host: str = host or settings.RETHINKDB_HOST
        self.port: int = port or settings.RETHINKDB_PORT
        self.auth_key: str = auth_key or settings.RETHINKDB_AUTH_KEY
        self.timeout: int = timeout or settings.RETHINKDB_TIMEOUT
        self.r: RethinkDB = RethinkDB()

    @classmethod
    def from_config(cls, doc: dict) -> "RethinkDBSource":
        """Build a source from the river document or its rethinkdb section."""
        config: dict = doc.get(RETHINKDB, doc)
        return cls(
            host=config.get("host"),
            port=config.get("port"),
            auth_key=config.get("auth_key"),
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def connect(self) -> Connection:
        with reql_errors():
            conn = self.r.connect(
                host=self.host,
                port=self.port,
                auth_key=self.auth_key or None,
                timeout=self.timeout,
            )
        return RethinkDBConnection(self.r, conn)
