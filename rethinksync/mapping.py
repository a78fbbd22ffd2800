"""RethinkSync table mappings."""

import logging
import typing as t

from .constants import DATABASES, DEFAULT_BACKFILL, MAPPING_ATTRIBUTES
from .exc import InvalidMappingError

logger = logging.getLogger(__name__)


class Mapping(object):
    """
    A single (database, table) -> (index, type) mapping.

    Attributes:
        db (str): The source database name.
        table (str): The source table name.
        index (str): The target index. Defaults to the database name.
        type (str): The target type. Defaults to the table name. Accepted
            for compatibility, it is not sent to the cluster.
        backfill (bool): Whether the table is copied in full before tailing.
    """

    __slots__ = ("db", "table", "index", "type", "backfill")

    def __init__(
        self,
        db: str,
        table: str,
        index: t.Optional[str] = None,
        type: t.Optional[str] = None,
        backfill: bool = DEFAULT_BACKFILL,
    ):
        self.db: str = db
        self.table: str = table
        self.index: str = index or db
        self.type: str = type or table
        self.backfill: bool = backfill

    @property
    def key(self) -> t.Tuple[str, str]:
        return (self.db, self.table)

    @classmethod
    def from_options(cls, db: str, table: str, options: dict) -> "Mapping":
        """Build a mapping from the per-table options of the config."""
        if options is None:
            options = {}
        if not isinstance(options, dict):
            raise InvalidMappingError(
                f"Options for {db}.{table} must be an object"
            )
        unknown: t.Set[str] = set(options.keys()) - set(MAPPING_ATTRIBUTES)
        if unknown:
            raise InvalidMappingError(
                f"Unknown attributes for {db}.{table}: {sorted(unknown)}"
            )
        backfill = options.get("backfill", DEFAULT_BACKFILL)
        if not isinstance(backfill, bool):
            raise InvalidMappingError(
                f"backfill for {db}.{table} must be a boolean"
            )
        return cls(
            db,
            table,
            index=options.get("index"),
            type=options.get("type"),
            backfill=backfill,
        )

    def __repr__(self) -> str:
        parts: t.List[str] = [
            self.db,
            self.table,
            "backfill" if self.backfill else "no backfill",
        ]
        if self.index != self.db:
            parts.append(f"index={self.index}")
        if self.type != self.table:
            parts.append(f"type={self.type}")
        return f"Mapping({', '.join(parts)})"


class MappingSet(object):
    """All configured mappings keyed by (database, table)."""

    def __init__(self, mappings: t.Optional[t.Iterable[Mapping]] = None):
        self._mappings: t.Dict[t.Tuple[str, str], Mapping] = {}
        for mapping in mappings or []:
            self.add(mapping)

    @classmethod
    def from_config(cls, config: dict) -> "MappingSet":
        """
        Build the mapping set from the river configuration.

        config = {
            'databases': {
                'blog': {
                    'posts': {'backfill': True, 'index': 'blog'},
                },
            },
        }
        """
        databases: dict = config.get(DATABASES) or {}
        if not isinstance(databases, dict):
            raise InvalidMappingError(f"{DATABASES} must be an object")
        mapping_set: MappingSet = cls()
        for db, tables in databases.items():
            if not isinstance(tables, dict):
                raise InvalidMappingError(
                    f"Tables for database {db} must be an object"
                )
            for table, options in tables.items():
                mapping_set.add(Mapping.from_options(db, table, options))
        logger.debug(f"Loaded {len(mapping_set)} mappings: {mapping_set}")
        return mapping_set

    def add(self, mapping: Mapping) -> None:
        if mapping.key in self._mappings:
            raise InvalidMappingError(
                f"Duplicate mapping for {mapping.db}.{mapping.table}"
            )
        self._mappings[mapping.key] = mapping

    def get(self, db: str, table: str) -> t.Optional[Mapping]:
        return self._mappings.get((db, table))

    @property
    def total_size(self) -> int:
        """Bounds the optimistic retry budget of the progress recorder."""
        return len(self._mappings)

    def __len__(self) -> int:
        return len(self._mappings)

    def __iter__(self) -> t.Iterator[Mapping]:
        return iter(list(self._mappings.values()))

    def __repr__(self) -> str:
        return f"MappingSet({list(self._mappings.values())})"
