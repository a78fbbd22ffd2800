"""RethinkSync ProgressRecorder."""

import logging
import typing as t

from . import settings
from .constants import DATABASES, RETHINKDB
from .mapping import Mapping
from .search_client import SearchClient

logger = logging.getLogger(__name__)


class ProgressRecorder(object):
    """
    Persist the backfill flag of one mapping in the river document.

    Every table worker writes to the same document, so the update relies
    on optimistic concurrency with one retry per mapping plus one.
    """

    def __init__(
        self,
        search_client: SearchClient,
        total_size: int,
        index: t.Optional[str] = None,
        name: t.Optional[str] = None,
    ):
        self.search_client: SearchClient = search_client
        self.index: str = index or settings.RIVER_INDEX
        self.name: str = name or settings.RIVER_NAME
        # only other backfilling workers should conflict
        self.retry_on_conflict: int = total_size + 1

    def record(self, mapping: Mapping, backfill: bool) -> bool:
        """
        Write databases.<db>.<table>.backfill and leave the rest untouched.

        Returns:
            bool: True if the flag was persisted.
        """
        doc: dict = {
            RETHINKDB: {
                DATABASES: {
                    mapping.db: {
                        mapping.table: {"backfill": backfill},
                    },
                },
            },
        }
        try:
            self.search_client.update_document(
                self.index,
                self.name,
                doc,
                retry_on_conflict=self.retry_on_conflict,
            )
        except self.search_client.errors as e:
            logger.error(
                f"Could not persist backfill={backfill} for "
                f"{mapping.db}.{mapping.table}: {e}"
            )
            return False
        logger.info(
            f"Persisted backfill={backfill} for {mapping.db}.{mapping.table}"
        )
        return True
