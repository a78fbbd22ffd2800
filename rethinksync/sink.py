"""RethinkSync BulkSink."""

import logging
import typing as t

from . import settings
from .constants import DELETE, INDEX
from .mapping import Mapping
from .search_client import SearchClient

logger = logging.getLogger(__name__)


class BulkSink(object):
    """
    Batch document writes for one mapping into bulk requests.

    Failed items are counted and their reasons collected, never retried.
    Deciding what to do about them is up to the caller.
    """

    def __init__(
        self,
        search_client: SearchClient,
        mapping: Mapping,
        batch_size: t.Optional[int] = None,
    ):
        self.search_client: SearchClient = search_client
        self.mapping: Mapping = mapping
        self.batch_size: int = batch_size or settings.BACKFILL_BATCH_SIZE
        self.batch: t.List[dict] = []
        self.attempted: int = 0
        self.failed: int = 0
        self.failure_reasons: t.Set[str] = set()

    def __len__(self) -> int:
        return len(self.batch)

    def _action(self, op_type: str, doc_id: str) -> dict:
        # mapping types were removed in Elasticsearch 7, type is never sent
        return {
            "_op_type": op_type,
            "_index": self.mapping.index,
            "_id": doc_id,
        }

    def _upsert_action(self, doc_id: str, document: dict) -> dict:
        action: dict = self._action(INDEX, doc_id)
        action["_source"] = document
        return action

    def add_upsert(self, doc_id: str, document: dict) -> None:
        self._add(self._upsert_action(doc_id, document))

    def add_delete(self, doc_id: str) -> None:
        self._add(self._action(DELETE, doc_id))

    def _add(self, action: dict) -> None:
        self.batch.append(action)
        self.attempted += 1
        if len(self.batch) >= self.batch_size:
            self.flush()

    def flush(self) -> t.Tuple[int, t.Set[str]]:
        """
        Send the current batch as one bulk request.

        The batch is cleared whatever the outcome.

        Returns:
            Tuple[int, Set[str]]: failed item count and distinct reasons
            for this batch.
        """
        if not self.batch:
            return 0, set()
        batch, self.batch = self.batch, []
        failed, reasons = self.search_client.bulk(
            batch, chunk_size=self.batch_size
        )
        if failed:
            logger.error(
                f"Bulk request to {self.mapping.index} had {failed} "
                f"failed items of {len(batch)}: {sorted(reasons)}"
            )
        self.failed += failed
        self.failure_reasons |= reasons
        return failed, reasons

    def upsert(self, doc_id: str, document: dict) -> None:
        """Index one document as its own bulk request, best effort."""
        self._send_one(self._upsert_action(doc_id, document))

    def delete(self, doc_id: str) -> None:
        """Delete one document as its own bulk request, best effort."""
        self._send_one(self._action(DELETE, doc_id))

    def _send_one(self, action: dict) -> None:
        # TODO: live changes that fail here are lost until the next backfill;
        # decide whether they should mark the mapping for backfill.
        try:
            failed, reasons = self.search_client.bulk([action], chunk_size=1)
        except self.search_client.errors as e:
            logger.warning(
                f"Failed to {action['_op_type']} {action['_id']} "
                f"in {action['_index']}: {e}"
            )
            return
        if failed:
            logger.warning(
                f"Failed to {action['_op_type']} {action['_id']} "
                f"in {action['_index']}: {sorted(reasons)}"
            )
