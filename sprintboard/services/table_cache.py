from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..repository.query_builder import from_table
from ..repository.store import UNDEFINED_TABLE, RemoteStore

logger = logging.getLogger(__name__)


class TableStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    PROBE_FAILED = "probe_failed"


@dataclass(frozen=True)
class CacheEntry:
    status: TableStatus
    checked_at: float
    detail: str | None = None


class TableExistenceCache:
    """Memoises whether a resource name is reachable.

    A probe is `select <id_field> limit 1`. PRESENT and ABSENT (the store
    reported an undefined table) are kept until `clear()`; PROBE_FAILED is
    recorded but probed again on the next call. No TTL, and a later create
    against a table marked ABSENT does not invalidate it.
    """

    def __init__(self, store: RemoteStore, id_field: str = "id", clock: Callable[[], float] | None = None):
        self.store = store
        self.id_field = id_field
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}
        self.probe_count = 0

    async def exists(self, name: str) -> bool:
        entry = self._entries.get(name)
        if entry is None or entry.status is TableStatus.PROBE_FAILED:
            entry = await self._probe(name)
            self._entries[name] = entry
        return entry.status is TableStatus.PRESENT

    async def _probe(self, name: str) -> CacheEntry:
        self.probe_count += 1
        logger.debug("checking if table %s exists", name)
        now = self._clock()
        try:
            resp = await self.store.execute(from_table(name).select(self.id_field).limit(1))
        except Exception as e:
            logger.warning("probe of %s failed: %s", name, e)
            return CacheEntry(TableStatus.PROBE_FAILED, now, str(e))
        if resp is not None and resp.error is not None:
            if resp.error.code == UNDEFINED_TABLE:
                logger.info("table %s does not exist", name)
                return CacheEntry(TableStatus.ABSENT, now, resp.error.message)
            logger.warning("table %s might not exist: %s", name, resp.error.message)
            return CacheEntry(TableStatus.PROBE_FAILED, now, resp.error.message)
        return CacheEntry(TableStatus.PRESENT, now)

    def status(self, name: str) -> TableStatus | None:
        entry = self._entries.get(name)
        return entry.status if entry else None

    def entry(self, name: str) -> CacheEntry | None:
        return self._entries.get(name)

    def clear(self, name: str | None = None) -> None:
        if name is None:
            self._entries.clear()
        else:
            self._entries.pop(name, None)

    def snapshot(self) -> dict[str, str]:
        return {k: v.status.value for k, v in self._entries.items()}
