from __future__ import annotations

import logging
from typing import Any

from ..domain.cancellation import CancellationToken
from ..domain.query import QueryDescriptor
from ..domain.result import Result
from ..errors import NOT_FOUND, OperationCancelled, TransportError
from ..notify import Notifier
from ..repository.query_builder import build
from ..repository.store import NO_ROWS, UNDEFINED_TABLE, RemoteStore
from .gateway_core import GatewayCore, to_transport_error
from .table_cache import TableExistenceCache, TableStatus

logger = logging.getLogger(__name__)


class FetchGateway(GatewayCore):
    """Reads for one table.

    `fetch_all`/`fetch_by_id` never raise for store failures: they record the
    error, notify, and return `[]`/`None`. The `*_result` variants return a
    `Result` for callers that must tell "empty" from "failed"; a by-id lookup
    that matched nothing carries `NOT_FOUND`.
    """

    def __init__(
        self,
        store: RemoteStore,
        table: str,
        id_field: str = "id",
        notifier: Notifier | None = None,
        table_cache: TableExistenceCache | None = None,
    ):
        super().__init__(store, table, id_field, notifier)
        self.table_cache = table_cache
        self.data: list[dict[str, Any]] | None = None

    def _descriptor(self, descriptor: QueryDescriptor | None) -> QueryDescriptor:
        if descriptor is None:
            return QueryDescriptor(self.table)
        if descriptor.table != self.table:
            return descriptor.for_table(self.table)
        return descriptor

    async def _ensure_table(self) -> None:
        if self.table_cache is None:
            return
        await self.table_cache.exists(self.table)
        if self.table_cache.status(self.table) is TableStatus.ABSENT:
            raise TransportError(f"resource {self.table} does not exist", UNDEFINED_TABLE)

    async def fetch_all_result(
        self, descriptor: QueryDescriptor | None = None, cancel: CancellationToken | None = None
    ) -> Result[list[dict[str, Any]]]:
        if cancel is not None and cancel.cancelled:
            return Result.failure(OperationCancelled("operation cancelled"))
        self._begin()
        try:
            await self._ensure_table()
            query = build(self._descriptor(descriptor))
            resp = await self.run(query, cancel)
            if resp.error is not None:
                raise to_transport_error(resp.error)
            rows = list(resp.data or [])
            logger.debug("fetched %d rows from %s", len(rows), self.table)
            self.data = rows
            return Result.success(rows)
        except TransportError as e:
            self.handle_error(e, "fetching data")
            return Result.failure(e)
        except OperationCancelled as e:
            return Result.failure(e)
        finally:
            self._end()

    async def fetch_all(
        self, descriptor: QueryDescriptor | None = None, cancel: CancellationToken | None = None
    ) -> list[dict[str, Any]]:
        return (await self.fetch_all_result(descriptor, cancel)).unwrap_or([])

    async def fetch_by_id_result(
        self, id: Any, descriptor: QueryDescriptor | None = None, cancel: CancellationToken | None = None
    ) -> Result[dict[str, Any]]:
        if id is None or id == "":
            logger.error("no id provided to fetch_by_id on %s", self.table)
            return Result.success(None)
        if cancel is not None and cancel.cancelled:
            return Result.failure(OperationCancelled("operation cancelled"))
        self._begin()
        try:
            await self._ensure_table()
            query = build(self._descriptor(descriptor)).eq(self.id_field, id).maybe_single()
            resp = await self.run(query, cancel)
            if resp.error is not None:
                if resp.error.code == NO_ROWS:
                    logger.debug("no item with %s=%s in %s", self.id_field, id, self.table)
                    return Result.success(NOT_FOUND)
                raise to_transport_error(resp.error)
            return Result.success(resp.data)
        except TransportError as e:
            self.handle_error(e, "fetching data by ID")
            return Result.failure(e)
        except OperationCancelled as e:
            return Result.failure(e)
        finally:
            self._end()

    async def fetch_by_id(
        self, id: Any, descriptor: QueryDescriptor | None = None, cancel: CancellationToken | None = None
    ) -> dict[str, Any] | None:
        value = (await self.fetch_by_id_result(id, descriptor, cancel)).unwrap_or(None)
        return None if value is NOT_FOUND else value
