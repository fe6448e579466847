from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from anyio import to_thread

from ..domain.cancellation import CancellationToken
from ..domain.result import Result
from ..errors import OperationCancelled, TransportError
from ..logs import LogContext
from ..notify import Notifier
from ..repository.query_builder import RemoteQuery, from_table
from ..repository.store import RemoteStore
from .gateway_core import GatewayCore, to_transport_error

logger = logging.getLogger(__name__)

CREATE, UPDATE, DELETE = "create", "update", "delete"

_VERBS = {CREATE: ("created", "creating data"), UPDATE: ("updated", "updating data"), DELETE: ("deleted", "deleting data")}


@dataclass(frozen=True)
class MutationRequest:
    resource: str
    type: str
    id: Any = None
    payload: Mapping[str, Any] | None = None

    def __post_init__(self):
        if self.type not in (CREATE, UPDATE, DELETE):
            raise ValueError(f"invalid mutation type: {self.type!r}")
        if self.type in (UPDATE, DELETE) and self.id is None:
            raise ValueError(f"{self.type} requires an id")

    @classmethod
    def infer(cls, resource: str, id: Any = None, data: Mapping[str, Any] | None = None, type: str | None = None):
        """id+data -> update, data only -> create, id only -> delete.

        An empty `data` mapping still counts as data.
        """
        if type is None:
            if id is not None and data is not None:
                type = UPDATE
            elif id is None and data is not None:
                type = CREATE
            elif id is not None:
                type = DELETE
            else:
                raise ValueError("invalid mutation parameters")
        return cls(resource=resource, type=type, id=id, payload=data)


class MutationGateway(GatewayCore):
    """Writes for one table.

    Elemental operations return the first affected row (`True` for delete) or
    `None`/`False` after recording the error and notifying. No retry; each call
    is a single statement at the store.
    """

    def __init__(
        self,
        store: RemoteStore,
        table: str,
        id_field: str = "id",
        notifier: Notifier | None = None,
        log_factory: Callable[[str], LogContext] | None = None,
    ):
        super().__init__(store, table, id_field, notifier)
        self.log_factory = log_factory

    def _log(self, kind: str, id: Any, payload: Any) -> LogContext | None:
        if self.log_factory is None:
            return None
        log = self.log_factory(f"{kind.upper()}_{self.table.upper()}")
        log.set_entity(self.table, id)
        log.set_payload(payload)
        return log

    async def _record(self, log: LogContext | None, result: str, err: str | None = None) -> None:
        # the store write has already committed by now
        if log is None:
            return
        try:
            await to_thread.run_sync(log.write, result, err)
        except sqlite3.Error:
            logger.exception("could not write operation log for %s", log.action)

    async def _write(self, kind: str, query: RemoteQuery, id: Any, payload: Any,
                     cancel: CancellationToken | None) -> Result[Any]:
        if cancel is not None and cancel.cancelled:
            return Result.failure(OperationCancelled("operation cancelled"))
        done, operation = _VERBS[kind]
        log = self._log(kind, id, payload)
        self._begin()
        try:
            resp = await self.run(query, cancel)
            if resp.error is not None:
                raise to_transport_error(resp.error)
            if kind == DELETE:
                value: Any = True
                if log:
                    log.set_before(resp.data)
            else:
                rows = resp.data or []
                value = rows[0] if rows else None
                if log:
                    log.set_after(value)
            self.show_success(f"Successfully {done} {self.table}")
            await self._record(log, "OK")
            return Result.success(value)
        except TransportError as e:
            self.handle_error(e, operation)
            await self._record(log, "ERROR", str(e))
            return Result.failure(e)
        except OperationCancelled as e:
            return Result.failure(e)
        finally:
            self._end()

    def _require_id(self, id: Any, kind: str) -> None:
        if id is None:
            raise ValueError(f"{kind} on {self.table} requires an id")

    async def create_result(self, payload: Mapping[str, Any], cancel: CancellationToken | None = None):
        query = from_table(self.table).insert(dict(payload)).returning()
        return await self._write(CREATE, query, payload.get(self.id_field), dict(payload), cancel)

    async def update_result(self, id: Any, payload: Mapping[str, Any], cancel: CancellationToken | None = None):
        self._require_id(id, UPDATE)
        query = from_table(self.table).update(dict(payload)).eq(self.id_field, id).returning()
        return await self._write(UPDATE, query, id, dict(payload), cancel)

    async def remove_result(self, id: Any, cancel: CancellationToken | None = None):
        self._require_id(id, DELETE)
        query = from_table(self.table).delete().eq(self.id_field, id).returning()
        return await self._write(DELETE, query, id, None, cancel)

    async def create(self, payload: Mapping[str, Any], cancel: CancellationToken | None = None):
        return (await self.create_result(payload, cancel)).unwrap_or(None)

    async def update(self, id: Any, payload: Mapping[str, Any], cancel: CancellationToken | None = None):
        return (await self.update_result(id, payload, cancel)).unwrap_or(None)

    async def remove(self, id: Any, cancel: CancellationToken | None = None) -> bool:
        return bool((await self.remove_result(id, cancel)).unwrap_or(False))

    def for_resource(self, resource: str) -> "MutationGateway":
        if resource == self.table:
            return self
        return MutationGateway(self.store, resource, self.id_field, self.notifier, self.log_factory)

    async def mutate(
        self,
        request: MutationRequest | None = None,
        *,
        resource: str | None = None,
        id: Any = None,
        data: Mapping[str, Any] | None = None,
        type: str | None = None,
        cancel: CancellationToken | None = None,
    ):
        """Resource-polymorphic write. Unlike the elemental operations this
        re-raises the TransportError after recording and notifying it."""
        if request is None:
            request = MutationRequest.infer(resource or self.table, id=id, data=data, type=type)
        target = self.for_resource(request.resource)
        logger.debug("mutating %s with type %s, id %s", request.resource, request.type, request.id)
        if request.type == CREATE:
            result = await target.create_result(request.payload or {}, cancel)
        elif request.type == UPDATE:
            result = await target.update_result(request.id, request.payload or {}, cancel)
        else:
            result = await target.remove_result(request.id, cancel)
        if target is not self:
            self.error = target.error
        return result.unwrap()
