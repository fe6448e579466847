"""Shared state and error handling for the fetch/mutation gateways.

One gateway instance serves one resource name. Instances are independent:
nothing here locks across instances, and overlapping calls on the same
instance each toggle `is_loading` on their own.
"""
from __future__ import annotations

import logging

from ..domain.cancellation import CancellationToken, check
from ..errors import OperationCancelled, TransportError
from ..notify import Notifier
from ..repository.query_builder import RemoteQuery
from ..repository.store import TRANSPORT, RemoteStore, StoreError, StoreResponse

logger = logging.getLogger(__name__)


def to_transport_error(err: StoreError) -> TransportError:
    return TransportError(err.message, err.code)


class GatewayCore:
    def __init__(self, store: RemoteStore, table: str, id_field: str = "id", notifier: Notifier | None = None):
        if not table:
            raise ValueError("table is required")
        self.store = store
        self.table = table
        self.id_field = id_field
        self.notifier = notifier or Notifier()
        self.is_loading = False
        self.error: TransportError | None = None

    def _begin(self) -> None:
        self.is_loading = True
        self.error = None

    def _end(self) -> None:
        self.is_loading = False

    def handle_error(self, err: TransportError, operation: str) -> TransportError:
        logger.error("Error %s on %s: %s", operation, self.table, err)
        self.error = err
        self.notifier.failure(f"Error {operation}", err.message)
        return err

    def show_success(self, message: str) -> None:
        self.notifier.success(message)

    async def run(self, query: RemoteQuery, cancel: CancellationToken | None = None) -> StoreResponse:
        """Execute against the store; cancellation is checked on both sides of the await."""
        check(cancel)
        try:
            resp = await self.store.execute(query)
        except OperationCancelled:
            raise
        except Exception as e:
            check(cancel)
            raise TransportError(str(e) or e.__class__.__name__, TRANSPORT) from e
        check(cancel)
        if resp is None:
            resp = StoreResponse()
        return resp
