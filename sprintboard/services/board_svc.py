from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from ..domain import board
from ..domain.cancellation import CancellationToken
from ..errors import OperationCancelled, RollbackApplied, TransportError
from ..notify import Notifier
from .mutation_gateway import MutationGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveOutcome:
    moved: bool
    persisted: bool
    rollback: RollbackApplied | None = None


NOOP = MoveOutcome(moved=False, persisted=False)


class ReorderCoordinator:
    """Optimistic kanban moves.

    The new partition is applied to `columns` before the write is awaited.
    A failed write restores the snapshot taken before the move. Moves within a
    column are local only; nothing is retried.
    """

    def __init__(
        self,
        gateway: MutationGateway,
        notifier: Notifier | None = None,
        columns: Iterable[str] = board.DEFAULT_COLUMNS,
        on_change: Callable[[board.BoardColumns], None] | None = None,
    ):
        self.gateway = gateway
        self.notifier = notifier or gateway.notifier
        self.column_names = tuple(columns)
        self.on_change = on_change
        self.columns: board.BoardColumns = {c: [] for c in self.column_names}
        self.items: dict[Any, dict[str, Any]] = {}

    def load(self, items: Iterable[Mapping[str, Any]]) -> board.BoardColumns:
        """Rebuild state from the authoritative item list."""
        items = list(items)
        self.items = {it[self.gateway.id_field]: dict(it) for it in items}
        self._set(board.build_columns(items, self.column_names, self.gateway.id_field))
        return self.columns

    def _set(self, columns: board.BoardColumns) -> None:
        self.columns = columns
        if self.on_change is not None:
            self.on_change(columns)

    async def move(self, item_id: Any, from_col: str, from_idx: int, to_col: str, to_idx: int,
                   cancel: CancellationToken | None = None) -> MoveOutcome:
        if from_col == to_col and from_idx == to_idx:
            return NOOP

        before = board.snapshot(self.columns)
        self._set(board.apply_move(self.columns, item_id, from_col, from_idx, to_col, to_idx))

        if from_col == to_col:
            return MoveOutcome(moved=True, persisted=False)

        result = await self.gateway.update_result(item_id, {"status": to_col}, cancel)
        if isinstance(result.error, OperationCancelled):
            return MoveOutcome(moved=True, persisted=False)
        if result.ok:
            if item_id in self.items:
                self.items[item_id]["status"] = to_col
            title = board.COLUMN_TITLES.get(to_col, to_col)
            self.notifier.success("Task status updated", f"Task moved to {title}")
            return MoveOutcome(moved=True, persisted=True)

        cause = result.error if isinstance(result.error, TransportError) else None
        logger.warning("move of %s to %s failed, rolling back: %s", item_id, to_col, cause)
        self._set(before)
        self.notifier.failure("Error", "Failed to update task status")
        return MoveOutcome(moved=False, persisted=False, rollback=RollbackApplied(item_id, cause))
