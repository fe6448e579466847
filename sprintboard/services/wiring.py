"""Process-wide wiring: one store, one notifier, gateways per resource name."""
from __future__ import annotations

import uuid
from functools import partial
from typing import Any, Callable, Mapping

from ..logs import LogContext
from ..notify import Notifier
from ..repository.sqlite_store import SqliteStore
from ..repository.store import RemoteStore
from .board_svc import ReorderCoordinator
from .config_svc import DEFAULTS, get_config
from .fetch_gateway import FetchGateway
from .mutation_gateway import MutationGateway
from .sprint_form_svc import SprintFormSession
from .sprint_svc import SprintService
from .submission_guard import SubmissionGuard
from .table_cache import TableExistenceCache
from .timing import Scheduler


class Tracker:
    def __init__(
        self,
        store: RemoteStore | None = None,
        notifier: Notifier | None = None,
        config: dict | None = None,
        clock: Callable[[], float] | None = None,
        scheduler: Scheduler | None = None,
        log_ops: bool = True,
    ):
        cfg = config or {}
        self.config = cfg
        self.store = store or SqliteStore()
        self.notifier = notifier or Notifier(int(cfg.get("notification_history", DEFAULTS["notification_history"])))
        self.table_cache = TableExistenceCache(self.store)
        # audit rows go to the same database as the writes they describe
        self.log_factory = partial(LogContext, db_path=getattr(self.store, "db_path", None)) if log_ops else None
        self.sprints = SprintService(self.store, self.notifier, self.log_factory, self.table_cache)
        self.guard = SubmissionGuard(
            clock=clock,
            scheduler=scheduler,
            guard_window=int(cfg.get("guard_window_ms", DEFAULTS["guard_window_ms"])) / 1000.0,
            safety_timeout=int(cfg.get("safety_timeout_ms", DEFAULTS["safety_timeout_ms"])) / 1000.0,
        )
        self.board_table = cfg.get("board_table") or DEFAULTS["board_table"]
        self.board_columns = tuple(cfg.get("board_columns") or DEFAULTS["board_columns"].split(","))
        self._fetchers: dict[str, FetchGateway] = {}
        self._mutators: dict[str, MutationGateway] = {}
        self._boards: dict[Any, ReorderCoordinator] = {}
        self._forms: dict[str, SprintFormSession] = {}

    def fetcher(self, table: str) -> FetchGateway:
        if table not in self._fetchers:
            self._fetchers[table] = FetchGateway(self.store, table, notifier=self.notifier, table_cache=self.table_cache)
        return self._fetchers[table]

    def mutator(self, table: str) -> MutationGateway:
        if table not in self._mutators:
            self._mutators[table] = MutationGateway(self.store, table, notifier=self.notifier,
                                                    log_factory=self.log_factory)
        return self._mutators[table]

    def board(self, key: Any = None) -> ReorderCoordinator:
        if key not in self._boards:
            self._boards[key] = ReorderCoordinator(self.mutator(self.board_table), self.notifier, self.board_columns)
        return self._boards[key]

    def sprint_form(self, sprint: Mapping[str, Any] | None = None) -> SprintFormSession:
        """A guarded create (no sprint) or edit dialog over the shared sprint service."""
        return SprintFormSession(self.sprints, self.guard, sprint)

    def open_form(self, sprint: Mapping[str, Any] | None = None) -> str:
        form_id = uuid.uuid4().hex
        self._forms[form_id] = self.sprint_form(sprint)
        return form_id

    def form(self, form_id: str) -> SprintFormSession | None:
        return self._forms.get(form_id)

    def close_form(self, form_id: str) -> bool:
        session = self._forms.pop(form_id, None)
        if session is None:
            return False
        session.close()
        return True


_tracker: Tracker | None = None


def get_tracker() -> Tracker:
    global _tracker
    if _tracker is None:
        _tracker = Tracker(config=get_config())
    return _tracker


def reset_tracker(tracker: Tracker | None = None) -> None:
    global _tracker
    _tracker = tracker
