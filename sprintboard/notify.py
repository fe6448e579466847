from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
import datetime as dt

logger = logging.getLogger(__name__)

DEFAULT = "default"
DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str | None = None
    variant: str = DEFAULT
    ts: str = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc).isoformat())


class Notifier:
    """User-facing notifications (success/failure toasts), newest last."""

    def __init__(self, history: int = 50):
        self._items: deque[Notification] = deque(maxlen=history)

    def notify(self, title: str, description: str | None = None, variant: str = DEFAULT) -> Notification:
        n = Notification(title, description, variant)
        self._items.append(n)
        if variant == DESTRUCTIVE:
            logger.warning("%s: %s", title, description)
        else:
            logger.info("%s%s", title, f": {description}" if description else "")
        return n

    def success(self, title: str, description: str | None = None) -> Notification:
        return self.notify(title, description)

    def failure(self, title: str, description: str | None = None) -> Notification:
        return self.notify(title, description, DESTRUCTIVE)

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def last(self) -> Notification | None:
        return self._items[-1] if self._items else None

    def clear(self) -> None:
        self._items.clear()
