from __future__ import annotations

from ..errors import OperationCancelled


class CancellationToken:
    """Cooperative cancellation flag shared by a session and its in-flight calls.

    Calls check the token before contacting the store and again before they
    touch any state with the response.
    """

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled("operation cancelled")


def check(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()
