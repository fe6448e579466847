from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .query_builder import RemoteQuery

NO_ROWS = "NO_ROWS"
UNDEFINED_TABLE = "UNDEFINED_TABLE"
UNDEFINED_COLUMN = "UNDEFINED_COLUMN"
QUERY_FAILED = "QUERY_FAILED"
TRANSPORT = "TRANSPORT"


@dataclass(frozen=True)
class StoreError:
    code: str
    message: str


@dataclass(frozen=True)
class StoreResponse:
    data: Any = None
    error: StoreError | None = None

    @classmethod
    def failed(cls, code: str, message: str) -> "StoreResponse":
        return cls(error=StoreError(code, message))


class RemoteStore:
    """Port for the relational store. Implementations report query failures in
    `StoreResponse.error` instead of raising; an exception escaping `execute`
    is treated as a transport failure by the gateways."""

    async def execute(self, query: RemoteQuery) -> StoreResponse: ...
