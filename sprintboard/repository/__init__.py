"""Repository layer: the store port, the query builder and the SQLite store.

Services talk to the store only through RemoteQuery values built here.
"""
from __future__ import annotations
