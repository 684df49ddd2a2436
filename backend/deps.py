"""
Shared FastAPI dependencies.

Routers import from here so there is a single place for the DB session and
pagination.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Query

from database import get_db  # noqa: F401  (re-exported for routers)


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}
