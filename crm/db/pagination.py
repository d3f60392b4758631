from __future__ import annotations

from collections.abc import Sequence
import math
from typing import Any

from sqlalchemy import ColumnElement, func, inspect, select
from sqlalchemy.orm import Session

from crm.errors import InvalidRequest

MAX_PAGE_LIMIT = 100


def parse_sort(model: type, sort_by: str | None) -> list[Any]:
    """
    ``"field:desc,other:asc"`` -> ORDER BY clauses.

    Only mapped columns may be sorted on. Default is ascending id.
    """

    columns = inspect(model).columns
    if not sort_by:
        return [model.id.asc()]

    clauses = []
    for part in sort_by.split(","):
        key, _, direction = part.strip().partition(":")
        if key not in columns:
            raise InvalidRequest(f"Cannot sort by '{key}'")
        attr = getattr(model, key)
        clauses.append(attr.desc() if direction.lower() == "desc" else attr.asc())
    clauses.append(model.id.asc())
    return clauses


def paginate(
    db: Session,
    model: type,
    criteria: Sequence[ColumnElement[bool]] = (),
    *,
    page: int = 1,
    limit: int = 10,
    sort_by: str | None = None,
) -> dict[str, Any]:
    """
    One page of ``model`` rows plus totals.

    Both queries select from the model itself, so the session's scope filters
    apply to the count the same way they apply to the rows.
    """

    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_LIMIT)

    total = db.scalar(select(func.count()).select_from(model).where(*criteria)) or 0
    stmt = select(model).where(*criteria).order_by(*parse_sort(model, sort_by)).offset((page - 1) * limit).limit(limit)
    results = list(db.scalars(stmt).all())

    return {
        "results": results,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
        "total_results": total,
    }
