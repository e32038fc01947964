"""
Query helpers shared by the issuance, audit and report services.

Filtering, sorting and pagination are built as SQLAlchemy
select() statements so the same filter set can feed a list
endpoint and an aggregate report.
"""

import math

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from usg_portal.models.issuance import Issuance
from usg_portal.schemas.common import Pagination
from usg_portal.schemas.issuance import IssuanceFilters

ISSUANCE_SORT_FIELDS = {
    "issued_date": Issuance.issued_date,
    "created_at": Issuance.created_at,
    "updated_at": Issuance.updated_at,
    "title": Issuance.title,
    "priority": Issuance.priority,
    "status": Issuance.status,
}


def issuance_conditions(filters: IssuanceFilters | None) -> list:
    """
    WHERE clauses for an issuance filter set.

    Soft-deleted issuances are always excluded. The date range
    applies to created_at and is inclusive on both ends.
    """
    conditions = [Issuance.is_deleted.is_(False)]
    if filters is None:
        return conditions

    if filters.status is not None:
        conditions.append(Issuance.status == filters.status)
    if filters.type is not None:
        conditions.append(Issuance.type == filters.type)
    if filters.priority is not None:
        conditions.append(Issuance.priority == filters.priority)
    if filters.department:
        conditions.append(Issuance.department == filters.department)
    if filters.category:
        conditions.append(Issuance.category == filters.category)
    if filters.start_date is not None:
        conditions.append(Issuance.created_at >= filters.start_date)
    if filters.end_date is not None:
        conditions.append(Issuance.created_at <= filters.end_date)
    return conditions


def build_filter_query(filters: IssuanceFilters | None = None) -> Select:
    """select(Issuance) restricted by the given filters."""
    return select(Issuance).where(*issuance_conditions(filters))


def order_by_column(columns: dict, sort_by: str | None, sort_order: str,
                    default: str):
    """Resolve a whitelisted sort column; unknown names fall back to default."""
    column = columns.get(sort_by or default, columns[default])
    return column.asc() if sort_order == "asc" else column.desc()


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return (
        term.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )


def paginate(db: Session, stmt: Select, page: int, limit: int):
    """
    Run a select with LIMIT/OFFSET and count the full result.

    Returns (items, Pagination). page is 1-based.
    """
    page = max(page, 1)
    limit = max(limit, 1)

    count_stmt = select(func.count()).select_from(
        stmt.order_by(None).subquery()
    )
    total = db.execute(count_stmt).scalar_one()

    items = db.execute(
        stmt.offset((page - 1) * limit).limit(limit)
    ).scalars().all()

    return list(items), Pagination(
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )
