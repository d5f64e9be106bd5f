"""Row-level exclusive locks scoped to the current transaction.

Rows are always locked in ascending primary-key order, so two transactions
with overlapping id sets queue behind each other instead of deadlocking.
Locks are released by the database on commit or rollback; nothing here
outlives the transaction.
"""
import logging
from typing import Dict, Iterable, List, Type, TypeVar

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from pharmacy.core.config import settings

logger = logging.getLogger(__name__)

M = TypeVar("M")


def lock_order(ids: Iterable[int]) -> List[int]:
    """Distinct ids in the order locks must be taken."""
    return sorted({int(i) for i in ids})


def _bound_lock_wait(db: Session) -> None:
    if db.get_bind().dialect.name == "postgresql":
        # SET LOCAL only lasts until the end of the current transaction.
        db.execute(text(f"SET LOCAL lock_timeout = '{int(settings.DB_LOCK_TIMEOUT_MS)}ms'"))


def lock_rows(db: Session, model: Type[M], ids: Iterable[int]) -> Dict[int, M]:
    """
    SELECT ... FOR UPDATE exactly the given rows and return them keyed by id.

    Blocks until every lock is held. Ids with no row are simply absent from the
    result; an empty id set takes no lock at all. Loaded objects are refreshed
    from the locked rows so stale identity-map state is never used for a
    business decision.

    On SQLite the FOR UPDATE clause is not rendered; the unit of work already
    holds the database write lock (BEGIN IMMEDIATE), which covers every row.
    """
    ordered = lock_order(ids)
    if not ordered:
        return {}

    _bound_lock_wait(db)
    stmt = (
        select(model)
        .where(model.id.in_(ordered))
        .order_by(model.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    rows = db.scalars(stmt).all()
    logger.debug(f"Locked {len(rows)}/{len(ordered)} {model.__tablename__} rows: {ordered}")
    return {row.id: row for row in rows}
