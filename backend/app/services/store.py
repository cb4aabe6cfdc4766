"""
Store helpers shared by the services: dialect-aware upsert and pagination clamping.
Uniqueness races (same reviewer twice, same member twice) are settled by the database, not by a read-then-write.
"""
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.config import settings

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert(db: Session, model, values: dict, conflict_columns: list[str], update_columns: list[str]) -> None:
    """INSERT .. ON CONFLICT (conflict_columns) DO UPDATE SET update_columns (last write wins)."""
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Upsert is not supported on dialect {dialect!r}")
    table = model.__table__
    stmt = insert(table).values(**values)
    set_ = {name: stmt.excluded[name] for name in update_columns}
    if "updated_at" in table.c:
        set_["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=conflict_columns, set_=set_)
    db.execute(stmt)


def clamp_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    """Clamp limit to 1..max_page_size (default_page_size when None) and offset to >= 0."""
    if limit is None:
        limit = settings.default_page_size
    limit = min(max(1, limit), settings.max_page_size)
    offset = max(0, offset or 0)
    return limit, offset
