from __future__ import annotations

from sqlalchemy.exc import IntegrityError

PG_UNIQUE_VIOLATION = "23505"


def _sqlstate(exc: IntegrityError) -> str:
    orig = getattr(exc, "orig", None)
    for attr in ("pgcode", "sqlstate"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    diag = getattr(orig, "diag", None)
    value = getattr(diag, "sqlstate", None) if diag is not None else None
    return str(value or "")


def _constraint_name(exc: IntegrityError) -> str:
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", None) if diag is not None else None
    return str(name or "")


def is_unique_violation(exc: Exception, *, constraint: str | None = None, table: str | None = None) -> bool:
    """
    True when `exc` is a uniqueness failure, narrowed to `constraint` (Postgres
    constraint/index name) or `table` (SQLite reports "table.column" pairs,
    or "index 'name'" for partial and expression indexes).
    """
    if not isinstance(exc, IntegrityError):
        return False
    text = str(getattr(exc, "orig", None) or exc).lower()
    state = _sqlstate(exc)
    if state:
        if state != PG_UNIQUE_VIOLATION:
            return False
    elif "unique constraint failed" not in text and "duplicate key" not in text:
        return False
    if constraint is None and table is None:
        return True
    if constraint:
        name = constraint.lower()
        if _constraint_name(exc).lower() == name or name in text:
            return True
    if table:
        if f"{table.lower()}." in text:
            return True
    return False
