"""Single-statement upserts keyed on a unique constraint.

Per-user response rows (votes, RSVPs, reactions, stars, read receipts) must
never exist twice for the same key. Instead of a read-then-write pair the
services issue one INSERT that the database resolves against the unique
constraint, so concurrent requests for the same key cannot both insert.
"""

from typing import Any, Dict, Sequence

from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.orm import Session

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
    "mysql": mysql.insert,
    "mariadb": mysql.insert,
}


def upsert(
    db: Session,
    model,
    values: Dict[str, Any],
    key_columns: Sequence[str],
    update_columns: Sequence[str] = (),
) -> None:
    """Insert ``values`` or, when ``key_columns`` already match a row, update it.

    With no ``update_columns`` the existing row is left untouched
    (insert-if-absent). Does not commit.
    """
    dialect = db.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise ValueError(f"upsert is not supported on dialect '{dialect}'") from None

    table = model.__table__
    stmt = insert(table).values(**values)

    if dialect in ("mysql", "mariadb"):
        if update_columns:
            assignments = {c: stmt.inserted[c] for c in update_columns}
        else:
            # no-op assignment keeps the existing row
            first_key = key_columns[0]
            assignments = {first_key: table.c[first_key]}
        stmt = stmt.on_duplicate_key_update(assignments)
    elif update_columns:
        stmt = stmt.on_conflict_do_update(
            index_elements=list(key_columns),
            set_={c: stmt.excluded[c] for c in update_columns},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=list(key_columns))

    db.execute(stmt)
