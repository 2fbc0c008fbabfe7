"""Dialect-aware INSERT ... ON CONFLICT support."""

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def upsert_insert(dialect_name: str, table):
    """Return an INSERT construct that supports ``on_conflict_do_update``.

    Args:
        dialect_name: SQLAlchemy dialect name of the target database
        table: Model class or Table to insert into

    Raises:
        NotImplementedError: If the dialect has no native upsert support here
    """
    try:
        insert = _INSERTS[dialect_name]
    except KeyError:
        raise NotImplementedError(
            f"Atomic upsert is not supported for dialect '{dialect_name}'"
        ) from None
    return insert(table)
