# database/upsert.py
from sqlalchemy.orm import Session
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert


def dialect_insert(db: Session, model):
    """
    Returns an INSERT construct that supports on_conflict_do_nothing /
    on_conflict_do_update for the dialect the session is bound to.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")
