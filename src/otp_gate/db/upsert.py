"""Dialect-aware ``INSERT ... ON CONFLICT`` construction."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_for(session: Session, model: Any) -> Any:
    """Return an insert construct for ``model`` that supports ``on_conflict_*``.

    Args:
        session: Session whose bound dialect decides the construct
        model: Mapped class to insert into

    Raises:
        RuntimeError: If the backend has no single-statement upsert
    """
    dialect = session.get_bind().dialect.name
    try:
        factory = _INSERT_BY_DIALECT[dialect]
    except KeyError as err:
        raise RuntimeError(f"Upserts are not supported on the {dialect!r} backend") from err
    return factory(model)
