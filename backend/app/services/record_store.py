"""Read-only row access to the hospital store.

The timeline only ever needs "rows of table X filtered by a few columns,
newest first, with a couple of many-to-one lookups folded in", so the store
is modelled as that one capability. Anything implementing ``RecordStore``
can back the timeline; ``SqlAlchemyRecordStore`` is the production binding.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, Sequence

from sqlalchemy import Table, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.base import Base

Row = dict[str, Any]


class RecordStoreError(RuntimeError):
    pass


@dataclass(frozen=True)
class Embed:
    """Fold the row of ``table`` whose id equals ``row[foreign_key]`` under ``name``."""

    name: str
    table: str
    foreign_key: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class RowQuery:
    table: str
    columns: tuple[str, ...]
    equals: Mapping[str, Any] = field(default_factory=dict)
    not_equals: Mapping[str, Any] = field(default_factory=dict)
    within: Mapping[str, Sequence[Any]] = field(default_factory=dict)
    order_by: str | None = None
    descending: bool = True
    embeds: tuple[Embed, ...] = ()


class RecordStore(Protocol):
    async def fetch_rows(self, query: RowQuery) -> list[Row]: ...


def _table(name: str) -> Table:
    table = Base.metadata.tables.get(name)
    if table is None:
        raise RecordStoreError(f"Unknown table: {name}")
    return table


def _column(table: Table, name: str):
    try:
        return table.c[name]
    except KeyError as exc:
        raise RecordStoreError(f"Unknown column: {table.name}.{name}") from exc


class SqlAlchemyRecordStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    async def fetch_rows(self, query: RowQuery) -> list[Row]:
        # Each call gets its own session on a worker thread so callers can fan out.
        return await asyncio.to_thread(self._fetch_rows_sync, query)

    def _fetch_rows_sync(self, query: RowQuery) -> list[Row]:
        table = _table(query.table)
        stmt = select(*[_column(table, name) for name in query.columns])
        for name, value in query.equals.items():
            stmt = stmt.where(_column(table, name) == value)
        for name, value in query.not_equals.items():
            stmt = stmt.where(_column(table, name) != value)
        for name, values in query.within.items():
            values = list(values)
            if not values:
                return []
            stmt = stmt.where(_column(table, name).in_(values))
        if query.order_by:
            order_col = _column(table, query.order_by)
            stmt = stmt.order_by(desc(order_col) if query.descending else order_col)

        try:
            with self._session_factory() as db:
                rows = [dict(row) for row in db.execute(stmt).mappings()]
                for embed in query.embeds:
                    self._attach_embed(db, rows, embed)
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Query on {query.table} failed: {exc}") from exc
        return rows

    def _attach_embed(self, db: Session, rows: list[Row], embed: Embed) -> None:
        keys = {row.get(embed.foreign_key) for row in rows} - {None}
        related: dict[Any, Row] = {}
        if keys:
            table = _table(embed.table)
            id_col = _column(table, "id")
            stmt = select(id_col, *[_column(table, name) for name in embed.columns if name != "id"])
            for rec in db.execute(stmt.where(id_col.in_(keys))).mappings():
                related[rec["id"]] = dict(rec)
        for row in rows:
            row[embed.name] = related.get(row.get(embed.foreign_key))
