"""Full-text search projection of tool text fields.

The projection of a tool is its label, description and notes. Two engines
keep it queryable:

* ``Fts5SearchIndex`` (SQLite) maintains an external-content FTS5 table.
  The hooks issue the index statements themselves, inside the session that
  carries the row write, so a failed index update rolls the row back too.
* ``TsvectorSearchIndex`` (PostgreSQL) relies on a generated ``tsvector``
  column that the database recomputes on every row write, so its hooks
  have nothing to do.

Both answer ``query`` with tool ids, most relevant first. A query is split
into word terms and every term must match as a prefix.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import IndexSyncError

logger = logging.getLogger("app.search")

_TERM_RE = re.compile(r"[^\W_]+", re.UNICODE)
_CONFIG_RE = re.compile(r"^[a-z_]+$")


@dataclass(frozen=True)
class SearchProjection:
    tool_id: int
    label: str
    description: Optional[str]
    notes: Optional[str]


def projection_of(row) -> SearchProjection:
    return SearchProjection(
        tool_id=row.id,
        label=row.label,
        description=row.description,
        notes=row.notes,
    )


def search_terms(query: str | None) -> list[str]:
    return _TERM_RE.findall((query or "").lower())


class SearchIndex:
    name = "base"

    def install(self, connection: Connection) -> None:
        raise NotImplementedError

    def on_insert(self, db: Session, tool: SearchProjection) -> None:
        raise NotImplementedError

    def on_update(self, db: Session, old: SearchProjection, new: SearchProjection) -> None:
        raise NotImplementedError

    def on_delete(self, db: Session, tool: SearchProjection) -> None:
        raise NotImplementedError

    def query(self, db: Session, query: str) -> list[int]:
        raise NotImplementedError

    def rebuild(self, db: Session) -> None:
        raise NotImplementedError

    def _execute(self, db: Session, action: str, statement, params: dict) -> None:
        try:
            db.execute(statement, params)
        except SQLAlchemyError as exc:
            logger.error("index=%s action=%s tool_id=%s failed", self.name, action, params.get("id"))
            raise IndexSyncError(f"search index {action} failed") from exc


class Fts5SearchIndex(SearchIndex):
    name = "fts5"

    _INSERT = text(
        "INSERT INTO tools_fts(rowid, label, description, notes) "
        "VALUES (:id, :label, :description, :notes)"
    )
    _DELETE = text(
        "INSERT INTO tools_fts(tools_fts, rowid, label, description, notes) "
        "VALUES ('delete', :id, :label, :description, :notes)"
    )

    def install(self, connection: Connection) -> None:
        existed = connection.exec_driver_sql(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'tools_fts'"
        ).first() is not None
        if existed:
            return

        connection.exec_driver_sql(
            """
            CREATE VIRTUAL TABLE tools_fts USING fts5(
              label,
              description,
              notes,
              content='tools',
              content_rowid='id'
            )
            """
        )
        # tools may predate the index
        connection.exec_driver_sql("INSERT INTO tools_fts(tools_fts) VALUES ('rebuild')")
        logger.info("index=%s created and filled from tools", self.name)

    @staticmethod
    def _params(tool: SearchProjection) -> dict:
        return {
            "id": tool.tool_id,
            "label": tool.label,
            "description": tool.description,
            "notes": tool.notes,
        }

    def on_insert(self, db: Session, tool: SearchProjection) -> None:
        self._execute(db, "insert", self._INSERT, self._params(tool))

    def on_update(self, db: Session, old: SearchProjection, new: SearchProjection) -> None:
        self._execute(db, "delete", self._DELETE, self._params(old))
        self._execute(db, "insert", self._INSERT, self._params(new))

    def on_delete(self, db: Session, tool: SearchProjection) -> None:
        self._execute(db, "delete", self._DELETE, self._params(tool))

    def query(self, db: Session, query: str) -> list[int]:
        terms = search_terms(query)
        if not terms:
            return []
        match = " ".join(f'"{t}"*' for t in terms)
        rows = db.execute(
            text("SELECT rowid FROM tools_fts WHERE tools_fts MATCH :match ORDER BY rank"),
            {"match": match},
        ).all()
        return [int(r[0]) for r in rows]

    def rebuild(self, db: Session) -> None:
        db.execute(text("INSERT INTO tools_fts(tools_fts) VALUES ('rebuild')"))


class TsvectorSearchIndex(SearchIndex):
    name = "tsvector"

    def __init__(self, config: str = "simple") -> None:
        if not _CONFIG_RE.match(config):
            raise ValueError(f"invalid text search config: {config!r}")
        self.config = config

    def install(self, connection: Connection) -> None:
        connection.exec_driver_sql(
            f"""
            ALTER TABLE tools ADD COLUMN IF NOT EXISTS search_vector tsvector
            GENERATED ALWAYS AS (
              to_tsvector(
                '{self.config}'::regconfig,
                coalesce(label, '') || ' ' || coalesce(description, '') || ' ' || coalesce(notes, '')
              )
            ) STORED
            """
        )
        connection.exec_driver_sql(
            "CREATE INDEX IF NOT EXISTS ix_tools_search_vector ON tools USING GIN (search_vector)"
        )

    def on_insert(self, db: Session, tool: SearchProjection) -> None:
        return None

    def on_update(self, db: Session, old: SearchProjection, new: SearchProjection) -> None:
        return None

    def on_delete(self, db: Session, tool: SearchProjection) -> None:
        return None

    def query(self, db: Session, query: str) -> list[int]:
        terms = search_terms(query)
        if not terms:
            return []
        expression = " & ".join(f"{t}:*" for t in terms)
        rows = db.execute(
            text(
                "SELECT id FROM tools "
                "WHERE search_vector @@ to_tsquery(CAST(:config AS regconfig), :q) "
                "ORDER BY ts_rank(search_vector, to_tsquery(CAST(:config AS regconfig), :q)) DESC, id ASC"
            ),
            {"config": self.config, "q": expression},
        ).all()
        return [int(r[0]) for r in rows]

    def rebuild(self, db: Session) -> None:
        # generated column; only the index itself can go stale
        db.execute(text("REINDEX INDEX ix_tools_search_vector"))
