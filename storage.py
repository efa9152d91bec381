"""Storage backends.

A ``StorageBackend`` owns the engine, the session factory and the search
index of one database. ``SqliteBackend`` and ``PostgresBackend`` differ only
in how the engine is built and which search index they carry; everything
above this module talks to the common contract.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Iterable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import crud
from db import Base, Settings, create_postgres_engine, create_sqlite_engine
from errors import NotFoundError
from models import Location, Tool, ToolWithLocation
from search_index import Fts5SearchIndex, SearchIndex, TsvectorSearchIndex

logger = logging.getLogger("app.storage")


class StorageBackend:
    name = "base"

    def __init__(self, database_url: str, search: SearchIndex) -> None:
        self.database_url = database_url
        self.search = search
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    # ---------- lifecycle ----------
    def _create_engine(self) -> Engine:
        raise NotImplementedError

    def open(self) -> "StorageBackend":
        if self.engine is not None:
            return self
        self.engine = self._create_engine()
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False
        )
        Base.metadata.create_all(bind=self.engine)
        with self.engine.begin() as conn:
            self.search.install(conn)
        logger.info("backend=%s search=%s opened", self.name, self.search.name)
        return self

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._session_factory = None
        logger.info("backend=%s closed", self.name)

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("storage backend is not open")
        return self._session_factory()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        db = self.session()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ---------- Location ----------
    def insert_location(self, fields: dict[str, Any]) -> Location:
        with self.transaction() as db:
            return crud.insert_location(db, fields, commit=False)

    def update_location(self, location_id: int, partial: dict[str, Any]) -> Location:
        with self.transaction() as db:
            updated = crud.update_location(db, location_id, partial, commit=False)
            if updated is None:
                raise NotFoundError("location not found")
            return updated

    def delete_location(self, location_id: int) -> bool:
        with self.transaction() as db:
            return crud.delete_location(db, location_id, commit=False)

    def get_location(self, location_id: int) -> Location:
        with self.transaction() as db:
            location = crud.get_location(db, location_id)
        if location is None:
            raise NotFoundError("location not found")
        return location

    def list_locations(self) -> list[Location]:
        with self.transaction() as db:
            return crud.list_locations(db)

    # ---------- Tool ----------
    def insert_tool(self, fields: dict[str, Any]) -> Tool:
        with self.transaction() as db:
            return crud.insert_tool(db, fields, self.search, commit=False)

    def update_tool(self, tool_id: int, partial: dict[str, Any]) -> Tool:
        with self.transaction() as db:
            updated = crud.update_tool(db, tool_id, partial, self.search, commit=False)
            if updated is None:
                raise NotFoundError("tool not found")
            return updated

    def delete_tool(self, tool_id: int) -> bool:
        with self.transaction() as db:
            return crud.delete_tool(db, tool_id, self.search, commit=False)

    def get_tool(self, tool_id: int) -> Tool:
        with self.transaction() as db:
            tool = crud.get_tool(db, tool_id)
        if tool is None:
            raise NotFoundError("tool not found")
        return tool

    def list_tools(self) -> list[Tool]:
        with self.transaction() as db:
            return crud.list_tools(db)

    def list_tools_filtered(
        self,
        location_ids: Optional[Iterable[int]] = None,
        is_borrowed: Optional[bool] = None,
        matching_ids: Optional[Iterable[int]] = None,
    ) -> list[ToolWithLocation]:
        with self.transaction() as db:
            return crud.list_tools_filtered(
                db,
                location_ids=location_ids,
                is_borrowed=is_borrowed,
                matching_ids=matching_ids,
            )

    # ---------- Search ----------
    def search_text(self, query: str) -> list[int]:
        if not (query or "").strip():
            return []
        with self.transaction() as db:
            return self.search.query(db, query)

    def rebuild_search(self) -> None:
        with self.transaction() as db:
            self.search.rebuild(db)
        logger.info("backend=%s search=%s rebuilt", self.name, self.search.name)


class SqliteBackend(StorageBackend):
    name = "sqlite"

    def __init__(self, database_url: str) -> None:
        super().__init__(database_url, Fts5SearchIndex())

    def _create_engine(self) -> Engine:
        return create_sqlite_engine(self.database_url)


class PostgresBackend(StorageBackend):
    name = "postgresql"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings.database_url, TsvectorSearchIndex(settings.search_config))
        self.settings = settings

    def _create_engine(self) -> Engine:
        return create_postgres_engine(self.settings)


def open_backend(settings: Settings) -> StorageBackend:
    if settings.is_postgres:
        backend: StorageBackend = PostgresBackend(settings)
    else:
        backend = SqliteBackend(settings.database_url)
    return backend.open()
