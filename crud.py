from __future__ import annotations

from datetime import datetime, timezone

from typing import Any, Iterable, Optional

from sqlalchemy import select, delete, func, update
from sqlalchemy.orm import Session

from models import Location, Tool, ToolWithLocation
from orm import LocationORM, ToolORM
from search_index import SearchIndex, projection_of

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def persist(db: Session, *, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()

def _location_to_schema(l: LocationORM) -> Location:
    return Location(
        id=l.id,
        name=l.name,
        description=l.description,
        parent_id=l.parent_id,
        created_at=l.created_at,
        updated_at=l.updated_at,
    )

def _tool_to_schema(t: ToolORM) -> Tool:
    return Tool(
        id=t.id,
        label=t.label,
        description=t.description,
        notes=t.notes,
        image_path=t.image_path,
        location_id=t.location_id,
        is_borrowed=bool(t.is_borrowed),
        borrowed_by=t.borrowed_by,
        borrowed_at=t.borrowed_at,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )

def _joined_to_schema(t: ToolORM, l: LocationORM | None) -> ToolWithLocation:
    return ToolWithLocation(
        **_tool_to_schema(t).model_dump(),
        location=_location_to_schema(l) if l else None,
    )


# ---------- Location ----------
def get_location(db: Session, location_id: int) -> Optional[Location]:
    row = db.get(LocationORM, location_id)
    return _location_to_schema(row) if row else None


def location_exists(db: Session, location_id: int) -> bool:
    return db.get(LocationORM, location_id) is not None


def list_locations(db: Session, *, parent_id: Optional[int] = None, roots_only: bool = False) -> list[Location]:
    stmt = select(LocationORM)
    if parent_id is not None:
        stmt = stmt.where(LocationORM.parent_id == parent_id)
    elif roots_only:
        stmt = stmt.where(LocationORM.parent_id.is_(None))
    stmt = stmt.order_by(LocationORM.name.asc(), LocationORM.id.asc())
    return [_location_to_schema(l) for l in db.execute(stmt).scalars().all()]


def insert_location(db: Session, fields: dict[str, Any], *, commit: bool = True) -> Location:
    now = utcnow()
    l = LocationORM(
        name=fields["name"],
        description=fields.get("description"),
        parent_id=fields.get("parent_id"),
        created_at=now,
        updated_at=now,
    )
    db.add(l)
    persist(db, commit=commit)
    db.refresh(l)
    return _location_to_schema(l)


def update_location(db: Session, location_id: int, partial: dict[str, Any], *, commit: bool = True) -> Optional[Location]:
    l = db.get(LocationORM, location_id)
    if not l:
        return None

    for k, v in partial.items():
        setattr(l, k, v)
    l.updated_at = utcnow()

    persist(db, commit=commit)
    db.refresh(l)
    return _location_to_schema(l)


def delete_location(db: Session, location_id: int, *, commit: bool = True) -> bool:
    l = db.get(LocationORM, location_id)
    if not l:
        return False

    now = utcnow()
    # detach instead of cascading
    db.execute(
        update(LocationORM)
        .where(LocationORM.parent_id == location_id)
        .values(parent_id=None, updated_at=now)
    )
    db.execute(
        update(ToolORM)
        .where(ToolORM.location_id == location_id)
        .values(location_id=None, updated_at=now)
    )
    db.execute(delete(LocationORM).where(LocationORM.id == location_id))
    persist(db, commit=commit)
    return True


def count_tools_by_location(db: Session) -> dict[int, int]:
    rows = db.execute(
        select(ToolORM.location_id, func.count())
        .where(ToolORM.location_id.is_not(None))
        .group_by(ToolORM.location_id)
    ).all()
    return {int(r[0]): int(r[1]) for r in rows}


# ---------- Tool ----------
def get_tool_row(db: Session, tool_id: int) -> Optional[ToolORM]:
    return db.get(ToolORM, tool_id)


def get_tool(db: Session, tool_id: int) -> Optional[Tool]:
    row = db.get(ToolORM, tool_id)
    return _tool_to_schema(row) if row else None


def get_tool_with_location(db: Session, tool_id: int) -> Optional[ToolWithLocation]:
    row = db.execute(
        select(ToolORM, LocationORM)
        .outerjoin(LocationORM, ToolORM.location_id == LocationORM.id)
        .where(ToolORM.id == tool_id)
    ).first()
    return _joined_to_schema(row[0], row[1]) if row else None


def list_tools(db: Session) -> list[Tool]:
    rows = db.execute(select(ToolORM).order_by(ToolORM.id.asc())).scalars().all()
    return [_tool_to_schema(t) for t in rows]


def insert_tool(db: Session, fields: dict[str, Any], index: SearchIndex, *, commit: bool = True) -> Tool:
    now = utcnow()
    is_borrowed = bool(fields.get("is_borrowed", False))
    t = ToolORM(
        label=fields["label"],
        description=fields.get("description"),
        notes=fields.get("notes"),
        image_path=fields.get("image_path"),
        location_id=fields.get("location_id"),
        is_borrowed=is_borrowed,
        borrowed_by=fields.get("borrowed_by") if is_borrowed else None,
        borrowed_at=now if is_borrowed else None,
        created_at=now,
        updated_at=now,
    )
    db.add(t)
    db.flush()
    index.on_insert(db, projection_of(t))

    persist(db, commit=commit)
    db.refresh(t)
    return _tool_to_schema(t)


def update_tool(db: Session, tool_id: int, partial: dict[str, Any], index: SearchIndex, *, commit: bool = True) -> Optional[Tool]:
    t = db.get(ToolORM, tool_id)
    if not t:
        return None

    old = projection_of(t)
    for k, v in partial.items():
        setattr(t, k, v)
    t.updated_at = utcnow()

    db.flush()
    index.on_update(db, old, projection_of(t))

    persist(db, commit=commit)
    db.refresh(t)
    return _tool_to_schema(t)


def delete_tool(db: Session, tool_id: int, index: SearchIndex, *, commit: bool = True) -> bool:
    t = db.get(ToolORM, tool_id)
    if not t:
        return False

    index.on_delete(db, projection_of(t))
    db.execute(delete(ToolORM).where(ToolORM.id == tool_id))
    persist(db, commit=commit)
    return True


def list_tools_filtered(
    db: Session,
    *,
    location_ids: Optional[Iterable[int]] = None,
    is_borrowed: Optional[bool] = None,
    matching_ids: Optional[Iterable[int]] = None,
) -> list[ToolWithLocation]:
    stmt = select(ToolORM, LocationORM).outerjoin(LocationORM, ToolORM.location_id == LocationORM.id)

    if location_ids is not None:
        stmt = stmt.where(ToolORM.location_id.in_(list(location_ids)))

    if is_borrowed is not None:
        stmt = stmt.where(ToolORM.is_borrowed == is_borrowed)

    if matching_ids is not None:
        stmt = stmt.where(ToolORM.id.in_(list(matching_ids)))

    stmt = stmt.order_by(ToolORM.label.asc(), ToolORM.id.asc())
    return [_joined_to_schema(t, l) for t, l in db.execute(stmt).all()]


def list_image_paths(db: Session) -> set[str]:
    rows = db.execute(select(ToolORM.image_path).where(ToolORM.image_path.is_not(None))).all()
    return {r[0] for r in rows}
