from __future__ import annotations

import logging
from typing import Any, Optional

import crud
from assets import AssetStore
from errors import ConflictError, NotFoundError, ValidationError
from hierarchy import ancestry_path, descendants_of
from models import (
    Location,
    LocationIn,
    LocationSummary,
    LocationUpdate,
    Tool,
    ToolDetail,
    ToolWithLocation,
    ToolWriteRequest,
)
from storage import StorageBackend

logger = logging.getLogger("app.inventory")


def trim_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def require_text(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


class InventoryService:
    def __init__(self, backend: StorageBackend, assets: AssetStore) -> None:
        self.backend = backend
        self.assets = assets

    # ---------- Location ----------
    def get_location(self, location_id: int) -> Location:
        return self.backend.get_location(location_id)

    def list_locations(self, *, parent_id: Optional[int] = None, flat: bool = False) -> list[Location]:
        with self.backend.transaction() as db:
            if flat:
                return crud.list_locations(db)
            return crud.list_locations(db, parent_id=parent_id, roots_only=parent_id is None)

    def location_summaries(self) -> list[LocationSummary]:
        with self.backend.transaction() as db:
            locations = crud.list_locations(db)
            counts = crud.count_tools_by_location(db)
        return [
            LocationSummary(**loc.model_dump(), tool_count=counts.get(loc.id, 0))
            for loc in locations
        ]

    def location_path(self, location_id: int) -> list[Location]:
        locations = self.backend.list_locations()
        path = ancestry_path(location_id, locations)
        if not path:
            raise NotFoundError("location not found")
        return path

    def descendants_of(self, location_id: int) -> set[int]:
        return descendants_of(location_id, self.backend.list_locations())

    def create_location(self, body: LocationIn) -> Location:
        name = require_text(body.name, "name")
        with self.backend.transaction() as db:
            if body.parent_id is not None and not crud.location_exists(db, body.parent_id):
                raise NotFoundError("parent location not found")
            location = crud.insert_location(
                db,
                {
                    "name": name,
                    "description": trim_or_none(body.description),
                    "parent_id": body.parent_id,
                },
                commit=False,
            )
        logger.info("location_id=%s name=%r created", location.id, location.name)
        return location

    def update_location(self, location_id: int, body: LocationUpdate) -> Location:
        data = body.model_dump(exclude_unset=True)
        parent_id = data.get("parent_id")

        if parent_id is not None and parent_id == location_id:
            logger.warning("location_id=%s cannot be its own parent", location_id)
            raise ConflictError("location cannot be its own parent")

        partial: dict[str, Any] = {}
        if "name" in data:
            partial["name"] = require_text(data["name"], "name")
        if "description" in data:
            partial["description"] = trim_or_none(data["description"])

        with self.backend.transaction() as db:
            if not crud.location_exists(db, location_id):
                raise NotFoundError("location not found")

            if "parent_id" in data:
                if parent_id is not None:
                    if not crud.location_exists(db, parent_id):
                        raise NotFoundError("parent location not found")
                    if parent_id in descendants_of(location_id, crud.list_locations(db)):
                        logger.warning(
                            "location_id=%s parent_id=%s would create a cycle", location_id, parent_id
                        )
                        raise ConflictError("location cannot be moved under its own descendant")
                partial["parent_id"] = parent_id

            location = crud.update_location(db, location_id, partial, commit=False)

        logger.info("location_id=%s fields=%s updated", location_id, sorted(partial))
        return location

    def delete_location(self, location_id: int) -> None:
        if not self.backend.delete_location(location_id):
            raise NotFoundError("location not found")
        logger.info("location_id=%s deleted", location_id)

    # ---------- Tool ----------
    def get_tool(self, tool_id: int) -> ToolDetail:
        with self.backend.transaction() as db:
            tool = crud.get_tool_with_location(db, tool_id)
            if tool is None:
                raise NotFoundError("tool not found")
            path = ancestry_path(tool.location_id, crud.list_locations(db)) if tool.location_id else []
        return ToolDetail(**tool.model_dump(), location_path=path)

    def list_tools(
        self,
        *,
        location_id: Optional[int] = None,
        is_borrowed: Optional[bool] = None,
        q: Optional[str] = None,
    ) -> list[ToolWithLocation]:
        location_ids = self.descendants_of(location_id) if location_id is not None else None

        ranked: Optional[list[int]] = None
        if q and q.strip():
            ranked = self.backend.search_text(q.strip())
            if not ranked:
                return []

        tools = self.backend.list_tools_filtered(
            location_ids=location_ids,
            is_borrowed=is_borrowed,
            matching_ids=ranked,
        )
        if ranked is not None:
            position = {tool_id: i for i, tool_id in enumerate(ranked)}
            tools.sort(key=lambda t: position[t.id])
        return tools

    def create_tool(self, request: ToolWriteRequest) -> Tool:
        label = require_text(request.label, "label")
        is_borrowed = bool(request.is_borrowed)
        fields: dict[str, Any] = {
            "label": label,
            "description": trim_or_none(request.description),
            "notes": trim_or_none(request.notes),
            "location_id": request.location_id,
            "is_borrowed": is_borrowed,
            "borrowed_by": trim_or_none(request.borrowed_by) if is_borrowed else None,
        }

        image_path: Optional[str] = None
        try:
            with self.backend.transaction() as db:
                if request.location_id is not None and not crud.location_exists(db, request.location_id):
                    raise NotFoundError("location not found")
                if request.image is not None and request.image.data:
                    image_path = self.assets.store(request.image.data, request.image.filename)
                    fields["image_path"] = image_path
                tool = crud.insert_tool(db, fields, self.backend.search, commit=False)
        except Exception:
            if image_path:
                self.assets.delete(image_path)
            raise

        logger.info("tool_id=%s label=%r created", tool.id, tool.label)
        return tool

    def update_tool(self, tool_id: int, request: ToolWriteRequest) -> Tool:
        partial = self._tool_partial(request)
        current = self.backend.get_tool(tool_id)

        image = request.image
        if image is not None and image.data:
            result: dict[str, Tool] = {}

            def _commit(new_path: str) -> None:
                result["tool"] = self._write_tool(tool_id, {**partial, "image_path": new_path})

            self.assets.replace(current.image_path, image.data, image.filename, commit=_commit)
            tool = result["tool"]
        elif request.remove_image:
            tool = self._write_tool(tool_id, {**partial, "image_path": None})
            self.assets.delete(current.image_path)
        else:
            tool = self._write_tool(tool_id, partial)

        logger.info("tool_id=%s fields=%s updated", tool_id, sorted(partial))
        return tool

    def borrow_tool(self, tool_id: int, borrowed_by: Optional[str] = None) -> Tool:
        return self.update_tool(tool_id, ToolWriteRequest(is_borrowed=True, borrowed_by=borrowed_by))

    def return_tool(self, tool_id: int) -> Tool:
        return self.update_tool(tool_id, ToolWriteRequest(is_borrowed=False))

    def delete_tool(self, tool_id: int) -> None:
        with self.backend.transaction() as db:
            row = crud.get_tool_row(db, tool_id)
            if row is None:
                raise NotFoundError("tool not found")
            image_path = row.image_path
            crud.delete_tool(db, tool_id, self.backend.search, commit=False)

        self.assets.delete(image_path)
        logger.info("tool_id=%s deleted", tool_id)

    def serve_image(self, filename: str) -> bytes:
        return self.assets.serve(filename)

    # ---------- Maintenance ----------
    def rebuild_search_index(self) -> None:
        self.backend.rebuild_search()

    def find_orphaned_assets(self) -> list[str]:
        with self.backend.transaction() as db:
            referenced = {self.assets.filename_of(p) for p in crud.list_image_paths(db)}
        return [name for name in self.assets.list_filenames() if name not in referenced]

    def prune_orphaned_assets(self) -> list[str]:
        orphans = self.find_orphaned_assets()
        for name in orphans:
            self.assets.delete(self.assets.reference_for(name))
        logger.info("orphans=%s pruned", len(orphans))
        return orphans

    # ---------- internals ----------
    def _tool_partial(self, request: ToolWriteRequest) -> dict[str, Any]:
        supplied = request.model_fields_set
        partial: dict[str, Any] = {}

        if "label" in supplied:
            partial["label"] = require_text(request.label, "label")
        if "description" in supplied:
            partial["description"] = trim_or_none(request.description)
        if "notes" in supplied:
            partial["notes"] = trim_or_none(request.notes)
        if "location_id" in supplied:
            partial["location_id"] = request.location_id
        if "is_borrowed" in supplied and request.is_borrowed is not None:
            partial["is_borrowed"] = request.is_borrowed
        if "borrowed_by" in supplied:
            partial["borrowed_by"] = trim_or_none(request.borrowed_by)
        return partial

    def _write_tool(self, tool_id: int, partial: dict[str, Any]) -> Tool:
        with self.backend.transaction() as db:
            row = crud.get_tool_row(db, tool_id)
            if row is None:
                raise NotFoundError("tool not found")
            if partial.get("location_id") is not None and not crud.location_exists(db, partial["location_id"]):
                raise NotFoundError("location not found")

            partial = dict(partial)
            is_borrowed = partial.get("is_borrowed", bool(row.is_borrowed))
            if is_borrowed:
                if not row.is_borrowed:
                    partial["borrowed_at"] = crud.utcnow()
            else:
                partial["borrowed_at"] = None
                partial["borrowed_by"] = None

            return crud.update_tool(db, tool_id, partial, self.backend.search, commit=False)
