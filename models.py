from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class LocationIn(BaseModel):
    name: str
    description: Optional[str] = None
    parent_id: Optional[int] = None

class LocationUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None

class Location(LocationIn):
    id: int
    created_at: datetime
    updated_at: datetime

class LocationSummary(Location):
    tool_count: int = 0

class ImageUpload(BaseModel):
    data: bytes
    filename: str = ""

class ToolWriteRequest(BaseModel):
    """Normalized tool write; fields left unset are not touched on update."""

    label: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    location_id: Optional[int] = None
    is_borrowed: Optional[bool] = None
    borrowed_by: Optional[str] = None
    image: Optional[ImageUpload] = None
    remove_image: bool = False

class Tool(BaseModel):
    id: int
    label: str
    description: Optional[str] = None
    notes: Optional[str] = None
    image_path: Optional[str] = None
    location_id: Optional[int] = None
    is_borrowed: bool = False
    borrowed_by: Optional[str] = None
    borrowed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

class ToolWithLocation(Tool):
    location: Optional[Location] = None

class ToolDetail(ToolWithLocation):
    location_path: list[Location] = []
