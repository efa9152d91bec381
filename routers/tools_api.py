from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ValidationError as PydanticValidationError
from starlette.datastructures import FormData, UploadFile

from dependencies import get_inventory
from errors import ValidationError
from filter_helpers import parse_bool_flag, parse_id, parse_optional_id
from inventory import InventoryService
from models import ImageUpload, Tool, ToolDetail, ToolWithLocation, ToolWriteRequest

router = APIRouter()

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")
TEXT_FIELDS = ("label", "description", "notes", "borrowed_by")


class BorrowIn(BaseModel):
    borrowed_by: Optional[str] = None


async def _form_to_write_request(form: FormData) -> ToolWriteRequest:
    fields: dict = {}
    for name in TEXT_FIELDS:
        value = form.get(name)
        if isinstance(value, str):
            fields[name] = value

    if "location_id" in form:
        raw = form.get("location_id")
        fields["location_id"] = parse_optional_id(raw if isinstance(raw, str) else None, "location")

    if "is_borrowed" in form:
        raw = form.get("is_borrowed")
        flag = parse_bool_flag(raw if isinstance(raw, str) else None)
        if flag is not None:
            fields["is_borrowed"] = flag

    fields["remove_image"] = form.get("remove_image") == "true"

    image = form.get("image")
    if isinstance(image, UploadFile):
        data = await image.read()
        if data:
            fields["image"] = ImageUpload(data=data, filename=image.filename or "")

    return ToolWriteRequest(**fields)


async def read_tool_write_request(request: Request) -> ToolWriteRequest:
    """Normalize a JSON or form tool body into a ToolWriteRequest."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return await _form_to_write_request(form)

    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("invalid JSON body") from None
    if not isinstance(body, dict):
        raise ValidationError("invalid JSON body")

    body.pop("image", None)
    try:
        return ToolWriteRequest.model_validate(body)
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid tool fields: {exc.error_count()} error(s)") from exc


@router.get("/api/tools", response_model=list[ToolWithLocation])
def list_tools_api(
    q: Optional[str] = None,
    location_id: Optional[str] = None,
    borrowed: Optional[str] = None,
    inventory: InventoryService = Depends(get_inventory),
):
    return inventory.list_tools(
        location_id=parse_optional_id(location_id, "location"),
        is_borrowed=parse_bool_flag(borrowed),
        q=q,
    )


@router.post("/api/tools", response_model=Tool, status_code=201)
async def create_tool_api(
    request: Request,
    inventory: InventoryService = Depends(get_inventory),
):
    body = await read_tool_write_request(request)
    return inventory.create_tool(body)


@router.get("/api/tools/{tool_id}", response_model=ToolDetail)
def get_tool_api(
    tool_id: str,
    inventory: InventoryService = Depends(get_inventory),
):
    return inventory.get_tool(parse_id(tool_id, "tool"))


@router.put("/api/tools/{tool_id}", response_model=Tool)
async def update_tool_api(
    tool_id: str,
    request: Request,
    inventory: InventoryService = Depends(get_inventory),
):
    parsed_id = parse_id(tool_id, "tool")
    body = await read_tool_write_request(request)
    return inventory.update_tool(parsed_id, body)


@router.post("/api/tools/{tool_id}/borrow", response_model=Tool)
def borrow_tool_api(
    tool_id: str,
    body: BorrowIn,
    inventory: InventoryService = Depends(get_inventory),
):
    return inventory.borrow_tool(parse_id(tool_id, "tool"), body.borrowed_by)


@router.post("/api/tools/{tool_id}/return", response_model=Tool)
def return_tool_api(
    tool_id: str,
    inventory: InventoryService = Depends(get_inventory),
):
    return inventory.return_tool(parse_id(tool_id, "tool"))


@router.delete("/api/tools/{tool_id}")
def delete_tool_api(
    tool_id: str,
    inventory: InventoryService = Depends(get_inventory),
):
    inventory.delete_tool(parse_id(tool_id, "tool"))
    return {"success": True}
