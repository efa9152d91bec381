from typing import Optional

from fastapi import APIRouter, Depends

from dependencies import get_inventory
from filter_helpers import parse_id, parse_optional_id
from inventory import InventoryService
from models import Location, LocationIn, LocationSummary, LocationUpdate

router = APIRouter()


@router.get("/api/locations", response_model=list[Location])
def list_locations_api(
    parent_id: Optional[str] = None,
    flat: bool = False,
    inventory: InventoryService = Depends(get_inventory),
):
    return inventory.list_locations(
        parent_id=parse_optional_id(parent_id, "location"),
        flat=flat,
    )


@router.get("/api/locations/summary", response_model=list[LocationSummary])
def location_summaries_api(inventory: InventoryService = Depends(get_inventory)):
    return inventory.location_summaries()


@router.post("/api/locations", response_model=Location, status_code=201)
def create_location_api(
    body: LocationIn,
    inventory: InventoryService = Depends(get_inventory),
):
    return inventory.create_location(body)


@router.get("/api/locations/{location_id}", response_model=Location)
def get_location_api(
    location_id: str,
    inventory: InventoryService = Depends(get_inventory),
):
    return inventory.get_location(parse_id(location_id, "location"))


@router.get("/api/locations/{location_id}/path", response_model=list[Location])
def location_path_api(
    location_id: str,
    inventory: InventoryService = Depends(get_inventory),
):
    return inventory.location_path(parse_id(location_id, "location"))


@router.put("/api/locations/{location_id}", response_model=Location)
def update_location_api(
    location_id: str,
    body: LocationUpdate,
    inventory: InventoryService = Depends(get_inventory),
):
    return inventory.update_location(parse_id(location_id, "location"), body)


@router.delete("/api/locations/{location_id}")
def delete_location_api(
    location_id: str,
    inventory: InventoryService = Depends(get_inventory),
):
    inventory.delete_location(parse_id(location_id, "location"))
    return {"success": True}
