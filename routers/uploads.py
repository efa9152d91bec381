from fastapi import APIRouter, Depends
from fastapi.responses import Response

from assets import media_type
from dependencies import get_inventory
from inventory import InventoryService

router = APIRouter()


@router.get("/uploads/{filename}")
def serve_upload(
    filename: str,
    inventory: InventoryService = Depends(get_inventory),
):
    data = inventory.serve_image(filename)
    return Response(
        content=data,
        media_type=media_type(filename),
        headers={"Cache-Control": "public, max-age=31536000"},
    )
