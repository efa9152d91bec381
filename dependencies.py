from fastapi import Request

from inventory import InventoryService


def get_inventory(request: Request) -> InventoryService:
    return request.app.state.inventory
