from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from web.deps import get_current_user, get_item_service
from web.schemas import ItemRequest

# Every item route is owner-scoped; the guard resolves the owner.
router = APIRouter(prefix="/api/items", dependencies=[Depends(get_current_user)])


@router.post("")
async def create_item(request: Request, payload: ItemRequest):
    user = request.state.user
    item = get_item_service(request).create_item(user.id, payload.name, payload.description)
    return JSONResponse(item.model_dump(mode="json"), status_code=201)


@router.get("")
async def list_items(request: Request):
    user = request.state.user
    items = get_item_service(request).list_items(user.id)
    return JSONResponse([item.model_dump(mode="json") for item in items])


@router.get("/{item_id}")
async def get_item(request: Request, item_id: int):
    user = request.state.user
    item = get_item_service(request).get_item(item_id, user.id)
    return JSONResponse(item.model_dump(mode="json"))


@router.put("/{item_id}")
async def update_item(request: Request, item_id: int, payload: ItemRequest):
    user = request.state.user
    item = get_item_service(request).update_item(item_id, user.id, payload.name, payload.description)
    return JSONResponse(item.model_dump(mode="json"))


@router.delete("/{item_id}")
async def delete_item(request: Request, item_id: int):
    user = request.state.user
    get_item_service(request).delete_item(item_id, user.id)
    return JSONResponse({"message": "Item deleted successfully"})
