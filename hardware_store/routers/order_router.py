from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from .. import schemas
from ..deps import get_order_service
from ..orders import OrderService

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)


@router.post("", response_model=schemas.OrderPlaced, status_code=status.HTTP_201_CREATED)
def place_order(
    body: schemas.OrderCreate,
    service: OrderService = Depends(get_order_service),
):
    """Check out a cart.

    Stock is taken as soon as the order is placed; names and prices are
    copied from the catalog, whatever the client sent.
    """
    order = service.place_order(body.username, body.cart)
    return {"order_id": order.id, "order": order}


@router.get("", response_model=Dict[str, schemas.Order])
def list_orders(
    admin_code: Optional[str] = Query(None, alias="adminCode"),
    service: OrderService = Depends(get_order_service),
):
    return service.list_all_orders(admin_code)


@router.get("/{order_id}", response_model=schemas.Order)
def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    return service.get_order(order_id)


@router.put("/{order_id}", response_model=schemas.Order)
def update_order_status(
    order_id: str,
    body: schemas.OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
):
    """Organizer status change or note.

    Same status plus a note only records the note; a real change also moves
    stock when needed and notifies the participant.
    """
    return service.update_status(
        order_id,
        body.status,
        note=body.note,
        admin_code=body.admin_code,
    )
