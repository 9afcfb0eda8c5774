from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import Identity, ensure_team_access, require_admin, require_session
from ..db import get_session
from ..orders import cancel_order, get_order, list_orders, place_order, update_order_status
from ..schemas import OrderCreate, OrderIdIn, OrderRead, OrderStatusUpdate

router = APIRouter(prefix="/api", tags=["orders"])


@router.get("/orders.getAllOrders", response_model=list[OrderRead])
def get_all_orders(admin: Identity = Depends(require_admin)):
    with get_session() as session:
        return [OrderRead.model_validate(o) for o in list_orders(session)]


@router.get("/orders.getTeamOrders", response_model=list[OrderRead])
def get_team_orders(team_id: int, identity: Identity = Depends(require_session)):
    ensure_team_access(identity, team_id)
    with get_session() as session:
        return [OrderRead.model_validate(o) for o in list_orders(session, team_id=team_id)]


@router.get("/orders.getEventOrders", response_model=list[OrderRead])
def get_event_orders(event_id: int, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        return [OrderRead.model_validate(o) for o in list_orders(session, event_id=event_id)]


@router.post("/orders.createOrder", response_model=OrderRead)
def create_order(data: OrderCreate, identity: Identity = Depends(require_session)):
    ensure_team_access(identity, data.team_id)
    with get_session() as session:
        order = place_order(session, data.team_id, data.event_id, data.items)
        return OrderRead.model_validate(get_order(session, order.id))


@router.post("/orders.updateOrderStatus", response_model=OrderRead)
def update_status(data: OrderStatusUpdate, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        order = update_order_status(session, data.order_id, data.order_status, data.payment_status)
        return OrderRead.model_validate(get_order(session, order.id))


@router.post("/orders.cancelOrder", response_model=OrderRead)
def cancel(data: OrderIdIn, identity: Identity = Depends(require_session)):
    with get_session() as session:
        ensure_team_access(identity, get_order(session, data.order_id).team_id)
        order = cancel_order(session, data.order_id)
        return OrderRead.model_validate(get_order(session, order.id))
