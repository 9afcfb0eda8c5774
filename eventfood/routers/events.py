from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlmodel import select

from ..auth import Identity, require_admin
from ..db import get_session
from ..errors import InvalidEventWindow, NotFound, RecordInUse
from ..inventory import (
    allocate_food_to_event,
    deallocate,
    get_allocation,
    list_available_food_items,
    list_event_food_items,
    update_allocation_cap,
)
from ..models import Event, Order, Team
from ..schemas import (
    AddFoodToEvent,
    EventCreate,
    EventDetail,
    EventRead,
    EventSummary,
    EventUpdate,
    FoodItemRead,
    IdIn,
    InventoryItemRead,
    RemoveFoodFromEvent,
    TeamRead,
    TeamWithOrderCount,
    UpdateInventoryItem,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["events"])


def _check_window(data: EventCreate) -> None:
    if data.end_date <= data.start_date:
        raise InvalidEventWindow(start_date=data.start_date.isoformat(), end_date=data.end_date.isoformat())


def _order_counts(session, column, ids: list[int]) -> dict[int, int]:
    if not ids:
        return {}
    rows = session.exec(
        select(column, func.count(Order.id)).where(column.in_(ids)).group_by(column)
    ).all()
    return {key: count for key, count in rows}


@router.get("/events.getAllEvents", response_model=list[EventSummary])
def get_all_events():
    with get_session() as session:
        events = session.exec(select(Event).order_by(Event.start_date.desc())).all()
        order_counts = _order_counts(session, Order.event_id, [e.id for e in events])
        result = []
        for e in events:
            result.append(EventSummary(
                **EventRead.model_validate(e).model_dump(),
                order_count=order_counts.get(e.id, 0),
                team_count=len(e.teams),
                food_item_count=len(e.inventory.inventory_items) if e.inventory else 0,
            ))
        return result


@router.get("/events.getById", response_model=EventDetail)
def get_event(id: int):
    with get_session() as session:
        event = session.get(Event, id)
        if not event:
            raise NotFound("Event not found", event_id=id)
        return EventDetail(
            **EventRead.model_validate(event).model_dump(),
            teams=[TeamRead.model_validate(t) for t in event.teams],
            inventory_items=[InventoryItemRead.model_validate(i) for i in list_event_food_items(session, id)],
        )


@router.get("/events.getEventTeams", response_model=list[TeamWithOrderCount])
def get_event_teams(event_id: int):
    with get_session() as session:
        teams = session.exec(select(Team).where(Team.event_id == event_id).order_by(Team.name)).all()
        counts = _order_counts(session, Order.team_id, [t.id for t in teams])
        return [
            TeamWithOrderCount(**TeamRead.model_validate(t).model_dump(), order_count=counts.get(t.id, 0))
            for t in teams
        ]


@router.post("/events.create", response_model=EventRead)
def create_event(data: EventCreate, admin: Identity = Depends(require_admin)):
    _check_window(data)
    with get_session() as session:
        event = Event(
            name=data.name.strip(),
            description=(data.description or "").strip() or None,
            start_date=data.start_date,
            end_date=data.end_date,
            created_by_user_id=admin.id,
        )
        session.add(event)
        session.commit()
        session.refresh(event)
        logger.info("Event %s created by admin %s", event.id, admin.id)
        return EventRead.model_validate(event)


@router.post("/events.update", response_model=EventRead)
def update_event(data: EventUpdate, admin: Identity = Depends(require_admin)):
    _check_window(data)
    with get_session() as session:
        event = session.get(Event, data.id)
        if not event:
            raise NotFound("Event not found", event_id=data.id)
        event.name = data.name.strip()
        event.description = (data.description or "").strip() or None
        event.start_date = data.start_date
        event.end_date = data.end_date
        session.add(event)
        session.commit()
        session.refresh(event)
        return EventRead.model_validate(event)


@router.post("/events.delete", response_model=EventRead)
def delete_event(data: IdIn, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        event = session.get(Event, data.id)
        if not event:
            raise NotFound("Event not found", event_id=data.id)
        order_count = session.exec(select(func.count(Order.id)).where(Order.event_id == data.id)).one()
        if order_count:
            raise RecordInUse("Event has orders and cannot be deleted", event_id=data.id, order_count=order_count)

        result = EventRead.model_validate(event)
        for team in event.teams:
            team.event_id = None
            session.add(team)
        session.delete(event)
        session.commit()
        logger.info("Event %s deleted by admin %s", data.id, admin.id)
        return result


# ---- Event food allocation ----

@router.get("/events.getEventFoodItems", response_model=list[InventoryItemRead])
def get_event_food_items(event_id: int):
    with get_session() as session:
        return [InventoryItemRead.model_validate(i) for i in list_event_food_items(session, event_id)]


@router.get("/events.getAvailableFoodItems", response_model=list[FoodItemRead])
def get_available_food_items(event_id: int):
    with get_session() as session:
        return [FoodItemRead.model_validate(f) for f in list_available_food_items(session, event_id)]


@router.post("/events.addFoodToEvent", response_model=InventoryItemRead)
def add_food_to_event(data: AddFoodToEvent, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        item = allocate_food_to_event(session, data.event_id, data.food_item_id, data.max_order_per_team)
        return InventoryItemRead.model_validate(item)


@router.post("/events.updateInventoryItem", response_model=InventoryItemRead)
def update_inventory_item(data: UpdateInventoryItem, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        item = update_allocation_cap(session, data.inventory_item_id, data.max_order_per_team)
        return InventoryItemRead.model_validate(item)


@router.post("/events.removeFoodFromEvent", response_model=InventoryItemRead)
def remove_food_from_event(data: RemoveFoodFromEvent, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        result = InventoryItemRead.model_validate(get_allocation(session, data.inventory_item_id))
        deallocate(session, data.inventory_item_id)
        return result
