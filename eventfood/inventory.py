"""Which food items an event exposes, and how many of each a team may take."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from .errors import AlreadyAllocated, NotFound
from .models import Event, FoodItem, Inventory, InventoryItem

logger = logging.getLogger(__name__)


def get_event_inventory(session: Session, event_id: int) -> Optional[Inventory]:
    return session.exec(select(Inventory).where(Inventory.event_id == event_id)).first()


def _get_or_create_inventory(session: Session, event_id: int) -> Inventory:
    inventory = get_event_inventory(session, event_id)
    if inventory is None:
        inventory = Inventory(event_id=event_id)
        session.add(inventory)
        session.flush()
        logger.info("Created inventory %s for event %s", inventory.id, event_id)
    return inventory


def allocate_food_to_event(
    session: Session,
    event_id: int,
    food_item_id: int,
    max_order_per_team: Optional[int] = None,
) -> InventoryItem:
    if session.get(Event, event_id) is None:
        raise NotFound("Event not found", event_id=event_id)
    if session.get(FoodItem, food_item_id) is None:
        raise NotFound("Food item not found", food_item_id=food_item_id)

    try:
        inventory = _get_or_create_inventory(session, event_id)
        existing = session.exec(
            select(InventoryItem).where(
                InventoryItem.inventory_id == inventory.id,
                InventoryItem.food_item_id == food_item_id,
            )
        ).first()
        if existing is not None:
            raise AlreadyAllocated(event_id=event_id, food_item_id=food_item_id)

        item = InventoryItem(
            inventory_id=inventory.id,
            food_item_id=food_item_id,
            max_order_per_team=max_order_per_team,
        )
        session.add(item)
        session.commit()
    except AlreadyAllocated:
        session.rollback()
        raise
    except IntegrityError as exc:
        # Lost a race against another allocation of the same pair.
        session.rollback()
        raise AlreadyAllocated(event_id=event_id, food_item_id=food_item_id) from exc

    session.refresh(item)
    logger.info(
        "Allocated food item %s to event %s (cap %s)",
        food_item_id, event_id, "unbounded" if max_order_per_team is None else max_order_per_team,
    )
    return item


def get_allocation(session: Session, inventory_item_id: int) -> InventoryItem:
    item = session.get(InventoryItem, inventory_item_id)
    if item is None:
        raise NotFound("Inventory item not found", inventory_item_id=inventory_item_id)
    return item


def update_allocation_cap(session: Session, inventory_item_id: int, max_order_per_team: Optional[int]) -> InventoryItem:
    item = get_allocation(session, inventory_item_id)
    item.max_order_per_team = max_order_per_team
    session.add(item)
    session.commit()
    session.refresh(item)
    logger.info("Inventory item %s cap set to %s", inventory_item_id, max_order_per_team)
    return item


def deallocate(session: Session, inventory_item_id: int) -> None:
    """Remove a food item from an event. Orders already placed keep their own snapshot."""
    item = get_allocation(session, inventory_item_id)
    food_item_id = item.food_item_id
    session.delete(item)
    session.commit()
    logger.info("Inventory item %s removed (food item %s)", inventory_item_id, food_item_id)


def list_event_food_items(session: Session, event_id: int) -> list[InventoryItem]:
    inventory = get_event_inventory(session, event_id)
    if inventory is None:
        return []
    return list(session.exec(
        select(InventoryItem)
        .where(InventoryItem.inventory_id == inventory.id)
        .options(selectinload(InventoryItem.food_item))
        .order_by(InventoryItem.id)
    ).all())


def list_available_food_items(session: Session, event_id: int) -> list[FoodItem]:
    """Active food items not yet allocated to the event."""
    stmt = select(FoodItem).where(FoodItem.is_active == True)  # noqa: E712
    inventory = get_event_inventory(session, event_id)
    if inventory is not None:
        allocated = select(InventoryItem.food_item_id).where(InventoryItem.inventory_id == inventory.id)
        stmt = stmt.where(FoodItem.id.not_in(allocated))
    return list(session.exec(stmt.order_by(FoodItem.name)).all())
