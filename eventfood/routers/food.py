from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlmodel import Session, select

from ..auth import Identity, require_admin
from ..db import get_session
from ..errors import NotFound
from ..models import FoodItem, InventoryItem, OrderItem
from ..schemas import (
    FoodItemCreate,
    FoodItemDeleteResult,
    FoodItemRead,
    FoodItemStockUpdate,
    FoodItemUpdate,
    IdIn,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["food"])


def _get_food(session: Session, food_item_id: int) -> FoodItem:
    food = session.get(FoodItem, food_item_id)
    if not food:
        raise NotFound("Food item not found", food_item_id=food_item_id)
    return food


@router.get("/food.getAllFoodItems", response_model=list[FoodItemRead])
def get_all_food_items():
    with get_session() as session:
        foods = session.exec(select(FoodItem).order_by(FoodItem.available_qty.asc(), FoodItem.name)).all()
        return [FoodItemRead.model_validate(f) for f in foods]


@router.get("/food.getFoodItemById", response_model=FoodItemRead)
def get_food_item_by_id(id: int):
    with get_session() as session:
        return FoodItemRead.model_validate(_get_food(session, id))


@router.post("/food.createFoodItem", response_model=FoodItemRead)
def create_food_item(data: FoodItemCreate, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        food = FoodItem(
            name=data.name.strip(),
            description=(data.description or "").strip() or None,
            price=data.price,
            image_url=(data.image_url or "").strip() or None,
            available_qty=data.available_qty,
            restrictions=[r.strip() for r in data.restrictions if r.strip()],
        )
        session.add(food)
        session.commit()
        session.refresh(food)
        logger.info("Food item %s (%s) created with %s in stock", food.id, food.name, food.available_qty)
        return FoodItemRead.model_validate(food)


@router.post("/food.updateFoodItem", response_model=FoodItemRead)
def update_food_item(data: FoodItemUpdate, admin: Identity = Depends(require_admin)):
    # Price changes never touch placed orders; OrderItem keeps its own price_at_order.
    with get_session() as session:
        food = _get_food(session, data.id)
        if data.name is not None:
            food.name = data.name.strip()
        if data.description is not None:
            food.description = data.description.strip() or None
        if data.price is not None:
            food.price = data.price
        if data.image_url is not None:
            food.image_url = data.image_url.strip() or None
        if data.is_active is not None:
            food.is_active = data.is_active
        if data.restrictions is not None:
            food.restrictions = [r.strip() for r in data.restrictions if r.strip()]
        session.add(food)
        session.commit()
        session.refresh(food)
        return FoodItemRead.model_validate(food)


@router.post("/food.updateFoodItemStock", response_model=FoodItemRead)
def update_food_item_stock(data: FoodItemStockUpdate, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        food = session.exec(
            select(FoodItem).where(FoodItem.id == data.id).with_for_update().execution_options(populate_existing=True)
        ).first()
        if not food:
            raise NotFound("Food item not found", food_item_id=data.id)
        previous = food.available_qty
        food.available_qty = data.available_qty
        session.add(food)
        session.commit()
        session.refresh(food)
        logger.info("Food item %s stock set by admin %s: %s -> %s", food.id, admin.id, previous, food.available_qty)
        return FoodItemRead.model_validate(food)


@router.post("/food.deleteFoodItem", response_model=FoodItemDeleteResult)
def delete_food_item(data: IdIn, admin: Identity = Depends(require_admin)):
    """Delete a food item, or deactivate it when orders already reference it."""
    with get_session() as session:
        food = _get_food(session, data.id)
        ordered = session.exec(select(func.count(OrderItem.id)).where(OrderItem.food_item_id == data.id)).one()
        if ordered:
            food.is_active = False
            session.add(food)
            session.commit()
            logger.info("Food item %s deactivated instead of deleted (%s order lines)", data.id, ordered)
            return FoodItemDeleteResult(id=data.id, deleted=False, deactivated=True)

        for allocation in session.exec(select(InventoryItem).where(InventoryItem.food_item_id == data.id)).all():
            session.delete(allocation)
        session.delete(food)
        session.commit()
        logger.info("Food item %s deleted", data.id)
        return FoodItemDeleteResult(id=data.id, deleted=True, deactivated=False)
