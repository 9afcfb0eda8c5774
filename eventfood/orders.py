"""Order placement, status changes and cancellation.

``place_order`` is the only way an Order is created. It validates and writes
inside one transaction:

* the team row and every requested FoodItem row are locked (``FOR UPDATE``,
  food rows in ascending id order) before anything is checked, so two orders
  for the same team or the same item are serialised until commit;
* stock is decremented with a conditional ``UPDATE ... WHERE available_qty >= n``
  so a decrement can never take stock below zero even if validation was
  somehow bypassed.

SQLite has no row locks; ``db.make_engine`` starts its transactions with
``BEGIN IMMEDIATE`` instead.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from .errors import (
    CannotCancel,
    EventNotActive,
    FoodOrderError,
    InsufficientStock,
    InvalidStatusTransition,
    ItemInactive,
    ItemNotAllocated,
    NoInventory,
    NotEnrolled,
    NotFound,
    OrderTransactionFailed,
    OrderValidationError,
    TeamCapExceeded,
)
from .models import (
    Event,
    FoodItem,
    Inventory,
    InventoryItem,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Team,
)
from .schemas import OrderLineIn
from .utils import fmt_dt, now_utc, round_money

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


@contextmanager
def _atomic(session: Session, action: str) -> Iterator[None]:
    try:
        yield
    except FoodOrderError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("%s failed, transaction rolled back", action)
        raise OrderTransactionFailed() from exc


def _with_details(stmt):
    return stmt.options(
        selectinload(Order.items).selectinload(OrderItem.food_item),
        selectinload(Order.team),
        selectinload(Order.event),
    )


def team_ordered_quantity(session: Session, team_id: int, event_id: int, food_item_id: int) -> int:
    """Quantity of a food item a team already holds in an event, ignoring cancelled orders."""
    stmt = (
        select(func.coalesce(func.sum(OrderItem.quantity), 0))
        .select_from(OrderItem)
        .join(Order, Order.id == OrderItem.order_id)
        .where(
            Order.team_id == team_id,
            Order.event_id == event_id,
            OrderItem.food_item_id == food_item_id,
            Order.order_status != OrderStatus.CANCELLED,
        )
    )
    return int(session.exec(stmt).one())


def _requested_by_food(items: Sequence[OrderLineIn]) -> dict[int, int]:
    # Lines naming the same food item are checked against their sum.
    requested: dict[int, int] = {}
    for line in items:
        requested[line.food_item_id] = requested.get(line.food_item_id, 0) + line.quantity
    return requested


def _validate(session: Session, team_id: int, event_id: int, requested: dict[int, int], now: datetime) -> None:
    team = session.exec(
        select(Team).where(Team.id == team_id).with_for_update().execution_options(populate_existing=True)
    ).first()
    if team is None or team.event_id != event_id:
        raise NotEnrolled(team_id=team_id, event_id=event_id)

    event = session.get(Event, event_id)
    if event is None:
        raise NotFound("Event not found", event_id=event_id)
    if not (event.start_date <= now <= event.end_date):
        raise EventNotActive(
            f"Event is open for ordering from {fmt_dt(event.start_date)} to {fmt_dt(event.end_date)}",
            event_id=event_id,
            start_date=event.start_date.isoformat(),
            end_date=event.end_date.isoformat(),
        )

    inventory = session.exec(select(Inventory).where(Inventory.event_id == event_id)).first()
    if inventory is None:
        raise NoInventory(event_id=event_id)

    allocations = {
        ii.food_item_id: ii
        for ii in session.exec(select(InventoryItem).where(InventoryItem.inventory_id == inventory.id)).all()
    }
    foods = {
        f.id: f
        for f in session.exec(
            select(FoodItem)
            .where(FoodItem.id.in_(sorted(requested)))
            .order_by(FoodItem.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).all()
    }

    for food_item_id, quantity in requested.items():
        allocation = allocations.get(food_item_id)
        food = foods.get(food_item_id)
        if allocation is None or food is None:
            raise ItemNotAllocated(
                f"Food item {food_item_id} is not available for this event",
                food_item_id=food_item_id,
            )
        if not food.is_active:
            raise ItemInactive(f"Food item {food.name} is no longer available", food_item_id=food_item_id)
        if food.available_qty < quantity:
            raise InsufficientStock(
                f"Not enough quantity available for {food.name}. "
                f"Available: {food.available_qty}, Requested: {quantity}",
                food_item_id=food_item_id,
                available=food.available_qty,
                requested=quantity,
            )
        cap = allocation.max_order_per_team
        if cap is not None:
            already = team_ordered_quantity(session, team_id, event_id, food_item_id)
            if already + quantity > cap:
                raise TeamCapExceeded(
                    f"Team order limit exceeded for {food.name}. "
                    f"Limit: {cap}, Already ordered: {already}, Requested: {quantity}",
                    food_item_id=food_item_id,
                    cap=cap,
                    already_ordered=already,
                    requested=quantity,
                )


def _decrement_stock(session: Session, food_item_id: int, quantity: int) -> None:
    result = session.connection().execute(
        update(FoodItem)
        .where(FoodItem.id == food_item_id, FoodItem.available_qty >= quantity)
        .values(available_qty=FoodItem.available_qty - quantity)
    )
    if result.rowcount == 0:
        raise InsufficientStock(food_item_id=food_item_id, requested=quantity)


def _restore_stock(session: Session, order: Order) -> None:
    # Same ascending id order as the locks taken in place_order.
    for item in sorted(order.items, key=lambda i: (i.food_item_id, i.id)):
        session.connection().execute(
            update(FoodItem)
            .where(FoodItem.id == item.food_item_id)
            .values(available_qty=FoodItem.available_qty + item.quantity)
        )


def place_order(
    session: Session,
    team_id: int,
    event_id: int,
    items: Sequence[OrderLineIn],
    now: Optional[datetime] = None,
) -> Order:
    """Validate and atomically record a team's order.

    Raises one of the ``OrderValidationError`` subclasses before any write,
    or ``OrderTransactionFailed`` if the store fails during the commit. In
    both cases nothing is persisted.
    """
    now = now or now_utc()
    requested = _requested_by_food(items)

    try:
        with _atomic(session, f"Order for team {team_id} in event {event_id}"):
            _validate(session, team_id, event_id, requested, now)

            order = Order(
                team_id=team_id,
                event_id=event_id,
                total_amount=round_money(sum(line.quantity * line.price_at_order for line in items)),
                order_status=OrderStatus.PENDING,
                payment_status=PaymentStatus.pending,
                placed_at=now,
            )
            session.add(order)
            session.flush()

            for line in items:
                session.add(OrderItem(
                    order_id=order.id,
                    food_item_id=line.food_item_id,
                    quantity=line.quantity,
                    price_at_order=line.price_at_order,
                ))
                _decrement_stock(session, line.food_item_id, line.quantity)

            session.commit()
    except OrderValidationError as exc:
        logger.warning("Order rejected for team %s in event %s: %s %s", team_id, event_id, exc.code, exc.detail)
        raise

    logger.info("Order %s placed by team %s in event %s, total %.2f", order.id, team_id, event_id, order.total_amount)
    return order


def _lock_order(session: Session, order_id: int) -> Order:
    order = session.exec(
        select(Order).where(Order.id == order_id).with_for_update().execution_options(populate_existing=True)
    ).first()
    if order is None:
        raise NotFound("Order not found", order_id=order_id)
    return order


def cancel_order(session: Session, order_id: int) -> Order:
    """Cancel an open order and put every line's quantity back in stock."""
    with _atomic(session, f"Cancelling order {order_id}"):
        order = _lock_order(session, order_id)
        if order.order_status in TERMINAL_STATUSES:
            raise CannotCancel(order_id=order_id, order_status=order.order_status.value)
        _restore_stock(session, order)
        order.order_status = OrderStatus.CANCELLED
        session.add(order)
        session.commit()

    logger.info("Order %s cancelled, stock restored", order_id)
    return order


def update_order_status(
    session: Session,
    order_id: int,
    new_status: OrderStatus,
    payment_status: Optional[PaymentStatus] = None,
) -> Order:
    with _atomic(session, f"Updating order {order_id}"):
        order = _lock_order(session, order_id)
        current = order.order_status
        if new_status != current:
            if new_status not in ALLOWED_TRANSITIONS[current]:
                raise InvalidStatusTransition(
                    f"Cannot move order from {current.value} to {new_status.value}",
                    order_id=order_id,
                    from_status=current.value,
                    to_status=new_status.value,
                )
            if new_status == OrderStatus.CANCELLED:
                _restore_stock(session, order)
            order.order_status = new_status
        if payment_status is not None:
            order.payment_status = payment_status
        session.add(order)
        session.commit()

    logger.info("Order %s now %s / %s", order_id, order.order_status.value, order.payment_status.value)
    return order


def get_order(session: Session, order_id: int) -> Order:
    order = session.exec(_with_details(select(Order).where(Order.id == order_id))).first()
    if order is None:
        raise NotFound("Order not found", order_id=order_id)
    return order


def list_orders(session: Session, team_id: Optional[int] = None, event_id: Optional[int] = None) -> list[Order]:
    stmt = select(Order)
    if team_id is not None:
        stmt = stmt.where(Order.team_id == team_id)
    if event_id is not None:
        stmt = stmt.where(Order.event_id == event_id)
    stmt = _with_details(stmt.order_by(Order.placed_at.desc(), Order.id.desc()))
    return list(session.exec(stmt).all())
