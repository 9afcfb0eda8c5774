"""Request and response shapes for the RPC procedures.

Read models are validated straight from ORM rows (SQLModel enables
``from_attributes``), so nested relationships must be loaded while the
session is still open.
"""

from datetime import datetime
from typing import Optional
from pydantic import field_validator
from sqlmodel import SQLModel, Field

from .models import OrderStatus, PaymentStatus
from .utils import as_naive_utc


# ---- Read models ----

class FoodItemRead(SQLModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    available_qty: int
    is_active: bool
    restrictions: list[str] = []


class EventRead(SQLModel):
    id: int
    name: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    created_at: datetime


class EventSummary(EventRead):
    order_count: int = 0
    team_count: int = 0
    food_item_count: int = 0


class TeamRead(SQLModel):
    id: int
    name: str
    username: str
    event_id: Optional[int] = None
    created_at: datetime


class TeamWithOrderCount(TeamRead):
    order_count: int = 0


class InventoryItemRead(SQLModel):
    id: int
    inventory_id: int
    food_item_id: int
    max_order_per_team: Optional[int] = None
    food_item: FoodItemRead


class EventDetail(EventRead):
    teams: list[TeamRead] = []
    inventory_items: list[InventoryItemRead] = []


class OrderItemRead(SQLModel):
    id: int
    food_item_id: int
    quantity: int
    price_at_order: float
    food_item: FoodItemRead


class OrderRead(SQLModel):
    id: int
    team_id: int
    event_id: int
    total_amount: float
    order_status: OrderStatus
    payment_status: PaymentStatus
    placed_at: datetime
    items: list[OrderItemRead]
    team: TeamRead
    event: EventRead


class TeamDetail(TeamRead):
    event: Optional[EventRead] = None
    orders: list[OrderRead] = []


class TeamCredentialRead(SQLModel):
    id: int
    team_id: int
    email: Optional[str] = None
    password: Optional[str] = None
    created_at: datetime


# ---- Auth ----

class AdminLogin(SQLModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TeamLogin(SQLModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


# ---- Events ----

class EventCreate(SQLModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime

    @field_validator("start_date", "end_date")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return as_naive_utc(v)


class EventUpdate(EventCreate):
    id: int


class IdIn(SQLModel):
    id: int


class AddFoodToEvent(SQLModel):
    event_id: int
    food_item_id: int
    max_order_per_team: Optional[int] = Field(default=None, ge=0)


class UpdateInventoryItem(SQLModel):
    inventory_item_id: int
    max_order_per_team: Optional[int] = Field(default=None, ge=0)


class RemoveFoodFromEvent(SQLModel):
    inventory_item_id: int


# ---- Teams ----

class TeamSignup(SQLModel):
    name: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TeamCreate(TeamSignup):
    event_id: Optional[int] = None


class TeamAddToEvent(TeamSignup):
    event_id: int


class TeamUpdate(SQLModel):
    id: int
    name: Optional[str] = Field(default=None, min_length=1)
    username: Optional[str] = Field(default=None, min_length=1)
    password: Optional[str] = Field(default=None, min_length=1)


class TeamAssign(SQLModel):
    team_id: int
    event_id: int


class BulkAddTeams(SQLModel):
    event_id: int
    teams: list[TeamSignup] = Field(min_length=1)


class BulkAddResult(SQLModel):
    count: int


class TeamCredentialCreate(SQLModel):
    team_id: int
    email: Optional[str] = None
    password: Optional[str] = None


class TeamCredentialUpdate(SQLModel):
    id: int
    email: Optional[str] = None
    password: Optional[str] = None


# ---- Orders ----

class OrderLineIn(SQLModel):
    food_item_id: int
    quantity: int = Field(ge=1)
    price_at_order: float = Field(ge=0)


class OrderCreate(SQLModel):
    team_id: int
    event_id: int
    items: list[OrderLineIn] = Field(min_length=1)


class OrderStatusUpdate(SQLModel):
    order_id: int
    order_status: OrderStatus
    payment_status: Optional[PaymentStatus] = None


class OrderIdIn(SQLModel):
    order_id: int


# ---- Food ----

class FoodItemCreate(SQLModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price: float = Field(ge=0)
    image_url: Optional[str] = None
    available_qty: int = Field(default=0, ge=0)
    restrictions: list[str] = []


class FoodItemUpdate(SQLModel):
    id: int
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None
    restrictions: Optional[list[str]] = None


class FoodItemStockUpdate(SQLModel):
    id: int
    available_qty: int = Field(ge=0)


class FoodItemDeleteResult(SQLModel):
    id: int
    deleted: bool
    deactivated: bool


# ---- Quick links ----

class QuickLinkRead(SQLModel):
    id: int
    title: str
    description: str
    url: str
    active: bool
    created_at: datetime


class QuickLinkCreate(SQLModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    url: str = Field(min_length=1)


class QuickLinkToggle(SQLModel):
    id: int
    active: bool


class TeamStats(SQLModel):
    total_teams: int
    teams_with_orders: int
