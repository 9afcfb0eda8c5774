from datetime import datetime
from enum import Enum
from typing import Optional
from sqlalchemy import JSON, CheckConstraint, Column, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str
    password_hash: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Event(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    created_by_user_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    teams: list["Team"] = Relationship(back_populates="event")
    orders: list["Order"] = Relationship(back_populates="event")
    inventory: Optional["Inventory"] = Relationship(
        back_populates="event",
        sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"},
    )


class Team(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    username: str = Field(index=True, unique=True)
    password_hash: str
    event_id: Optional[int] = Field(default=None, foreign_key="event.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    event: Optional[Event] = Relationship(back_populates="teams")
    orders: list["Order"] = Relationship(back_populates="team")
    credentials: list["TeamCredential"] = Relationship(back_populates="team", sa_relationship_kwargs={"cascade": "all, delete-orphan"})


class TeamCredential(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    email: Optional[str] = None
    password: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    team: Team = Relationship(back_populates="credentials")


class FoodItem(SQLModel, table=True):
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_fooditem_price_non_negative"),
        CheckConstraint("available_qty >= 0", name="ck_fooditem_available_qty_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    price: float = 0.0  # 0 means free
    image_url: Optional[str] = None
    available_qty: int = 0
    is_active: bool = True
    restrictions: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Inventory(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="event.id", unique=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    event: Event = Relationship(back_populates="inventory")
    inventory_items: list["InventoryItem"] = Relationship(back_populates="inventory", sa_relationship_kwargs={"cascade": "all, delete-orphan"})


class InventoryItem(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("inventory_id", "food_item_id", name="uq_inventoryitem_inventory_food"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    inventory_id: int = Field(foreign_key="inventory.id", index=True)
    food_item_id: int = Field(foreign_key="fooditem.id", index=True)
    max_order_per_team: Optional[int] = None  # None means unbounded

    inventory: Inventory = Relationship(back_populates="inventory_items")
    food_item: FoodItem = Relationship()


class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    total_amount: float = 0.0
    order_status: OrderStatus = Field(default=OrderStatus.PENDING, index=True)
    payment_status: PaymentStatus = Field(default=PaymentStatus.pending)
    placed_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    team: Team = Relationship(back_populates="orders")
    event: Event = Relationship(back_populates="orders")
    items: list["OrderItem"] = Relationship(back_populates="order", sa_relationship_kwargs={"cascade": "all, delete-orphan"})


class OrderItem(SQLModel, table=True):
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_orderitem_quantity_positive"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    food_item_id: int = Field(foreign_key="fooditem.id", index=True)
    quantity: int
    price_at_order: float  # snapshot, never recomputed from FoodItem.price

    order: Order = Relationship(back_populates="items")
    food_item: FoodItem = Relationship()


class QuickLink(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str
    url: str
    active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
