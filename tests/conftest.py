from datetime import timedelta
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from eventfood import auth, db
from eventfood.config import ADMIN_BOOTSTRAP_EMAIL, ADMIN_BOOTSTRAP_PASSWORD
from eventfood.inventory import allocate_food_to_event
from eventfood.main import app
from eventfood.models import Event, FoodItem, Team
from eventfood.utils import now_utc

TEAM_PASSWORD = "team-secret"


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(auth, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def engine(tmp_path, monkeypatch):
    test_engine = db.make_engine(f"sqlite:///{tmp_path / 'eventfood.db'}")
    monkeypatch.setattr(db, "engine", test_engine)
    db.init_db()
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


class Factory:
    """Creates rows and returns their ids, always leaving the session without an open transaction."""

    def __init__(self, session: Session):
        self.session = session
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj) -> int:
        self.session.add(obj)
        self.session.flush()
        obj_id = obj.id
        self.session.commit()
        return obj_id

    def event(self, starts_in=timedelta(hours=-1), ends_in=timedelta(hours=4), name="Hack Night") -> int:
        now = now_utc()
        return self._save(Event(name=name, start_date=now + starts_in, end_date=now + ends_in))

    def team(self, event_id: Optional[int], username: Optional[str] = None) -> int:
        n = self._next()
        return self._save(Team(
            name=f"Team {n}",
            username=username or f"team-{n}",
            password_hash=auth.hash_password(TEAM_PASSWORD),
            event_id=event_id,
        ))

    def food(self, qty: int = 5, price: float = 10.0, active: bool = True, name: Optional[str] = None) -> int:
        return self._save(FoodItem(
            name=name or f"Food {self._next()}",
            price=price,
            available_qty=qty,
            is_active=active,
            restrictions=["vegetarian"],
        ))

    def allocate(self, event_id: int, food_item_id: int, cap: Optional[int] = None) -> int:
        item_id = allocate_food_to_event(self.session, event_id, food_item_id, cap).id
        self.session.commit()
        return item_id


@pytest.fixture
def factory(session):
    return Factory(session)


@pytest.fixture
def client(engine):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client(engine):
    with TestClient(app) as c:
        r = c.post("/api/auth.adminLogin", json={"email": ADMIN_BOOTSTRAP_EMAIL, "password": ADMIN_BOOTSTRAP_PASSWORD})
        assert r.status_code == 200, r.text
        yield c


@pytest.fixture
def team_login(engine):
    clients = []

    def _login(username: str) -> TestClient:
        c = TestClient(app)
        c.__enter__()
        clients.append(c)
        r = c.post("/api/auth.teamLogin", json={"username": username, "password": TEAM_PASSWORD})
        assert r.status_code == 200, r.text
        return c

    yield _login
    for c in clients:
        c.__exit__(None, None, None)
