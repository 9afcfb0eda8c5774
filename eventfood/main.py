from __future__ import annotations

import logging

from fastapi import FastAPI, Request, Response, Depends
from fastapi.responses import JSONResponse

from sqlmodel import select

from .config import APP_NAME, ADMIN_BOOTSTRAP_EMAIL, ADMIN_BOOTSTRAP_PASSWORD, LOG_LEVEL
from .db import init_db, get_session
from .models import User, Team
from .auth import (
    Identity,
    ROLE_ADMIN,
    ROLE_TEAM,
    hash_password,
    verify_password,
    set_login_cookie,
    clear_login_cookie,
    require_session,
)
from .errors import FoodOrderError, NotAuthenticated
from .schemas import AdminLogin, TeamLogin
from .routers import events, food, orders, quicklinks, team_credentials, teams

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title=APP_NAME)
app.include_router(events.router)
app.include_router(teams.router)
app.include_router(orders.router)
app.include_router(food.router)
app.include_router(team_credentials.router)
app.include_router(quicklinks.router)


@app.exception_handler(FoodOrderError)
def food_order_error_handler(request: Request, exc: FoodOrderError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

def ensure_bootstrap_admin() -> None:
    with get_session() as session:
        existing = session.exec(select(User).where(User.email == ADMIN_BOOTSTRAP_EMAIL)).first()
        if not existing:
            admin = User(
                email=ADMIN_BOOTSTRAP_EMAIL,
                name="Event admin (bootstrap)",
                password_hash=hash_password(ADMIN_BOOTSTRAP_PASSWORD),
            )
            session.add(admin)
            session.commit()
            logger.info("Created bootstrap admin %s", ADMIN_BOOTSTRAP_EMAIL)

@app.on_event("startup")
def on_startup() -> None:
    init_db()
    ensure_bootstrap_admin()

@app.get("/")
def root():
    return {"service": APP_NAME, "status": "ok"}

# ---- Sessions ----

@app.post("/api/auth.adminLogin", response_model=Identity)
def admin_login(data: AdminLogin, response: Response):
    email = data.email.strip().lower()
    with get_session() as session:
        user = session.exec(
            select(User).where(User.email == email)
        ).first()
        if not user or not verify_password(data.password, user.password_hash):
            raise NotAuthenticated("Invalid credentials")
        identity = Identity(id=user.id, role=ROLE_ADMIN, name=user.name)

    set_login_cookie(response, identity)
    logger.info("Admin %s logged in", identity.id)
    return identity

@app.post("/api/auth.teamLogin", response_model=Identity)
def team_login(data: TeamLogin, response: Response):
    with get_session() as session:
        team = session.exec(select(Team).where(Team.username == data.username.strip())).first()
        if not team or not verify_password(data.password, team.password_hash):
            raise NotAuthenticated("Invalid credentials")
        identity = Identity(id=team.id, role=ROLE_TEAM, name=team.name, event_id=team.event_id)

    set_login_cookie(response, identity)
    logger.info("Team %s logged in (event %s)", identity.id, identity.event_id)
    return identity

@app.post("/api/auth.logout")
def logout(response: Response):
    clear_login_cookie(response)
    return {"ok": True}

@app.get("/api/auth.getSession", response_model=Identity)
def current_session(identity: Identity = Depends(require_session)):
    return identity


if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
