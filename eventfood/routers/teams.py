from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..auth import Identity, ensure_team_access, hash_password, require_admin, require_session
from ..db import get_session
from ..errors import DuplicateUsername, NotFound
from ..models import Event, Order, Team
from ..orders import list_orders
from ..schemas import (
    BulkAddResult,
    BulkAddTeams,
    EventRead,
    IdIn,
    OrderRead,
    TeamAddToEvent,
    TeamAssign,
    TeamCreate,
    TeamDetail,
    TeamRead,
    TeamStats,
    TeamUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["teams"])


def _ensure_usernames_free(session: Session, usernames: list[str], exclude_team_id: Optional[int] = None) -> None:
    repeated = sorted(u for u, n in Counter(usernames).items() if n > 1)
    if repeated:
        raise DuplicateUsername(f"Usernames repeated in request: {', '.join(repeated)}", usernames=repeated)

    stmt = select(Team.username).where(Team.username.in_(usernames))
    if exclude_team_id is not None:
        stmt = stmt.where(Team.id != exclude_team_id)
    taken = sorted(session.exec(stmt).all())
    if taken:
        raise DuplicateUsername(f"Usernames already exist: {', '.join(taken)}", usernames=taken)


def _require_event(session: Session, event_id: Optional[int]) -> None:
    if event_id is not None and session.get(Event, event_id) is None:
        raise NotFound("Event not found", event_id=event_id)


def _get_team(session: Session, team_id: int) -> Team:
    team = session.get(Team, team_id)
    if not team:
        raise NotFound("Team not found", team_id=team_id)
    return team


def _commit_teams(session: Session, usernames: list[str]) -> None:
    try:
        session.commit()
    except IntegrityError as exc:
        # Another request claimed one of the usernames first.
        session.rollback()
        raise DuplicateUsername(usernames=usernames) from exc


def _create_team(session: Session, name: str, username: str, password: str, event_id: Optional[int]) -> Team:
    username = username.strip()
    _require_event(session, event_id)
    _ensure_usernames_free(session, [username])
    team = Team(
        name=name.strip(),
        username=username,
        password_hash=hash_password(password),
        event_id=event_id,
    )
    session.add(team)
    _commit_teams(session, [username])
    session.refresh(team)
    logger.info("Team %s (%s) created in event %s", team.id, username, event_id)
    return team


@router.get("/teams.getAll", response_model=list[TeamRead])
def get_all_teams():
    with get_session() as session:
        return [TeamRead.model_validate(t) for t in session.exec(select(Team).order_by(Team.name)).all()]


@router.get("/teams.getTeamsByEvent", response_model=list[TeamRead])
def get_teams_by_event(event_id: int):
    with get_session() as session:
        teams = session.exec(select(Team).where(Team.event_id == event_id).order_by(Team.name)).all()
        return [TeamRead.model_validate(t) for t in teams]


@router.get("/teams.getTeamById", response_model=TeamDetail)
def get_team_by_id(id: int):
    with get_session() as session:
        team = _get_team(session, id)
        return TeamDetail(
            **TeamRead.model_validate(team).model_dump(),
            event=EventRead.model_validate(team.event) if team.event else None,
            orders=[OrderRead.model_validate(o) for o in list_orders(session, team_id=id)],
        )


@router.get("/teams.getTeamStats", response_model=TeamStats)
def get_team_stats():
    with get_session() as session:
        total = session.exec(select(func.count(Team.id))).one()
        with_orders = session.exec(select(func.count(func.distinct(Order.team_id)))).one()
        return TeamStats(total_teams=total, teams_with_orders=with_orders)


@router.get("/teams.getTeamOrderHistory", response_model=list[OrderRead])
def get_team_order_history(team_id: int, identity: Identity = Depends(require_session)):
    ensure_team_access(identity, team_id)
    with get_session() as session:
        _get_team(session, team_id)
        return [OrderRead.model_validate(o) for o in list_orders(session, team_id=team_id)]


@router.post("/teams.createTeam", response_model=TeamRead)
def create_team(data: TeamCreate, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        return TeamRead.model_validate(_create_team(session, data.name, data.username, data.password, data.event_id))


@router.post("/teams.addToEvent", response_model=TeamRead)
def add_team_to_event(data: TeamAddToEvent, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        return TeamRead.model_validate(_create_team(session, data.name, data.username, data.password, data.event_id))


@router.post("/teams.assignToEvent", response_model=TeamRead)
def assign_team_to_event(data: TeamAssign, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        team = _get_team(session, data.team_id)
        _require_event(session, data.event_id)
        team.event_id = data.event_id
        session.add(team)
        session.commit()
        session.refresh(team)
        logger.info("Team %s assigned to event %s", team.id, data.event_id)
        return TeamRead.model_validate(team)


@router.post("/teams.bulkAddToEvent", response_model=BulkAddResult)
def bulk_add_to_event(data: BulkAddTeams, admin: Identity = Depends(require_admin)):
    usernames = [t.username.strip() for t in data.teams]
    with get_session() as session:
        _require_event(session, data.event_id)
        _ensure_usernames_free(session, usernames)
        for signup, username in zip(data.teams, usernames):
            session.add(Team(
                name=signup.name.strip(),
                username=username,
                password_hash=hash_password(signup.password),
                event_id=data.event_id,
            ))
        _commit_teams(session, usernames)
    logger.info("Bulk added %s teams to event %s", len(usernames), data.event_id)
    return BulkAddResult(count=len(usernames))


@router.post("/teams.updateTeam", response_model=TeamRead)
def update_team(data: TeamUpdate, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        team = _get_team(session, data.id)
        if data.name is not None:
            team.name = data.name.strip()
        if data.username is not None and data.username.strip() != team.username:
            username = data.username.strip()
            _ensure_usernames_free(session, [username], exclude_team_id=team.id)
            team.username = username
        if data.password:
            team.password_hash = hash_password(data.password)
        session.add(team)
        _commit_teams(session, [team.username])
        session.refresh(team)
        return TeamRead.model_validate(team)


@router.post("/teams.deleteTeam", response_model=TeamRead)
def delete_team(data: IdIn, admin: Identity = Depends(require_admin)):
    """Teams are never removed, only detached from their event so order history survives."""
    with get_session() as session:
        team = _get_team(session, data.id)
        team.event_id = None
        session.add(team)
        session.commit()
        session.refresh(team)
        logger.info("Team %s removed from its event", team.id)
        return TeamRead.model_validate(team)
