from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import select

from ..auth import Identity, require_admin
from ..db import get_session
from ..errors import NotFound
from ..models import Team, TeamCredential
from ..schemas import IdIn, TeamCredentialCreate, TeamCredentialRead, TeamCredentialUpdate

router = APIRouter(prefix="/api", tags=["teamCredentials"])


@router.get("/teamCredentials.getByTeamId", response_model=list[TeamCredentialRead])
def get_by_team_id(team_id: int, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        creds = session.exec(
            select(TeamCredential)
            .where(TeamCredential.team_id == team_id)
            .order_by(TeamCredential.created_at.desc(), TeamCredential.id.desc())
        ).all()
        return [TeamCredentialRead.model_validate(c) for c in creds]


@router.post("/teamCredentials.create", response_model=TeamCredentialRead)
def create_credential(data: TeamCredentialCreate, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        if not session.get(Team, data.team_id):
            raise NotFound("Team not found", team_id=data.team_id)
        cred = TeamCredential(team_id=data.team_id, email=data.email, password=data.password)
        session.add(cred)
        session.commit()
        session.refresh(cred)
        return TeamCredentialRead.model_validate(cred)


@router.post("/teamCredentials.update", response_model=TeamCredentialRead)
def update_credential(data: TeamCredentialUpdate, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        cred = session.get(TeamCredential, data.id)
        if not cred:
            raise NotFound("Credential not found", credential_id=data.id)
        cred.email = data.email
        cred.password = data.password
        session.add(cred)
        session.commit()
        session.refresh(cred)
        return TeamCredentialRead.model_validate(cred)


@router.post("/teamCredentials.delete", response_model=TeamCredentialRead)
def delete_credential(data: IdIn, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        cred = session.get(TeamCredential, data.id)
        if not cred:
            raise NotFound("Credential not found", credential_id=data.id)
        result = TeamCredentialRead.model_validate(cred)
        session.delete(cred)
        session.commit()
        return result
