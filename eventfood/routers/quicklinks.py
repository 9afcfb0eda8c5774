from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from ..auth import Identity, require_admin
from ..db import get_session
from ..errors import NotFound
from ..models import QuickLink
from ..schemas import IdIn, QuickLinkCreate, QuickLinkRead, QuickLinkToggle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["quickLinks"])


def _newest_first(stmt):
    return stmt.order_by(QuickLink.created_at.desc(), QuickLink.id.desc())


def _get_link(session: Session, link_id: int) -> QuickLink:
    link = session.get(QuickLink, link_id)
    if not link:
        raise NotFound("Quick link not found", quick_link_id=link_id)
    return link


@router.get("/quickLinks.getActive", response_model=list[QuickLinkRead])
def get_active_links():
    with get_session() as session:
        links = session.exec(_newest_first(select(QuickLink).where(QuickLink.active == True))).all()  # noqa: E712
        return [QuickLinkRead.model_validate(link) for link in links]


@router.get("/quickLinks.getAll", response_model=list[QuickLinkRead])
def get_all_links(admin: Identity = Depends(require_admin)):
    with get_session() as session:
        return [QuickLinkRead.model_validate(link) for link in session.exec(_newest_first(select(QuickLink))).all()]


@router.post("/quickLinks.add", response_model=QuickLinkRead)
def add_link(data: QuickLinkCreate, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        link = QuickLink(title=data.title.strip(), description=data.description.strip(), url=data.url.strip())
        session.add(link)
        session.commit()
        session.refresh(link)
        logger.info("Quick link %s added by admin %s", link.id, admin.id)
        return QuickLinkRead.model_validate(link)


@router.post("/quickLinks.toggleActive", response_model=QuickLinkRead)
def toggle_link(data: QuickLinkToggle, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        link = _get_link(session, data.id)
        link.active = data.active
        session.add(link)
        session.commit()
        session.refresh(link)
        return QuickLinkRead.model_validate(link)


@router.post("/quickLinks.delete", response_model=QuickLinkRead)
def delete_link(data: IdIn, admin: Identity = Depends(require_admin)):
    with get_session() as session:
        link = _get_link(session, data.id)
        result = QuickLinkRead.model_validate(link)
        session.delete(link)
        session.commit()
        logger.info("Quick link %s deleted by admin %s", data.id, admin.id)
        return result
