from __future__ import annotations
from typing import Literal, Optional

import bcrypt
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from fastapi import Request, Response
from sqlmodel import SQLModel

from .config import SECRET_KEY, SESSION_MAX_AGE, COOKIE_SECURE, BCRYPT_ROUNDS
from .errors import NotAuthenticated, Forbidden

serializer = URLSafeTimedSerializer(SECRET_KEY, salt="session")

COOKIE_NAME = "eventfood_session"

ROLE_ADMIN = "ADMIN"
ROLE_TEAM = "TEAM"


class Identity(SQLModel):
    """Who is calling: an admin user or a team, as recorded at login."""

    id: int
    role: Literal["ADMIN", "TEAM"]
    name: str
    # Event the team was assigned to at login; may be stale.
    event_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))

def set_login_cookie(response: Response, identity: Identity) -> None:
    token = serializer.dumps(identity.model_dump())
    response.set_cookie(
        COOKIE_NAME,
        token,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
        max_age=SESSION_MAX_AGE,
    )

def clear_login_cookie(response: Response) -> None:
    response.delete_cookie(COOKIE_NAME)

def get_identity(request: Request) -> Identity | None:
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None
    try:
        data = serializer.loads(token, max_age=SESSION_MAX_AGE)
    except (SignatureExpired, BadSignature):
        return None
    return Identity.model_validate(data)


# ---- FastAPI dependencies ----

def require_session(request: Request) -> Identity:
    identity = get_identity(request)
    if identity is None:
        raise NotAuthenticated()
    return identity

def require_admin(request: Request) -> Identity:
    identity = require_session(request)
    if not identity.is_admin:
        raise Forbidden("Admin access required")
    return identity

def ensure_team_access(identity: Identity, team_id: int) -> None:
    """Admins may act on any team; a team only on itself."""
    if identity.is_admin:
        return
    if identity.id != team_id:
        raise Forbidden("Teams may only access their own orders")
