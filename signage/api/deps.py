from dataclasses import dataclass

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from signage.db import SessionLocal
from signage.models.group import Group

ROLE_MASTER = "master"
ROLE_GROUP_USER = "group_user"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@dataclass(frozen=True)
class Actor:
    role: str
    group_id: int | None = None
    account_id: str | None = None

    @property
    def is_master(self) -> bool:
        return self.role == ROLE_MASTER


def get_actor(request: Request) -> Actor:
    """Identity forwarded by the authenticating proxy/session layer."""
    role = (request.headers.get("X-Account-Role") or "").strip().lower()
    if role not in {ROLE_MASTER, ROLE_GROUP_USER}:
        raise HTTPException(status_code=401, detail="Not authenticated")
    account_id = (request.headers.get("X-Account-ID") or "").strip() or None
    group_id = None
    raw_group = (request.headers.get("X-Account-Group") or "").strip()
    if raw_group:
        try:
            group_id = int(raw_group)
        except ValueError as exc:
            raise HTTPException(status_code=401, detail="Invalid X-Account-Group header") from exc
    if role == ROLE_GROUP_USER and group_id is None:
        raise HTTPException(status_code=401, detail="Group user without a group")
    return Actor(role=role, group_id=group_id, account_id=account_id)


def require_master(actor: Actor) -> None:
    if not actor.is_master:
        raise HTTPException(status_code=403, detail="Master role required")


def ensure_group_access(actor: Actor, group_id: int) -> None:
    if not actor.is_master and actor.group_id != group_id:
        raise HTTPException(status_code=403, detail="Access denied for this group")


def find_group_or_404(db: Session, group_id: int) -> Group:
    group = db.get(Group, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


def get_optional_actor(request: Request) -> Actor | None:
    if not (request.headers.get("X-Account-Role") or "").strip():
        return None
    return get_actor(request)
