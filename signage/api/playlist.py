from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from signage.api.deps import find_group_or_404, get_db
from signage.config import CAMPAIGN_CHECK_MS, PLAYER_REFRESH_MS
from signage.models.group import Group, display_order
from signage.schemas.playlist import PlaylistOut
from signage.services.playlist import compose_playlist

router = APIRouter(tags=["playlist"])


def _resolve_group_id(db: Session, group_id: int | None, group: str | None) -> int:
    if group_id is not None:
        return find_group_or_404(db, group_id).id
    name = (group or "").strip().lower()
    if name:
        found = db.query(Group).filter(func.lower(Group.name) == name).first()
        if found:
            return found.id
    fallback = db.query(Group).order_by(*display_order()).first()
    if not fallback:
        raise HTTPException(status_code=404, detail="No groups registered")
    return fallback.id


@router.get("/playlist", response_model=PlaylistOut)
def get_playlist(group_id: int | None = None, group: str | None = None, db: Session = Depends(get_db)):
    return compose_playlist(db, _resolve_group_id(db, group_id, group))


@router.get("/player/config")
def player_config():
    return {"refreshMs": PLAYER_REFRESH_MS, "campaignCheckMs": CAMPAIGN_CHECK_MS}
