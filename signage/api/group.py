from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from signage.api.deps import (
    Actor,
    ensure_group_access,
    find_group_or_404,
    get_actor,
    get_db,
    get_optional_actor,
    require_master,
)
from signage.models.group import Group, display_order
from signage.schemas.group import GroupOut, GroupReorderIn
from signage.services.realtime import hub
from signage.services.slides import reclaim_unreferenced_media
from signage.services.storage import detect_media_type, storage

router = APIRouter(prefix="/groups", tags=["groups"])


def _serialize_group(group: Group) -> dict:
    return {"id": group.id, "name": group.name, "displayOrder": group.display_order}


def _serialize_settings(group: Group) -> dict:
    return {
        "groupId": group.id,
        "groupName": group.name,
        "background": group.background or "#ffffff",
        "defaultImage": group.default_image or None,
    }


def _normalize_color(value: str | None) -> str:
    color = (value or "").strip()
    return color or "#ffffff"


@router.get("", response_model=list[GroupOut])
def list_groups(actor: Actor | None = Depends(get_optional_actor), db: Session = Depends(get_db)):
    query = db.query(Group)
    if actor is not None and not actor.is_master:
        query = query.filter(Group.id == actor.group_id)
    groups = query.order_by(*display_order()).all()
    return [_serialize_group(group) for group in groups]


@router.post("", response_model=GroupOut)
def create_group(
    name: str,
    background_tasks: BackgroundTasks,
    background: str | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    require_master(actor)
    cleaned = (name or "").strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail="Group name cannot be empty")
    if db.query(Group).filter(func.lower(Group.name) == cleaned.lower()).first():
        raise HTTPException(status_code=400, detail="Group name already exists")
    last_order = db.query(func.max(Group.display_order)).scalar() or 0
    group = Group(name=cleaned, display_order=last_order + 1, background=_normalize_color(background))
    db.add(group)
    db.commit()
    db.refresh(group)
    background_tasks.add_task(hub.publish_groups_update, None)
    return _serialize_group(group)


@router.post("/reorder")
def reorder_groups(
    payload: GroupReorderIn,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    require_master(actor)
    group_ids = [group_id for group_id in payload.order if group_id > 0]
    if not group_ids:
        raise HTTPException(status_code=400, detail="order must list the group ids")
    if len(set(group_ids)) != len(group_ids):
        raise HTTPException(status_code=400, detail="order contains duplicate group ids")
    groups = {group.id: group for group in db.query(Group).filter(Group.id.in_(group_ids)).all()}
    if len(groups) != len(group_ids):
        raise HTTPException(status_code=400, detail="order contains unknown group ids")
    try:
        for index, group_id in enumerate(group_ids, start=1):
            groups[group_id].display_order = index
        db.commit()
    except Exception:
        db.rollback()
        raise
    background_tasks.add_task(hub.publish_groups_update, None)
    return {"ok": True}


@router.get("/{group_id}/settings")
def get_settings(group_id: int, db: Session = Depends(get_db)):
    return _serialize_settings(find_group_or_404(db, group_id))


@router.put("/{group_id}/settings")
def update_settings(
    group_id: int,
    background_tasks: BackgroundTasks,
    background: str | None = None,
    default_image: str | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    group = find_group_or_404(db, group_id)
    ensure_group_access(actor, group.id)
    if background is not None:
        group.background = _normalize_color(background)
    if default_image is not None:
        group.default_image = default_image.strip() or None
    db.commit()
    db.refresh(group)
    settings = _serialize_settings(group)
    background_tasks.add_task(
        hub.publish_settings_update,
        group.id,
        {"background": settings["background"], "defaultImage": settings["defaultImage"]},
    )
    return settings


@router.post("/{group_id}/default-image")
def upload_default_image(
    group_id: int,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    group = find_group_or_404(db, group_id)
    ensure_group_access(actor, group.id)
    try:
        if detect_media_type(file.content_type, file.filename) != "image":
            raise ValueError("Upload a valid image")
        src = storage.save(file, "image")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    previous = group.default_image
    group.default_image = src
    db.commit()
    if previous and previous != src:
        reclaim_unreferenced_media(db, [previous], storage)
    background_tasks.add_task(hub.publish_settings_update, group.id, {"defaultImage": src})
    return {"defaultImage": src}
