import math
from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from signage.api.deps import Actor, ensure_group_access, find_group_or_404, get_actor, get_db, require_master
from signage.models.campaign import Campaign
from signage.models.slide import Slide
from signage.schemas.slide import SlideOut, SlideReorderIn
from signage.services.realtime import hub
from signage.services.slides import (
    append_slide,
    list_scope,
    move_slide,
    reclaim_unreferenced_media,
    repack_positions,
    serialize_slide,
)
from signage.services.storage import detect_media_type, storage

router = APIRouter(prefix="/slides", tags=["slides"])

MIN_DURATION_MS = 1000
MAX_DURATION_SEC = 24 * 60 * 60


def _duration_ms(duration_sec: float) -> int:
    if not math.isfinite(duration_sec) or duration_sec > MAX_DURATION_SEC:
        raise HTTPException(status_code=400, detail=f"duration_sec must be a number of seconds up to {MAX_DURATION_SEC}")
    return max(MIN_DURATION_MS, int(round(duration_sec * 1000)))


def _resolve_scope(db: Session, group_id: int, campaign_id: int | None) -> int | None:
    find_group_or_404(db, group_id)
    if campaign_id is None:
        return None
    campaign = db.get(Campaign, campaign_id)
    if not campaign or campaign.group_id != group_id:
        raise HTTPException(status_code=404, detail="Campaign not found in this group")
    return campaign.id


def _find_slide_or_404(db: Session, slide_id: int) -> Slide:
    slide = db.get(Slide, slide_id)
    if not slide:
        raise HTTPException(status_code=404, detail="Slide not found")
    return slide


def _ensure_unlocked(actor: Actor, *slides: Slide) -> None:
    if actor.is_master:
        return
    if any(slide.is_locked for slide in slides):
        raise HTTPException(status_code=403, detail="Slide is locked; only a master may change it")


@router.get("", response_model=list[SlideOut])
def list_slides(group_id: int, campaign_id: int | None = None, db: Session = Depends(get_db)):
    scope = _resolve_scope(db, group_id, campaign_id)
    return [serialize_slide(slide) for slide in list_scope(db, group_id, scope)]


@router.post("/upload", response_model=SlideOut)
def upload_slide(
    group_id: int,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    campaign_id: int | None = None,
    name: str | None = None,
    duration_sec: float = 5,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_group_access(actor, group_id)
    scope = _resolve_scope(db, group_id, campaign_id)
    duration = _duration_ms(duration_sec)
    try:
        media_type = detect_media_type(file.content_type, file.filename)
        src = storage.save(file, media_type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    slide = Slide(
        group_id=group_id,
        campaign_id=scope,
        type=media_type,
        name=(name or "").strip() or (file.filename or "media"),
        src=src,
        duration=duration,
    )
    try:
        append_slide(db, slide)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(slide)
    background_tasks.add_task(hub.publish_playlist_update, group_id)
    return serialize_slide(slide)


@router.put("/{slide_id}", response_model=SlideOut)
def update_slide(
    slide_id: int,
    background_tasks: BackgroundTasks,
    name: str | None = None,
    duration_sec: float | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    slide = _find_slide_or_404(db, slide_id)
    ensure_group_access(actor, slide.group_id)
    _ensure_unlocked(actor, slide)
    if name is not None:
        cleaned = name.strip()
        if not cleaned:
            raise HTTPException(status_code=400, detail="Slide name cannot be empty")
        slide.name = cleaned
    if duration_sec is not None:
        slide.duration = _duration_ms(duration_sec)
    db.commit()
    db.refresh(slide)
    background_tasks.add_task(hub.publish_playlist_update, slide.group_id)
    return serialize_slide(slide)


@router.put("/{slide_id}/lock", response_model=SlideOut)
def lock_slide(
    slide_id: int,
    background_tasks: BackgroundTasks,
    locked: bool = True,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    require_master(actor)
    slide = _find_slide_or_404(db, slide_id)
    slide.is_locked = locked
    db.commit()
    db.refresh(slide)
    background_tasks.add_task(hub.publish_playlist_update, slide.group_id)
    return serialize_slide(slide)


@router.post("/reorder")
def reorder_slide(
    payload: SlideReorderIn,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_group_access(actor, payload.group_id)
    scope = _resolve_scope(db, payload.group_id, payload.campaign_id)
    if payload.direction not in (-1, 1):
        raise HTTPException(status_code=400, detail="direction must be -1 or 1")
    slides = list_scope(db, payload.group_id, scope)
    target = payload.index + payload.direction
    if 0 <= payload.index < len(slides) and 0 <= target < len(slides):
        _ensure_unlocked(actor, slides[payload.index], slides[target])
    try:
        changed = move_slide(db, payload.group_id, scope, payload.index, payload.direction)
        db.commit()
    except Exception:
        db.rollback()
        raise
    if changed:
        background_tasks.add_task(hub.publish_playlist_update, payload.group_id)
    return {"ok": True, "changed": changed}


@router.delete("/{slide_id}")
def delete_slide(
    slide_id: int,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    slide = _find_slide_or_404(db, slide_id)
    ensure_group_access(actor, slide.group_id)
    _ensure_unlocked(actor, slide)
    group_id, campaign_id, src = slide.group_id, slide.campaign_id, slide.src
    try:
        db.delete(slide)
        db.flush()
        repack_positions(db, group_id, campaign_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    removed = reclaim_unreferenced_media(db, [src], storage)
    background_tasks.add_task(hub.publish_playlist_update, group_id)
    return {"ok": True, "removedFiles": removed}
