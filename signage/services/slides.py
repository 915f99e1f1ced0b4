import logging
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from signage.models.group import Group
from signage.models.slide import Slide
from signage.services.storage import MediaStorage

logger = logging.getLogger(__name__)


def serialize_slide(slide: Slide) -> dict:
    return {
        "id": slide.id,
        "type": slide.type,
        "name": slide.name,
        "src": slide.src,
        "duration": slide.duration,
        "isLocked": bool(slide.is_locked),
    }


def scope_query(db: Session, group_id: int, campaign_id: int | None):
    query = db.query(Slide).filter(Slide.group_id == group_id)
    if campaign_id is None:
        return query.filter(Slide.campaign_id.is_(None))
    return query.filter(Slide.campaign_id == campaign_id)


def list_scope(db: Session, group_id: int, campaign_id: int | None) -> list[Slide]:
    return scope_query(db, group_id, campaign_id).order_by(Slide.position.asc(), Slide.id.asc()).all()


def next_position(db: Session, group_id: int, campaign_id: int | None) -> int:
    query = db.query(func.max(Slide.position)).filter(Slide.group_id == group_id)
    if campaign_id is None:
        query = query.filter(Slide.campaign_id.is_(None))
    else:
        query = query.filter(Slide.campaign_id == campaign_id)
    current = query.scalar()
    return 0 if current is None else current + 1


def repack_positions(db: Session, group_id: int, campaign_id: int | None) -> None:
    """Rewrite positions of a scope to 0..n-1 keeping the current order. Caller commits."""
    for position, slide in enumerate(list_scope(db, group_id, campaign_id)):
        if slide.position != position:
            slide.position = position
    db.flush()


def append_slide(db: Session, slide: Slide) -> Slide:
    """Add a slide at the end of its scope. Caller commits.

    The scope is re-packed after the insert, so a concurrent upload that read
    the same tail position still ends up with a distinct one.
    """
    if slide.position is None:
        slide.position = next_position(db, slide.group_id, slide.campaign_id)
    db.add(slide)
    db.flush()
    repack_positions(db, slide.group_id, slide.campaign_id)
    return slide


def move_slide(db: Session, group_id: int, campaign_id: int | None, index: int, direction: int) -> bool:
    """Swap the slide at `index` with its neighbour in `direction`.

    Out-of-range moves are a no-op and return False. Caller commits.
    """
    slides = list_scope(db, group_id, campaign_id)
    target = index + direction
    if direction == 0 or index < 0 or index >= len(slides) or target < 0 or target >= len(slides):
        return False
    slides[index], slides[target] = slides[target], slides[index]
    for position, slide in enumerate(slides):
        slide.position = position
    db.flush()
    return True


def src_reference_count(db: Session, src: str) -> int:
    slide_refs = db.query(func.count(Slide.id)).filter(Slide.src == src).scalar() or 0
    image_refs = db.query(func.count(Group.id)).filter(Group.default_image == src).scalar() or 0
    return int(slide_refs) + int(image_refs)


def reclaim_unreferenced_media(db: Session, srcs: Iterable[str], storage: MediaStorage) -> list[str]:
    """Delete stored files no slide or group image points at any more.

    A file that fails to delete is logged and skipped.
    """
    removed: list[str] = []
    for src in dict.fromkeys(src for src in srcs if src):
        if src_reference_count(db, src) > 0:
            continue
        try:
            if storage.delete(src):
                removed.append(src)
        except OSError:
            logger.exception("Failed to remove media file %s", src)
    return removed
