from datetime import datetime

from sqlalchemy.orm import Session

from signage.services.scheduling import active_campaign_for_group, utc_now
from signage.services.slides import list_scope, serialize_slide


def compose_playlist(db: Session, group_id: int, now: datetime | None = None) -> dict:
    """Cover slides followed by the slides of the campaign active right now.

    Always computed from the store, independent of the transition monitor.
    """
    active = active_campaign_for_group(db, group_id, now or utc_now())
    cover = list_scope(db, group_id, None)
    campaign_slides = list_scope(db, group_id, active.id) if active else []
    return {
        "groupId": group_id,
        "campaign": {"id": active.id, "name": active.name} if active else None,
        "coverSlides": [serialize_slide(slide) for slide in cover],
        "slides": [serialize_slide(slide) for slide in campaign_slides],
    }
