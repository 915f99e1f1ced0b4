from sqlalchemy.orm import Session

from signage.models.campaign import Campaign
from signage.models.slide import Slide
from signage.services.scheduling import status_of


def serialize_campaign(campaign: Campaign, now=None) -> dict:
    return {
        "id": campaign.id,
        "groupId": campaign.group_id,
        "name": campaign.name,
        "startsAt": campaign.starts_at,
        "endsAt": campaign.ends_at,
        "enabled": bool(campaign.enabled),
        "priority": campaign.priority,
        "createdBy": campaign.created_by,
        "status": status_of(campaign, now),
    }


def delete_campaign_cascade(db: Session, campaign: Campaign) -> list[str]:
    """Delete a campaign and its slides in one transaction.

    Returns the srcs the deleted slides pointed at. Rolls back and re-raises
    on failure.
    """
    srcs = [src for (src,) in db.query(Slide.src).filter(Slide.campaign_id == campaign.id).all()]
    try:
        db.query(Slide).filter(Slide.campaign_id == campaign.id).delete(synchronize_session=False)
        db.query(Campaign).filter(Campaign.id == campaign.id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return srcs
