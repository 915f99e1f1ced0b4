from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from signage.api.deps import Actor, ensure_group_access, find_group_or_404, get_actor, get_db
from signage.models.campaign import Campaign
from signage.schemas.campaign import CampaignCreateIn, CampaignOut, CampaignUpdateIn
from signage.services.campaigns import delete_campaign_cascade, serialize_campaign
from signage.services.realtime import hub
from signage.services.scheduling import format_timestamp, parse_timestamp, selection_order, utc_now
from signage.services.slides import reclaim_unreferenced_media
from signage.services.storage import storage

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


def _parse_bound(value: str | None, field_name: str):
    parsed = parse_timestamp(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"{field_name} must be an ISO-8601 timestamp")
    return parsed


def _validate_window(starts_at, ends_at) -> None:
    if ends_at <= starts_at:
        raise HTTPException(status_code=400, detail="ends_at must be after starts_at")


def _validate_priority(priority: int) -> int:
    if priority < 1:
        raise HTTPException(status_code=400, detail="priority must be a positive integer")
    return priority


def _find_campaign_or_404(db: Session, campaign_id: int) -> Campaign:
    campaign = db.get(Campaign, campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign


@router.get("", response_model=list[CampaignOut])
def list_campaigns(group_id: int, db: Session = Depends(get_db)):
    find_group_or_404(db, group_id)
    now = utc_now()
    campaigns = (
        db.query(Campaign)
        .filter(Campaign.group_id == group_id)
        .order_by(*selection_order())
        .all()
    )
    return [serialize_campaign(campaign, now) for campaign in campaigns]


@router.post("", response_model=CampaignOut)
def create_campaign(
    payload: CampaignCreateIn,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    group = find_group_or_404(db, payload.group_id)
    ensure_group_access(actor, group.id)
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Campaign name cannot be empty")
    starts_at = _parse_bound(payload.starts_at, "starts_at")
    ends_at = _parse_bound(payload.ends_at, "ends_at")
    _validate_window(starts_at, ends_at)
    campaign = Campaign(
        group_id=group.id,
        name=name,
        starts_at=format_timestamp(starts_at),
        ends_at=format_timestamp(ends_at),
        enabled=payload.enabled,
        priority=_validate_priority(payload.priority),
        created_by=actor.account_id,
    )
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    background_tasks.add_task(hub.publish_playlist_update, group.id)
    return serialize_campaign(campaign)


@router.get("/{campaign_id}", response_model=CampaignOut)
def get_campaign(campaign_id: int, db: Session = Depends(get_db)):
    return serialize_campaign(_find_campaign_or_404(db, campaign_id))


@router.put("/{campaign_id}", response_model=CampaignOut)
def update_campaign(
    campaign_id: int,
    payload: CampaignUpdateIn,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    campaign = _find_campaign_or_404(db, campaign_id)
    ensure_group_access(actor, campaign.group_id)
    if payload.name is not None:
        cleaned = payload.name.strip()
        if not cleaned:
            raise HTTPException(status_code=400, detail="Campaign name cannot be empty")
        campaign.name = cleaned
    if payload.starts_at is not None or payload.ends_at is not None:
        starts_at = (
            _parse_bound(payload.starts_at, "starts_at")
            if payload.starts_at is not None
            else _parse_bound(campaign.starts_at, "starts_at")
        )
        ends_at = (
            _parse_bound(payload.ends_at, "ends_at")
            if payload.ends_at is not None
            else _parse_bound(campaign.ends_at, "ends_at")
        )
        _validate_window(starts_at, ends_at)
        campaign.starts_at = format_timestamp(starts_at)
        campaign.ends_at = format_timestamp(ends_at)
    if payload.priority is not None:
        campaign.priority = _validate_priority(payload.priority)
    if payload.enabled is not None:
        campaign.enabled = payload.enabled
    db.commit()
    db.refresh(campaign)
    background_tasks.add_task(hub.publish_playlist_update, campaign.group_id)
    return serialize_campaign(campaign)


@router.delete("/{campaign_id}")
def delete_campaign(
    campaign_id: int,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    campaign = _find_campaign_or_404(db, campaign_id)
    group_id = campaign.group_id
    ensure_group_access(actor, group_id)
    srcs = delete_campaign_cascade(db, campaign)
    removed = reclaim_unreferenced_media(db, srcs, storage)
    background_tasks.add_task(hub.publish_playlist_update, group_id)
    return {"ok": True, "removedFiles": removed}
