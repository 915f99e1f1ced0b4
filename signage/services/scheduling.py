"""Campaign lifecycle status and active-campaign selection.

Timestamps are kept as normalized UTC ISO-8601 strings in the store so that
ordering by `starts_at` in SQL matches chronological order.
"""
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from signage.models.campaign import Campaign

STATUS_INACTIVE = "inactive"
STATUS_INVALID = "invalid"
STATUS_SCHEDULED = "scheduled"
STATUS_ENDED = "ended"
STATUS_RUNNING = "running"

CAMPAIGN_STATUSES = (
    STATUS_INACTIVE,
    STATUS_INVALID,
    STATUS_SCHEDULED,
    STATUS_ENDED,
    STATUS_RUNNING,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    """Normalize a timestamp to an aware UTC datetime, or None if it is unusable."""
    if value is None:
        return None
    try:
        if isinstance(value, datetime):
            parsed = value
        else:
            raw = str(value).strip()
            if not raw:
                return None
            if raw.endswith("Z") or raw.endswith("z"):
                raw = raw[:-1] + "+00:00"
            parsed = datetime.fromisoformat(raw)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        # Offsets can push values at the edges of the calendar out of range.
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def campaign_status(
    starts_at: datetime | str | None,
    ends_at: datetime | str | None,
    enabled: bool,
    now: datetime | None = None,
) -> str:
    if not enabled:
        return STATUS_INACTIVE
    start = parse_timestamp(starts_at)
    end = parse_timestamp(ends_at)
    if start is None or end is None:
        return STATUS_INVALID
    current = parse_timestamp(now) if now is not None else utc_now()
    if current < start:
        return STATUS_SCHEDULED
    if current > end:
        return STATUS_ENDED
    return STATUS_RUNNING


def status_of(campaign: Campaign, now: datetime | None = None) -> str:
    return campaign_status(campaign.starts_at, campaign.ends_at, bool(campaign.enabled), now)


def selection_order():
    return (Campaign.priority.asc(), Campaign.starts_at.asc(), Campaign.id.asc())


def load_group_campaigns(db: Session, group_id: int) -> list[Campaign]:
    return (
        db.query(Campaign)
        .filter(Campaign.group_id == group_id)
        .order_by(*selection_order())
        .all()
    )


def select_active_campaign(campaigns: Iterable[Campaign], now: datetime | None = None) -> Campaign | None:
    """First running campaign in (priority, starts_at, id) order.

    `campaigns` must already be in selection order.
    """
    current = now or utc_now()
    for campaign in campaigns:
        if status_of(campaign, current) == STATUS_RUNNING:
            return campaign
    return None


def active_campaign_for_group(db: Session, group_id: int, now: datetime | None = None) -> Campaign | None:
    return select_active_campaign(load_group_campaigns(db, group_id), now)
