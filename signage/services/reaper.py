import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signage.models.campaign import Campaign
from signage.services.campaigns import delete_campaign_cascade
from signage.services.monitor import ActiveCampaignCache
from signage.services.realtime import REASON_EXPIRED_CLEANUP, RealtimeHub
from signage.services.scheduling import parse_timestamp, utc_now
from signage.services.slides import reclaim_unreferenced_media
from signage.services.storage import MediaStorage

logger = logging.getLogger(__name__)


def is_expired(ends_at: str | datetime | None, now: datetime | str, grace_ms: int) -> bool:
    end = parse_timestamp(ends_at)
    current = parse_timestamp(now)
    if end is None or current is None:
        return False
    return current - end > timedelta(milliseconds=grace_ms)


class ExpiryReaper:
    def __init__(
        self,
        cache: ActiveCampaignCache,
        session_factory: Callable[[], Session],
        storage: MediaStorage,
        publisher: RealtimeHub,
        grace_ms: int,
    ) -> None:
        self.cache = cache
        self.session_factory = session_factory
        self.storage = storage
        self.publisher = publisher
        self.grace_ms = grace_ms

    def reap(self, db: Session, now: datetime | None = None) -> list[int]:
        """Delete expired campaigns one by one; returns affected group ids.

        A campaign whose delete fails is rolled back and skipped, the rest
        still proceed.
        """
        current_time = now or utc_now()
        candidates = [
            (campaign.id, campaign.group_id)
            for campaign in db.query(Campaign).order_by(Campaign.id.asc()).all()
            if is_expired(campaign.ends_at, current_time, self.grace_ms)
        ]
        affected: list[int] = []
        for campaign_id, group_id in candidates:
            try:
                campaign = db.get(Campaign, campaign_id)
                if campaign is None:
                    continue
                srcs = delete_campaign_cascade(db, campaign)
            except SQLAlchemyError:
                db.rollback()
                logger.exception("Failed to delete expired campaign %s", campaign_id)
                continue
            try:
                reclaim_unreferenced_media(db, srcs, self.storage)
            except SQLAlchemyError:
                db.rollback()
                logger.exception("Failed to reclaim media for expired campaign %s", campaign_id)
            logger.info("Removed expired campaign %s of group %s", campaign_id, group_id)
            if group_id not in affected:
                affected.append(group_id)
            self.cache.reset(group_id)
        return affected

    def run(self, now: datetime | None = None) -> list[int]:
        db = self.session_factory()
        try:
            return self.reap(db, now)
        finally:
            db.close()

    async def tick(self, now: datetime | None = None) -> list[int]:
        try:
            affected = self.run(now)
        except Exception:
            logger.exception("Expired campaign cleanup failed; retrying next tick")
            return []
        for group_id in affected:
            await self.publisher.publish_playlist_update(group_id, REASON_EXPIRED_CLEANUP)
        return affected
