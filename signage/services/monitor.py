import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from signage.models.group import Group, display_order
from signage.services.realtime import REASON_CAMPAIGN_TRANSITION, RealtimeHub
from signage.services.scheduling import active_campaign_for_group, utc_now

logger = logging.getLogger(__name__)


class ActiveCampaignCache:
    """Last observed active campaign id per group, used to detect transitions."""

    def __init__(self) -> None:
        self._active: dict[int, int | None] = {}

    def previous(self, group_id: int) -> int | None:
        return self._active.get(group_id)

    def remember(self, group_id: int, campaign_id: int | None) -> None:
        self._active[group_id] = campaign_id

    def reset(self, group_id: int) -> None:
        self._active.pop(group_id, None)

    def clear(self) -> None:
        self._active.clear()

    def snapshot(self) -> dict[int, int | None]:
        return dict(self._active)

    def __contains__(self, group_id: int) -> bool:
        return group_id in self._active


class TransitionMonitor:
    def __init__(
        self,
        cache: ActiveCampaignCache,
        session_factory: Callable[[], Session],
        publisher: RealtimeHub,
    ) -> None:
        self.cache = cache
        self.session_factory = session_factory
        self.publisher = publisher

    def detect(self, db: Session, now: datetime | None = None) -> dict[int, int | None]:
        """Groups whose active campaign differs from the cache, with the new id.

        Reads only; the cache is not touched.
        """
        current_time = now or utc_now()
        changes: dict[int, int | None] = {}
        groups = db.query(Group.id).order_by(*display_order()).all()
        for (group_id,) in groups:
            active = active_campaign_for_group(db, group_id, current_time)
            current_id = active.id if active else None
            if current_id != self.cache.previous(group_id):
                changes[group_id] = current_id
        return changes

    def check(self, now: datetime | None = None) -> list[int]:
        """Run one detection pass and apply it to the cache. Raises on store failure."""
        db = self.session_factory()
        try:
            changes = self.detect(db, now)
        finally:
            db.close()
        for group_id, campaign_id in changes.items():
            self.cache.remember(group_id, campaign_id)
        return list(changes)

    async def tick(self, now: datetime | None = None) -> list[int]:
        try:
            changed = self.check(now)
        except Exception:
            logger.exception("Campaign transition check failed; retrying next tick")
            return []
        for group_id in changed:
            await self.publisher.publish_playlist_update(group_id, REASON_CAMPAIGN_TRANSITION)
        if changed:
            logger.info("Campaign transitions for groups %s", changed)
        return changed
