"""Tests for the campaign transition monitor and its cache."""

import asyncio
from datetime import timedelta

from sqlalchemy.exc import OperationalError

from signage.db import SessionLocal
from signage.services.monitor import ActiveCampaignCache, TransitionMonitor

from conftest import NOW


def _playlist_updates(hub):
    return [payload for event, payload in hub.events if event == "playlist:update"]


class TestActiveCampaignCache:
    def test_unknown_group_has_no_previous(self):
        cache = ActiveCampaignCache()
        assert cache.previous(7) is None
        assert 7 not in cache

    def test_remember_and_reset(self):
        cache = ActiveCampaignCache()
        cache.remember(1, 10)
        cache.remember(2, None)
        assert cache.snapshot() == {1: 10, 2: None}
        cache.reset(1)
        assert 1 not in cache
        cache.reset(99)
        cache.clear()
        assert cache.snapshot() == {}


class TestTransitionMonitor:
    def test_first_tick_reports_active_groups_only(self, factory, cache, recording_hub):
        busy = factory.group("Busy")
        factory.group("Idle")
        campaign = factory.campaign(busy)
        monitor = TransitionMonitor(cache, SessionLocal, recording_hub)

        changed = asyncio.run(monitor.tick(NOW))

        assert changed == [busy.id]
        assert cache.previous(busy.id) == campaign.id
        assert _playlist_updates(recording_hub) == [{"groupId": busy.id, "reason": "campaign-transition"}]

    def test_no_event_without_change(self, factory, cache, recording_hub):
        group = factory.group()
        factory.campaign(group)
        monitor = TransitionMonitor(cache, SessionLocal, recording_hub)

        asyncio.run(monitor.tick(NOW))
        asyncio.run(monitor.tick(NOW + timedelta(seconds=5)))

        assert len(_playlist_updates(recording_hub)) == 1

    def test_start_and_end_of_campaign_each_emit_once(self, factory, cache, recording_hub):
        group = factory.group()
        campaign = factory.campaign(group, starts_at=NOW + timedelta(seconds=10), ends_at=NOW + timedelta(seconds=20))
        monitor = TransitionMonitor(cache, SessionLocal, recording_hub)

        assert asyncio.run(monitor.tick(NOW)) == []
        assert asyncio.run(monitor.tick(NOW + timedelta(seconds=15))) == [group.id]
        assert cache.previous(group.id) == campaign.id
        assert asyncio.run(monitor.tick(NOW + timedelta(seconds=16))) == []
        assert asyncio.run(monitor.tick(NOW + timedelta(seconds=25))) == [group.id]
        assert cache.previous(group.id) is None
        assert len(_playlist_updates(recording_hub)) == 2

    def test_higher_priority_campaign_takes_over(self, factory, cache, recording_hub):
        group = factory.group()
        factory.campaign(group, name="base", priority=2)
        urgent = factory.campaign(group, name="urgent", priority=1, starts_at=NOW + timedelta(minutes=1))
        monitor = TransitionMonitor(cache, SessionLocal, recording_hub)

        asyncio.run(monitor.tick(NOW))
        assert asyncio.run(monitor.tick(NOW + timedelta(minutes=2))) == [group.id]
        assert cache.previous(group.id) == urgent.id

    def test_store_failure_is_logged_and_cache_untouched(self, factory, cache, recording_hub, caplog):
        group = factory.group()
        factory.campaign(group)
        cache.remember(group.id, None)

        def broken_session():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        monitor = TransitionMonitor(cache, broken_session, recording_hub)
        assert asyncio.run(monitor.tick(NOW)) == []
        assert cache.snapshot() == {group.id: None}
        assert recording_hub.events == []
        assert "Campaign transition check failed" in caplog.text

        healthy = TransitionMonitor(cache, SessionLocal, recording_hub)
        assert asyncio.run(healthy.tick(NOW)) == [group.id]

    def test_reset_after_restart_reports_again(self, factory, cache, recording_hub):
        group = factory.group()
        factory.campaign(group)
        TransitionMonitor(cache, SessionLocal, recording_hub).check(NOW)

        restarted = TransitionMonitor(ActiveCampaignCache(), SessionLocal, recording_hub)
        assert restarted.check(NOW) == [group.id]
