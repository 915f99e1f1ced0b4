"""Tests for slide position bookkeeping and media reclamation helpers."""

from signage.db import SessionLocal
from signage.models.slide import Slide
from signage.services.slides import (
    append_slide,
    list_scope,
    move_slide,
    next_position,
    reclaim_unreferenced_media,
    repack_positions,
    src_reference_count,
)


def _positions(db, group_id, campaign_id=None):
    return [slide.position for slide in list_scope(db, group_id, campaign_id)]


def _names(db, group_id, campaign_id=None):
    return [slide.name for slide in list_scope(db, group_id, campaign_id)]


class TestPositions:
    def test_next_position_per_scope(self, db_session, factory):
        group = factory.group()
        campaign = factory.campaign(group)
        assert next_position(db_session, group.id, None) == 0
        factory.slide(group)
        factory.slide(group)
        assert next_position(db_session, group.id, None) == 2
        assert next_position(db_session, group.id, campaign.id) == 0

    def test_concurrent_appends_get_distinct_positions(self, db_session, factory):
        group = factory.group()
        group_id = group.id
        first, second = SessionLocal(), SessionLocal()
        try:
            tail = next_position(first, group_id, None)
            assert next_position(second, group_id, None) == tail == 0
            for session, name in ((first, "a"), (second, "b")):
                slide = Slide(
                    group_id=group_id,
                    type="image",
                    name=name,
                    src=f"/uploads/images/{name}.png",
                    duration=5000,
                    position=tail,
                )
                append_slide(session, slide)
                session.commit()
        finally:
            first.close()
            second.close()

        assert _positions(db_session, group_id) == [0, 1]
        assert _names(db_session, group_id) == ["a", "b"]

    def test_move_swaps_neighbours(self, db_session, factory):
        group = factory.group()
        for name in ("a", "b", "c"):
            factory.slide(group, name=name)

        assert move_slide(db_session, group.id, None, 0, 1)
        db_session.commit()

        assert _names(db_session, group.id) == ["b", "a", "c"]
        assert _positions(db_session, group.id) == [0, 1, 2]

    def test_out_of_range_move_is_noop(self, db_session, factory):
        group = factory.group()
        factory.slide(group, name="a")
        factory.slide(group, name="b")

        assert not move_slide(db_session, group.id, None, 0, -1)
        assert not move_slide(db_session, group.id, None, 1, 1)
        assert not move_slide(db_session, group.id, None, 5, 1)
        assert _names(db_session, group.id) == ["a", "b"]

    def test_repack_closes_gaps(self, db_session, factory):
        group = factory.group()
        factory.slide(group, name="a", position=3)
        factory.slide(group, name="b", position=7)
        factory.slide(group, name="c", position=9)

        repack_positions(db_session, group.id, None)
        db_session.commit()

        assert _positions(db_session, group.id) == [0, 1, 2]
        assert _names(db_session, group.id) == ["a", "b", "c"]

    def test_contiguous_after_mixed_operations(self, db_session, factory):
        group = factory.group()
        campaign = factory.campaign(group)
        for index in range(6):
            factory.slide(group, campaign, name=f"s{index}")
        factory.slide(group, name="cover")

        for index, direction in [(0, 1), (5, -1), (2, 1), (3, -1)]:
            move_slide(db_session, group.id, campaign.id, index, direction)
            db_session.commit()
        for _ in range(2):
            victim = list_scope(db_session, group.id, campaign.id)[1]
            db_session.delete(victim)
            db_session.flush()
            repack_positions(db_session, group.id, campaign.id)
            db_session.commit()

        assert _positions(db_session, group.id, campaign.id) == [0, 1, 2, 3]
        assert _positions(db_session, group.id) == [0]


class TestReclaim:
    def test_reference_count_spans_groups_and_campaigns(self, db_session, factory):
        first = factory.group("First")
        second = factory.group("Second")
        campaign = factory.campaign(second)
        factory.slide(first, src="/uploads/images/same.png")
        factory.slide(second, campaign, src="/uploads/images/same.png")
        assert src_reference_count(db_session, "/uploads/images/same.png") == 2

    def test_only_unreferenced_files_are_removed(self, db_session, factory, media_storage):
        group = factory.group()
        for src in ("/uploads/images/kept.png", "/uploads/videos/gone.mp4"):
            with open(media_storage.resolve(src), "wb") as f:
                f.write(b"data")
        factory.slide(group, src="/uploads/images/kept.png")

        removed = reclaim_unreferenced_media(
            db_session,
            ["/uploads/images/kept.png", "/uploads/videos/gone.mp4", "/uploads/videos/gone.mp4"],
            media_storage,
        )

        assert removed == ["/uploads/videos/gone.mp4"]
        assert media_storage.exists("/uploads/images/kept.png")
        assert db_session.query(Slide).count() == 1

    def test_foreign_srcs_are_never_touched(self, db_session, media_storage):
        assert reclaim_unreferenced_media(db_session, ["https://cdn.example.com/a.png", ""], media_storage) == []
