"""Tests for the persistence layer."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from conftest import NOW, channel_id
from database import Channel, ChannelStatsLog, Video, as_utc
from errors import PersistenceError
from store import StatsStore
from stats_scheduler import initial_schedule


def test_upsert_channel_inserts_then_updates(store, db):
    first = store.upsert_channel({"youtube_channel_id": channel_id(1), "title": "Old", "subscriber_count": 1})
    second = store.upsert_channel({"youtube_channel_id": channel_id(1), "title": "New", "subscriber_count": 2})

    assert first.id == second.id
    assert db.query(Channel).count() == 1
    channel = db.query(Channel).one()
    assert (channel.title, channel.subscriber_count) == ("New", 2)


def test_channel_stats_log_is_appended_every_time(store, db):
    channel = store.upsert_channel({"youtube_channel_id": channel_id(1)})
    store.add_channel_stats_log(channel.id, NOW, subscriber_count=5)
    store.add_channel_stats_log(channel.id, NOW, subscriber_count=5)

    assert db.query(ChannelStatsLog).filter_by(channel_id=channel.id).count() == 2


def test_upsert_videos_applies_insert_defaults_only_to_new_rows(store, db):
    channel = store.upsert_channel({"youtube_channel_id": channel_id(1)})
    store.upsert_videos(
        [{"youtube_video_id": "a", "channel_id": channel.id, "title": "A"}],
        insert_defaults=initial_schedule(NOW),
    )
    later = NOW + timedelta(days=1)
    store.upsert_videos(
        [
            {"youtube_video_id": "a", "channel_id": channel.id, "title": "A2"},
            {"youtube_video_id": "b", "channel_id": channel.id, "title": "B"},
        ],
        insert_defaults=initial_schedule(later),
    )

    db.expire_all()
    a = db.query(Video).filter_by(youtube_video_id="a").one()
    b = db.query(Video).filter_by(youtube_video_id="b").one()
    assert a.title == "A2"
    assert as_utc(a.next_stat_fetch_at) == NOW + timedelta(hours=1)
    assert as_utc(b.next_stat_fetch_at) == later + timedelta(hours=1)


def test_select_due_videos_includes_exact_boundary(store):
    channel = store.upsert_channel({"youtube_channel_id": channel_id(1)})
    store.upsert_videos([
        {"youtube_video_id": "past", "channel_id": channel.id, "next_stat_fetch_at": NOW - timedelta(hours=1)},
        {"youtube_video_id": "now", "channel_id": channel.id, "next_stat_fetch_at": NOW},
        {"youtube_video_id": "future", "channel_id": channel.id, "next_stat_fetch_at": NOW + timedelta(seconds=1)},
        {"youtube_video_id": "unscheduled", "channel_id": channel.id},
    ])

    due = {video.youtube_video_id for video in store.select_due_videos(NOW)}

    assert due == {"past", "now"}


def test_video_stats_log_is_ordered_by_fetch_time(store):
    channel = store.upsert_channel({"youtube_channel_id": channel_id(1)})
    video = store.upsert_videos([{"youtube_video_id": "a", "channel_id": channel.id}])[0]
    store.insert_video_stats_logs([
        {"video_id": video.id, "fetched_at": NOW + timedelta(hours=2), "view_count": 30},
        {"video_id": video.id, "fetched_at": NOW, "view_count": 10},
        {"video_id": video.id, "fetched_at": NOW + timedelta(hours=1), "view_count": 20},
    ])

    assert [log.view_count for log in store.get_video_stats_log(video.id)] == [10, 20, 30]


def test_update_video_touches_one_row(store, db):
    channel = store.upsert_channel({"youtube_channel_id": channel_id(1)})
    a, b = store.upsert_videos([
        {"youtube_video_id": "a", "channel_id": channel.id, "view_count": 1},
        {"youtube_video_id": "b", "channel_id": channel.id, "view_count": 1},
    ])

    assert store.update_video(a.id, {"view_count": 99}) == 1

    db.expire_all()
    assert db.get(Video, a.id).view_count == 99
    assert db.get(Video, b.id).view_count == 1


def test_commit_failure_is_wrapped_and_rolled_back(store, db, monkeypatch):
    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(PersistenceError):
        store.upsert_channel({"youtube_channel_id": channel_id(1)})


def test_upsert_channel_wins_over_row_inserted_by_another_session(session_factory):
    first_db = session_factory()
    second_db = session_factory()
    first, second = StatsStore(first_db), StatsStore(second_db)
    ucid = channel_id(1)

    # The second request already looked and saw no row
    assert second.get_channel(ucid) is None
    first.upsert_channel({"youtube_channel_id": ucid, "title": "First"})
    channel = second.upsert_channel({"youtube_channel_id": ucid, "title": "Second"})

    assert channel.title == "Second"
    assert second_db.query(Channel).count() == 1
    first_db.close()
    second_db.close()


def test_upsert_videos_handles_row_inserted_by_another_session(session_factory):
    first_db = session_factory()
    second_db = session_factory()
    first, second = StatsStore(first_db), StatsStore(second_db)
    channel = first.upsert_channel({"youtube_channel_id": channel_id(1)})
    channel_row_id = channel.id

    first.upsert_videos([{"youtube_video_id": "a", "channel_id": channel_row_id, "title": "First"}],
                        insert_defaults=initial_schedule(NOW))
    videos = second.upsert_videos([{"youtube_video_id": "a", "channel_id": channel_row_id, "title": "Second"}],
                                  insert_defaults=initial_schedule(NOW + timedelta(days=1)))

    assert [v.title for v in videos] == ["Second"]
    assert as_utc(videos[0].next_stat_fetch_at) == NOW + timedelta(hours=1)
    assert second_db.query(Video).count() == 1
    first_db.close()
    second_db.close()
