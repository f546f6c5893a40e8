from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
import logging
from database import Channel, ChannelStatsLog, Video, VideoStatsLog
from errors import PersistenceError

logger = logging.getLogger(__name__)


class StatsStore:
    """Persistence for channels, videos and their append-only stats logs.

    Rows are upserted by their YouTube id. Log tables are only ever inserted
    into. Each public write commits on its own, so a failure in one never
    rolls back another.
    """

    def __init__(self, db):
        self.db = db
        
    def _commit(self, what):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while {what}: {e}")
            raise PersistenceError(f"Database error while {what}: {e}") from e
            
    def _insert_for_dialect(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == 'postgresql':
            return postgresql_insert
        if dialect == 'sqlite':
            return sqlite_insert
        raise PersistenceError(f"Upserts are not supported on the {dialect} dialect")
        
    def _upsert(self, model, key, rows, insert_defaults=None):
        """INSERT ... ON CONFLICT (key) DO UPDATE for each row; atomic per row.

        insert_defaults are written only when the row is new.
        """
        insert = self._insert_for_dialect()
        for row in rows:
            stmt = insert(model).values(**{**(insert_defaults or {}), **row})
            update_columns = [column for column in row if column != key] or [key]
            stmt = stmt.on_conflict_do_update(
                index_elements=[key],
                set_={column: stmt.excluded[column] for column in update_columns}
            )
            self.db.execute(stmt)
            
    # Channels
    
    def get_channel(self, youtube_channel_id):
        return self.db.query(Channel).filter_by(youtube_channel_id=youtube_channel_id).first()
        
    def upsert_channel(self, channel_data):
        """Insert or update a channel keyed on youtube_channel_id, last write wins"""
        try:
            self._upsert(Channel, 'youtube_channel_id', [channel_data])
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Database error while upserting channel: {e}") from e
        self._commit('upserting channel')
        return self.get_channel(channel_data['youtube_channel_id'])
        
    def add_channel_stats_log(self, channel_id, created_at, subscriber_count=None,
                              video_count=None, total_view_count=None):
        log = ChannelStatsLog(
            channel_id=channel_id,
            created_at=created_at,
            subscriber_count=subscriber_count,
            video_count=video_count,
            total_view_count=total_view_count
        )
        self.db.add(log)
        self._commit('inserting channel stats log')
        return log
        
    def list_channel_videos(self, channel_id):
        return self.db.query(Video).filter(
            Video.channel_id == channel_id
        ).order_by(Video.published_at.desc()).all()
        
    # Videos
    
    def get_video(self, video_id):
        return self.db.get(Video, video_id)
        
    def upsert_videos(self, videos_data, insert_defaults=None):
        """Insert or update videos keyed on youtube_video_id, in one commit.

        insert_defaults only apply to rows being inserted, so re-syncing a
        known video never moves its stats schedule.
        """
        if not videos_data:
            return []
        try:
            self._upsert(Video, 'youtube_video_id', videos_data, insert_defaults=insert_defaults)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Database error while upserting videos: {e}") from e
        self._commit('upserting videos')
        
        youtube_ids = [v['youtube_video_id'] for v in videos_data]
        by_youtube_id = {
            video.youtube_video_id: video
            for video in self.db.query(Video).filter(Video.youtube_video_id.in_(youtube_ids)).all()
        }
        return [by_youtube_id[youtube_id] for youtube_id in youtube_ids]
        
    def select_due_videos(self, now):
        """Every video whose next_stat_fetch_at is at or before now"""
        try:
            return self.db.query(Video).filter(
                Video.next_stat_fetch_at <= now
            ).order_by(Video.id).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database error while selecting due videos: {e}") from e
            
    def insert_video_stats_logs(self, logs):
        """Append a batch of stats log rows in one insert"""
        if not logs:
            return 0
        self.db.add_all([VideoStatsLog(**log) for log in logs])
        self._commit('inserting video stats logs')
        return len(logs)
        
    def update_video(self, video_id, fields):
        """Single-row in-place update, last write wins"""
        try:
            updated = self.db.query(Video).filter(Video.id == video_id).update(
                fields, synchronize_session='fetch'
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Database error while updating video {video_id}: {e}") from e
        self._commit(f'updating video {video_id}')
        return updated
        
    def get_video_stats_log(self, video_id):
        return self.db.query(VideoStatsLog).filter(
            VideoStatsLog.video_id == video_id
        ).order_by(VideoStatsLog.fetched_at.asc(), VideoStatsLog.id.asc()).all()
        
    def counts(self):
        return {
            'channels': self.db.query(Channel).count(),
            'videos': self.db.query(Video).count(),
        }
