"""
Age-decayed refresh of per-video statistics.

A video is due once its next_stat_fetch_at has passed. Each pass fetches
statistics for all due videos in batches, appends one VideoStatsLog row per
video, refreshes the cached counts on the video and pushes its next due time
out by an interval that depends only on how old the video is:

    published <= 24h ago  -> every hour
    published <= 72h ago  -> every 3 hours
    older                 -> every 24 hours
"""

from dataclasses import dataclass, asdict
from datetime import timedelta
import logging

from config import Config
from database import as_utc, utcnow
from errors import PersistenceError, UpstreamError
from youtube_client import chunked, parse_count

logger = logging.getLogger(__name__)


def next_fetch_interval_hours(published_at, now):
    """Hours until the next stats fetch for a video published at published_at"""
    if published_at is None:
        return 24
    hours_since_published = (now - as_utc(published_at)).total_seconds() / 3600
    if hours_since_published <= 24:
        return 1
    if hours_since_published <= 72:
        return 3
    return 24


def initial_schedule(now, delay_hours=None):
    """Schedule fields for a newly discovered video: one early sample, then the age policy"""
    if delay_hours is None:
        delay_hours = Config.INITIAL_STAT_FETCH_DELAY_HOURS
    return {
        'next_stat_fetch_at': now + timedelta(hours=delay_hours),
        'stat_fetch_frequency_hours': 1,
        'last_stat_logged_at': now,
    }


@dataclass
class PassSummary:
    due: int = 0
    fetched: int = 0
    logged: int = 0
    rescheduled: int = 0
    failed_batches: int = 0
    failed_updates: int = 0

    @property
    def message(self):
        if not self.due:
            return 'No videos due for stats update.'
        return f'Processed stats for {self.due} videos.'

    def to_dict(self):
        return asdict(self)


class StatsScheduler:
    def __init__(self, store, client, batch_size=None):
        self.store = store
        self.client = client
        self.batch_size = batch_size or Config.MAX_RESULTS_PER_REQUEST
        
    def run(self, now=None):
        """Process every video that is due at now"""
        now = now or utcnow()
        logger.info(f"[{now.isoformat()}] Scheduled video stats fetch started")
        
        due_videos = self.store.select_due_videos(now)
        if not due_videos:
            logger.info("No videos due for stats update")
            return PassSummary()
            
        logger.info(f"Found {len(due_videos)} videos due for stats update")
        return self.process(due_videos, now)
        
    def process(self, videos, now):
        """Fetch, log and reschedule the given videos using one shared timestamp.

        Videos missing from the API response are left as they are, so they
        stay due and get picked up by the next pass.
        """
        summary = PassSummary(due=len(videos))
        
        # Plain values up front; ORM instances expire on every commit below
        due_by_youtube_id = {
            video.youtube_video_id: (video.id, video.published_at) for video in videos
        }
        logs = []
        updates = []
        
        for batch_ids in chunked(list(due_by_youtube_id), self.batch_size):
            try:
                items = self.client.list_videos(batch_ids, part='statistics')
            except UpstreamError as e:
                summary.failed_batches += 1
                logger.error(f"Stats batch of {len(batch_ids)} videos failed, skipping: {e}")
                continue
                
            for item in items:
                match = due_by_youtube_id.get(item.get('id'))
                statistics = item.get('statistics')
                if match is None or statistics is None:
                    continue
                video_id, published_at = match
                
                counts = {
                    'view_count': parse_count(statistics.get('viewCount')),
                    'like_count': parse_count(statistics.get('likeCount')),
                    'comment_count': parse_count(statistics.get('commentCount')),
                }
                interval_hours = next_fetch_interval_hours(published_at, now)
                
                logs.append(dict(video_id=video_id, fetched_at=now, **counts))
                updates.append((video_id, dict(
                    last_stat_logged_at=now,
                    next_stat_fetch_at=now + timedelta(hours=interval_hours),
                    stat_fetch_frequency_hours=interval_hours,
                    **counts
                )))
                
        summary.fetched = len(updates)
        
        # Log insert and schedule updates are independent; neither undoes the other
        try:
            summary.logged = self.store.insert_video_stats_logs(logs)
            if logs:
                logger.info(f"Inserted {summary.logged} video stats logs")
        except PersistenceError as e:
            logger.error(f"Error inserting video stats logs: {e}")
            
        for video_id, fields in updates:
            try:
                self.store.update_video(video_id, fields)
                summary.rescheduled += 1
            except PersistenceError as e:
                summary.failed_updates += 1
                logger.error(f"Error updating schedule for video {video_id}: {e}")
                
        if updates:
            logger.info(f"Updated schedules for {summary.rescheduled} videos")
        return summary
