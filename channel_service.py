"""
On-demand channel and video operations behind the HTTP endpoints.

Channel statistics are refreshed only when a client asks for channel info;
every such request upserts the channel and appends a ChannelStatsLog row.
Video statistics are refreshed by StatsScheduler instead.
"""

import logging
from config import Config
from database import as_utc, utcnow
from errors import ChannelNotFoundError, InvalidInputError, NotFoundError, PersistenceError, UpstreamError
from identifiers import ChannelResolver, extract_video_id
from stats_scheduler import initial_schedule
from youtube_client import best_thumbnail, chunked, parse_count, parse_timestamp

logger = logging.getLogger(__name__)


def _isoformat(value):
    value = as_utc(value)
    return value.isoformat() if value else None


def channel_to_dict(channel):
    return {
        'id': channel.id,
        'youtube_channel_id': channel.youtube_channel_id,
        'title': channel.title,
        'description': channel.description,
        'published_at': _isoformat(channel.published_at),
        'thumbnail_url': channel.thumbnail_url,
        'subscriber_count': channel.subscriber_count,
        'video_count': channel.video_count,
        'total_view_count': channel.total_view_count,
    }


def video_to_dict(video):
    return {
        'id': video.id,
        'youtube_video_id': video.youtube_video_id,
        'title': video.title,
        'thumbnail_url': video.thumbnail_url,
        'published_at': _isoformat(video.published_at),
        'view_count': video.view_count,
        'like_count': video.like_count,
        'comment_count': video.comment_count,
        'next_stat_fetch_at': _isoformat(video.next_stat_fetch_at),
        'stat_fetch_frequency_hours': video.stat_fetch_frequency_hours,
    }


def stats_log_to_dict(log):
    return {
        'fetched_at': _isoformat(log.fetched_at),
        'view_count': log.view_count,
        'like_count': log.like_count,
        'comment_count': log.comment_count,
    }


def channel_handle(snippet):
    for value in (snippet.get('customUrl'), snippet.get('title')):
        if value and value.startswith('@'):
            return value
    return None


class ChannelService:
    def __init__(self, store, client, resolver=None):
        self.store = store
        self.client = client
        self.resolver = resolver or ChannelResolver(client)
        
    def refresh_channel(self, channel_input, user_id=None, is_public_demo=False):
        """Resolve input, fetch the channel, upsert it and append a stats log row"""
        identifier = self.resolver.resolve(channel_input)
        
        channel_data = self.client.get_channel(**identifier.lookup_params())
        if not channel_data:
            raise ChannelNotFoundError('Channel not found on YouTube with the resolved identifier')
            
        snippet = channel_data.get('snippet')
        statistics = channel_data.get('statistics')
        content_details = channel_data.get('contentDetails')
        if not channel_data.get('id') or snippet is None or statistics is None or content_details is None:
            raise UpstreamError('Incomplete data from YouTube API for the channel.')
            
        now = utcnow()
        counts = {
            'subscriber_count': parse_count(statistics.get('subscriberCount')),
            'video_count': parse_count(statistics.get('videoCount')),
            'total_view_count': parse_count(statistics.get('viewCount')),
        }
        uploads_playlist_id = (content_details.get('relatedPlaylists') or {}).get('uploads')
        
        # A failed upsert aborts here; the log row needs the channel's row id
        channel = self.store.upsert_channel(dict(
            youtube_channel_id=channel_data['id'],
            title=snippet.get('title'),
            description=snippet.get('description'),
            published_at=parse_timestamp(snippet.get('publishedAt')),
            thumbnail_url=best_thumbnail(snippet.get('thumbnails')),
            country=snippet.get('country'),
            uploads_playlist_id=uploads_playlist_id,
            custom_url=snippet.get('customUrl'),
            handle=channel_handle(snippet),
            last_fetched_at=now,
            user_id=user_id,
            is_public_demo=bool(is_public_demo),
            **counts
        ))
        
        try:
            self.store.add_channel_stats_log(channel.id, now, **counts)
        except PersistenceError as e:
            logger.error(f"Error inserting channel stats log for {channel_data['id']}: {e}")
            
        logger.info(f"Channel info for {channel_data['id']} saved. Identified by: {identifier.method}")
        
        return {
            'channel_id': channel_data['id'],
            'title': snippet.get('title'),
            'description': snippet.get('description'),
            'published_at': snippet.get('publishedAt'),
            'thumbnail_url': best_thumbnail(snippet.get('thumbnails')),
            'uploads_playlist_id': uploads_playlist_id,
            'identified_by': identifier.method,
            **counts
        }
        
    def sync_channel_videos(self, youtube_channel_id, now=None):
        """Discover every upload of a stored channel and upsert it.

        New videos get an initial stats schedule; known videos keep theirs.
        """
        channel = self.store.get_channel(youtube_channel_id)
        if not channel or not channel.uploads_playlist_id:
            raise NotFoundError('Failed to find channel or its uploads playlist ID in DB')
        channel_row_id = channel.id
        
        video_ids = self.client.list_playlist_video_ids(channel.uploads_playlist_id)
        if not video_ids:
            return []
            
        videos_data = []
        for batch_ids in chunked(video_ids, Config.MAX_RESULTS_PER_REQUEST):
            for item in self.client.list_videos(batch_ids):
                if not item.get('id'):
                    continue
                snippet = item.get('snippet') or {}
                statistics = item.get('statistics') or {}
                videos_data.append({
                    'youtube_video_id': item['id'],
                    'channel_id': channel_row_id,
                    'title': snippet.get('title'),
                    'description': snippet.get('description'),
                    'published_at': parse_timestamp(snippet.get('publishedAt')),
                    'thumbnail_url': best_thumbnail(snippet.get('thumbnails')),
                    'duration': (item.get('contentDetails') or {}).get('duration'),
                    'tags': snippet.get('tags'),
                    'category_id': snippet.get('categoryId'),
                    'view_count': parse_count(statistics.get('viewCount')),
                    'like_count': parse_count(statistics.get('likeCount')),
                    'comment_count': parse_count(statistics.get('commentCount')),
                })
                
        videos = self.store.upsert_videos(videos_data, insert_defaults=initial_schedule(now or utcnow()))
        logger.info(f"Synced {len(videos)} videos for channel {youtube_channel_id}")
        return [video_to_dict(video) for video in videos]
        
    def get_channel_details(self, youtube_channel_id):
        channel = self.store.get_channel(youtube_channel_id)
        if not channel:
            raise ChannelNotFoundError('Channel not found')
        return {
            'channel': channel_to_dict(channel),
            'videos': [video_to_dict(video) for video in self.store.list_channel_videos(channel.id)],
        }
        
    def get_video_stats_log(self, video_id):
        if not self.store.get_video(video_id):
            raise NotFoundError(f'Video {video_id} not found')
        return [stats_log_to_dict(log) for log in self.store.get_video_stats_log(video_id)]
        
    def get_video_info(self, youtube_url):
        if not youtube_url or not isinstance(youtube_url, str):
            raise InvalidInputError('YouTube URL is required and must be a string')
            
        video_id = extract_video_id(youtube_url)
        if not video_id:
            raise InvalidInputError('Invalid YouTube URL or unable to extract video ID')
            
        video = self.client.get_video(video_id)
        if not video:
            raise NotFoundError('Video not found on YouTube')
            
        snippet = video.get('snippet') or {}
        return {
            'youtube_video_id': video_id,
            'title': snippet.get('title'),
            'description': snippet.get('description'),
            'thumbnail_url': best_thumbnail(snippet.get('thumbnails')),
        }
