from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from datetime import datetime, timezone
import httplib2
import logging
from config import Config
from errors import UpstreamError

logger = logging.getLogger(__name__)

CHANNEL_PARTS = 'snippet,statistics,contentDetails,brandingSettings'
VIDEO_PARTS = 'snippet,statistics,contentDetails'


def parse_count(value):
    """Statistics arrive as strings; missing or empty counts stay None"""
    if value in (None, ''):
        return None
    return int(value)


def parse_timestamp(value):
    """Parse an RFC 3339 timestamp like 2024-05-01T12:00:00Z"""
    if not value:
        return None
    return datetime.fromisoformat(value.replace('Z', '+00:00')).astimezone(timezone.utc)


def best_thumbnail(thumbnails):
    thumbnails = thumbnails or {}
    for key in ('high', 'default'):
        url = (thumbnails.get(key) or {}).get('url')
        if url:
            return url
    return None


class YouTubeClient:
    """Thin wrapper over the YouTube Data API v3.

    Every call is a single request; failures surface as UpstreamError and
    callers decide whether to skip, fall through or abort.
    """

    def __init__(self, api_key=None, timeout=None, service=None):
        self.timeout = timeout or Config.YOUTUBE_REQUEST_TIMEOUT_SECONDS
        if service is not None:
            self.youtube = service
        else:
            self.youtube = build('youtube', 'v3',
                                 developerKey=api_key or Config.YOUTUBE_API_KEY,
                                 http=httplib2.Http(timeout=self.timeout),
                                 cache_discovery=False)
        
    def _execute(self, request, what):
        # httplib2.Http is not thread-safe; routes share this client across threads
        try:
            return request.execute(http=httplib2.Http(timeout=self.timeout))
        except HttpError as e:
            status = e.resp.status if hasattr(e, 'resp') else None
            logger.warning(f"YouTube API error during {what} (status {status}): {e}")
            raise UpstreamError(f"YouTube API error during {what}: {e}", status=status) from e
        except (OSError, httplib2.HttpLib2Error) as e:
            # socket timeouts are OSError subclasses
            logger.warning(f"Transport failure during {what}: {e}")
            raise UpstreamError(f"Transport failure during {what}: {e}") from e
            
    def get_channel(self, channel_id=None, for_username=None):
        """Fetch one channel by id or legacy username; None when YouTube has no match"""
        if not channel_id and not for_username:
            raise ValueError("channel_id or for_username is required")
        params = {'part': CHANNEL_PARTS}
        if channel_id:
            params['id'] = channel_id
        else:
            params['forUsername'] = for_username
        response = self._execute(self.youtube.channels().list(**params), 'channels.list')
        items = response.get('items') or []
        return items[0] if items else None
        
    def search_channel_id(self, query):
        """Return the channel id of the top channel search hit, or None"""
        request = self.youtube.search().list(
            part='snippet',
            q=query,
            type='channel',
            maxResults=1
        )
        response = self._execute(request, 'search.list')
        for item in response.get('items') or []:
            channel_id = (item.get('id') or {}).get('channelId') or (item.get('snippet') or {}).get('channelId')
            if channel_id:
                return channel_id
        return None
        
    def list_playlist_video_ids(self, playlist_id):
        """Collect every video id in a playlist, following page tokens until exhausted"""
        video_ids = []
        next_page_token = None
        
        while True:
            request = self.youtube.playlistItems().list(
                part='snippet,contentDetails',
                playlistId=playlist_id,
                maxResults=Config.MAX_RESULTS_PER_REQUEST,
                pageToken=next_page_token
            )
            response = self._execute(request, 'playlistItems.list')
            
            for item in response.get('items', []):
                video_id = (item.get('contentDetails') or {}).get('videoId')
                if video_id:
                    video_ids.append(video_id)
                    
            next_page_token = response.get('nextPageToken')
            if not next_page_token:
                break
                
        logger.debug(f"Playlist {playlist_id}: {len(video_ids)} videos")
        return video_ids
        
    def list_videos(self, video_ids, part=VIDEO_PARTS):
        """One videos.list call for at most MAX_RESULTS_PER_REQUEST ids"""
        if not video_ids:
            return []
        if len(video_ids) > Config.MAX_RESULTS_PER_REQUEST:
            raise ValueError(f"videos.list accepts at most {Config.MAX_RESULTS_PER_REQUEST} ids, got {len(video_ids)}")
        request = self.youtube.videos().list(
            part=part,
            id=','.join(video_ids)
        )
        response = self._execute(request, 'videos.list')
        return response.get('items', [])
        
    def get_video(self, video_id, part='snippet'):
        items = self.list_videos([video_id], part=part)
        return items[0] if items else None


def chunked(items, size):
    for i in range(0, len(items), size):
        yield items[i:i + size]
