"""
Turn free-text channel/video input into identifiers the YouTube Data API accepts.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse, parse_qs

from errors import ChannelNotFoundError, InvalidInputError, UpstreamError

logger = logging.getLogger(__name__)

# Channel ids are always 24 characters: "UC" + 22 base64url characters
CHANNEL_ID_PATTERN = re.compile(r'^UC[A-Za-z0-9_-]{22}$')


def is_channel_id(value):
    return bool(value) and CHANNEL_ID_PATTERN.match(value) is not None


def is_handle(value):
    return value.startswith('@') and len(value) > 1


@dataclass
class ChannelIdentifier:
    channel_id: Optional[str] = None
    for_username: Optional[str] = None
    method: str = 'direct'

    def lookup_params(self):
        if self.channel_id:
            return {'channel_id': self.channel_id}
        return {'for_username': self.for_username}


def _url_path_parts(text):
    """Path segments when the input looks like a URL, otherwise an empty list"""
    if not ('/' in text or '.' in text or text.lower().startswith('http')):
        return []
    candidate = text if text.lower().startswith('http') else f"http://{text}"
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return []
    return [part for part in parsed.path.split('/') if part]


class ChannelResolver:
    """Resolve URLs, @handles, raw channel ids and names to a channel lookup key.

    Strategies run in a fixed order and a failing search only moves on to the
    next one. The last resort is a plain name search; if that finds nothing
    the input is reported as not found.
    """

    def __init__(self, client):
        self.client = client

    def _search_handle(self, handle):
        try:
            channel_id = self.client.search_channel_id(handle)
        except UpstreamError as e:
            logger.warning(f"Handle search failed for {handle}: {e}")
            return None
        if not channel_id:
            logger.info(f"No channel found for handle {handle}")
        return channel_id

    def _direct(self, text):
        path_parts = _url_path_parts(text)

        if path_parts:
            if path_parts[0] == 'channel' and len(path_parts) > 1 and is_channel_id(path_parts[1]):
                return ChannelIdentifier(channel_id=path_parts[1])
            if path_parts[0] == 'user' and len(path_parts) > 1:
                return ChannelIdentifier(for_username=path_parts[1])
            if is_handle(path_parts[-1]):
                channel_id = self._search_handle(path_parts[-1])
                if channel_id:
                    return ChannelIdentifier(channel_id=channel_id)
        elif is_handle(text):
            channel_id = self._search_handle(text)
            if channel_id:
                return ChannelIdentifier(channel_id=channel_id)
        elif is_channel_id(text):
            return ChannelIdentifier(channel_id=text)

        return None

    def resolve(self, text):
        text = (text or '').strip()
        if not text:
            raise InvalidInputError("Channel input is required")

        identifier = self._direct(text)
        if identifier:
            logger.info(f"Resolved {text!r} directly: {identifier}")
            return identifier

        logger.info(f"No direct identifier in {text!r}, searching by name")
        channel_id = self.client.search_channel_id(text)
        if not channel_id:
            raise ChannelNotFoundError(f'No channel found matching input: "{text}"')

        identifier = ChannelIdentifier(channel_id=channel_id, method='search_by_name')
        logger.info(f"Resolved {text!r} by name search: {identifier}")
        return identifier


def extract_video_id(url):
    """Video id from youtu.be, /watch?v=, /embed/ and /shorts/ URLs, else None"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    hostname = parsed.hostname or ''
    if hostname == 'youtu.be':
        return parsed.path[1:] or None
    if 'youtube.com' in hostname:
        if parsed.path == '/watch':
            values = parse_qs(parsed.query).get('v')
            return values[0] if values else None
        if parsed.path.startswith('/embed/') or parsed.path.startswith('/shorts/'):
            parts = parsed.path.split('/')
            return parts[2] or None
    return None
