"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timezone

import pytest

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["YOUTUBE_API_KEY"] = "test-key"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import init_db
from errors import UpstreamError
from store import StatsStore

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def channel_id(n):
    """A well-formed 24 character channel id"""
    return f"UC{n:022d}"


def make_channel_item(youtube_channel_id, title="Test Channel", subscribers="1000",
                      videos="10", views="50000", custom_url="@testchannel"):
    return {
        "id": youtube_channel_id,
        "snippet": {
            "title": title,
            "description": f"About {title}",
            "publishedAt": "2020-01-01T00:00:00Z",
            "customUrl": custom_url,
            "country": "JP",
            "thumbnails": {
                "default": {"url": "https://img/default.jpg"},
                "high": {"url": "https://img/high.jpg"},
            },
        },
        "statistics": {"subscriberCount": subscribers, "videoCount": videos, "viewCount": views},
        "contentDetails": {"relatedPlaylists": {"uploads": "UU" + youtube_channel_id[2:]}},
    }


def make_video_item(video_id, published_at="2025-02-28T12:00:00Z", views="100", likes="10", comments="1"):
    return {
        "id": video_id,
        "snippet": {
            "title": f"Video {video_id}",
            "description": "",
            "publishedAt": published_at,
            "thumbnails": {"high": {"url": f"https://img/{video_id}.jpg"}},
            "tags": ["a", "b"],
            "categoryId": "22",
        },
        "statistics": {"viewCount": views, "likeCount": likes, "commentCount": comments},
        "contentDetails": {"duration": "PT1M30S"},
    }


class FakeYouTubeClient:
    """In-memory stand-in for YouTubeClient that records every call"""

    def __init__(self):
        self.channels = {}
        self.usernames = {}
        self.search_results = {}
        self.playlists = {}
        self.videos = {}
        self.failing_searches = set()
        self.failing_video_batches = set()
        self.calls = []

    def get_channel(self, channel_id=None, for_username=None):
        self.calls.append(("get_channel", channel_id or for_username))
        if for_username:
            channel_id = self.usernames.get(for_username)
        return self.channels.get(channel_id)

    def search_channel_id(self, query):
        self.calls.append(("search", query))
        if query in self.failing_searches:
            raise UpstreamError(f"search failed for {query}", status=503)
        return self.search_results.get(query)

    def list_playlist_video_ids(self, playlist_id):
        self.calls.append(("playlist", playlist_id))
        return list(self.playlists.get(playlist_id, []))

    def list_videos(self, video_ids, part="snippet,statistics,contentDetails"):
        assert len(video_ids) <= 50
        batch_number = len(self.video_calls())
        self.calls.append(("videos", list(video_ids)))
        if batch_number in self.failing_video_batches:
            raise UpstreamError("videos.list timed out")
        return [self.videos[v] for v in video_ids if v in self.videos]

    def get_video(self, video_id, part="snippet"):
        items = self.list_videos([video_id], part=part)
        return items[0] if items else None

    def video_calls(self):
        return [args for name, args in self.calls if name == "videos"]

    def search_calls(self):
        return [args for name, args in self.calls if name == "search"]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return StatsStore(db)


@pytest.fixture
def youtube():
    return FakeYouTubeClient()


@pytest.fixture
def test_client(session_factory, youtube):
    """FastAPI test client wired to the in-memory database and fake YouTube client"""
    from app import app, get_youtube_client
    from database import get_db

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_youtube_client] = lambda: youtube
    yield TestClient(app)
    app.dependency_overrides.clear()
