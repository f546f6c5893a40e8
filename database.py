from sqlalchemy import create_engine, Column, String, Integer, BigInteger, DateTime, Boolean, Text, JSON, ForeignKey
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from datetime import datetime, timezone
from config import Config

Base = declarative_base()
engine = create_engine(Config.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine)


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Channel(Base):
    __tablename__ = 'channels'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    youtube_channel_id = Column(String, unique=True, nullable=False, index=True)
    title = Column(String)
    description = Column(Text)
    published_at = Column(DateTime(timezone=True))
    thumbnail_url = Column(String)
    country = Column(String)
    
    # Latest statistics
    subscriber_count = Column(BigInteger)
    video_count = Column(BigInteger)
    total_view_count = Column(BigInteger)
    
    uploads_playlist_id = Column(String)
    custom_url = Column(String)
    handle = Column(String)
    last_fetched_at = Column(DateTime(timezone=True))
    
    # Placeholders, not used for access control
    user_id = Column(String)
    is_public_demo = Column(Boolean, default=False)
    
    created_at = Column(DateTime(timezone=True), default=utcnow)
    
    videos = relationship('Video', back_populates='channel')
    stats_logs = relationship('ChannelStatsLog', back_populates='channel')


class ChannelStatsLog(Base):
    __tablename__ = 'channel_stats_logs'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    channel_id = Column(Integer, ForeignKey('channels.id'), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    subscriber_count = Column(BigInteger)
    video_count = Column(BigInteger)
    total_view_count = Column(BigInteger)
    
    channel = relationship('Channel', back_populates='stats_logs')


class Video(Base):
    __tablename__ = 'videos'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    youtube_video_id = Column(String, unique=True, nullable=False, index=True)
    channel_id = Column(Integer, ForeignKey('channels.id'), nullable=False, index=True)
    title = Column(String)
    description = Column(Text)
    published_at = Column(DateTime(timezone=True))
    thumbnail_url = Column(String)
    duration = Column(String)  # ISO 8601, e.g. PT1M30S
    tags = Column(JSON)
    category_id = Column(String)
    
    # Latest statistics
    view_count = Column(BigInteger)
    like_count = Column(BigInteger)
    comment_count = Column(BigInteger)
    
    # Stats refresh scheduling
    next_stat_fetch_at = Column(DateTime(timezone=True), index=True)
    stat_fetch_frequency_hours = Column(Integer)
    last_stat_logged_at = Column(DateTime(timezone=True))
    
    channel = relationship('Channel', back_populates='videos')
    stats_logs = relationship('VideoStatsLog', back_populates='video')


class VideoStatsLog(Base):
    __tablename__ = 'video_stats_logs'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    video_id = Column(Integer, ForeignKey('videos.id'), nullable=False, index=True)
    fetched_at = Column(DateTime(timezone=True), nullable=False)
    view_count = Column(BigInteger)
    like_count = Column(BigInteger)
    comment_count = Column(BigInteger)
    
    video = relationship('Video', back_populates='stats_logs')


def init_db(bind=None):
    """Create tables that don't exist yet"""
    Base.metadata.create_all(bind or engine)


def get_db():
    """FastAPI dependency yielding a session per request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
