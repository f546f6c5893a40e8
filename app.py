#!/usr/bin/env python3
"""
FastAPI Web Server for YouTube channel and video statistics
"""

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from functools import lru_cache
import logging
import uvicorn

from config import Config
from database import get_db, init_db
from errors import InvalidInputError, NotFoundError, UpstreamError, PersistenceError
from channel_service import ChannelService
from stats_scheduler import StatsScheduler
from store import StatsStore
from youtube_client import YouTubeClient

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class ChannelInfoRequest(BaseModel):
    channel_input: str
    user_id: Optional[str] = None
    is_public_demo: bool = False


class VideoInfoRequest(BaseModel):
    youtube_url: str


@lru_cache(maxsize=1)
def get_youtube_client():
    return YouTubeClient()


def get_store(db: Session = Depends(get_db)):
    return StatsStore(db)


def get_channel_service(store: StatsStore = Depends(get_store),
                        client: YouTubeClient = Depends(get_youtube_client)):
    return ChannelService(store, client)


def get_stats_scheduler(store: StatsStore = Depends(get_store),
                        client: YouTubeClient = Depends(get_youtube_client)):
    return StatsScheduler(store, client)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup"""
    init_db()
    logger.info("✅ Database ready")
    yield


app = FastAPI(
    title="YouTube Stats Tracker API",
    description="Caches YouTube channel/video metadata and tracks statistics over time",
    version="1.0.0",
    lifespan=lifespan
)


def _error(status_code, message, error=None):
    return JSONResponse(status_code=status_code, content={'message': message, 'error': error or message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(400, 'Invalid request body', str(exc.errors()))


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return _error(400, str(exc))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(404, str(exc))


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    logger.error(f"YouTube API failure on {request.url.path}: {exc}")
    return _error(500, 'YouTube API request failed', str(exc))


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Database failure on {request.url.path}: {exc}")
    return _error(500, 'Database error', str(exc))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error on {request.url.path}")
    return _error(500, 'An unknown error occurred', str(exc))


@app.get("/")
async def root():
    return {
        "status": "online",
        "service": "YouTube Stats Tracker API",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Database connectivity and row counts"""
    try:
        db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "database": "connected",
            **StatsStore(db).counts(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }


@app.post("/channels/info")
def get_channel_info(request: ChannelInfoRequest,
                     service: ChannelService = Depends(get_channel_service)):
    """Resolve a channel, refresh its cached row and append a stats log entry"""
    data = service.refresh_channel(
        request.channel_input,
        user_id=request.user_id,
        is_public_demo=request.is_public_demo
    )
    return {
        "message": "Successfully fetched and saved channel info and stats log",
        "data": data
    }


@app.post("/channels/{youtube_channel_id}/videos")
def sync_channel_videos(youtube_channel_id: str,
                        service: ChannelService = Depends(get_channel_service)):
    """Fetch every upload of a stored channel and start tracking its stats"""
    videos = service.sync_channel_videos(youtube_channel_id)
    if not videos:
        return {"message": "No videos found in the channel playlist.", "data": []}
    return {"message": "Successfully fetched and saved channel videos", "data": videos}


@app.get("/channels/{youtube_channel_id}")
def get_channel_details(youtube_channel_id: str,
                        service: ChannelService = Depends(get_channel_service)):
    return {
        "message": "Successfully fetched channel details",
        "data": service.get_channel_details(youtube_channel_id)
    }


@app.post("/videos/info")
def get_video_info(request: VideoInfoRequest,
                   service: ChannelService = Depends(get_channel_service)):
    return {
        "message": "Successfully fetched video info",
        "data": service.get_video_info(request.youtube_url)
    }


@app.get("/videos/{video_id}/stats-log")
def get_video_stats_log(video_id: int,
                        service: ChannelService = Depends(get_channel_service)):
    return {
        "message": "Successfully fetched video stats log",
        "data": service.get_video_stats_log(video_id)
    }


@app.api_route("/scheduled/video-stats", methods=["GET", "POST"])
def scheduled_video_stats_fetch(scheduler: StatsScheduler = Depends(get_stats_scheduler)):
    """Run one stats refresh pass over every due video"""
    summary = scheduler.run()
    return {"message": summary.message, "data": summary.to_dict()}


if __name__ == "__main__":
    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=Config.LOG_LEVEL.lower()
    )
