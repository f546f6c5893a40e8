import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    # YouTube Data API
    YOUTUBE_API_KEY = os.getenv('YOUTUBE_API_KEY', '')
    YOUTUBE_REQUEST_TIMEOUT_SECONDS = float(os.getenv('YOUTUBE_REQUEST_TIMEOUT_SECONDS', 30))
    
    # Database
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///youtube_stats.db')
    
    # Stats scheduling
    INITIAL_STAT_FETCH_DELAY_HOURS = int(os.getenv('INITIAL_STAT_FETCH_DELAY_HOURS', 1))
    STATS_FETCH_INTERVAL_MINUTES = int(os.getenv('STATS_FETCH_INTERVAL_MINUTES', 60))
    
    # Trigger target for scheduler.py
    BASE_URL = os.getenv('BASE_URL', 'http://localhost:8000')
    
    # API limits
    MAX_RESULTS_PER_REQUEST = 50
    
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
