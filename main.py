"""
Standalone stats worker: runs scheduler passes in-process on a fixed cadence,
for deployments that don't expose the HTTP trigger.
"""

import schedule
import time
import logging
from config import Config
from database import SessionLocal, init_db
from errors import StatsError
from stats_scheduler import StatsScheduler
from store import StatsStore
from youtube_client import YouTubeClient

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class StatsWorker:
    def __init__(self, client=None, session_factory=SessionLocal):
        self.client = client or YouTubeClient()
        self.session_factory = session_factory
        self.running = True
        
    def run_pass(self):
        """One scheduler pass with a fresh session"""
        db = self.session_factory()
        try:
            summary = StatsScheduler(StatsStore(db), self.client).run()
            logger.info(f"{summary.message} {summary.to_dict()}")
            return summary
        except StatsError as e:
            logger.error(f"Stats pass failed: {e}")
            return None
        except Exception:
            # Keep the schedule loop alive; the next pass retries whatever is still due
            logger.exception("Unexpected error in stats pass")
            return None
        finally:
            db.close()
            
    def start(self):
        init_db()
        schedule.every(Config.STATS_FETCH_INTERVAL_MINUTES).minutes.do(self.run_pass)
        logger.info(f"Scheduled stats passes every {Config.STATS_FETCH_INTERVAL_MINUTES} minutes")
        
        self.run_pass()
        while self.running:
            schedule.run_pending()
            time.sleep(60)
            
    def stop(self):
        self.running = False
        schedule.clear()


if __name__ == "__main__":
    worker = StatsWorker()
    
    try:
        worker.start()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        worker.stop()
