#!/usr/bin/env python3
"""
External trigger for the stats refresh pass.
Calls the API's scheduled endpoint on a fixed wall-clock cadence.
"""

import asyncio
import aiohttp
import logging
from config import Config

logging.basicConfig(level=Config.LOG_LEVEL)
logger = logging.getLogger(__name__)

BASE_URL = Config.BASE_URL
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=300)


async def make_request(endpoint: str, method: str = "GET", data: dict = None):
    """Make HTTP request to the FastAPI server"""
    url = f"{BASE_URL}{endpoint}"
    
    async with aiohttp.ClientSession(timeout=REQUEST_TIMEOUT) as session:
        if method == "GET":
            async with session.get(url) as response:
                return await response.json()
        elif method == "POST":
            async with session.post(url, json=data) as response:
                return await response.json()
        raise ValueError(f"Unsupported method: {method}")


async def trigger_stats_fetch():
    """Run one scheduled video stats pass"""
    try:
        logger.info("🔄 Triggering scheduled video stats fetch...")
        result = await make_request("/scheduled/video-stats", "POST")
        logger.info(f"✅ Stats fetch result: {result}")
        return result
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"❌ Error triggering stats fetch: {e}")
        return None


async def health_check():
    """Check if the server is healthy"""
    try:
        result = await make_request("/health")
        logger.info(f"🏥 Health check: {result}")
        return result.get("status") == "healthy"
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"❌ Health check failed: {e}")
        return False


async def main():
    """Main scheduler loop"""
    logger.info("🚀 Starting video stats scheduler")
    logger.info(f"📡 Connecting to: {BASE_URL}")
    
    while True:
        if not await health_check():
            logger.warning("⚠️ Server not healthy, waiting...")
            await asyncio.sleep(60)
            continue
            
        await trigger_stats_fetch()
        await asyncio.sleep(Config.STATS_FETCH_INTERVAL_MINUTES * 60)


if __name__ == "__main__":
    asyncio.run(main())
