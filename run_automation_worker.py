"""
Automation Background Worker Runner
Run this as a separate process: python run_automation_worker.py
"""

import asyncio
import logging
import sys

from counselbook.workers.automation_worker import run_automation_worker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info("🚀 Starting Automation Background Worker...")
    try:
        asyncio.run(run_automation_worker())
    except KeyboardInterrupt:
        logger.info("👋 Automation worker stopped by user")
    except Exception as e:
        logger.error(f"❌ Automation worker crashed: {e}")
        sys.exit(1)
