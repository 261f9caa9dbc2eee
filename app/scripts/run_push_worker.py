"""
Run the notification fan-out worker as its own process:

    python -m app.scripts.run_push_worker
"""

import asyncio
import logging

from app.config import settings
from app.modules.notifications.push_worker import push_worker_loop

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main():
    logger.info("Starting push fan-out worker")
    try:
        asyncio.run(push_worker_loop())
    except KeyboardInterrupt:
        logger.info("Push worker stopped")


if __name__ == "__main__":
    main()
