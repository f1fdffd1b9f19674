"""Entry point for the Celery worker with an embedded beat scheduler."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

from inkwell.tasks import celery_app

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)


if __name__ == "__main__":
    logger.info("Starting Inkwell worker (with beat)")
    celery_app.worker_main(["worker", "--beat", f"--loglevel={os.getenv('LOG_LEVEL', 'INFO').lower()}"])
