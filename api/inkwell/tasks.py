"""Celery app and periodic jobs.

Run the scheduler with ``celery -A inkwell.tasks beat`` next to a worker
(``celery -A inkwell.tasks worker``).
"""

from __future__ import annotations

import logging
import os
from typing import Any

from celery import Celery

from . import settings

logger = logging.getLogger(__name__)

DEFAULT_REDIS = "redis://localhost:6379/0"

celery_app = Celery(
    "inkwell",
    broker=os.getenv("CELERY_BROKER_URL", DEFAULT_REDIS),
    backend=os.getenv("CELERY_RESULT_BACKEND", DEFAULT_REDIS),
)

celery_app.conf.update(
    task_default_queue="default",
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    worker_max_tasks_per_child=100,
    beat_schedule={
        "publish-scheduled-posts": {
            "task": "inkwell.tasks.publish_scheduled_posts",
            "schedule": float(settings.SCHEDULER_INTERVAL_SECONDS),
        },
        "reconcile-post-counters": {
            "task": "inkwell.tasks.reconcile_post_counters",
            "schedule": 86400.0,  # Daily
        },
    },
    timezone="UTC",
)


@celery_app.task(name="inkwell.tasks.publish_scheduled_posts", bind=True)
def publish_scheduled_posts(self) -> dict[str, Any]:
    """Publish every scheduled post whose go-live time has passed."""
    from .db import SessionLocal
    from .services.publishing import publish_due_posts

    db = SessionLocal()
    try:
        published = publish_due_posts(db)
        return {"status": "success", "published": published}
    except Exception as e:
        db.rollback()
        logger.error(f"Scheduled publishing failed: {e}", exc_info=True)
        raise
    finally:
        db.close()


@celery_app.task(name="inkwell.tasks.reconcile_post_counters", bind=True)
def reconcile_post_counters(self) -> dict[str, Any]:
    """Recount likes, approved comments and views for every post."""
    from . import models
    from .db import SessionLocal
    from .services.counters import refresh_post_counters

    db = SessionLocal()
    try:
        post_ids = [row[0] for row in db.query(models.Post.id).all()]
        for post_id in post_ids:
            refresh_post_counters(db, post_id, include_views=True)
        db.commit()
        logger.info(f"Reconciled counters for {len(post_ids)} post(s)")
        return {"status": "success", "posts": len(post_ids)}
    except Exception as e:
        db.rollback()
        logger.error(f"Counter reconciliation failed: {e}", exc_info=True)
        raise
    finally:
        db.close()
