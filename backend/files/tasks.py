"""
Celery tasks for storage maintenance.

The reconciliation pass runs on a beat schedule (see
CELERY_BEAT_SCHEDULE in settings) and can be queued on demand.
"""

import logging
from celery import shared_task
from .services import get_reconciliation_service

logger = logging.getLogger(__name__)


@shared_task(name='files.tasks.reconcile_storage')
def reconcile_storage(dry_run: bool = False, min_age: float = None) -> dict:
    """
    Reclaim orphaned blobs and sweep stray files.

    Args:
        dry_run: Report without deleting
        min_age: Override RECONCILE_MIN_AGE (seconds)

    Returns:
        Dictionary with reconciliation results
    """
    service = get_reconciliation_service(min_age=min_age)
    try:
        result = service.run(dry_run=dry_run)
    except Exception:
        logger.exception("Storage reconciliation failed")
        raise
    result['success'] = True
    return result
