# services/scheduling-service/src/apps/core/tasks/reschedule_tasks.py
"""
Reschedule Celery Tasks
"""

import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(name='scheduling.expire_reschedule_requests')
def expire_reschedule_requests():
    """
    Expire reschedule requests past their deadline.

    Runs every 15 minutes; a request expired by an earlier run is not
    touched again.
    """
    from ..services.reschedule_service import RescheduleOrchestrator

    expired = RescheduleOrchestrator().expire_overdue()

    return {'expired': expired}
