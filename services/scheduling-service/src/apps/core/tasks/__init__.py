# services/scheduling-service/src/apps/core/tasks/__init__.py
"""
Scheduling Service Celery Tasks

Background weather checks, reschedule expiration and cache warming.
"""

from .weather_tasks import (
    enqueue_weather_checks,
    run_weather_check,
    preload_weather_cache,
)

from .reschedule_tasks import (
    expire_reschedule_requests,
)

__all__ = [
    # Weather tasks
    'enqueue_weather_checks',
    'run_weather_check',
    'preload_weather_cache',

    # Reschedule tasks
    'expire_reschedule_requests',
]
