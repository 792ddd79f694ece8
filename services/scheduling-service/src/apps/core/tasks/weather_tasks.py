# services/scheduling-service/src/apps/core/tasks/weather_tasks.py
"""
Weather Celery Tasks

Hourly weather checks for upcoming bookings and cache preloading.
"""

import logging
from celery import shared_task
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(name='scheduling.enqueue_weather_checks')
def enqueue_weather_checks():
    """
    Queue one weather check per upcoming booking.

    Runs hourly. Every check of a run shares the same hour in its
    idempotency key, so a re-delivered run does not check twice.
    """
    from ..services.weather_check_service import WeatherCheckService, make_idempotency_key

    now = timezone.now()
    bookings = WeatherCheckService.bookings_to_check(now=now)

    queued = 0
    for booking in bookings:
        run_weather_check.delay(
            str(booking.id),
            idempotency_key=make_idempotency_key(booking.id, now),
        )
        queued += 1

    logger.info(f"Queued {queued} weather checks")

    return {'queued': queued}


@shared_task(
    name='scheduling.run_weather_check',
    autoretry_for=(ConnectionError,),
    retry_backoff=True,
    max_retries=3,
)
def run_weather_check(booking_id, idempotency_key=None, check_type=None):
    """Run the weather check pipeline for one booking."""
    from ..models import WeatherCheck
    from ..services.weather_check_service import WeatherCheckService

    outcome = WeatherCheckService().check_booking(
        booking_id,
        check_type=check_type or WeatherCheck.CheckType.SCHEDULED_HOURLY,
        idempotency_key=idempotency_key,
    )

    check = outcome.weather_check
    return {
        'booking_id': str(booking_id),
        'action': outcome.action,
        'duplicate': outcome.duplicate,
        'result': check.result if check else None,
        'weather_check_id': str(check.id) if check else None,
        'reschedule_request_id': (
            str(outcome.reschedule_request.id) if outcome.reschedule_request else None
        ),
    }


@shared_task(name='scheduling.preload_weather_cache')
def preload_weather_cache(hours_ahead=24):
    """
    Warm the weather cache for airports of upcoming flights.

    Runs every 30 minutes so the hourly checks mostly hit the cache.
    """
    from ..services.weather_cache_service import get_weather_cache

    results = get_weather_cache().preload_for_upcoming_flights(hours_ahead=hours_ahead)

    loaded = sum(1 for ok in results.values() if ok)
    failed = len(results) - loaded

    logger.info(f"Weather cache preloaded: {loaded}, failed: {failed}")

    return {'loaded': loaded, 'failed': failed}
