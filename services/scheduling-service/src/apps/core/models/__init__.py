# services/scheduling-service/src/apps/core/models/__init__.py
"""
Scheduling Service Models
"""

from .resources import TrainingLevel, School, Student, Instructor, Aircraft
from .booking import Booking
from .weather_check import WeatherCheck
from .reschedule_request import RescheduleRequest
from .notification import Notification

__all__ = [
    'TrainingLevel',
    'School',
    'Student',
    'Instructor',
    'Aircraft',
    'Booking',
    'WeatherCheck',
    'RescheduleRequest',
    'Notification',
]
