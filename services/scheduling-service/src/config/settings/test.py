# services/scheduling-service/src/config/settings/test.py
"""
Test Settings

Django settings for running tests.
"""

from .base import *

# Test mode
DEBUG = False
TESTING = True

# File-backed SQLite so concurrent tests can open separate connections;
# IMMEDIATE transactions queue writers on the busy timeout like row locks
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'scheduling.sqlite3',
        'OPTIONS': {
            'transaction_mode': 'IMMEDIATE',
            'timeout': 20,
        },
        'TEST': {
            'NAME': BASE_DIR / 'test_scheduling.sqlite3',
        },
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

# Disable migrations for faster tests
class DisableMigrations:
    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None

MIGRATION_MODULES = DisableMigrations()

# Use local memory cache for both weather tiers
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'test-shared',
    },
    'weather_local': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'test-weather-local',
        'TIMEOUT': 300,
        'OPTIONS': {'MAX_ENTRIES': 500},
    },
}

# Celery
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Email backend for testing
EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

# No outbound calls from tests
WEATHER_PROVIDERS = {**WEATHER_PROVIDERS, 'WEATHERAPI_KEY': ''}
AI_SUGGESTIONS = {**AI_SUGGESTIONS, 'API_KEY': ''}

EVENT_BACKEND = 'log'

# Logging - minimal output during tests
LOGGING = {
    'version': 1,
    'disable_existing_loggers': True,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
        'level': 'CRITICAL',
    },
}

CORS_ALLOW_ALL_ORIGINS = True
