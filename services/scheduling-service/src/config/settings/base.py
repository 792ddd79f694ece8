"""Base settings for Scheduling Service."""
import os
import sys
from pathlib import Path

from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(BASE_DIR.parent.parent.parent))

SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key')
DEBUG = os.environ.get('DEBUG', 'True').lower() == 'true'
ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', '*').split(',')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'corsheaders',
    'django_filters',
    'apps.core',
    'apps.api',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'shared.common.middleware.RequestIDMiddleware',
    'shared.common.middleware.LoggingMiddleware',
]

ROOT_URLCONF = 'config.urls'
TEMPLATES = [{'BACKEND': 'django.template.backends.django.DjangoTemplates', 'DIRS': [], 'APP_DIRS': True, 'OPTIONS': {'context_processors': ['django.template.context_processors.debug', 'django.template.context_processors.request', 'django.contrib.auth.context_processors.auth', 'django.contrib.messages.context_processors.messages']}}]
WSGI_APPLICATION = 'config.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.environ.get('DB_NAME', 'scheduling_service_db'),
        'USER': os.environ.get('DB_USER', 'scheduling_service_user'),
        'PASSWORD': os.environ.get('DB_PASSWORD', 'scheduling_service_password'),
        'HOST': os.environ.get('DB_HOST', 'pgbouncer'),
        'PORT': os.environ.get('DB_PORT', '6432'),
    }
}

AUTH_PASSWORD_VALIDATORS = [{'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'}]
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

REST_FRAMEWORK = {
    'DEFAULT_PERMISSION_CLASSES': ['rest_framework.permissions.AllowAny'],
    'DEFAULT_FILTER_BACKENDS': ['django_filters.rest_framework.DjangoFilterBackend', 'rest_framework.filters.OrderingFilter'],
    'EXCEPTION_HANDLER': 'shared.common.exceptions.custom_exception_handler',
}

CORS_ALLOW_ALL_ORIGINS = DEBUG
REDIS_URL = os.environ.get('REDIS_URL', 'redis://redis:6379/4')

# Tier 1 is per-process and bounded, tier 2 is shared across workers
CACHES = {
    'default': {'BACKEND': 'django_redis.cache.RedisCache', 'LOCATION': REDIS_URL},
    'weather_local': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'weather-local',
        'TIMEOUT': 300,
        'OPTIONS': {'MAX_ENTRIES': 500},
    },
}

# Celery Configuration
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', REDIS_URL)
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', REDIS_URL)
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_WORKER_CONCURRENCY = int(os.environ.get('CELERY_WORKER_CONCURRENCY', '5'))

CELERY_BEAT_SCHEDULE = {
    'enqueue-weather-checks': {
        'task': 'scheduling.enqueue_weather_checks',
        'schedule': crontab(minute=0),  # Every hour
    },
    'expire-reschedule-requests': {
        'task': 'scheduling.expire_reschedule_requests',
        'schedule': crontab(minute='*/15'),  # Every 15 minutes
    },
    'preload-weather-cache': {
        'task': 'scheduling.preload_weather_cache',
        'schedule': crontab(minute='*/30'),  # Every 30 minutes
    },
}

# Weather
WEATHER_POLICY = {
    'MARGINAL_VISIBILITY_FACTOR': float(os.environ.get('WEATHER_MARGINAL_VISIBILITY_FACTOR', '1.2')),
    'MARGINAL_CEILING_FACTOR': float(os.environ.get('WEATHER_MARGINAL_CEILING_FACTOR', '1.2')),
    'MARGINAL_WIND_FACTOR': float(os.environ.get('WEATHER_MARGINAL_WIND_FACTOR', '0.9')),
    'AUTO_RESCHEDULE_VISIBILITY_SM': float(os.environ.get('WEATHER_AUTO_RESCHEDULE_VISIBILITY_SM', '3')),
}

WEATHER_CACHE = {
    'LOCAL_ALIAS': 'weather_local',
    'SHARED_ALIAS': 'default',
    'LOCAL_TTL': 300,
    'SHARED_TTL': 900,
    'HISTORY_MAX_AGE_MINUTES': 30,
    'REFRESH_WORKERS': 4,
}

WEATHER_PROVIDERS = {
    'FAA_BASE_URL': os.environ.get('FAA_WEATHER_URL', 'https://aviationweather.gov/api/data'),
    'WEATHERAPI_BASE_URL': os.environ.get('WEATHERAPI_URL', 'https://api.weatherapi.com/v1'),
    'WEATHERAPI_KEY': os.environ.get('WEATHERAPI_KEY', ''),
    'TIMEOUT': float(os.environ.get('WEATHER_PROVIDER_TIMEOUT', '10')),
}

WEATHER_CHECK_WINDOW_HOURS = 48
WEATHER_CHECK_LOCK_SECONDS = 120
ROUTE_FETCH_WORKERS = 5

# Scheduling
BOOKING_BUFFER_MINUTES = 30
BRIEFING_MINUTES = 30
DEBRIEF_MINUTES = 20
RESCHEDULE_EXPIRATION_HOURS = 48

AI_SUGGESTIONS = {
    'ENABLED': os.environ.get('AI_SUGGESTIONS_ENABLED', 'True').lower() == 'true',
    'API_URL': os.environ.get('AI_SUGGESTIONS_URL', 'https://api.openai.com/v1/chat/completions'),
    'API_KEY': os.environ.get('OPENAI_API_KEY', ''),
    'MODEL': os.environ.get('AI_SUGGESTIONS_MODEL', 'gpt-4o-mini'),
    'TIMEOUT': float(os.environ.get('AI_SUGGESTIONS_TIMEOUT', '20')),
    'MAX_SUGGESTIONS': 3,
}

# Notifications
DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'scheduling@ftms.local')
NOTIFICATION_CHANNELS = ['email', 'in_app']

# Events
EVENT_PUBLISHING_ENABLED = True
EVENT_BACKEND = os.environ.get('EVENT_BACKEND', 'log')

SERVICE_NAME = 'scheduling-service'
SERVICE_PORT = 8005

LOGGING = {'version': 1, 'disable_existing_loggers': False, 'formatters': {'json': {'()': 'pythonjsonlogger.jsonlogger.JsonFormatter'}}, 'handlers': {'console': {'class': 'logging.StreamHandler', 'formatter': 'json'}}, 'root': {'handlers': ['console'], 'level': 'INFO'}}
