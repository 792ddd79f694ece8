# Shared Common Library for Flight Training Management System
# This package contains shared HTTP clients, cache helpers and the
# API error contract used across microservices.

__version__ = "1.1.0"

from .exceptions import (
    BaseAPIException,
    ValidationException,
    NotFoundException,
    ConflictException,
    ServiceUnavailableException,
    BookingConflictException,
    InvalidStateTransitionException,
    WeatherDataUnavailableException,
    custom_exception_handler,
)

from .cache import SafeCache, CacheKeyBuilder

from .clients import BaseAPIClient, CircuitBreaker, CircuitBreakerError

__all__ = [
    # Version
    '__version__',

    # Exceptions
    'BaseAPIException',
    'ValidationException',
    'NotFoundException',
    'ConflictException',
    'ServiceUnavailableException',
    'BookingConflictException',
    'InvalidStateTransitionException',
    'WeatherDataUnavailableException',
    'custom_exception_handler',

    # Cache
    'SafeCache',
    'CacheKeyBuilder',

    # Clients
    'BaseAPIClient',
    'CircuitBreaker',
    'CircuitBreakerError',
]
