# shared/common/middleware.py
"""
Request Tracing Middleware
"""

import uuid
import time
import logging
from typing import Callable
from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

UNLOGGED_PATHS = ('/health/', '/ready/')


class RequestIDMiddleware:
    """
    Attaches a request ID to every request and echoes it back.

    The ID comes from ``X-Request-ID`` when the caller sends one. Error
    envelopes report it as ``error.request_id``.
    """

    def __init__(self, get_response: Callable):
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        request.request_id = request_id

        response = self.get_response(request)
        response['X-Request-ID'] = request_id

        return response


class LoggingMiddleware:
    """
    Logs each API request with its request ID, school scope and timing.
    """

    def __init__(self, get_response: Callable):
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if request.path in UNLOGGED_PATHS:
            return self.get_response(request)

        start_time = time.time()
        response = self.get_response(request)
        duration_ms = round((time.time() - start_time) * 1000, 2)

        log_method = logger.warning if response.status_code >= 400 else logger.info
        log_method(
            f"{request.method} {request.path} - {response.status_code}",
            extra={
                'request_id': getattr(request, 'request_id', None),
                'school_id': request.headers.get('X-School-ID'),
                'method': request.method,
                'path': request.path,
                'status_code': response.status_code,
                'duration_ms': duration_ms,
            }
        )

        response['X-Response-Time'] = f"{duration_ms:.2f}ms"

        return response
