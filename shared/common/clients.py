# shared/common/clients.py
"""
HTTP Clients for External API Communication
"""

import logging
import threading
import time
from typing import Dict, Any, Optional

import httpx

logger = logging.getLogger(__name__)


# =============================================================================
# CIRCUIT BREAKER
# =============================================================================

class CircuitBreakerError(Exception):
    """Exception raised when circuit breaker is open"""
    pass


class CircuitBreaker:
    """
    Circuit breaker for handling upstream failures.

    Opens after ``failure_threshold`` consecutive failures and lets a
    probe request through once ``timeout`` seconds have elapsed.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        success_threshold: int = 2,
        timeout: int = 30
    ):
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.success_count = 0
        self.state = 'closed'  # closed, open, half_open
        self.last_failure_time = None
        self._lock = threading.Lock()

    def _should_try_reset(self) -> bool:
        if self.last_failure_time is None:
            return True
        return time.monotonic() - self.last_failure_time >= self.timeout

    def record_success(self):
        with self._lock:
            if self.state == 'half_open':
                self.success_count += 1
                if self.success_count >= self.success_threshold:
                    self._reset()
            elif self.state == 'closed':
                self.failure_count = 0

    def record_failure(self):
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = time.monotonic()
            if self.state == 'half_open' or self.failure_count >= self.failure_threshold:
                self.state = 'open'
                self.success_count = 0
                logger.warning(f"Circuit breaker opened after {self.failure_count} failures")

    def _reset(self):
        self.state = 'closed'
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time = None
        logger.info("Circuit breaker reset to closed state")

    def can_execute(self) -> bool:
        with self._lock:
            if self.state == 'closed':
                return True
            if self.state == 'open':
                if self._should_try_reset():
                    self.state = 'half_open'
                    return True
                return False
            return True  # half_open


# =============================================================================
# BASE API CLIENT
# =============================================================================

class BaseAPIClient:
    """
    Base class for calls to third-party HTTP APIs.

    Every call is bounded by ``timeout`` and guarded by a circuit breaker,
    so a dead upstream fails fast instead of tying up workers.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.name = name
        self.base_url = base_url.rstrip('/')
        self.timeout = httpx.Timeout(timeout, connect=min(timeout, 5.0))
        self.headers = {'Accept': 'application/json', **(headers or {})}
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self.transport = transport

    def _request(
        self,
        method: str,
        path: str,
        params: Dict = None,
        data: Dict = None,
        headers: Dict = None
    ) -> Any:
        """Make HTTP request and return decoded JSON"""
        if not self.circuit_breaker.can_execute():
            raise CircuitBreakerError(f"Circuit breaker open for {self.name}")

        url = f"{self.base_url}{path}"

        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=data,
                    headers={**self.headers, **(headers or {})},
                )
                response.raise_for_status()
                self.circuit_breaker.record_success()
                if not response.content:
                    return None
                return response.json()
            except httpx.HTTPStatusError as e:
                logger.error(
                    f"HTTP error calling {self.name}: {e.response.status_code}",
                    extra={'url': url, 'status_code': e.response.status_code}
                )
                if e.response.status_code >= 500:
                    self.circuit_breaker.record_failure()
                raise
            except httpx.RequestError as e:
                logger.error(f"Request error calling {self.name}: {e}")
                self.circuit_breaker.record_failure()
                raise

    def get(self, path: str, params: Dict = None, headers: Dict = None) -> Any:
        return self._request('GET', path, params=params, headers=headers)

    def post(self, path: str, data: Dict = None, headers: Dict = None) -> Any:
        return self._request('POST', path, data=data, headers=headers)
