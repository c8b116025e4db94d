"""Circuit breaker for outbound integrations (WhatsApp gateway, SMTP).

States: CLOSED → OPEN → HALF_OPEN → CLOSED (or back to OPEN)

SMTP deliveries record outcomes from worker threads, so state changes
happen under a lock.
"""

import time
import threading
import logging
from enum import Enum
from dataclasses import dataclass, field

from advisorhub.core.metrics import CIRCUIT_BREAKER_STATE

logger = logging.getLogger(__name__)

_STATE_GAUGE_VALUES = {"closed": 0, "open": 1, "half_open": 2}


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Fails fast on an integration that keeps erroring.

    Args:
        name: Identifier for this breaker (e.g., "whatsapp_gateway", "smtp")
        failure_threshold: Failures before opening the circuit
        recovery_timeout: Seconds to wait before trying half-open
        half_open_max_calls: Max calls allowed in half-open state
    """
    name: str
    failure_threshold: int = 3
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 1

    state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    failure_count: int = field(default=0, init=False)
    success_count: int = field(default=0, init=False)
    last_failure_time: float = field(default=0.0, init=False)
    half_open_calls: int = field(default=0, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False, compare=False)

    def can_execute(self) -> bool:
        """Check if a call is allowed through the breaker."""
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return True

            if self.state == CircuitState.OPEN:
                if time.monotonic() - self.last_failure_time >= self.recovery_timeout:
                    self._transition(CircuitState.HALF_OPEN)
                    return True
                return False

            # HALF_OPEN: allow limited calls
            return self.half_open_calls < self.half_open_max_calls

    def before_call(self) -> None:
        """Raise CircuitBreakerOpen unless a call may go through."""
        with self._lock:
            if not self.can_execute():
                raise CircuitBreakerOpen(self.name)
            if self.state == CircuitState.HALF_OPEN:
                self.half_open_calls += 1

    def record_success(self) -> None:
        """Record a successful call."""
        with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.half_open_max_calls:
                    self._transition(CircuitState.CLOSED)
            elif self.state == CircuitState.CLOSED:
                self.failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = time.monotonic()

            if self.state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif self.state == CircuitState.CLOSED:
                if self.failure_count >= self.failure_threshold:
                    self._transition(CircuitState.OPEN)

    def reset(self) -> None:
        with self._lock:
            self._transition(CircuitState.CLOSED)
            self.last_failure_time = 0.0

    def _transition(self, new_state: CircuitState) -> None:
        old = self.state
        self.state = new_state
        if old != new_state:
            logger.warning(f"Circuit breaker '{self.name}': {old.value} → {new_state.value}")
        CIRCUIT_BREAKER_STATE.labels(name=self.name).set(_STATE_GAUGE_VALUES[new_state.value])

        if new_state == CircuitState.CLOSED:
            self.failure_count = 0
        self.success_count = 0
        self.half_open_calls = 0

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def get_status(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "state": self.state.value,
                "failure_count": self.failure_count,
                "last_failure_time": self.last_failure_time,
            }


class CircuitBreakerOpen(Exception):
    """Raised when a call is blocked by an open circuit breaker."""
    def __init__(self, breaker_name: str):
        self.breaker_name = breaker_name
        super().__init__(f"Circuit breaker '{breaker_name}' is OPEN")


# ── Global breakers ──────────────────────────────────────────

whatsapp_breaker = CircuitBreaker(
    name="whatsapp_gateway",
    failure_threshold=3,
    recovery_timeout=30.0,
)

smtp_breaker = CircuitBreaker(
    name="smtp",
    failure_threshold=5,
    recovery_timeout=60.0,
)


def get_all_breakers() -> list[CircuitBreaker]:
    return [whatsapp_breaker, smtp_breaker]
