"""Circuit breaker guarding the result site against maintenance outages.

When the site answers with its maintenance page every further request is
wasted, and hammering it with a full batch of sessions does not help it come
back. The breaker opens on such an outcome and the orchestrator stops starting
new records while it is open.

The circuit breaker has three states:
- CLOSED: Normal operation, records are started
- OPEN: The site reported an outage, no new records are started
- HALF_OPEN: The recovery timeout elapsed, one trial record is let through
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from ..config.logger import logger


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Site healthy, records are started
    OPEN = "open"  # Outage reported, records are skipped
    HALF_OPEN = "half_open"  # Testing if the site has recovered


@dataclass
class CircuitBreakerConfig:
    """Configuration for breaker behavior.

    A single maintenance response is enough to open the breaker, since the
    site shows that page for every roll number while it is down.
    """
    failure_threshold: int = 1  # Outage outcomes needed to open the circuit
    recovery_timeout: timedelta = timedelta(minutes=5)  # Time before a trial record
    success_threshold: int = 1  # Successes needed to close from half-open state


@dataclass
class BreakerStatus:
    """Mutable bookkeeping behind OutageBreaker."""
    state: CircuitState = CircuitState.CLOSED
    outage_count: int = 0
    recovery_count: int = 0
    trial_in_flight: bool = False
    last_outage_time: Optional[datetime] = None
    last_state_change: datetime = field(default_factory=datetime.now)


class OutageBreaker:
    """Circuit breaker tripped by service-unavailable outcomes."""

    def __init__(self, name: str = "rgpv", config: Optional[CircuitBreakerConfig] = None):
        """Initialize the breaker.

        Args:
            name: Name of the protected service (for logging).
            config: Breaker configuration. Uses defaults if not provided.
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._status = BreakerStatus()
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component="outage_breaker", breaker=name)

    @property
    def current_state(self) -> CircuitState:
        return self._status.state

    def is_open(self) -> bool:
        return self._status.state == CircuitState.OPEN

    def is_closed(self) -> bool:
        return self._status.state == CircuitState.CLOSED

    def _transition_to(self, new_state: CircuitState) -> None:
        previous = self._status.state
        self._status.state = new_state
        self._status.last_state_change = datetime.now()

        if new_state == CircuitState.CLOSED:
            self._status.outage_count = 0
        elif new_state == CircuitState.HALF_OPEN:
            self._status.recovery_count = 0
        self._status.trial_in_flight = False

        self.logger.info(
            "outage_breaker_state_change",
            previous=previous.value,
            current=new_state.value,
        )

    def _recovery_due(self) -> bool:
        return bool(
            self._status.last_outage_time
            and datetime.now() - self._status.last_outage_time >= self.config.recovery_timeout
        )

    async def allow_request(self) -> bool:
        """Whether a new record may be started.

        An open breaker whose recovery timeout has elapsed moves to half-open
        and lets exactly one trial record through.
        """
        async with self._lock:
            if self._status.state == CircuitState.OPEN:
                if not self._recovery_due():
                    return False
                self._transition_to(CircuitState.HALF_OPEN)

            if self._status.state == CircuitState.HALF_OPEN:
                if self._status.trial_in_flight:
                    return False
                self._status.trial_in_flight = True

            return True

    async def record_success(self) -> None:
        """Record an outcome showing the site is answering normally."""
        async with self._lock:
            if self._status.state == CircuitState.HALF_OPEN:
                self._status.recovery_count += 1
                self._status.trial_in_flight = False
                if self._status.recovery_count >= self.config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)

    async def release_trial(self) -> None:
        """Free the half-open trial slot without recording an outcome.

        Used when the trial record ended in an exception, which says nothing
        about the site's health.
        """
        async with self._lock:
            self._status.trial_in_flight = False

    async def record_failure(self) -> None:
        """Record a service-unavailable outcome."""
        async with self._lock:
            self._status.outage_count += 1
            self._status.last_outage_time = datetime.now()

            if self._status.state == CircuitState.CLOSED:
                if self._status.outage_count >= self.config.failure_threshold:
                    self._transition_to(CircuitState.OPEN)
            elif self._status.state == CircuitState.HALF_OPEN:
                # A failed trial reopens the breaker
                self._transition_to(CircuitState.OPEN)

    def get_status(self) -> Dict[str, Any]:
        """Get the current status of the breaker.

        Returns:
            Dictionary with name, state, outage_count, recovery_count,
            last_outage_time and last_state_change.
        """
        last_outage = self._status.last_outage_time
        return {
            "name": self.name,
            "state": self._status.state.value,
            "outage_count": self._status.outage_count,
            "recovery_count": self._status.recovery_count,
            "last_outage_time": last_outage.isoformat() if last_outage else None,
            "last_state_change": self._status.last_state_change.isoformat(),
        }
