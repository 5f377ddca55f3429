"""Refresh-storm circuit breaker."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class BreakerState(str, Enum):
    NORMAL = "NORMAL"
    TRIPPED = "TRIPPED"


@dataclass
class BreakerConfig:
    window_seconds: float = 5.0
    threshold: int = 3


class RefreshStormBreaker:
    """
    Counts token renewals that arrive in quick succession.

    A renewal arriving less than ``window_seconds`` after the previous one
    extends the current burst; otherwise a new burst starts. Once a burst
    holds more than ``threshold`` renewals the breaker trips. TRIPPED is
    terminal: the owner is expected to restart the process.
    """

    def __init__(self, cfg: BreakerConfig, clock: Callable[[], float] = time.monotonic):
        self.cfg = cfg
        self.clock = clock
        self.renewal_count = 0
        self.last_renewal_at: Optional[float] = None
        self._state = BreakerState.NORMAL

    @property
    def state(self) -> BreakerState:
        return self._state

    @property
    def tripped(self) -> bool:
        return self._state == BreakerState.TRIPPED

    def record_renewal(self) -> bool:
        """
        Record one renewal.

        Returns:
            True if the breaker is tripped and the renewal must not be applied
        """
        if self.tripped:
            return True

        now = self.clock()
        if self.last_renewal_at is None or now - self.last_renewal_at >= self.cfg.window_seconds:
            self.renewal_count = 0
        self.renewal_count += 1
        self.last_renewal_at = now

        if self.renewal_count > self.cfg.threshold:
            self._state = BreakerState.TRIPPED
            logger.error(
                f"Refresh storm: {self.renewal_count} renewals within "
                f"{self.cfg.window_seconds}s windows, tripping breaker"
            )
            return True
        return False

    def snapshot(self) -> Dict[str, object]:
        return {
            "state": self._state.value,
            "renewal_count": self.renewal_count,
            "last_renewal_at": self.last_renewal_at,
            "window_seconds": self.cfg.window_seconds,
            "threshold": self.cfg.threshold,
        }
