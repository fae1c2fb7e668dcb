"""Cooldown-gated audit runs.

Starting an audit sets the running flag and starts a fixed countdown. Until
the countdown runs out every further request is refused: the engine is not
called and the caller gets the previous report back, unchanged. Refused
requests are dropped, not queued.
"""

import logging
import threading
import time
from typing import Callable, Optional

from .engine import VerificationEngine
from .models import AuditReport

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = 5.0


class AuditController:
    def __init__(
        self,
        engine: VerificationEngine,
        cooldown: float = DEFAULT_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.cooldown = cooldown
        self.clock = clock
        self.last_report: Optional[AuditReport] = None
        self.last_refused = False
        self._started_at: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self.cooldown_remaining() > 0

    def cooldown_remaining(self) -> float:
        if self._started_at is None:
            return 0.0
        return max(0.0, self.cooldown - (self.clock() - self._started_at))

    def _try_start(self) -> bool:
        with self._lock:
            if self.is_running:
                return False
            self._started_at = self.clock()
            return True

    def run_audit(self) -> Optional[AuditReport]:
        """Run the engine unless a cooldown is active.

        Returns the new report, or during a cooldown the last one. Before any
        run has finished, a refused request returns None.
        """
        if not self._try_start():
            self.last_refused = True
            logger.debug("audit refused, cooldown %.1fs remaining", self.cooldown_remaining())
            return self.last_report
        self.last_refused = False
        report = self.engine.run()
        self.last_report = report
        return report
