"""
Screening Poller

Background service that runs ScreeningPollScheduler ticks on a timer.

Each tick gets its own database session. Ticks never overlap: a tick
that starts while the previous one is still running is skipped and
counted, whether it came from the timer or from the internal endpoint.
"""
import logging
import os
import threading
import time
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..vendor.client import DigitalDelveClient
from .clock import Clock, utc_now
from .credential_store import Decryptor
from .poll_scheduler import PollConfig, ScreeningPollScheduler

logger = logging.getLogger(__name__)

POLL_TICK_SECONDS = int(os.getenv("POLL_TICK_SECONDS", "300"))
POLL_START_DELAY_SECONDS = int(os.getenv("POLL_START_DELAY_SECONDS", "300"))


class ScreeningPoller:
    """
    Usage:
        poller = ScreeningPoller(SessionLocal)
        poller.start()
        ...
        poller.stop()
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        client: Optional[DigitalDelveClient] = None,
        decryptor: Optional[Decryptor] = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
        tick_seconds: int = POLL_TICK_SECONDS,
        start_delay_seconds: int = POLL_START_DELAY_SECONDS,
        config: Optional[PollConfig] = None,
    ):
        self.session_factory = session_factory
        self.client = client or DigitalDelveClient()
        self.decryptor = decryptor
        self.clock = clock
        self.sleep = sleep
        self.tick_seconds = tick_seconds
        self.start_delay_seconds = start_delay_seconds
        self.config = config or PollConfig()

        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._tick_lock = threading.Lock()
        self.ticks_run = 0
        self.ticks_skipped = 0
        self.last_summary: Optional[Dict[str, Any]] = None

    def run_once(self) -> Dict[str, Any]:
        """Run one tick now, unless one is already in flight."""
        if not self._tick_lock.acquire(blocking=False):
            self.ticks_skipped += 1
            logger.warning("[Poller] Previous tick still running; skipping this one")
            return {
                "task": "screening_poll",
                "run_date": self.clock().isoformat(),
                "skipped_tick": True,
                "reason": "previous tick still running",
            }

        try:
            db = self.session_factory()
            try:
                scheduler = ScreeningPollScheduler(
                    db,
                    client=self.client,
                    decryptor=self.decryptor,
                    clock=self.clock,
                    sleep=self.sleep,
                    config=self.config,
                )
                summary = scheduler.run_tick()
            finally:
                db.close()
            self.ticks_run += 1
            self.last_summary = summary
            return summary
        finally:
            self._tick_lock.release()

    def _wait(self, seconds: int) -> None:
        # One-second slices so stop() takes effect quickly
        for _ in range(int(seconds)):
            if not self._running:
                break
            self.sleep(1)

    def _poll_loop(self) -> None:
        self._wait(self.start_delay_seconds)
        while self._running:
            try:
                summary = self.run_once()
                if summary.get("orders_due"):
                    logger.info(
                        f"[Poller] Tick done: {summary['checked']} checked, {summary['completed']} completed, "
                        f"{summary['failed']} failed, {summary['errored']} errored"
                    )
            except Exception as e:
                logger.error(f"[Poller] Tick failed: {e}")
            self._wait(self.tick_seconds)

    def start(self) -> None:
        if self._running:
            return

        self._running = True
        self._thread = threading.Thread(target=self._poll_loop, name="screening-poller", daemon=True)
        self._thread.start()
        logger.info(
            f"[Poller] Screening poller started (first tick in {self.start_delay_seconds}s, "
            f"then every {self.tick_seconds}s)"
        )

    def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("[Poller] Screening poller stopped")

    def is_running(self) -> bool:
        return self._running

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "tick_in_progress": self._tick_lock.locked(),
            "tick_seconds": self.tick_seconds,
            "ticks_run": self.ticks_run,
            "ticks_skipped": self.ticks_skipped,
            "last_run_date": self.last_summary.get("run_date") if self.last_summary else None,
        }
