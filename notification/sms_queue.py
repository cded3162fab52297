"""
Rate-limited SMS dispatch queue.

A single in-memory FIFO drained on timer threads. The provider allows one
send per second and sixty per trailing minute; when either limit is hit the
drain is rescheduled instead of sending.

A failed send is re-appended at the tail and retried after a delay, with no
retry cap and no dead-letter queue. A permanently undeliverable number will
keep cycling through the queue until the process exits.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from notification.channels import SmsProvider, mask_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SmsEntry:
    phone_number: str
    text: str


class TimerScheduler:
    """Runs callbacks on daemon timer threads."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        timer.start()
        return timer


class SmsDispatchQueue:
    def __init__(
        self,
        provider: SmsProvider,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Optional[TimerScheduler] = None,
        min_interval_seconds: float = 1.0,
        max_per_minute: int = 60,
        rate_limit_retry_seconds: float = 1.0,
        failure_retry_seconds: float = 5.0,
    ):
        self.provider = provider
        self.clock = clock
        self.scheduler = scheduler or TimerScheduler()
        self.min_interval_seconds = min_interval_seconds
        self.max_per_minute = max_per_minute
        self.rate_limit_retry_seconds = rate_limit_retry_seconds
        self.failure_retry_seconds = failure_retry_seconds

        self._lock = threading.Lock()
        self._queue: Deque[SmsEntry] = deque()
        self._send_times: Deque[float] = deque()
        # True while a drain is scheduled or running
        self._draining = False

    def enqueue(self, phone_number: str, text: str) -> None:
        with self._lock:
            self._queue.append(SmsEntry(phone_number, text))
            if not self._draining:
                self._draining = True
                self.scheduler.call_later(0, self._drain)

    def pending(self) -> List[SmsEntry]:
        with self._lock:
            return list(self._queue)

    def is_idle(self) -> bool:
        """True once nothing is queued and no send is scheduled or in flight."""
        with self._lock:
            return not self._queue and not self._draining

    def _reschedule(self, delay: float) -> None:
        self.scheduler.call_later(delay, self._drain)

    def _rate_limit_delay(self, now: float) -> Optional[float]:
        while self._send_times and now - self._send_times[0] >= 60:
            self._send_times.popleft()

        if len(self._send_times) >= self.max_per_minute:
            return self.rate_limit_retry_seconds
        if self._send_times and now - self._send_times[-1] < self.min_interval_seconds:
            return self.rate_limit_retry_seconds
        return None

    def _drain(self) -> None:
        with self._lock:
            if not self._queue:
                self._draining = False
                return

            delay = self._rate_limit_delay(self.clock())
            if delay is not None:
                logger.debug(f"SMS rate limit reached, retrying in {delay}s")
                self._reschedule(delay)
                return

            entry = self._queue.popleft()

        # Provider call happens outside the lock so enqueue never blocks on I/O
        try:
            sent = self.provider.send(entry.phone_number, entry.text)
        except Exception as e:
            logger.error(f"SMS provider error for {mask_phone(entry.phone_number)}: {e}")
            sent = False

        with self._lock:
            if sent:
                self._send_times.append(self.clock())
                if self._queue:
                    self._reschedule(self.min_interval_seconds)
                else:
                    self._draining = False
            else:
                self._queue.append(entry)
                logger.warning(
                    f"SMS to {mask_phone(entry.phone_number)} failed, re-queued "
                    f"({len(self._queue)} pending)"
                )
                self._reschedule(self.failure_retry_seconds)
