"""
Bounded image worker pool.

CPU-bound resizes run in worker processes. ``submit`` blocks the calling
thread until a slot is free, so at most ``max_workers`` tasks are ever in
flight no matter how many upload threads call it.
"""

import logging
import os
import threading
from concurrent.futures import Executor, ProcessPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

from core.exceptions import MediaProcessingError
from media.images import ResizeOptions, resize_image

logger = logging.getLogger(__name__)


def default_pool_size() -> int:
    return max(1, (os.cpu_count() or 1) - 1)


class ImageWorkerPool:
    def __init__(
        self,
        max_workers: Optional[int] = None,
        task_timeout: float = 30.0,
        executor: Optional[Executor] = None,
        task: Callable[..., Any] = resize_image,
    ):
        self.max_workers = max_workers or default_pool_size()
        self.task_timeout = task_timeout
        self.task = task
        self._executor = executor or ProcessPoolExecutor(max_workers=self.max_workers)
        self._slots = threading.Condition()
        self._active = 0
        self.peak_active = 0

    @property
    def active(self) -> int:
        with self._slots:
            return self._active

    def _acquire(self) -> None:
        with self._slots:
            self._slots.wait_for(lambda: self._active < self.max_workers)
            self._active += 1
            self.peak_active = max(self.peak_active, self._active)

    def _release(self) -> None:
        with self._slots:
            self._active -= 1
            self._slots.notify()

    def submit(self, input_path: str, output_path: str, options: ResizeOptions = ResizeOptions()) -> Any:
        """Run one resize task and return its result. Raises MediaProcessingError."""
        self._acquire()
        try:
            future = self._executor.submit(self.task, input_path, output_path, options)
            try:
                return future.result(timeout=self.task_timeout)
            except FutureTimeoutError as e:
                future.cancel()
                raise MediaProcessingError(
                    f"Image processing timed out after {self.task_timeout}s: {input_path}"
                ) from e
            except MediaProcessingError:
                raise
            except Exception as e:
                raise MediaProcessingError(f"Image processing failed for {input_path}: {e}") from e
        finally:
            self._release()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
