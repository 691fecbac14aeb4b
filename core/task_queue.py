"""
Background Task Queue
Runs bulk-edit batch tasks on a thread pool with retry on failure.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, Future
from typing import Callable, Dict, Any, List, Optional, Set

logger = logging.getLogger(__name__)


class TaskQueue:
    """Thread-pool task queue; each task is retried up to max_attempts times"""

    def __init__(self, workers: int = 4, max_attempts: int = 3, retry_delay: float = 2.0):
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix='bulk-edit')
        self._futures: Set[Future] = set()
        self._failed = 0
        self._lock = threading.Lock()

    def _run(self, name: str, fn: Callable[[Dict[str, Any]], Any], payload: Dict[str, Any]):
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn(payload)
            except Exception as e:
                if attempt >= self.max_attempts:
                    with self._lock:
                        self._failed += 1
                    logger.error(f"❌ Task {name} failed after {attempt} attempts: {e}")
                    raise
                logger.warning(f"⚠️  Task {name} attempt {attempt} failed: {e}; retrying")
                time.sleep(self.retry_delay * attempt)

    def enqueue(self, name: str, fn: Callable[[Dict[str, Any]], Any], payload: Dict[str, Any]) -> Future:
        """Schedule fn(payload) in the background"""
        future = self._executor.submit(self._run, name, fn, payload)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)
        logger.debug(f"  Queued task {name}")
        return future

    def _forget(self, future: Future):
        with self._lock:
            self._futures.discard(future)

    def pending(self) -> int:
        """Number of queued or running tasks"""
        with self._lock:
            return len(self._futures)

    def wait(self, timeout: Optional[float] = None) -> int:
        """Block until all queued tasks finish; returns the number that failed since the last wait"""
        with self._lock:
            futures = list(self._futures)

        for future in futures:
            future.exception(timeout=timeout)

        with self._lock:
            failed, self._failed = self._failed, 0
        return failed

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)


class SynchronousTaskQueue:
    """Runs tasks immediately in the caller's thread (scripts and tests)"""

    def __init__(self):
        self.completed: List[str] = []

    def enqueue(self, name: str, fn: Callable[[Dict[str, Any]], Any], payload: Dict[str, Any]):
        result = fn(payload)
        self.completed.append(name)
        return result

    def wait(self, timeout: Optional[float] = None) -> int:
        return 0

    def pending(self) -> int:
        return 0

    def shutdown(self, wait: bool = True):
        pass


_task_queue_instance = None


def get_task_queue() -> TaskQueue:
    """Get singleton task queue configured from settings"""
    global _task_queue_instance
    if _task_queue_instance is None:
        from config.settings import get_settings
        settings = get_settings()
        _task_queue_instance = TaskQueue(
            workers=settings.TASK_WORKERS,
            max_attempts=settings.TASK_MAX_ATTEMPTS,
            retry_delay=settings.TASK_RETRY_DELAY,
        )
    return _task_queue_instance
