"""
SHOTCOACH Worker Thread Pool

ThreadPoolExecutor for CPU-intensive video/pose processing
without blocking the async event loop.
"""

import asyncio
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Any, Optional

from core.config import settings

logger = logging.getLogger(__name__)

# Finished tasks kept for status lookups
MAX_TRACKED_TASKS = 500


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass
class Task:
    """Represents a processing task."""
    task_id: str
    func: Callable
    args: tuple = ()
    kwargs: dict = None
    status: TaskStatus = TaskStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = None
    completed_at: datetime = None
    
    def __post_init__(self):
        if self.kwargs is None:
            self.kwargs = {}
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)


class WorkerPool:
    """
    Thread pool for CPU-intensive operations.
    
    Features:
    - Fixed-size thread pool
    - Async-compatible execution
    - Blocking execution with a timeout
    - Task tracking and cancellation
    """
    
    def __init__(self, max_workers: int = None, name: str = "worker_pool"):
        self.max_workers = max_workers or settings.THREAD_POOL_SIZE
        self.name = name
        
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix=f"{name}_"
        )
        
        self._tasks: dict[str, Task] = {}
        self._futures: dict[str, Future] = {}
        self._lock = threading.Lock()
        
        self._completed_count = 0
        self._failed_count = 0
        self._timeout_count = 0
        
        logger.info(f"🧵 WorkerPool '{name}' initialized (workers: {self.max_workers})")
    
    def submit(self, func: Callable, *args, task_id: str = None, **kwargs) -> str:
        """
        Submit a task to the thread pool.
        
        Returns:
            task_id for tracking
        """
        task_id = task_id or f"task_{uuid.uuid4().hex[:12]}"
        task = Task(task_id=task_id, func=func, args=args, kwargs=kwargs)
        
        with self._lock:
            self._tasks[task_id] = task
            self._futures[task_id] = self._executor.submit(self._run_task, task)
            self._prune_finished()
        
        logger.debug(f"Task {task_id} submitted")
        return task_id
    
    def get_future(self, task_id: str) -> Optional[Future]:
        with self._lock:
            return self._futures.get(task_id)
    
    def run(self, func: Callable, *args, timeout: Optional[float] = None, **kwargs) -> Any:
        """
        Run a task and block for its result.
        
        Raises:
            TimeoutError: the task did not finish within `timeout` seconds.
                A task already running cannot be interrupted; it is
                abandoned and its result discarded, and its worker stays
                busy until it returns.
        """
        task_id = self.submit(func, *args, **kwargs)
        future = self.get_future(task_id)
        
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            with self._lock:
                self._timeout_count += 1
                task = self._tasks.get(task_id)
                if task:
                    task.status = TaskStatus.TIMED_OUT
            logger.warning(f"⏱️ Task {task_id} exceeded {timeout}s in pool '{self.name}'")
            raise TimeoutError(f"Task {task_id} timed out after {timeout}s")
    
    async def submit_async(self, func: Callable, *args, task_id: str = None, **kwargs) -> Any:
        """Submit and await a task result (async-friendly)."""
        task_id = self.submit(func, *args, task_id=task_id, **kwargs)
        return await asyncio.wrap_future(self.get_future(task_id))
    
    def _run_task(self, task: Task) -> Any:
        """Execute a task in the thread pool."""
        task.status = TaskStatus.RUNNING
        
        try:
            result = task.func(*task.args, **task.kwargs)
        except Exception as e:
            if task.status != TaskStatus.TIMED_OUT:
                task.status = TaskStatus.FAILED
            task.error = str(e)
            task.completed_at = datetime.now(timezone.utc)
            with self._lock:
                self._failed_count += 1
            logger.debug(f"Task {task.task_id} failed: {e}")
            raise
        
        if task.status != TaskStatus.TIMED_OUT:
            task.status = TaskStatus.COMPLETED
        task.result = result
        task.completed_at = datetime.now(timezone.utc)
        with self._lock:
            self._completed_count += 1
        
        logger.debug(f"Task {task.task_id} completed")
        return result
    
    def _prune_finished(self):
        # Caller holds the lock
        if len(self._tasks) <= MAX_TRACKED_TASKS:
            return
        finished = [
            task_id for task_id, task in self._tasks.items()
            if task.completed_at is not None or task.status == TaskStatus.CANCELLED
        ]
        for task_id in finished[: len(self._tasks) - MAX_TRACKED_TASKS]:
            self._tasks.pop(task_id, None)
            self._futures.pop(task_id, None)
    
    def get_task_status(self, task_id: str) -> Optional[TaskStatus]:
        """Get the status of a task."""
        task = self._tasks.get(task_id)
        return task.status if task else None
    
    def cancel_task(self, task_id: str) -> bool:
        """Cancel a pending task."""
        future = self.get_future(task_id)
        
        if future and not future.done():
            cancelled = future.cancel()
            if cancelled:
                task = self._tasks.get(task_id)
                if task:
                    task.status = TaskStatus.CANCELLED
            return cancelled
        
        return False
    
    # ========================================
    # Lifecycle
    # ========================================
    
    def shutdown(self, wait: bool = True):
        """Shutdown the thread pool."""
        logger.info(f"Shutting down WorkerPool '{self.name}'...")
        self._executor.shutdown(wait=wait)
        logger.info(f"WorkerPool '{self.name}' shutdown complete")
    
    def get_stats(self) -> dict:
        """Get pool statistics."""
        with self._lock:
            tasks = list(self._tasks.values())
        return {
            "name": self.name,
            "max_workers": self.max_workers,
            "pending_tasks": len([t for t in tasks if t.status == TaskStatus.PENDING]),
            "running_tasks": len([t for t in tasks if t.status == TaskStatus.RUNNING]),
            "completed_tasks": self._completed_count,
            "failed_tasks": self._failed_count,
            "timed_out_tasks": self._timeout_count,
        }


# ============================================
# Global Worker Pools
# ============================================

# Whole-request analysis pipeline (upload handlers offload here)
analysis_worker_pool = WorkerPool(name="analysis_pipeline")

# Individual strategy invocations, run under the router's timeout
strategy_worker_pool = WorkerPool(max_workers=settings.STRATEGY_POOL_SIZE, name="strategy_execution")


def get_analysis_pool() -> WorkerPool:
    """Get the analysis pipeline worker pool."""
    return analysis_worker_pool


def get_strategy_pool() -> WorkerPool:
    """Get the strategy execution worker pool."""
    return strategy_worker_pool
