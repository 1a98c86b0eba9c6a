"""
SHOTCOACH Threading Module
"""

from .worker_pool import (
    WorkerPool,
    Task,
    TaskStatus,
    analysis_worker_pool,
    strategy_worker_pool,
    get_analysis_pool,
    get_strategy_pool,
)

__all__ = [
    'WorkerPool',
    'Task',
    'TaskStatus',
    'analysis_worker_pool',
    'strategy_worker_pool',
    'get_analysis_pool',
    'get_strategy_pool',
]
