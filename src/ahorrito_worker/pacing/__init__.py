"""Adaptive pacing for the categorization worker.

Components:
- AdaptiveController: batch size / interval policy (pure, no I/O)
- TuningState: the controller's state, threaded through the loop
- RunStatistics: process-lifetime counters and best-throughput tracking
- WorkerLoop: the single-flight polling driver
"""

from .controller import AdaptiveController, TuningState
from .statistics import BestConfig, RunStatistics
from .worker import BatchClient, FailureStreakCallback, IterationResult, WorkerLoop

__all__ = [
    # Policy
    "AdaptiveController",
    "TuningState",
    # Statistics
    "BestConfig",
    "RunStatistics",
    # Driver
    "BatchClient",
    "FailureStreakCallback",
    "IterationResult",
    "WorkerLoop",
]
