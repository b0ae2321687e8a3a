"""Bank-sync orchestration with simulated progress.

Components:
- SyncProgressSimulator: drives the displayed counter for one sync
- SyncProgressBoard: in-memory presenter keyed by account
- BankSyncService: seeds, runs and reports one account's sync
"""

from .board import BoardCallback, SyncProgressBoard
from .progress import (
    ProgressPresenter,
    SyncCall,
    SyncPhase,
    SyncProgress,
    SyncProgressSimulator,
    SyncSeed,
    estimate_total,
)
from .service import BankSyncService

__all__ = [
    # Simulation
    "ProgressPresenter",
    "SyncCall",
    "SyncPhase",
    "SyncProgress",
    "SyncProgressSimulator",
    "SyncSeed",
    "estimate_total",
    # Presentation
    "BoardCallback",
    "SyncProgressBoard",
    # Orchestration
    "BankSyncService",
]
