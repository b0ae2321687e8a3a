"""In-memory progress board for concurrent bank syncs.

Holds the latest snapshot of every visible sync, keyed by account id, and
notifies observers on every change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .progress import SyncProgress

logger = logging.getLogger(__name__)

# Receives the account id and its new snapshot (None once dismissed)
BoardCallback = Callable[[str, SyncProgress | None], None]


class SyncProgressBoard:
    """Observable collection of sync progress entries.

    Usage:
        board = SyncProgressBoard()
        board.on_change(lambda account_id, progress: render(account_id, progress))

        simulator = SyncProgressSimulator(account_id, seed, board)
        await simulator.run(call)

    Updates for an account that is not on the board (never started, or
    already dismissed) are ignored.
    """

    def __init__(self) -> None:
        self._entries: dict[str, SyncProgress] = {}
        self._callbacks: list[BoardCallback] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._entries

    def get(self, account_id: str) -> SyncProgress | None:
        """Latest snapshot for an account, if visible."""
        return self._entries.get(account_id)

    @property
    def entries(self) -> dict[str, SyncProgress]:
        """Copy of all visible snapshots."""
        return dict(self._entries)

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------
    def on_change(self, callback: BoardCallback) -> None:
        """Register a change callback.

        Args:
            callback: Function called with (account_id, snapshot or None)
        """
        self._callbacks.append(callback)

    def _notify(self, account_id: str, progress: SyncProgress | None) -> None:
        for callback in self._callbacks:
            try:
                callback(account_id, progress)
            except Exception as e:
                logger.warning("Board callback error: %s", e)

    # -------------------------------------------------------------------------
    # Presenter Interface
    # -------------------------------------------------------------------------
    def start(self, account_id: str, seed: SyncProgress) -> None:
        """Show a new entry, replacing any previous one for the account."""
        self._entries[account_id] = seed
        logger.debug("Showing sync progress for %s", account_id)
        self._notify(account_id, seed)

    def update(self, account_id: str, progress: SyncProgress) -> None:
        """Replace an entry's snapshot."""
        if account_id not in self._entries:
            return
        self._entries[account_id] = progress
        self._notify(account_id, progress)

    def dismiss(self, account_id: str) -> None:
        """Remove an entry."""
        if self._entries.pop(account_id, None) is None:
            return
        logger.debug("Dismissed sync progress for %s", account_id)
        self._notify(account_id, None)
