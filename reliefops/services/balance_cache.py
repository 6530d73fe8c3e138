"""
Budget balance cache

Balances are cached per budget id for a fixed lifetime. Every mutating
budget operation invalidates the key of the budget it touched, so a cached
balance is never older than the last committed change made through the
ledger.
"""
from decimal import Decimal
from typing import Callable, Dict, Optional, Tuple
import threading
import time
import logging

logger = logging.getLogger(__name__)


class BalanceCache:

    def __init__(self, ttl_seconds: float = 900, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[int, Tuple[Decimal, float]] = {}
        self._lock = threading.Lock()

    def get(self, budget_id: int) -> Optional[Decimal]:
        with self._lock:
            entry = self._entries.get(budget_id)
            if entry is None:
                return None
            balance, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[budget_id]
                return None
            return balance

    def set(self, budget_id: int, balance: Decimal):
        with self._lock:
            self._entries[budget_id] = (balance, self._clock() + self.ttl_seconds)

    def invalidate(self, budget_id: int):
        with self._lock:
            if self._entries.pop(budget_id, None) is not None:
                logger.debug(f"Balance cache invalidated for budget #{budget_id}")

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __contains__(self, budget_id: int) -> bool:
        return self.get(budget_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
