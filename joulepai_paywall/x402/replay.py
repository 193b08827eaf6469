# joulepai_paywall/x402/replay.py
"""
Local anti-replay cache for accepted payment proofs.

JoulePAI marks a transaction as claimed on its side; this cache only saves
a round trip when the same proof comes back to the same gate.
"""
from collections import OrderedDict
from typing import Optional

from joulepai_paywall.core.config import settings


class ReplayCache:
    """
    Fixed-capacity set of transaction ids, evicted oldest first.

    Only proofs that JoulePAI verified successfully are added, so presence
    alone is enough to reject a request.
    """

    def __init__(self, capacity: Optional[int] = None):
        self._capacity = capacity if capacity is not None else settings.X402_REPLAY_CACHE_SIZE
        if self._capacity < 1:
            raise ValueError("ReplayCache capacity must be at least 1")
        self._entries: "OrderedDict[str, None]" = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __contains__(self, transaction_id: str) -> bool:
        return transaction_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, transaction_id: str) -> Optional[str]:
        """
        Insert a transaction id, evicting the oldest entry when full.

        Re-adding an id already present keeps its original position.

        Returns:
            The evicted transaction id, or None if nothing was evicted
        """
        if transaction_id in self._entries:
            return None

        evicted = None
        if len(self._entries) >= self._capacity:
            evicted, _ = self._entries.popitem(last=False)

        self._entries[transaction_id] = None
        return evicted
