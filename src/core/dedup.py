"""Processed message identifiers (core domain)."""

from __future__ import annotations

from collections import OrderedDict
from typing import Optional


class ProcessedMessageRecord:
    """Remember logical message identifiers that were already accepted.

    Without a cap the record only grows, matching the at-most-once contract for
    the whole process lifetime. With max_entries set, the least recently seen
    identifiers are evicted first, so a very old identifier could be sent again.
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._ids: "OrderedDict[str, None]" = OrderedDict()

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def is_seen(self, message_id: str) -> bool:
        """Check if an identifier has already been recorded."""

        if message_id not in self._ids:
            return False
        self._ids.move_to_end(message_id)
        return True

    def mark_seen(self, message_id: str) -> None:
        """Record an identifier, evicting the oldest one past the cap."""

        self._ids[message_id] = None
        self._ids.move_to_end(message_id)
        if self._max_entries is not None and len(self._ids) > self._max_entries:
            self._ids.popitem(last=False)
