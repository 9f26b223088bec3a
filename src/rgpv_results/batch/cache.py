"""Completion cache: roll numbers that already have a stored result."""

import asyncio
from typing import Any, Dict, Optional, Set

from ..config.logger import logger
from ..connectors.rgpv.interfaces import IResultStore


class CompletionCache:
    """Set of completed roll numbers backed by a result store.

    The set is scanned from the store once per run. Additions go through an
    ``asyncio.Lock`` so payload writes and set updates never interleave, and
    an identifier is only added once its payload is persisted.
    """

    def __init__(self, store: IResultStore):
        self.store = store
        self._identifiers: Set[str] = set()
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component="completion_cache")

    def __contains__(self, roll_number: object) -> bool:
        return roll_number in self._identifiers

    def __len__(self) -> int:
        return len(self._identifiers)

    async def load(self) -> int:
        """Scan the store and return the number of completed roll numbers."""
        identifiers = await self.store.list_completed_identifiers()
        async with self._lock:
            self._identifiers = set(identifiers)
        self.logger.info("completion_cache_loaded", count=len(self._identifiers))
        return len(self._identifiers)

    async def add(self, roll_number: str, payload: Dict[str, Any]) -> bool:
        """Persist ``payload`` and mark ``roll_number`` as completed.

        Returns:
            True if the payload was persisted.
        """
        async with self._lock:
            saved = await self.store.write_result(roll_number, payload)
            if saved:
                self._identifiers.add(roll_number)
            else:
                self.logger.warning("completion_cache_write_failed", roll_number=roll_number)
            return saved

    async def read(self, roll_number: str) -> Optional[Dict[str, Any]]:
        """Return the stored payload for a completed roll number."""
        return await self.store.read_result(roll_number)
