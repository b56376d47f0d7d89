"""Interface for state persistence backends.

A backend stores one serialized payload in one slot. Selecting between
backends is the job of the TieredStore, not of the backends themselves.
"""

import abc
from typing import Optional

class StateBackend(abc.ABC):
    """Abstract Base Class for a single-slot payload store."""

    name: str = "abstract"

    @abc.abstractmethod
    async def save(self, payload: str) -> None:
        """Overwrites the stored payload.

        Raises:
            Exception: Any backend error. Callers decide whether to swallow it.
        """
        pass

    @abc.abstractmethod
    async def load(self) -> Optional[str]:
        """Returns the stored payload, or None if nothing was saved yet."""
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        """Releases the underlying handle."""
        pass
