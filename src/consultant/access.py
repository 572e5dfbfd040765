"""Access gate abstraction.

Entitlement is decided outside the engine; the engine only asks.
"""

from abc import ABC, abstractmethod


class AccessGate(ABC):
    """Answers whether the current user may use the consultant."""

    @abstractmethod
    async def has_access(self) -> bool:
        """Return True if the user holds an active entitlement."""


class StaticAccessGate(AccessGate):
    """Access gate with a fixed answer, flipped by `revoke`/`grant`."""

    def __init__(self, allowed: bool = True):
        self._allowed = allowed

    async def has_access(self) -> bool:
        return self._allowed

    def grant(self) -> None:
        self._allowed = True

    def revoke(self) -> None:
        self._allowed = False
