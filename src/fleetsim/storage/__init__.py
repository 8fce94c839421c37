"""Storage layer.

:class:`Storage` is the contract the engine reads and writes through;
:class:`InMemoryStorage` is the bundled implementation.
"""

from fleetsim.storage.base import Storage, TickCommit
from fleetsim.storage.memory import InMemoryStorage

__all__ = ["InMemoryStorage", "Storage", "TickCommit"]
