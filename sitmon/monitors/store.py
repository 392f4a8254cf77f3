"""
Monitor persistence backends.
"""

from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitmon.analysis.types import Monitor
from sitmon.datastore.repositories import MonitorRepository


class MonitorStore(ABC):
    """Loads and saves the full monitor list."""

    @abstractmethod
    async def load_monitors(self) -> list[Monitor]:
        pass

    @abstractmethod
    async def save_monitors(self, monitors: list[Monitor]) -> None:
        pass


class InMemoryMonitorStore(MonitorStore):
    """Process-local store, used when no database is configured and in tests."""

    def __init__(self, monitors: list[Monitor] | None = None):
        self._monitors = [m.model_copy() for m in monitors or []]
        self.save_count = 0

    async def load_monitors(self) -> list[Monitor]:
        return [m.model_copy() for m in self._monitors]

    async def save_monitors(self, monitors: list[Monitor]) -> None:
        self._monitors = [m.model_copy() for m in monitors]
        self.save_count += 1


class SqlMonitorStore(MonitorStore):
    """Store backed by the ``monitors`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def load_monitors(self) -> list[Monitor]:
        async with self.session_factory() as session:
            return await MonitorRepository(session).list_all()

    async def save_monitors(self, monitors: list[Monitor]) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await MonitorRepository(session).replace_all(monitors)
