"""
Monitor registry - owns the standing keyword queries and the alert log.

All mutations go through one ``asyncio.Lock``. Every change to the monitor
list is saved through the injected ``MonitorStore``; when a save fails, add,
remove, activate and deactivate roll the in-memory list back, while evaluate
keeps its updates and hands the raised alerts over on the exception.
"""

import asyncio
import uuid
from collections.abc import Sequence

from loguru import logger

from sitmon.analysis.config import MonitorConfig
from sitmon.analysis.types import (
    Alert,
    AlertLevel,
    Monitor,
    NewsItem,
    RawNewsItem,
    RiskLevel,
    utcnow,
)
from sitmon.errors import MonitorPersistenceError
from sitmon.monitors.store import InMemoryMonitorStore, MonitorStore

_SEVERITY: dict[AlertLevel, RiskLevel] = {
    AlertLevel.CRITICAL: RiskLevel.CRITICAL,
    AlertLevel.HIGH: RiskLevel.HIGH,
}


def _item_text(item: NewsItem | RawNewsItem) -> str:
    return f"{item.title} {item.description or ''}".lower()


def _severity(matches: list[NewsItem | RawNewsItem]) -> RiskLevel:
    """Medium, raised to the most severe matched item's level."""
    severity = RiskLevel.MEDIUM
    for item in matches:
        level = _SEVERITY.get(getattr(item, "alert_level", AlertLevel.NONE))
        if level is not None and level.rank > severity.rank:
            severity = level
    return severity


class MonitorRegistry:
    def __init__(
        self,
        store: MonitorStore | None = None,
        config: MonitorConfig | None = None,
    ):
        self.store = store or InMemoryMonitorStore()
        self.config = config or MonitorConfig()
        self._monitors: list[Monitor] = []
        self._alerts: list[Alert] = []
        self._lock = asyncio.Lock()

    async def load(self) -> int:
        """Load monitors from the store; a failing store leaves the list empty."""
        async with self._lock:
            try:
                self._monitors = await self.store.load_monitors()
            except Exception as e:
                logger.error(f"Failed to load monitors: {e}")
                self._monitors = []
            logger.info(f"Loaded {len(self._monitors)} monitors")
            return len(self._monitors)

    async def _save(self, action: str) -> None:
        try:
            await self.store.save_monitors(list(self._monitors))
        except Exception as e:
            logger.error(f"Failed to save monitors after {action}: {e}")
            raise MonitorPersistenceError(f"Failed to save monitors after {action}: {e}") from e

    def _find(self, monitor_id: str) -> int | None:
        for index, monitor in enumerate(self._monitors):
            if monitor.id == monitor_id:
                return index
        return None

    async def add(
        self,
        query: str,
        alert_threshold: float | None = None,
        check_interval: int | None = None,
    ) -> Monitor:
        """
        Create an active monitor.

        Raises:
            ValueError: Empty query
            MonitorPersistenceError: The store rejected the save; nothing was added
        """
        query = query.strip()
        if not query:
            raise ValueError("Monitor query must not be empty")

        monitor = Monitor(
            id=str(uuid.uuid4()),
            query=query,
            alert_threshold=(
                alert_threshold if alert_threshold is not None else self.config.default_threshold
            ),
            check_interval=(
                check_interval
                if check_interval is not None
                else self.config.default_check_interval
            ),
        )

        async with self._lock:
            self._monitors.append(monitor)
            try:
                await self._save("add")
            except MonitorPersistenceError:
                self._monitors.remove(monitor)
                raise

        logger.info(f"Monitor added: {monitor.id} ({query})")
        return monitor.model_copy()

    async def remove(self, monitor_id: str) -> bool:
        """Remove a monitor. Returns False, without saving, when the id is unknown."""
        async with self._lock:
            index = self._find(monitor_id)
            if index is None:
                logger.info(f"Monitor {monitor_id} not found")
                return False

            monitor = self._monitors.pop(index)
            try:
                await self._save("remove")
            except MonitorPersistenceError:
                self._monitors.insert(index, monitor)
                raise

        logger.info(f"Monitor removed: {monitor_id}")
        return True

    async def _set_active(self, monitor_id: str, active: bool) -> bool:
        async with self._lock:
            index = self._find(monitor_id)
            if index is None:
                return False
            monitor = self._monitors[index]
            if monitor.is_active == active:
                return True

            monitor.is_active = active
            try:
                await self._save("activate" if active else "deactivate")
            except MonitorPersistenceError:
                monitor.is_active = not active
                raise
        return True

    async def activate(self, monitor_id: str) -> bool:
        return await self._set_active(monitor_id, True)

    async def deactivate(self, monitor_id: str) -> bool:
        return await self._set_active(monitor_id, False)

    def get(self, monitor_id: str) -> Monitor | None:
        index = self._find(monitor_id)
        return self._monitors[index].model_copy() if index is not None else None

    def list_monitors(self, active_only: bool = False) -> list[Monitor]:
        return [
            m.model_copy() for m in self._monitors if m.is_active or not active_only
        ]

    async def evaluate(self, items: Sequence[NewsItem | RawNewsItem]) -> list[Alert]:
        """
        Check every active monitor against a batch of items.

        A monitor fires when the share of items whose title or description
        contains its query (case-insensitive) reaches its threshold and at
        least one item matched.

        Raises:
            MonitorPersistenceError: Saving failed; the in-memory updates are
                kept and the raised alerts are on ``error.alerts``
        """
        alerts: list[Alert] = []
        texts = [(item, _item_text(item)) for item in items]
        total = max(len(texts), 1)

        async with self._lock:
            now = utcnow()
            checked = 0
            for monitor in self._monitors:
                if not monitor.is_active:
                    continue
                if self.config.enforce_check_interval and not monitor.is_due(now):
                    continue
                checked += 1

                query = monitor.query.lower()
                matches = [item for item, text in texts if query in text]
                ratio = len(matches) / total
                monitor.last_checked = now

                if ratio < monitor.alert_threshold:
                    continue

                monitor.alert_count += 1
                alerts.append(
                    Alert(
                        id=str(uuid.uuid4()),
                        monitor_id=monitor.id,
                        query=monitor.query,
                        severity=_severity(matches),
                        message=f'Monitor "{monitor.query}" triggered an alert',
                        details=f"{len(matches)}/{len(texts)} items matched ({ratio:.0%})",
                        timestamp=now,
                    )
                )
                logger.info(f"Monitor alert triggered: {monitor.query}")

            self._alerts.extend(alerts)
            if not checked:
                return alerts

            try:
                await self._save("evaluate")
            except MonitorPersistenceError as e:
                e.alerts = alerts
                raise

        logger.info(f"Monitor check completed. {len(alerts)} alerts triggered.")
        return alerts

    async def record_alerts(self, alerts: Sequence[Alert]) -> int:
        """Append externally raised alerts to the log, skipping known ids."""
        async with self._lock:
            known = {a.id for a in self._alerts}
            new = [a for a in alerts if a.id not in known]
            self._alerts.extend(new)
            return len(new)

    async def acknowledge(self, alert_id: str, by: str | None = None) -> bool:
        async with self._lock:
            for alert in self._alerts:
                if alert.id == alert_id:
                    if not alert.acknowledged:
                        alert.acknowledge(by)
                    return True
            return False

    @property
    def alerts(self) -> tuple[Alert, ...]:
        """Alert log, oldest first."""
        return tuple(self._alerts)
