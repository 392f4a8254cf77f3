"""Tests for the monitor registry and its stores."""

from datetime import timedelta

import pytest
import pytest_asyncio

from conftest import BASE_TIME, make_raw_news
from sitmon.analysis.classifier import Classifier
from sitmon.analysis.config import MonitorConfig
from sitmon.analysis.types import Alert, Monitor, RiskLevel
from sitmon.datastore.engine import Datastore
from sitmon.errors import MonitorPersistenceError
from sitmon.monitors.registry import MonitorRegistry
from sitmon.monitors.store import InMemoryMonitorStore, MonitorStore, SqlMonitorStore


class FailingStore(MonitorStore):
    """Store whose load/save can be switched to fail."""

    def __init__(self, fail_load: bool = False, fail_save: bool = True):
        self.fail_load = fail_load
        self.fail_save = fail_save

    async def load_monitors(self) -> list[Monitor]:
        if self.fail_load:
            raise OSError("disk unavailable")
        return []

    async def save_monitors(self, monitors: list[Monitor]) -> None:
        if self.fail_save:
            raise OSError("disk full")


def tariff_batch(matching: int, total: int = 10) -> list:
    items = [
        make_raw_news(f"New tariffs announced, round {i}", item_id=f"t{i}")
        for i in range(matching)
    ]
    items += [
        make_raw_news(f"Local sports roundup {i}", item_id=f"s{i}")
        for i in range(total - matching)
    ]
    return items


class TestMonitorLifecycle:
    """Tests for add/remove/activate/deactivate."""

    @pytest.mark.asyncio
    async def test_add_defaults(
        self, registry: MonitorRegistry, store: InMemoryMonitorStore
    ) -> None:
        monitor = await registry.add("  tariffs ")

        assert monitor.query == "tariffs"
        assert monitor.alert_threshold == 0.7
        assert monitor.check_interval == 3600
        assert monitor.is_active
        assert monitor.alert_count == 0
        assert store.save_count == 1
        assert [m.id for m in await store.load_monitors()] == [monitor.id]

    @pytest.mark.asyncio
    async def test_add_empty_query(self, registry: MonitorRegistry) -> None:
        with pytest.raises(ValueError):
            await registry.add("   ")

    @pytest.mark.asyncio
    async def test_returned_monitor_is_a_copy(self, registry: MonitorRegistry) -> None:
        monitor = await registry.add("tariffs")
        monitor.alert_count = 99
        assert registry.get(monitor.id).alert_count == 0

    @pytest.mark.asyncio
    async def test_remove(self, registry: MonitorRegistry) -> None:
        monitor = await registry.add("tariffs")
        assert await registry.remove(monitor.id) is True
        assert registry.list_monitors() == []

    @pytest.mark.asyncio
    async def test_remove_missing_id(
        self, registry: MonitorRegistry, store: InMemoryMonitorStore
    ) -> None:
        monitor = await registry.add("tariffs")
        saves = store.save_count

        assert await registry.remove("no-such-id") is False
        assert [m.id for m in registry.list_monitors()] == [monitor.id]
        assert store.save_count == saves

    @pytest.mark.asyncio
    async def test_activate_deactivate(self, registry: MonitorRegistry) -> None:
        monitor = await registry.add("tariffs")

        assert await registry.deactivate(monitor.id)
        assert registry.list_monitors(active_only=True) == []
        assert len(registry.list_monitors()) == 1

        assert await registry.activate(monitor.id)
        assert registry.get(monitor.id).is_active
        assert await registry.activate("no-such-id") is False

    @pytest.mark.asyncio
    async def test_load(self) -> None:
        existing = Monitor(id="m1", query="oil")
        registry = MonitorRegistry(InMemoryMonitorStore([existing]))
        assert await registry.load() == 1
        assert registry.get("m1").query == "oil"


class TestEvaluate:
    """Tests for MonitorRegistry.evaluate."""

    @pytest.mark.asyncio
    async def test_threshold_reached(self, registry: MonitorRegistry) -> None:
        monitor = await registry.add("tariffs", alert_threshold=0.7)

        alerts = await registry.evaluate(tariff_batch(8))

        assert len(alerts) == 1
        assert alerts[0].monitor_id == monitor.id
        assert alerts[0].query == "tariffs"
        assert alerts[0].severity == RiskLevel.MEDIUM
        assert alerts[0].message == 'Monitor "tariffs" triggered an alert'
        updated = registry.get(monitor.id)
        assert updated.alert_count == 1
        assert updated.last_checked is not None

    @pytest.mark.asyncio
    async def test_threshold_not_reached(self, registry: MonitorRegistry) -> None:
        monitor = await registry.add("tariffs", alert_threshold=0.9)

        alerts = await registry.evaluate(tariff_batch(8))

        assert alerts == []
        updated = registry.get(monitor.id)
        assert updated.alert_count == 0
        assert updated.last_checked is not None

    @pytest.mark.asyncio
    async def test_case_insensitive_description_match(self, registry: MonitorRegistry) -> None:
        await registry.add("OPEC", alert_threshold=0.5)
        items = [
            make_raw_news("Oil output talks", "opec ministers meet", item_id="o1"),
            make_raw_news("Unrelated story", item_id="o2"),
        ]
        assert len(await registry.evaluate(items)) == 1

    @pytest.mark.asyncio
    async def test_zero_threshold_fires_without_matches(self, registry: MonitorRegistry) -> None:
        monitor = await registry.add("tariffs", alert_threshold=0.0)

        alerts = await registry.evaluate(tariff_batch(0))

        assert len(alerts) == 1
        assert alerts[0].severity == RiskLevel.MEDIUM
        assert alerts[0].details == "0/10 items matched (0%)"
        assert registry.get(monitor.id).alert_count == 1
        assert len(await registry.evaluate([])) == 1

    @pytest.mark.asyncio
    async def test_inactive_monitor_skipped(self, registry: MonitorRegistry) -> None:
        monitor = await registry.add("tariffs")
        await registry.deactivate(monitor.id)

        assert await registry.evaluate(tariff_batch(10)) == []
        assert registry.get(monitor.id).last_checked is None

    @pytest.mark.asyncio
    async def test_severity_follows_items(self, registry: MonitorRegistry) -> None:
        await registry.add("ukraine", alert_threshold=0.5)
        classifier = Classifier()
        items = [
            classifier.classify(make_raw_news("War in Ukraine escalates", item_id="u1")),
            classifier.classify(make_raw_news("Ukraine grain deal talks", item_id="u2")),
        ]

        alerts = await registry.evaluate(items)
        assert alerts[0].severity == RiskLevel.CRITICAL

    @pytest.mark.asyncio
    async def test_check_interval_enforced(self, store: InMemoryMonitorStore) -> None:
        registry = MonitorRegistry(store, MonitorConfig(enforce_check_interval=True))
        await registry.add("tariffs")

        assert len(await registry.evaluate(tariff_batch(10))) == 1
        assert await registry.evaluate(tariff_batch(10)) == []

    @pytest.mark.asyncio
    async def test_alert_log(self, registry: MonitorRegistry) -> None:
        await registry.add("tariffs")
        alerts = await registry.evaluate(tariff_batch(9))

        assert registry.alerts == tuple(alerts)
        assert await registry.acknowledge(alerts[0].id, by="analyst")
        assert registry.alerts[0].acknowledged
        assert registry.alerts[0].acknowledged_by == "analyst"
        assert await registry.acknowledge("no-such-alert") is False

    @pytest.mark.asyncio
    async def test_record_alerts_skips_known(self, registry: MonitorRegistry) -> None:
        alert = Alert(id="a1", severity=RiskLevel.HIGH, message="Risk", timestamp=BASE_TIME)
        assert await registry.record_alerts([alert]) == 1
        assert await registry.record_alerts([alert]) == 0
        assert len(registry.alerts) == 1


class TestPersistenceFailures:
    """Tests for store failures."""

    @pytest.mark.asyncio
    async def test_add_rolls_back(self) -> None:
        registry = MonitorRegistry(FailingStore())
        with pytest.raises(MonitorPersistenceError):
            await registry.add("tariffs")
        assert registry.list_monitors() == []

    @pytest.mark.asyncio
    async def test_remove_rolls_back(self) -> None:
        store = FailingStore(fail_save=False)
        registry = MonitorRegistry(store)
        monitor = await registry.add("tariffs")

        store.fail_save = True
        with pytest.raises(MonitorPersistenceError):
            await registry.remove(monitor.id)
        assert [m.id for m in registry.list_monitors()] == [monitor.id]

    @pytest.mark.asyncio
    async def test_deactivate_rolls_back(self) -> None:
        store = FailingStore(fail_save=False)
        registry = MonitorRegistry(store)
        monitor = await registry.add("tariffs")

        store.fail_save = True
        with pytest.raises(MonitorPersistenceError):
            await registry.deactivate(monitor.id)
        assert registry.get(monitor.id).is_active

    @pytest.mark.asyncio
    async def test_evaluate_keeps_alerts(self) -> None:
        store = FailingStore(fail_save=False)
        registry = MonitorRegistry(store)
        monitor = await registry.add("tariffs")

        store.fail_save = True
        with pytest.raises(MonitorPersistenceError) as exc_info:
            await registry.evaluate(tariff_batch(10))

        assert len(exc_info.value.alerts) == 1
        assert registry.get(monitor.id).alert_count == 1
        assert len(registry.alerts) == 1

    @pytest.mark.asyncio
    async def test_load_failure_gives_empty_list(self) -> None:
        registry = MonitorRegistry(FailingStore(fail_load=True))
        assert await registry.load() == 0
        assert registry.list_monitors() == []


class TestSqlMonitorStore:
    """Tests for the SQLAlchemy-backed store."""

    @pytest_asyncio.fixture
    async def datastore(self, tmp_path):
        datastore = Datastore(f"sqlite+aiosqlite:///{tmp_path / 'monitors.db'}")
        await datastore.init()
        yield datastore
        await datastore.close()

    @pytest.mark.asyncio
    async def test_round_trip(self, datastore: Datastore) -> None:
        registry = MonitorRegistry(SqlMonitorStore(datastore.session_factory))
        first = await registry.add("tariffs", alert_threshold=0.5, check_interval=600)
        second = await registry.add("opec")
        await registry.deactivate(second.id)
        await registry.evaluate(tariff_batch(6))

        reloaded = MonitorRegistry(SqlMonitorStore(datastore.session_factory))
        assert await reloaded.load() == 2

        tariffs = reloaded.get(first.id)
        assert tariffs.alert_threshold == 0.5
        assert tariffs.check_interval == 600
        assert tariffs.alert_count == 1
        assert tariffs.last_checked is not None
        assert reloaded.get(second.id).is_active is False

    @pytest.mark.asyncio
    async def test_remove_persists(self, datastore: Datastore) -> None:
        registry = MonitorRegistry(SqlMonitorStore(datastore.session_factory))
        monitor = await registry.add("tariffs")
        await registry.remove(monitor.id)

        reloaded = MonitorRegistry(SqlMonitorStore(datastore.session_factory))
        assert await reloaded.load() == 0

    def test_uninitialized_datastore(self) -> None:
        with pytest.raises(RuntimeError):
            Datastore("sqlite+aiosqlite:///:memory:").session_factory


class TestMonitorModel:
    def test_is_due(self) -> None:
        monitor = Monitor(id="m1", query="oil", check_interval=60)
        assert monitor.is_due(BASE_TIME)

        monitor.last_checked = BASE_TIME
        assert not monitor.is_due(BASE_TIME + timedelta(seconds=30))
        assert monitor.is_due(BASE_TIME + timedelta(seconds=60))
