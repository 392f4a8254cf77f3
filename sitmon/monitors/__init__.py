"""
Keyword monitors and their persistence.
"""

from sitmon.monitors.registry import MonitorRegistry
from sitmon.monitors.store import InMemoryMonitorStore, MonitorStore, SqlMonitorStore

__all__ = ["MonitorRegistry", "MonitorStore", "InMemoryMonitorStore", "SqlMonitorStore"]
