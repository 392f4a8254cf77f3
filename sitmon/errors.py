"""
Engine exceptions, one class per pipeline stage.
"""


class SitmonError(Exception):
    """Base exception for engine errors."""

    stage: str = "engine"

    def __init__(self, message: str, stage: str | None = None):
        self.message = message
        if stage:
            self.stage = stage
        super().__init__(message)


class ClassificationError(SitmonError):
    """A news item could not be classified (missing or invalid field)."""

    stage = "classification"

    def __init__(self, message: str, item_id: str | None = None):
        self.item_id = item_id
        super().__init__(message)


class AnalyzerError(SitmonError):
    """An analyzer failed internally while processing a batch."""

    stage = "analysis"

    def __init__(self, analyzer: str, message: str):
        self.analyzer = analyzer
        super().__init__(f"Analyzer '{analyzer}' failed: {message}")


class FusionError(SitmonError):
    """Decision fusion could not combine the analyzer outputs."""

    stage = "fusion"


class MonitorPersistenceError(SitmonError):
    """Loading or saving monitors through the store failed."""

    stage = "monitor_persistence"

    def __init__(self, message: str, alerts: list | None = None):
        # Alerts raised by an evaluation whose save failed are still valid
        self.alerts = alerts or []
        super().__init__(message)
