"""
Base data source interface.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel

from sitmon.analysis.types import MarketQuote, PricePoint, RawNewsItem

T = TypeVar("T", bound=BaseModel)


class BaseDataSource(ABC, Generic[T]):
    """
    Source of one kind of input record for an analysis batch.

    Implementations return validated models and, on network errors, log and
    return an empty list so a cycle can continue with the other sources.
    """

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Name used in log lines."""
        ...

    @abstractmethod
    async def fetch(self) -> list[T]:
        """Current records from the source."""
        ...

    def is_configured(self) -> bool:
        """False when the source has nothing to fetch from."""
        return True


class NewsSource(BaseDataSource[RawNewsItem]):
    """Source of unclassified news items."""


class MarketSource(BaseDataSource[MarketQuote]):
    """Source of quotes and, optionally, price history."""

    async def fetch_history(self, symbols: list[str]) -> dict[str, list[PricePoint]]:
        """Price bars per symbol; sources without history return an empty dict."""
        return {}
