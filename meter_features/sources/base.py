"""Abstract data source consumed by the iterators."""

from abc import ABC, abstractmethod
from typing import Any, Optional

import pandas as pd

from meter_features.models import CustomerRecord, DateFilter


class DataSource(ABC):
    """Abstract base class for all meter data sources.

    Implementations raise :class:`~meter_features.errors.DataFetchError`
    when a meter id is unknown or the backing store cannot be reached.
    Ids and geocodes are always returned as strings in a stable order.
    """

    @abstractmethod
    def get_ids(self, geocode: Optional[str] = None, **filters: Any) -> list[str]:
        """
        List meter ids, optionally restricted to one geocode.

        Args:
            geocode: Only return ids located in this geocode
            **filters: Source-specific filters

        Returns:
            Ordered list of meter ids
        """

    @abstractmethod
    def get_geocodes(self, use_cache: bool = True) -> list[str]:
        """
        List the geocodes known to the source.

        Args:
            use_cache: Reuse a previously fetched list when available

        Returns:
            Ordered list of geocodes
        """

    @abstractmethod
    def get_meter_data_for_id(
        self, meter_id: str, date_filter: Optional[DateFilter] = None
    ) -> CustomerRecord:
        """
        Build the record for one meter.

        Args:
            meter_id: Meter identifier
            date_filter: Restrict readings to this date range

        Returns:
            CustomerRecord for the meter
        """

    def get_weather_for_geocode(
        self, geocode: str, date_filter: Optional[DateFilter] = None
    ) -> Optional[pd.DataFrame]:
        """Daily weather for a geocode, or None when the source has none."""
        return None
