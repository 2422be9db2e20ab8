"""Data source backed by records held in memory."""

import logging
from typing import Any, Iterable, Optional

import pandas as pd

from meter_features.errors import DataFetchError
from meter_features.models import CustomerRecord, DateFilter
from meter_features.sources.base import DataSource

logger = logging.getLogger(__name__)


class InMemoryDataSource(DataSource):
    """Serves prebuilt CustomerRecords.

    Useful for embedding the engine in other code and for tests. Ids keep
    the order in which records were supplied; geocodes keep first-seen order.
    """

    def __init__(
        self,
        records: Iterable[CustomerRecord],
        weather: Optional[dict[str, pd.DataFrame]] = None,
    ) -> None:
        self._records: dict[str, CustomerRecord] = {}
        for record in records:
            if record.meter_id in self._records:
                logger.warning("Duplicate record for meter %s replaced", record.meter_id)
            self._records[record.meter_id] = record
        self._weather = dict(weather or {})

    def get_ids(self, geocode: Optional[str] = None, **filters: Any) -> list[str]:
        if geocode is None:
            return list(self._records)
        return [
            meter_id
            for meter_id, record in self._records.items()
            if record.geocode == geocode
        ]

    def get_geocodes(self, use_cache: bool = True) -> list[str]:
        geocodes: dict[str, None] = {}
        for record in self._records.values():
            if record.geocode is not None:
                geocodes.setdefault(record.geocode)
        return list(geocodes)

    def get_meter_data_for_id(
        self, meter_id: str, date_filter: Optional[DateFilter] = None
    ) -> CustomerRecord:
        try:
            record = self._records[meter_id]
        except KeyError:
            raise DataFetchError(f"Unknown meter id: {meter_id!r}", meter_id) from None
        if record.weather is None and record.geocode in self._weather:
            record = CustomerRecord(
                meter_id=record.meter_id,
                readings=record.readings,
                geocode=record.geocode,
                weather=self._weather[record.geocode],
                metadata=record.metadata,
            )
        return record.filter_dates(date_filter)

    def get_weather_for_geocode(
        self, geocode: str, date_filter: Optional[DateFilter] = None
    ) -> Optional[pd.DataFrame]:
        weather = self._weather.get(geocode)
        if weather is None or date_filter is None:
            return weather
        return date_filter.apply(weather)
