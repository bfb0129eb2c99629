"""Cached field catalog and per-field value lists."""

import logging
from typing import Dict, List

from ..clients import InventoryClient
from ..models import DeviceQueryError, FilterCatalog, FilterOption, FilterType

logger = logging.getLogger(__name__)


class ValueCatalog:
    """Field options and known values, fetched from the inventory service.

    A single ``loading`` flag covers every fetch. Concurrent fetches for
    different fields are not told apart, so the flag can drop to ``False``
    while another fetch is still running.
    """

    def __init__(self, client: InventoryClient, device_value_size_hint: int = 50):
        self.client = client
        self.device_value_size_hint = device_value_size_hint
        self.catalog = FilterCatalog()
        self.loading = False
        self.last_error = None
        self._values: Dict[FilterType, Dict[str, List[FilterOption]]] = {
            filter_type: {} for filter_type in FilterType
        }

    def refresh(self, preload_values: bool = True) -> FilterCatalog:
        """Reload the field catalog; label and taint values are preloaded by default."""
        try:
            self.loading = True
            self.catalog = self.client.get_filter_options()
            logger.info(
                f"Catalog loaded: {len(self.catalog.deviceFields)} device fields, "
                f"{len(self.catalog.nodeLabelKeys)} label keys, {len(self.catalog.nodeTaintKeys)} taint keys"
            )
        except DeviceQueryError as e:
            logger.error(f"Failed to load filter options: {e}")
            self.last_error = e.message
            return self.catalog
        finally:
            self.loading = False

        if preload_values:
            for option in self.catalog.nodeLabelKeys:
                self.warm(FilterType.NODE_LABEL, option.value)
            for option in self.catalog.nodeTaintKeys:
                self.warm(FilterType.TAINT, option.value)
        return self.catalog

    def warm(self, filter_type: FilterType, field: str) -> None:
        """Fetch the known values of ``field`` into the cache. Failures are logged only."""
        if not field:
            return
        filter_type = FilterType(filter_type)
        try:
            self.loading = True
            if filter_type is FilterType.NODE_LABEL:
                values = self.client.get_label_values(field)
            elif filter_type is FilterType.TAINT:
                values = self.client.get_taint_values(field)
            else:
                raw = self.client.get_device_field_values(field, self.device_value_size_hint)
                values = [FilterOption(id=value, label=value, value=value) for value in raw]
        except DeviceQueryError as e:
            logger.error(f"Failed to load values for {filter_type.value} field {field}: {e}")
            self.last_error = e.message
            return
        finally:
            self.loading = False

        # a late response for a superseded request still overwrites the cache
        self._values[filter_type] = {**self._values[filter_type], field: values}

    def values_for(self, filter_type: FilterType, field: str) -> List[FilterOption]:
        return self._values[FilterType(filter_type)].get(field, [])
