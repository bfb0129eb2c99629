"""Data models for device queries."""

from .filter_models import (
    BlockValue,
    CONDITIONS_BY_FILTER_TYPE,
    ConditionType,
    DEFAULT_DEVICE_FIELDS,
    DeviceListResponse,
    DeviceQueryError,
    DeviceQueryRequest,
    ErrorResponse,
    FilterBlock,
    FilterCatalog,
    FilterGroup,
    FilterOption,
    FilterType,
    InventoryServiceError,
    LogicalOperator,
    MULTI_VALUE_CONDITIONS,
    QueryInFlightError,
    QueryTemplate,
    QueryValidationError,
    TemplateListResponse,
    VALUELESS_CONDITIONS,
    conditions_for,
    is_condition_allowed,
    new_id,
)

__all__ = [
    "BlockValue",
    "CONDITIONS_BY_FILTER_TYPE",
    "ConditionType",
    "DEFAULT_DEVICE_FIELDS",
    "DeviceListResponse",
    "DeviceQueryError",
    "DeviceQueryRequest",
    "ErrorResponse",
    "FilterBlock",
    "FilterCatalog",
    "FilterGroup",
    "FilterOption",
    "FilterType",
    "InventoryServiceError",
    "LogicalOperator",
    "MULTI_VALUE_CONDITIONS",
    "QueryInFlightError",
    "QueryTemplate",
    "QueryValidationError",
    "TemplateListResponse",
    "VALUELESS_CONDITIONS",
    "conditions_for",
    "is_condition_allowed",
    "new_id",
]
