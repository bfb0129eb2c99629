"""Core filter data models."""

import uuid
from typing import List, Dict, Any, Optional, Union, Tuple
from pydantic import BaseModel, Field
from enum import Enum


class FilterType(str, Enum):
    """Catalog a block's field comes from."""
    NODE_LABEL = "nodeLabel"
    TAINT = "taint"
    DEVICE = "device"


class ConditionType(str, Enum):
    """Comparison semantics of a filter block."""
    EQUAL = "equal"
    NOT_EQUAL = "notEqual"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    IN = "in"
    NOT_IN = "notIn"
    EXISTS = "exists"
    NOT_EXISTS = "notExists"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"


class LogicalOperator(str, Enum):
    """Logical operators for blocks and groups."""
    AND = "and"
    OR = "or"


MULTI_VALUE_CONDITIONS = frozenset({ConditionType.IN, ConditionType.NOT_IN})

VALUELESS_CONDITIONS = frozenset({
    ConditionType.EXISTS,
    ConditionType.NOT_EXISTS,
    ConditionType.IS_EMPTY,
    ConditionType.IS_NOT_EMPTY,
})

# Ordered the way the condition picker lists them.
CONDITIONS_BY_FILTER_TYPE: Dict[FilterType, Tuple[ConditionType, ...]] = {
    FilterType.DEVICE: (
        ConditionType.EQUAL,
        ConditionType.NOT_EQUAL,
        ConditionType.CONTAINS,
        ConditionType.NOT_CONTAINS,
        ConditionType.IN,
        ConditionType.NOT_IN,
        ConditionType.GREATER_THAN,
        ConditionType.LESS_THAN,
        ConditionType.IS_EMPTY,
        ConditionType.IS_NOT_EMPTY,
    ),
    FilterType.NODE_LABEL: (
        ConditionType.EQUAL,
        ConditionType.NOT_EQUAL,
        ConditionType.EXISTS,
        ConditionType.NOT_EXISTS,
        ConditionType.IN,
        ConditionType.NOT_IN,
    ),
    FilterType.TAINT: (
        ConditionType.EQUAL,
        ConditionType.NOT_EQUAL,
        ConditionType.EXISTS,
        ConditionType.NOT_EXISTS,
        ConditionType.IN,
        ConditionType.NOT_IN,
    ),
}


def conditions_for(filter_type: FilterType) -> Tuple[ConditionType, ...]:
    """Condition kinds a block of the given filter type may use."""
    return CONDITIONS_BY_FILTER_TYPE[FilterType(filter_type)]


def is_condition_allowed(filter_type: FilterType, condition_type: ConditionType) -> bool:
    return ConditionType(condition_type) in conditions_for(filter_type)


def new_id() -> str:
    """Mint an opaque id for a group or block."""
    return str(uuid.uuid4())


BlockValue = Union[str, List[str]]


class FilterBlock(BaseModel):
    """One leaf condition of a filter tree."""
    id: str = Field(default_factory=new_id, description="Opaque block id")
    type: FilterType = Field(..., description="Catalog the field comes from")
    conditionType: ConditionType = Field(default=ConditionType.EQUAL, description="Comparison kind")
    field: Optional[str] = Field(default="", description="Field identifier, mirrors key")
    key: Optional[str] = Field(default="", description="Field identifier, mirrors field")
    value: BlockValue = Field(default="", description="Single string, or list for in/notIn")
    operator: LogicalOperator = Field(default=LogicalOperator.AND, description="Join to the next block")
    isActive: bool = Field(default=True, description="Inactive blocks are not executed")


class FilterGroup(BaseModel):
    """Group of filter blocks with a logical operator.

    The operator joins the blocks of this group and also joins this group
    to the next one in the tree.
    """
    id: str = Field(default_factory=new_id, description="Opaque group id")
    blocks: List[FilterBlock] = Field(default_factory=list, description="Filter blocks")
    operator: LogicalOperator = Field(default=LogicalOperator.AND, description="Logical operator")


class QueryTemplate(BaseModel):
    """Named, persisted snapshot of a filter tree."""
    id: Optional[int] = Field(None, description="Template id, absent until first persisted")
    name: str = Field(..., description="Template name")
    description: str = Field(default="", description="Template description")
    groups: List[FilterGroup] = Field(default_factory=list, description="Filter groups")


class FilterOption(BaseModel):
    """Selectable option from the catalog service."""
    id: str = Field(..., description="Option id")
    label: str = Field(..., description="Human-readable label")
    value: str = Field(..., description="Option value")


def _option(value: str, label: str) -> FilterOption:
    return FilterOption(id=value, label=label, value=value)


# Used when the catalog service does not publish device fields.
DEFAULT_DEVICE_FIELDS: List[FilterOption] = [
    _option("ci_code", "Device code"),
    _option("ip", "IP address"),
    _option("arch_type", "CPU architecture"),
    _option("idc", "IDC"),
    _option("room", "Room"),
    _option("cabinet", "Cabinet"),
    _option("cabinet_no", "Cabinet number"),
    _option("infra_type", "Network type"),
    _option("is_localization", "Localized"),
    _option("net_zone", "Network zone"),
    _option("group", "Machine group"),
    _option("appid", "APPID"),
    _option("os_create_time", "OS creation time"),
    _option("cpu", "CPU count"),
    _option("memory", "Memory size"),
    _option("model", "Model"),
    _option("kvm_ip", "KVM IP"),
    _option("os", "Operating system"),
    _option("company", "Vendor"),
    _option("os_name", "OS name"),
    _option("os_issue", "OS release"),
    _option("os_kernel", "OS kernel"),
    _option("status", "Status"),
    _option("role", "Role"),
    _option("cluster", "Cluster"),
    _option("cluster_id", "Cluster ID"),
]


class FilterCatalog(BaseModel):
    """Available fields per filter type, as published by the catalog service."""
    deviceFields: List[FilterOption] = Field(default_factory=list, description="Device field options")
    nodeLabelKeys: List[FilterOption] = Field(default_factory=list, description="Node label keys")
    nodeTaintKeys: List[FilterOption] = Field(default_factory=list, description="Node taint keys")

    def options_for(self, filter_type: FilterType) -> List[FilterOption]:
        """Ordered field options for a filter type."""
        filter_type = FilterType(filter_type)
        if filter_type is FilterType.DEVICE:
            return self.deviceFields
        if filter_type is FilterType.NODE_LABEL:
            return self.nodeLabelKeys
        if filter_type is FilterType.TAINT:
            return self.nodeTaintKeys
        raise ValueError(f"Unknown filter type: {filter_type}")


class DeviceQueryRequest(BaseModel):
    """Paginated query submitted to the inventory service."""
    groups: List[FilterGroup] = Field(..., description="Filter groups, transport encoded")
    page: int = Field(default=1, description="Page number")
    size: int = Field(default=10, description="Page size")


class DeviceListResponse(BaseModel):
    """One page of devices matching a query."""
    list: List[Dict[str, Any]] = Field(default_factory=list, description="Devices")
    total: int = Field(default=0, description="Total matches")
    page: int = Field(default=1, description="Page number")
    size: int = Field(default=10, description="Page size")


class TemplateListResponse(BaseModel):
    """One page of stored query templates."""
    list: List[Dict[str, Any]] = Field(default_factory=list, description="Raw templates")
    total: int = Field(default=0, description="Total templates")
    page: int = Field(default=1, description="Page number")
    size: int = Field(default=10, description="Page size")


class ErrorResponse(BaseModel):
    """Error response."""
    type: str = Field(default="error", description="Response type")
    message: str = Field(..., description="Error message")
    error_code: str = Field(..., description="Error code")


class DeviceQueryError(Exception):
    """Base class for device query failures."""

    error_code = "DEVICE_QUERY_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class QueryValidationError(DeviceQueryError):
    """Raised when a tree is rejected before any network call."""

    error_code = "VALIDATION_ERROR"


class QueryInFlightError(DeviceQueryError):
    """Raised when a query is submitted while another one is outstanding."""

    error_code = "QUERY_IN_FLIGHT"

    def __init__(self, message: str = "A query is already running for this session."):
        super().__init__(message)


class InventoryServiceError(DeviceQueryError):
    """Raised when the inventory service cannot be reached or answers with an error."""

    error_code = "INVENTORY_SERVICE_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
