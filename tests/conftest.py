from typing import Any, Dict, List, Optional

from pytest import fixture

from device_query.models import (
    DeviceListResponse,
    DeviceQueryRequest,
    FilterBlock,
    FilterCatalog,
    FilterGroup,
    FilterOption,
    FilterType,
    InventoryServiceError,
    LogicalOperator,
    QueryTemplate,
    TemplateListResponse,
)


def option(value: str, label: Optional[str] = None) -> FilterOption:
    return FilterOption(id=value, label=label or value, value=value)


class FakeInventoryClient:
    """In-memory stand-in for InventoryClient."""

    def __init__(self):
        self.catalog = FilterCatalog(
            deviceFields=[option("ip", "IP address"), option("os")],
            nodeLabelKeys=[option("zone")],
            nodeTaintKeys=[option("dedicated")],
        )
        self.label_values = {"zone": [option("zone-a"), option("zone-b")]}
        self.taint_values = {"dedicated": [option("gpu")]}
        self.device_values = {"ip": ["10.0.0.1", "10.0.0.2"]}
        self.templates: Dict[int, Dict[str, Any]] = {}
        self.queries: List[DeviceQueryRequest] = []
        self.saved: List[QueryTemplate] = []
        self.fail_with: Optional[Exception] = None
        self.on_query = None
        self.next_id = 1

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def get_filter_options(self) -> FilterCatalog:
        self._maybe_fail()
        return self.catalog

    def get_label_values(self, key: str) -> List[FilterOption]:
        self._maybe_fail()
        return self.label_values.get(key, [])

    def get_taint_values(self, key: str) -> List[FilterOption]:
        self._maybe_fail()
        return self.taint_values.get(key, [])

    def get_device_field_values(self, field: str, size_hint: Optional[int] = None) -> List[str]:
        self._maybe_fail()
        return self.device_values.get(field, [])

    def query_devices(self, request: DeviceQueryRequest) -> DeviceListResponse:
        self.queries.append(request)
        if self.on_query is not None:
            self.on_query(request)
        self._maybe_fail()
        return DeviceListResponse(list=[{"ip": "10.0.0.1"}], total=1, page=request.page, size=request.size)

    def save_template(self, template: QueryTemplate) -> Any:
        self._maybe_fail()
        self.saved.append(template)
        template_id = template.id
        if template_id is None:
            template_id = self.next_id
            self.next_id += 1
        self.templates[template_id] = {**template.model_dump(mode="json"), "id": template_id}
        return {"id": template_id}

    def list_templates(self, page: int = 1, size: int = 10) -> TemplateListResponse:
        self._maybe_fail()
        items = list(self.templates.values())
        return TemplateListResponse(list=items, total=len(items), page=page, size=size)

    def get_template(self, template_id: int) -> Dict[str, Any]:
        self._maybe_fail()
        if template_id not in self.templates:
            raise InventoryServiceError("Template not found", status_code=404)
        return self.templates[template_id]

    def delete_template(self, template_id: int) -> None:
        self._maybe_fail()
        self.templates.pop(template_id, None)


@fixture
def fake_client() -> FakeInventoryClient:
    return FakeInventoryClient()


@fixture
def catalog() -> FilterCatalog:
    return FakeInventoryClient().catalog


@fixture
def ip_group() -> FilterGroup:
    return FilterGroup(
        id="g1",
        operator=LogicalOperator.AND,
        blocks=[
            FilterBlock(id="b1", type=FilterType.DEVICE, field="ip", key="ip", value="10.0.0.1"),
        ],
    )
