"""HTTP client for the remote inventory service."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..models import (
    DEFAULT_DEVICE_FIELDS,
    DeviceListResponse,
    DeviceQueryRequest,
    FilterCatalog,
    FilterOption,
    InventoryServiceError,
    QueryTemplate,
    TemplateListResponse,
)

logger = logging.getLogger(__name__)

DEVICE_QUERY_PATH = "/device-query"


class InventoryClient:
    """Talks to the ``/device-query`` endpoints of the inventory service.

    Responses wrapped in a ``{code, msg, data}`` envelope are unwrapped; a
    ``code`` of 400 or more is treated as a failure. Every failure surfaces
    as :class:`InventoryServiceError`.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings) -> "InventoryClient":
        return cls(
            base_url=settings.inventory_base_url,
            token=settings.inventory_token,
            timeout=settings.request_timeout,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                 json: Any = None) -> Any:
        url = f"{self.base_url}{DEVICE_QUERY_PATH}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, url, params=params, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise InventoryServiceError(f"Inventory service unreachable: {e}") from e

        if response.status_code >= 400:
            logger.error(f"{method} {url} returned {response.status_code}")
            raise InventoryServiceError(
                f"Inventory service returned {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as e:
            raise InventoryServiceError(f"Inventory service sent invalid JSON: {e}") from e

        if isinstance(payload, dict) and "code" in payload:
            code = payload.get("code") or 0
            if code >= 400:
                message = payload.get("msg") or payload.get("error") or f"Request failed ({code})"
                logger.error(f"{method} {url} failed with code {code}: {message}")
                raise InventoryServiceError(message, status_code=code)
            return payload.get("data")
        return payload

    # Catalog

    def get_filter_options(self) -> FilterCatalog:
        """Fields, label keys and taint keys available for filtering."""
        data = self._request("GET", "/filter-options") or {}
        catalog = FilterCatalog(
            deviceFields=_parse_options(data.get("deviceFields")),
            nodeLabelKeys=_parse_options(data.get("nodeLabelKeys") or data.get("nodeLabels")),
            nodeTaintKeys=_parse_options(data.get("nodeTaintKeys") or data.get("nodeTaints")),
        )
        if not catalog.deviceFields:
            catalog.deviceFields = [option.model_copy() for option in DEFAULT_DEVICE_FIELDS]
        return catalog

    def get_label_values(self, key: str) -> List[FilterOption]:
        return _parse_options(self._request("GET", "/label-values", params={"key": key}))

    def get_taint_values(self, key: str) -> List[FilterOption]:
        return _parse_options(self._request("GET", "/taint-values", params={"key": key}))

    def get_device_field_values(self, field: str, size_hint: Optional[int] = None) -> List[str]:
        params: Dict[str, Any] = {"field": field}
        if size_hint:
            params["size"] = size_hint
        data = self._request("GET", "/device-field-values", params=params)
        if not isinstance(data, list):
            return []
        return [str(value) for value in data if value is not None]

    # Query execution

    def query_devices(self, request: DeviceQueryRequest) -> DeviceListResponse:
        data = self._request("POST", "/query", json=request.model_dump(mode="json")) or {}
        return DeviceListResponse(
            list=data.get("list") or [],
            total=data.get("total") or 0,
            page=data.get("page") or request.page,
            size=data.get("size") or request.size,
        )

    # Template store

    def save_template(self, template: QueryTemplate) -> Any:
        """Create a template, or update it when ``template.id`` is set."""
        body = template.model_dump(mode="json", exclude_none=True)
        return self._request("POST", "/templates", json=body)

    def list_templates(self, page: int = 1, size: int = 10) -> TemplateListResponse:
        data = self._request("GET", "/templates", params={"page": page, "size": size}) or {}
        if isinstance(data, list):
            return TemplateListResponse(list=data, total=len(data), page=page, size=size)
        return TemplateListResponse(
            list=data.get("list") or [],
            total=data.get("total") or 0,
            page=data.get("page") or page,
            size=data.get("size") or size,
        )

    def get_template(self, template_id: int) -> Dict[str, Any]:
        """Raw stored template; its ``groups`` still need decoding."""
        return self._request("GET", f"/templates/{template_id}") or {}

    def delete_template(self, template_id: int) -> None:
        self._request("DELETE", f"/templates/{template_id}")


def _parse_options(raw: Any) -> List[FilterOption]:
    """Accept option objects or bare strings."""
    if not isinstance(raw, list):
        return []
    options = []
    for item in raw:
        if isinstance(item, dict):
            value = str(item.get("value") or item.get("id") or "")
            if not value:
                continue
            options.append(FilterOption(
                id=str(item.get("id") or value),
                label=str(item.get("label") or value),
                value=value,
            ))
        elif item is not None:
            options.append(FilterOption(id=str(item), label=str(item), value=str(item)))
    return options
