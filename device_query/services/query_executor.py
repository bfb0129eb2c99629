"""Query submission and template persistence against the inventory service."""

import logging
import threading
from typing import Any, List, Optional

from ..clients import InventoryClient
from ..filters import from_persisted, summarize, to_persisted, to_transport_groups
from ..models import (
    DeviceListResponse,
    DeviceQueryRequest,
    FilterGroup,
    QueryInFlightError,
    QueryTemplate,
    QueryValidationError,
    TemplateListResponse,
)

logger = logging.getLogger(__name__)


class SubmissionToken:
    """Proof that the holder owns the query slot of a :class:`SubmissionGuard`."""

    def __init__(self, guard: "SubmissionGuard"):
        self.guard = guard

    def release(self) -> None:
        self.guard.release(self)


class SubmissionGuard:
    """Allows one outstanding query per query surface.

    A second submission is rejected outright rather than queued.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._token: Optional[SubmissionToken] = None

    @property
    def in_flight(self) -> bool:
        return self._token is not None

    def acquire(self) -> SubmissionToken:
        with self._lock:
            if self._token is not None:
                raise QueryInFlightError()
            self._token = SubmissionToken(self)
            return self._token

    def release(self, token: SubmissionToken) -> None:
        with self._lock:
            if self._token is token:
                self._token = None


def validate_for_query(groups: List[FilterGroup]) -> None:
    """Reject trees that cannot be executed, before any network call."""
    if not groups:
        logger.warning("Rejected query without filter groups")
        raise QueryValidationError("Add at least one filter condition.")
    for index, group in enumerate(groups, start=1):
        if group.blocks and not any(block.isActive for block in group.blocks):
            logger.warning(f"Rejected query: group {group.id} has only inactive conditions")
            raise QueryValidationError(f"Filter group {index} has no active conditions.")


class QueryExecutor:
    """Runs filter trees and manages saved templates."""

    def __init__(self, client: InventoryClient, default_page_size: int = 10,
                 summary_max_length: int = 200):
        self.client = client
        self.default_page_size = default_page_size
        self.summary_max_length = summary_max_length

    def execute(self, groups: List[FilterGroup], guard: SubmissionGuard,
                page: int = 1, size: Optional[int] = None) -> DeviceListResponse:
        """Submit ``groups`` as one page query.

        The tree is left untouched whether the call succeeds or fails.
        """
        validate_for_query(groups)
        token = guard.acquire()
        try:
            request = DeviceQueryRequest(
                groups=to_transport_groups(groups),
                page=page,
                size=size or self.default_page_size,
            )
            response = self.client.query_devices(request)
            logger.info(f"Query matched {response.total} devices (page {response.page})")
            return response
        finally:
            token.release()

    def execute_template(self, template_id: int, guard: SubmissionGuard,
                         page: int = 1, size: Optional[int] = None) -> DeviceListResponse:
        groups = from_persisted(self.client.get_template(template_id))
        if not groups:
            logger.warning(f"Template {template_id} has no query conditions")
            raise QueryValidationError("Template data is incomplete or has no query conditions.")
        return self.execute(groups, guard, page=page, size=size)

    def save_template(self, groups: List[FilterGroup], name: str, description: str = "",
                      template_id: Optional[int] = None) -> QueryTemplate:
        """Persist ``groups``; pass ``template_id`` to overwrite an existing template."""
        if not groups:
            logger.warning("Rejected template save without filter groups")
            raise QueryValidationError("Add at least one filter condition.")
        if not name or not name.strip():
            raise QueryValidationError("Template name is required.")

        template = to_persisted(groups, name.strip(), description, template_id=template_id)
        result = self.client.save_template(template)
        if template_id is None and isinstance(result, dict) and result.get("id") is not None:
            template = template.model_copy(update={"id": int(result["id"])})
        logger.info(f"Saved template '{template.name}' (id={template.id})")
        return template

    def list_templates(self, page: int = 1, size: Optional[int] = None) -> TemplateListResponse:
        """Stored templates, each annotated with a ``summary`` of its conditions."""
        listing = self.client.list_templates(page=page, size=size or self.default_page_size)
        annotated: List[Any] = []
        for raw in listing.list:
            if not isinstance(raw, dict):
                continue
            entry = dict(raw)
            entry["summary"] = summarize(from_persisted(raw), self.summary_max_length)
            annotated.append(entry)
        return listing.model_copy(update={"list": annotated})

    def delete_template(self, template_id: int) -> None:
        self.client.delete_template(template_id)
        logger.info(f"Deleted template {template_id}")
