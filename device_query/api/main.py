"""FastAPI application exposing filter editing sessions."""

import logging
import threading
from typing import Dict, List, Optional, Tuple, Union
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..clients import InventoryClient
from ..config import Settings, get_settings
from ..filters import (
    add_block,
    add_group,
    fill_blank_fields,
    find_block,
    load_template,
    remove_all_blocks_in_group,
    remove_block,
    remove_group,
    reset_all,
    summarize,
    update_block,
    update_group,
)
from ..models import (
    ConditionType,
    DeviceListResponse,
    DeviceQueryError,
    ErrorResponse,
    FilterGroup,
    FilterType,
    InventoryServiceError,
    LogicalOperator,
    QueryInFlightError,
    QueryTemplate,
    QueryValidationError,
    TemplateListResponse,
    conditions_for,
    is_condition_allowed,
)
from ..services import QueryExecutor, SubmissionGuard, ValueCatalog
from ..utils import EditingSession, SessionStore

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    QueryValidationError: 400,
    QueryInFlightError: 409,
    InventoryServiceError: 502,
}


class GroupPatch(BaseModel):
    """Partial update of a filter group."""
    operator: Optional[LogicalOperator] = Field(None, description="New group operator")


class BlockCreate(BaseModel):
    """Request to append a block to a group."""
    type: FilterType = Field(..., description="Filter type of the new block")


class BlockPatch(BaseModel):
    """Partial update of a filter block."""
    type: Optional[FilterType] = Field(None, description="Filter type")
    conditionType: Optional[ConditionType] = Field(None, description="Condition kind")
    field: Optional[str] = Field(None, description="Field identifier")
    key: Optional[str] = Field(None, description="Field identifier")
    value: Optional[Union[str, List[str]]] = Field(None, description="Raw value input")
    operator: Optional[LogicalOperator] = Field(None, description="Operator to the next block")
    isActive: Optional[bool] = Field(None, description="Whether the block is executed")


class PageRequest(BaseModel):
    """Pagination for query execution."""
    page: int = Field(default=1, ge=1, description="Page number")
    size: Optional[int] = Field(None, ge=1, description="Page size")


class SaveTemplateRequest(BaseModel):
    """Save the session tree as a template."""
    name: str = Field(..., description="Template name")
    description: str = Field(default="", description="Template description")
    mode: str = Field(default="saveAs", pattern="^(save|saveAs)$", description="'save' overwrites the source template")


class SessionView(BaseModel):
    """Editing session as seen by the presentation layer."""
    id: str
    groups: List[FilterGroup]
    summary: str
    sourceTemplateId: Optional[int] = None
    sourceTemplateName: Optional[str] = None
    isModified: bool = False
    querying: bool = False


def create_app(settings: Optional[Settings] = None, client: Optional[InventoryClient] = None) -> FastAPI:
    """Build the application; ``client`` replaces the HTTP client in tests."""
    settings = settings or get_settings()
    client = client or InventoryClient.from_settings(settings)

    app = FastAPI(
        title="Device Query Service",
        description="Build, run and save structured device filter queries",
        version="1.0.0"
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = SessionStore(max_sessions=settings.max_sessions, cleanup_after_hours=settings.session_ttl_hours)
    catalog = ValueCatalog(client, device_value_size_hint=settings.device_value_size_hint)
    executor = QueryExecutor(client, default_page_size=settings.default_page_size)
    app.state.store = store
    app.state.catalog = catalog
    app.state.executor = executor
    template_guards: Dict[int, SubmissionGuard] = {}
    template_guards_lock = threading.Lock()

    def template_guard(template_id: int) -> SubmissionGuard:
        """One outstanding execution per template."""
        with template_guards_lock:
            return template_guards.setdefault(template_id, SubmissionGuard())

    app.state.template_guard = template_guard

    def view(session: EditingSession) -> SessionView:
        return SessionView(
            id=session.id,
            groups=session.groups,
            summary=summarize(session.groups, settings.summary_max_length),
            sourceTemplateId=session.source_template_id,
            sourceTemplateName=session.source_template_name,
            isModified=session.is_modified,
            querying=session.guard.in_flight,
        )

    def require_session(session_id: str) -> EditingSession:
        session = store.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return session

    def commit(session_id: str, change) -> SessionView:
        """Apply a tree mutation atomically; warm any newly selected fields afterwards."""
        selected: List[Tuple[FilterType, str]] = []

        def on_field_selected(filter_type: FilterType, field: str) -> None:
            selected.append((filter_type, field))

        session = store.update_groups(session_id, lambda groups: change(groups, on_field_selected))
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        result = view(session)
        for filter_type, field in selected:
            catalog.warm(filter_type, field)
        return result

    @app.exception_handler(DeviceQueryError)
    async def handle_device_query_error(request: Request, exc: DeviceQueryError):
        status_code = ERROR_STATUS.get(type(exc), 500)
        message = exc.message
        if isinstance(exc, InventoryServiceError):
            # transport details stay in the log
            message = "Request to the inventory service failed."
        error = ErrorResponse(message=message, error_code=exc.error_code)
        return JSONResponse(status_code=status_code, content=error.model_dump())

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "Device Query Service"}

    # Catalog

    @app.get("/api/catalog")
    async def get_catalog():
        return {
            "catalog": catalog.catalog.model_dump(),
            "conditions": {t.value: [c.value for c in conditions_for(t)] for t in FilterType},
            "loading": catalog.loading,
        }

    @app.post("/api/catalog/refresh")
    def refresh_catalog():
        """Reload the catalog and give blank blocks in every session their default field."""
        refreshed = catalog.refresh()
        repaired = store.repair_all(lambda groups: fill_blank_fields(groups, refreshed))
        if repaired:
            logger.info(f"Filled blank fields in {repaired} sessions")
        return {"catalog": refreshed.model_dump(), "loading": catalog.loading}

    @app.get("/api/catalog/values")
    async def get_field_values(type: FilterType, field: str):
        return {
            "values": [option.model_dump() for option in catalog.values_for(type, field)],
            "loading": catalog.loading,
        }

    # Sessions

    @app.get("/api/sessions/stats")
    async def get_session_stats():
        """Get session store statistics."""
        return store.get_stats()

    @app.post("/api/sessions/cleanup")
    async def cleanup_old_sessions():
        """Clean up old sessions."""
        cleaned_count = store.cleanup_old_sessions()
        return {"message": f"Cleaned up {cleaned_count} old sessions"}

    @app.post("/api/sessions", response_model=SessionView)
    async def create_session():
        session = store.create_session()
        logger.info(f"Created editing session {session.id}")
        return view(session)

    @app.get("/api/sessions/{session_id}", response_model=SessionView)
    async def get_session(session_id: str):
        return view(require_session(session_id))

    @app.delete("/api/sessions/{session_id}")
    async def delete_session(session_id: str):
        if not store.delete_session(session_id):
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return {"message": f"Session {session_id} deleted"}

    @app.get("/api/sessions/{session_id}/summary")
    async def get_summary(session_id: str, maxLength: Optional[int] = None):
        session = require_session(session_id)
        max_length = settings.summary_max_length if maxLength is None else maxLength
        return {"summary": summarize(session.groups, max_length)}

    @app.post("/api/sessions/{session_id}/groups", response_model=SessionView)
    async def create_group(session_id: str):
        return commit(session_id, lambda groups, _: add_group(groups))

    @app.patch("/api/sessions/{session_id}/groups/{group_id}", response_model=SessionView)
    async def patch_group(session_id: str, group_id: str, patch: GroupPatch):
        changes = patch.model_dump(exclude_none=True)
        return commit(session_id, lambda groups, _: update_group(groups, group_id, changes))

    @app.delete("/api/sessions/{session_id}/groups/{group_id}", response_model=SessionView)
    async def delete_group(session_id: str, group_id: str):
        return commit(session_id, lambda groups, _: remove_group(groups, group_id))

    @app.delete("/api/sessions/{session_id}/groups/{group_id}/blocks", response_model=SessionView)
    async def clear_group(session_id: str, group_id: str):
        return commit(session_id, lambda groups, _: remove_all_blocks_in_group(groups, group_id))

    @app.post("/api/sessions/{session_id}/groups/{group_id}/blocks", response_model=SessionView)
    def create_block(session_id: str, group_id: str, body: BlockCreate):
        return commit(
            session_id,
            lambda groups, on_field_selected: add_block(
                groups, group_id, body.type, catalog.catalog, on_field_selected=on_field_selected
            ),
        )

    @app.patch("/api/sessions/{session_id}/groups/{group_id}/blocks/{block_id}", response_model=SessionView)
    def patch_block(session_id: str, group_id: str, block_id: str, patch: BlockPatch):
        changes = patch.model_dump(exclude_unset=True)

        def change(groups: List[FilterGroup], on_field_selected) -> List[FilterGroup]:
            updated_groups = update_block(groups, group_id, block_id, changes, on_field_selected=on_field_selected)
            updated = find_block(updated_groups, group_id, block_id)
            if updated is not None and not is_condition_allowed(updated.type, updated.conditionType):
                raise QueryValidationError(
                    f"Condition '{updated.conditionType.value}' is not available for {updated.type.value} filters."
                )
            return updated_groups

        return commit(session_id, change)

    @app.delete("/api/sessions/{session_id}/groups/{group_id}/blocks/{block_id}", response_model=SessionView)
    async def delete_block(session_id: str, group_id: str, block_id: str):
        return commit(session_id, lambda groups, _: remove_block(groups, group_id, block_id))

    @app.post("/api/sessions/{session_id}/reset", response_model=SessionView)
    async def reset_session(session_id: str):
        return commit(session_id, lambda groups, _: reset_all())

    @app.post("/api/sessions/{session_id}/query", response_model=DeviceListResponse)
    def run_query(session_id: str, body: Optional[PageRequest] = None):
        session = require_session(session_id)
        body = body or PageRequest()
        return executor.execute(session.groups, session.guard, page=body.page, size=body.size)

    @app.post("/api/sessions/{session_id}/templates", response_model=QueryTemplate)
    def save_template(session_id: str, body: SaveTemplateRequest):
        session = require_session(session_id)
        groups = session.groups
        template_id = session.source_template_id if body.mode == "save" else None
        template = executor.save_template(groups, body.name, body.description, template_id=template_id)
        if template.id is not None:
            store.mark_saved(session_id, groups, template.id, template.name)
        return template

    @app.post("/api/sessions/{session_id}/templates/{template_id}/load", response_model=SessionView)
    def load_template_into_session(session_id: str, template_id: int):
        require_session(session_id)
        template, groups = load_template(client.get_template(template_id))
        session = store.load_template(session_id, groups, template.id or template_id, template.name)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        logger.info(f"Loaded template {template_id} into session {session_id}")
        return view(session)

    # Templates

    @app.get("/api/templates", response_model=TemplateListResponse)
    def list_templates(page: int = 1, size: Optional[int] = None):
        return executor.list_templates(page=page, size=size)

    @app.delete("/api/templates/{template_id}")
    def delete_template(template_id: int):
        executor.delete_template(template_id)
        return {"message": f"Template {template_id} deleted"}

    @app.post("/api/templates/{template_id}/execute", response_model=DeviceListResponse)
    def execute_template(template_id: int, body: Optional[PageRequest] = None):
        body = body or PageRequest()
        guard = template_guard(template_id)
        return executor.execute_template(template_id, guard, page=body.page, size=body.size)

    return app


# Configure logging
settings = get_settings()
logging.basicConfig(level=settings.log_level)

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
