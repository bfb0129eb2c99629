"""Save and load filter trees as query templates."""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..models import ConditionType, FilterBlock, FilterGroup, LogicalOperator, QueryTemplate, new_id
from .field_sync import backfill_field_key, synced_block
from .value_normalizer import normalize_for_transport, normalize_on_input

logger = logging.getLogger(__name__)


def to_transport_groups(groups: List[FilterGroup], active_only: bool = True) -> List[FilterGroup]:
    """Deep copy ``groups`` into the shape sent over the wire.

    Inactive blocks are dropped when ``active_only`` is set, and a group that
    loses all of its blocks that way is dropped too. Groups that were already
    empty are kept. Every value is flattened to a single string.
    """
    prepared = []
    for group in groups:
        blocks = [block for block in group.blocks if block.isActive or not active_only]
        if group.blocks and not blocks:
            logger.debug(f"Dropping group {group.id}: all blocks inactive")
            continue

        encoded = []
        for block in blocks:
            block = synced_block(block.model_copy(deep=True))
            encoded.append(block.model_copy(update={
                "value": normalize_for_transport(block.value, block.conditionType),
            }))
        prepared.append(group.model_copy(update={"blocks": encoded}))
    return prepared


def to_persisted(groups: List[FilterGroup], name: str, description: str = "",
                 template_id: Optional[int] = None, active_only: bool = True) -> QueryTemplate:
    """Build the template to store. ``template_id`` is only set when updating an existing one."""
    return QueryTemplate(
        id=template_id,
        name=name,
        description=description or "",
        groups=to_transport_groups(groups, active_only=active_only),
    )


def _decode_groups(raw_groups: Any) -> List[Any]:
    if isinstance(raw_groups, (str, bytes)):
        try:
            raw_groups = json.loads(raw_groups)
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not decode template groups, loading empty tree: {e}")
            return []
    if not isinstance(raw_groups, list):
        return []
    return raw_groups


def _as_dict(item: Any) -> Optional[Dict[str, Any]]:
    if isinstance(item, Mapping):
        return dict(item)
    if hasattr(item, "model_dump"):
        return item.model_dump()
    return None


def _load_value(value: Any, condition_type: Any) -> Any:
    if isinstance(value, (list, tuple)):
        value = [str(item) for item in value if item is not None]
    elif value is not None and not isinstance(value, str):
        value = str(value)

    try:
        return normalize_on_input(value, condition_type)
    except ValueError:
        # unknown condition kind, left for model validation to reject
        return value


def _load_block(raw_block: Any) -> Optional[FilterBlock]:
    data = _as_dict(raw_block)
    if data is None:
        logger.warning(f"Skipping filter block that is not an object: {raw_block!r}")
        return None

    data = backfill_field_key(data)
    data["id"] = str(data["id"]) if data.get("id") else new_id()
    data["conditionType"] = data.get("conditionType") or ConditionType.EQUAL
    data["operator"] = data.get("operator") or LogicalOperator.AND
    data["value"] = _load_value(data.get("value"), data["conditionType"])
    if data.get("isActive") is None:
        data["isActive"] = True

    try:
        return FilterBlock(**data)
    except ValidationError as e:
        logger.warning(f"Skipping invalid filter block: {raw_block} - Error: {e}")
        return None


def _load_group(raw_group: Any) -> Optional[FilterGroup]:
    data = _as_dict(raw_group)
    if data is None:
        logger.warning(f"Skipping filter group that is not an object: {raw_group!r}")
        return None

    raw_blocks = data.get("blocks")
    if not isinstance(raw_blocks, list):
        raw_blocks = []
    blocks = [block for block in (_load_block(b) for b in raw_blocks) if block is not None]

    try:
        operator = LogicalOperator(data.get("operator") or LogicalOperator.AND)
    except ValueError:
        logger.warning(f"Unknown group operator {data.get('operator')!r}, defaulting to 'and'")
        operator = LogicalOperator.AND

    group_id = str(data["id"]) if data.get("id") else new_id()
    return FilterGroup(id=group_id, blocks=blocks, operator=operator)


def _decode_template(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not decode template, loading empty tree: {e}")
            return None
    return _as_dict(raw)


def from_persisted(raw: Any) -> List[FilterGroup]:
    """Rebuild the editable tree from a stored template.

    Never raises on malformed data: undecodable or non-list groups become an
    empty tree, missing ids are minted and field/key pairs are repaired.
    """
    data = _decode_template(raw)
    if data is None:
        return []

    groups = []
    for raw_group in _decode_groups(data.get("groups")):
        group = _load_group(raw_group)
        if group is not None:
            groups.append(group)
    return groups


def load_template(raw: Any) -> Tuple[QueryTemplate, List[FilterGroup]]:
    """Split a stored template into its metadata and its editable tree."""
    data = _decode_template(raw) or {}
    groups = from_persisted(data)

    template_id = data.get("id")
    try:
        template_id = int(template_id) if template_id is not None else None
    except (TypeError, ValueError):
        template_id = None

    template = QueryTemplate(
        id=template_id,
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        groups=groups,
    )
    return template, groups
