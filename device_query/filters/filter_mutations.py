"""Mutation engine for filter trees.

Every operation takes the current list of groups and returns a new list.
Groups and blocks are copied on write; the input tree is never modified.
Unknown group or block ids leave the tree unchanged.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..models import (
    ConditionType,
    FilterBlock,
    FilterCatalog,
    FilterGroup,
    FilterType,
    LogicalOperator,
    new_id,
)
from .field_sync import sync_field_key
from .value_normalizer import needs_multi_value_upgrade, normalize_on_input

logger = logging.getLogger(__name__)

FieldSelectedCallback = Callable[[FilterType, str], None]

IMMUTABLE_KEYS = {"id"}

# keys where an explicit None means "clear"
CLEARABLE_KEYS = {"field", "key", "value"}


def find_group(groups: List[FilterGroup], group_id: str) -> Optional[FilterGroup]:
    for group in groups:
        if group.id == group_id:
            return group
    return None


def find_block(groups: List[FilterGroup], group_id: str, block_id: str) -> Optional[FilterBlock]:
    group = find_group(groups, group_id)
    if group is None:
        return None
    for block in group.blocks:
        if block.id == block_id:
            return block
    return None


def default_field_for(filter_type: FilterType, catalog: Optional[FilterCatalog]) -> str:
    """First field offered by the catalog for ``filter_type``, or ``""`` if none loaded yet."""
    if catalog is None:
        return ""
    options = catalog.options_for(filter_type)
    return options[0].value if options else ""


def _replace_group(groups: List[FilterGroup], group_id: str,
                   change: Callable[[FilterGroup], FilterGroup]) -> List[FilterGroup]:
    return [change(group) if group.id == group_id else group for group in groups]


def add_group(groups: List[FilterGroup]) -> List[FilterGroup]:
    """Append an empty group joined with AND."""
    new_group = FilterGroup(id=new_id(), blocks=[], operator=LogicalOperator.AND)
    logger.debug(f"Adding filter group {new_group.id}")
    return list(groups) + [new_group]


def update_group(groups: List[FilterGroup], group_id: str, patch: Dict[str, Any]) -> List[FilterGroup]:
    """Merge ``patch`` into a group.

    A new operator is written down to every block in the group.
    """
    if find_group(groups, group_id) is None:
        return list(groups)

    update = {k: v for k, v in patch.items() if k not in IMMUTABLE_KEYS}
    if "operator" in update:
        update["operator"] = LogicalOperator(update["operator"])

    def change(group: FilterGroup) -> FilterGroup:
        blocks = update.get("blocks", group.blocks)
        if "operator" in update:
            blocks = [block.model_copy(update={"operator": update["operator"]}) for block in blocks]
        return group.model_copy(update={**update, "blocks": list(blocks)})

    return _replace_group(groups, group_id, change)


def add_block(groups: List[FilterGroup], group_id: str, filter_type: FilterType,
              catalog: Optional[FilterCatalog] = None,
              on_field_selected: Optional[FieldSelectedCallback] = None) -> List[FilterGroup]:
    """Append a new ``equal`` block using the first catalog field for its type.

    The block inherits the group's operator. ``on_field_selected`` is asked to
    warm the value list of the chosen field.
    """
    group = find_group(groups, group_id)
    if group is None:
        return list(groups)

    filter_type = FilterType(filter_type)
    default_field = default_field_for(filter_type, catalog)
    identifiers = sync_field_key({"field": default_field})
    new_block = FilterBlock(
        id=new_id(),
        type=filter_type,
        conditionType=ConditionType.EQUAL,
        value="",
        operator=group.operator,
        isActive=True,
        **identifiers,
    )
    logger.debug(f"Adding {filter_type.value} block to group {group_id} with operator {group.operator.value}")

    if default_field and on_field_selected is not None:
        on_field_selected(filter_type, default_field)

    return _replace_group(
        groups, group_id,
        lambda g: g.model_copy(update={"blocks": list(g.blocks) + [new_block]}),
    )


def _prepare_block_patch(block: FilterBlock, patch: Dict[str, Any]) -> Dict[str, Any]:
    update = sync_field_key({
        k: v for k, v in patch.items()
        if k not in IMMUTABLE_KEYS and (v is not None or k in CLEARABLE_KEYS)
    })
    for name in ("field", "key"):
        if name in update and update[name] is None:
            update[name] = ""
    if "type" in update:
        update["type"] = FilterType(update["type"])
    if "operator" in update:
        update["operator"] = LogicalOperator(update["operator"])

    condition = ConditionType(update.get("conditionType", block.conditionType))
    if "value" in update:
        raw = update["value"]
        if needs_multi_value_upgrade(raw, condition):
            logger.debug(f"Upgrading block {block.id} from {condition.value} to in for a multi-value assignment")
            condition = ConditionType.IN
        update["value"] = normalize_on_input(raw, condition)
    elif condition != block.conditionType:
        update["value"] = normalize_on_input(block.value, condition)
    update["conditionType"] = condition
    return update


def update_block(groups: List[FilterGroup], group_id: str, block_id: str, patch: Dict[str, Any],
                 on_field_selected: Optional[FieldSelectedCallback] = None) -> List[FilterGroup]:
    """Merge ``patch`` into a block after syncing field/key and normalizing the value."""
    block = find_block(groups, group_id, block_id)
    if block is None:
        return list(groups)

    update = _prepare_block_patch(block, patch)
    updated = block.model_copy(update=update)

    if on_field_selected is not None and updated.field and updated.field != block.field:
        on_field_selected(updated.type, updated.field)

    return _replace_group(
        groups, group_id,
        lambda g: g.model_copy(update={
            "blocks": [updated if b.id == block_id else b for b in g.blocks],
        }),
    )


def remove_block(groups: List[FilterGroup], group_id: str, block_id: str) -> List[FilterGroup]:
    if find_block(groups, group_id, block_id) is None:
        return list(groups)
    return _replace_group(
        groups, group_id,
        lambda g: g.model_copy(update={"blocks": [b for b in g.blocks if b.id != block_id]}),
    )


def remove_all_blocks_in_group(groups: List[FilterGroup], group_id: str) -> List[FilterGroup]:
    if find_group(groups, group_id) is None:
        return list(groups)
    return _replace_group(groups, group_id, lambda g: g.model_copy(update={"blocks": []}))


def remove_group(groups: List[FilterGroup], group_id: str) -> List[FilterGroup]:
    return [group for group in groups if group.id != group_id]


def reset_all() -> List[FilterGroup]:
    return []


def fill_blank_fields(groups: List[FilterGroup], catalog: FilterCatalog) -> List[FilterGroup]:
    """Give blocks created before the catalog loaded their default field."""
    def fill(group: FilterGroup) -> FilterGroup:
        if all(block.field for block in group.blocks):
            return group
        blocks = []
        for block in group.blocks:
            default_field = default_field_for(block.type, catalog) if not block.field else ""
            if default_field:
                block = block.model_copy(update=sync_field_key({"field": default_field}))
            blocks.append(block)
        return group.model_copy(update={"blocks": blocks})

    return [fill(group) for group in groups]
