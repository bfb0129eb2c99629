"""Keeps a block's ``field`` and ``key`` attributes identical."""

from typing import Any, Dict

from ..models import FilterBlock


def sync_field_key(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Mirror whichever of ``field``/``key`` a partial update carries.

    When both are present and disagree, ``field`` wins.
    """
    synced = dict(patch)
    has_field = "field" in synced
    has_key = "key" in synced

    if has_field and not has_key:
        synced["key"] = synced["field"]
    elif has_key and not has_field:
        synced["field"] = synced["key"]
    elif has_field and has_key and synced["field"] != synced["key"]:
        synced["key"] = synced["field"]
    return synced


def backfill_field_key(data: Dict[str, Any]) -> Dict[str, Any]:
    """Fill a missing ``field`` or ``key`` on raw block data loaded from storage."""
    filled = dict(data)
    field = filled.get("field") or ""
    key = filled.get("key") or ""
    identifier = str(field or key)
    filled["field"] = identifier
    filled["key"] = identifier
    return filled


def synced_block(block: FilterBlock) -> FilterBlock:
    """Return ``block`` with field/key repaired, or ``block`` itself if already consistent."""
    if block.field == block.key and block.field is not None:
        return block
    repaired = backfill_field_key({"field": block.field, "key": block.key})
    return block.model_copy(update=repaired)
