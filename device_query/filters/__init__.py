"""Filter tree engine: normalization, field/key sync, mutations, templates and summaries."""

from .field_sync import backfill_field_key, sync_field_key, synced_block
from .filter_mutations import (
    add_block,
    add_group,
    default_field_for,
    fill_blank_fields,
    find_block,
    find_group,
    remove_all_blocks_in_group,
    remove_block,
    remove_group,
    reset_all,
    update_block,
    update_group,
)
from .query_summary import summarize
from .template_serializer import from_persisted, load_template, to_persisted, to_transport_groups
from .value_normalizer import (
    needs_multi_value_upgrade,
    normalize_for_transport,
    normalize_on_input,
    split_tokens,
)

__all__ = [
    "add_block",
    "add_group",
    "backfill_field_key",
    "default_field_for",
    "fill_blank_fields",
    "find_block",
    "find_group",
    "from_persisted",
    "load_template",
    "needs_multi_value_upgrade",
    "normalize_for_transport",
    "normalize_on_input",
    "remove_all_blocks_in_group",
    "remove_block",
    "remove_group",
    "reset_all",
    "split_tokens",
    "summarize",
    "sync_field_key",
    "synced_block",
    "to_persisted",
    "to_transport_groups",
    "update_block",
    "update_group",
]
