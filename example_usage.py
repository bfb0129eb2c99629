#!/usr/bin/env python3
"""Example usage of the filter engine, without a running inventory service."""

import json

from device_query.filters import (
    add_block,
    add_group,
    from_persisted,
    summarize,
    to_persisted,
    update_block,
    update_group,
)
from device_query.models import FilterCatalog, FilterOption, FilterType, LogicalOperator


def demo_filter_engine():
    """Build a small tree, save it and load it back."""
    print("🚀 Device Query Engine Demo")
    print("=" * 50)

    catalog = FilterCatalog(
        deviceFields=[FilterOption(id="ip", label="IP address", value="ip")],
        nodeLabelKeys=[FilterOption(id="zone", label="Zone", value="topology.kubernetes.io/zone")],
    )
    warmed = []

    groups = add_group([])
    group_id = groups[0].id
    groups = add_block(groups, group_id, FilterType.DEVICE, catalog, on_field_selected=lambda t, f: warmed.append(f))
    groups = add_block(groups, group_id, FilterType.NODE_LABEL, catalog, on_field_selected=lambda t, f: warmed.append(f))

    ip_block, zone_block = groups[0].blocks
    groups = update_block(groups, group_id, ip_block.id, {"conditionType": "in", "value": "10.0.0.1, 10.0.0.2;10.0.0.3"})
    groups = update_block(groups, group_id, zone_block.id, {"value": ["zone-a"]})
    groups = update_group(groups, group_id, {"operator": LogicalOperator.OR})

    print(f"🔥 Value lists warmed for: {', '.join(warmed)}")
    print(f"🔍 Summary: {summarize(groups)}")

    template = to_persisted(groups, name="Zone A web hosts", description="demo")
    print("\n📖 Persisted template:")
    print(json.dumps(template.model_dump(mode="json"), indent=2))

    reloaded = from_persisted(template.model_dump(mode="json"))
    print(f"\n✅ Reloaded summary: {summarize(reloaded)}")


if __name__ == "__main__":
    demo_filter_engine()
