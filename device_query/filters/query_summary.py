"""Short human-readable rendering of a filter tree."""

from typing import List

from ..models import VALUELESS_CONDITIONS, ConditionType, FilterBlock, FilterGroup, FilterType, LogicalOperator

DEFAULT_MAX_LENGTH = 100
EMPTY_SUMMARY = "No query conditions"
ELLIPSIS = "..."
MAX_LISTED_VALUES = 2

CONDITION_SYMBOLS = {
    ConditionType.EQUAL: "=",
    ConditionType.NOT_EQUAL: "≠",
    ConditionType.CONTAINS: " contains ",
    ConditionType.NOT_CONTAINS: " not contains ",
    ConditionType.IN: "∈",
    ConditionType.NOT_IN: "∉",
    ConditionType.GREATER_THAN: ">",
    ConditionType.LESS_THAN: "<",
}

VALUELESS_SUFFIXES = {
    ConditionType.EXISTS: " exists",
    ConditionType.NOT_EXISTS: " not exists",
    ConditionType.IS_EMPTY: " is empty",
    ConditionType.IS_NOT_EMPTY: " is not empty",
}


def operator_text(operator: LogicalOperator) -> str:
    return "OR" if operator == LogicalOperator.OR else "AND"


def field_label(block: FilterBlock) -> str:
    name = block.field or block.key or ""
    if block.type == FilterType.NODE_LABEL:
        return f"label[{name}]"
    if block.type == FilterType.TAINT:
        return f"taint[{name}]"
    return name


def value_text(block: FilterBlock) -> str:
    if isinstance(block.value, list):
        shown = ", ".join(block.value[:MAX_LISTED_VALUES])
        more = ELLIPSIS if len(block.value) > MAX_LISTED_VALUES else ""
        return f"[{shown}{more}]"
    return block.value or ""


def block_summary(block: FilterBlock) -> str:
    label = field_label(block)
    if block.conditionType in VALUELESS_CONDITIONS:
        return f"{label}{VALUELESS_SUFFIXES[block.conditionType]}"
    return f"{label}{CONDITION_SYMBOLS.get(block.conditionType, '')}{value_text(block)}"


def group_summary(group: FilterGroup) -> str:
    separator = f" {operator_text(group.operator)} "
    return f"({separator.join(block_summary(block) for block in group.blocks)})"


def summarize(groups: List[FilterGroup], max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Render ``groups`` as text no longer than ``max_length``.

    Each group's operator joins its own blocks and also joins it to the
    next group. Overlong text is cut at ``max_length - 3`` characters,
    wherever that falls, and ``...`` is appended.
    """
    if not groups:
        return EMPTY_SUMMARY

    parts = []
    for index, group in enumerate(groups):
        text = group_summary(group)
        if index < len(groups) - 1:
            text = f"{text} {operator_text(group.operator)}"
        parts.append(text)
    summary = " ".join(parts)

    if len(summary) > max_length:
        summary = summary[:max(max_length - len(ELLIPSIS), 0)] + ELLIPSIS
    return summary
