"""Conversion between user input and the canonical block value.

``in``/``notIn`` blocks carry an ordered list of trimmed, non-empty tokens.
Every other condition carries a single string.
"""

import re
import logging
from typing import Any, List

from ..models import BlockValue, ConditionType, MULTI_VALUE_CONDITIONS

logger = logging.getLogger(__name__)

TOKEN_SEPARATORS = re.compile(r"[\n,;\s]+")
TRANSPORT_SEPARATOR = ","


def is_multi_value(condition_type: ConditionType) -> bool:
    return ConditionType(condition_type) in MULTI_VALUE_CONDITIONS


def split_tokens(raw: Any) -> List[str]:
    """Split free text or an already tokenized list into value tokens.

    Duplicates are kept and first-appearance order is preserved.
    """
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = raw
    else:
        items = [raw]

    tokens = []
    for item in items:
        if item is None:
            continue
        for token in TOKEN_SEPARATORS.split(str(item)):
            token = token.strip()
            if token:
                tokens.append(token)
    return tokens


def normalize_on_input(raw: Any, condition_type: ConditionType) -> BlockValue:
    """Canonical value for ``raw`` under ``condition_type``."""
    if is_multi_value(condition_type):
        return split_tokens(raw)

    if isinstance(raw, (list, tuple)):
        if len(raw) > 1:
            logger.debug(f"Keeping first of {len(raw)} values for {ConditionType(condition_type).value}")
        return str(raw[0]) if raw and raw[0] is not None else ""
    if raw is None:
        return ""
    return str(raw)


def normalize_for_transport(value: Any, condition_type: ConditionType) -> str:
    """Flatten a block value to the single string the remote side expects."""
    if is_multi_value(condition_type):
        if isinstance(value, (list, tuple)):
            return TRANSPORT_SEPARATOR.join(str(item) for item in value)
        return "" if value is None else str(value)
    return normalize_on_input(value, condition_type)


def needs_multi_value_upgrade(raw: Any, condition_type: ConditionType) -> bool:
    """True when assigning ``raw`` must switch a block to ``in``."""
    return (
        isinstance(raw, (list, tuple))
        and len(raw) > 1
        and not is_multi_value(condition_type)
    )
