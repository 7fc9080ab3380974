"""Notification params sanitization.

Params are stored as a small JSON object next to each notification and are
only ever used to fill in translated message templates. Alerting must not
fail because of a sloppy payload, so instead of rejecting bad params we cut
them down to something safe to store:

- only allowlisted keys are kept
- values must be str, int, float, bool or Decimal (stored as str), or a flat
  list of those; nested objects and None are dropped
- strings are truncated to MAX_STRING_LENGTH, lists to MAX_LIST_ITEMS
- trailing keys are dropped until the JSON encoding fits MAX_PARAMS_BYTES
"""

import json
import logging
from decimal import Decimal
from typing import Any, Optional

logger = logging.getLogger(__name__)

MAX_STRING_LENGTH = 200
MAX_LIST_ITEMS = 50
MAX_PARAMS_BYTES = 2048

ALLOWED_PARAM_KEYS = frozenset(
    {
        "count",
        "max_days_overdue",
        "days_overdue",
        "days_until_due",
        "amount",
        "formatted_amount",
        "description",
        "category_name",
        "subcategory_name",
        "account_name",
        "month_key",
        "transaction_id",
        "transaction_ids",
        "category_id",
        "subcategory_id",
        "average_amount",
        "average_days_late",
        "late_occurrences",
        "last_triggered_at",
        "title_key",
        "body_key",
    }
)


def _clean_scalar(value: Any) -> Optional[Any]:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, str):
        return value[:MAX_STRING_LENGTH]
    return None


def _clean_value(value: Any) -> Optional[Any]:
    if isinstance(value, (list, tuple)):
        items = [_clean_scalar(item) for item in value[:MAX_LIST_ITEMS]]
        return [item for item in items if item is not None]
    return _clean_scalar(value)


def _encoded_size(params: dict[str, Any]) -> int:
    return len(json.dumps(params, separators=(",", ":")).encode("utf-8"))


def sanitize_params(params: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Return a storable copy of notification params.

    Args:
        params: Raw params from an action payload

    Returns:
        New dict containing only allowlisted keys with flat, size-limited values
    """
    if not isinstance(params, dict):
        return {}

    result: dict[str, Any] = {}
    dropped = []
    for key, value in params.items():
        if key not in ALLOWED_PARAM_KEYS:
            dropped.append(key)
            continue
        cleaned = _clean_value(value)
        if cleaned is None:
            dropped.append(key)
            continue
        result[key] = cleaned

    while result and _encoded_size(result) > MAX_PARAMS_BYTES:
        key = next(reversed(result))
        del result[key]
        dropped.append(key)

    if dropped:
        logger.warning("Dropped notification params: %s", ", ".join(sorted(map(str, dropped))))
    return result
