"""COGS (Cost of Goods Sold) resolution.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from storeprofit.domain.schemas import LineItem


def unit_cost(key: str | None, cogs_map: Mapping[str, Any]) -> float:
    """Configured per-unit cost for a cost-model key; 0.0 if missing or not a number."""
    if not key:
        return 0.0
    value = cogs_map.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return 0.0
    try:
        cost = float(value)
    except ValueError:
        return 0.0
    return cost if math.isfinite(cost) else 0.0


def compute_cogs_for_line_item(item: LineItem, cogs_map: Mapping[str, Any]) -> float:
    """COGS = unit cost x quantity.

    Args:
        item: Order line item (key resolved variant -> product -> title)
        cogs_map: Cost-model key -> unit cost (USD)

    Returns:
        Line COGS, 0.0 when the item has no quantity or no configured cost

    """
    if item.quantity <= 0:
        return 0.0
    return unit_cost(item.config_key, cogs_map) * item.quantity


__all__ = ["compute_cogs_for_line_item", "unit_cost"]
