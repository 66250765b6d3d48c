"""Quota policy — how many point markers a tier may place.

The free tier may hold strictly fewer than ``FREE_POINT_LIMIT`` Point
features; every other tier is unlimited. Line and polygon drawing are never
limited.
"""

from __future__ import annotations

from typing import Iterable

from commap.features import Feature

FREE_TIER = "free"
PRO_TIER = "pro"
FREE_POINT_LIMIT = 20


def point_count(features: Iterable[Feature]) -> int:
    return sum(1 for f in features if f.geometry_type == "Point")


def can_add_point(
    features: Iterable[Feature],
    tier: str,
    limit: int = FREE_POINT_LIMIT,
) -> bool:
    """Whether another Point may be drawn.

    Args:
        features: The current canonical features.
        tier: Subscription tier ("free", "pro", ...).
        limit: Free-tier point cap.
    """
    if tier != FREE_TIER:
        return True
    return point_count(features) < limit


def drawing_tools(
    features: Iterable[Feature],
    tier: str,
    limit: int = FREE_POINT_LIMIT,
) -> dict[str, bool]:
    """Drawing tool options for the current collection.

    Re-derive on every collection change: once the cap is reached the marker
    tool disappears while lines and polygons stay available.
    """
    return {
        "marker": can_add_point(features, tier, limit),
        "polyline": True,
        "polygon": True,
        "circle": False,
        "circlemarker": False,
        "rectangle": False,
    }


def limit_notice(limit: int = FREE_POINT_LIMIT) -> str:
    return (
        f"You reached the Free tier limit of {limit} markers. "
        "Upgrade on the Pricing page for unlimited markers."
    )
