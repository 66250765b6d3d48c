"""Export gate — only the pro tier may export.

The gate knows nothing about the exporters it wraps; it only checks the
tier it was given and either calls through or refuses.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, TypeVar

from loguru import logger

from commap.errors import AuthorizationDenied
from commap.quota import PRO_TIER

T = TypeVar("T")

UPGRADE_PROMPT = "Pro feature. Upgrade to export your data."


def is_authorized(tier: str) -> bool:
    return tier == PRO_TIER


class ExportGate:
    """Authorizes export calls for a single caller tier."""

    def __init__(self, tier: str, prompt: str = UPGRADE_PROMPT) -> None:
        self.tier = tier
        self.prompt = prompt

    def check(self) -> None:
        """Raise AuthorizationDenied unless the tier is pro."""
        if not is_authorized(self.tier):
            logger.info(f"Export refused for tier '{self.tier}'")
            raise AuthorizationDenied(self.tier, self.prompt)

    def run(self, exporter: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Invoke ``exporter`` exactly once if authorized.

        Raises:
            AuthorizationDenied: For non-pro tiers; the exporter is not called.
        """
        self.check()
        return exporter(*args, **kwargs)


def gated(exporter: Callable[..., T], prompt: str = UPGRADE_PROMPT) -> Callable[..., T]:
    """Wrap an exporter so it takes the caller's tier as first argument."""

    @functools.wraps(exporter)
    def wrapper(tier: str, *args: Any, **kwargs: Any) -> T:
        return ExportGate(tier, prompt).run(exporter, *args, **kwargs)

    return wrapper
