"""
Bundler-advertised EntryPoint registry.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from ..errors import (
    AmbiguousEntryPointError,
    NoEntryPointError,
    PipelineStage,
    UnsupportedEntryPointError,
)

logger = logging.getLogger(__name__)


class EntryPointRegistry:
    """
    Caches the EntryPoints a bundler supports for the registry's lifetime.

    The list is fetched at most once; concurrent callers wait on the same
    lock and receive the cached value. A failed fetch is not cached, so the
    next caller tries again.
    """

    def __init__(self, fetch: Callable[[], Awaitable[List[str]]]) -> None:
        self._fetch = fetch
        self._entry_points: Optional[Tuple[str, ...]] = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._entry_points is not None

    async def get(self) -> Tuple[str, ...]:
        if self._entry_points is not None:
            return self._entry_points

        async with self._lock:
            if self._entry_points is None:
                entry_points = await self._fetch()
                self._entry_points = tuple(entry_points or ())
                logger.info(f"Bundler supports EntryPoints: {list(self._entry_points)}")
        return self._entry_points

    async def is_supported(self, entry_point: str) -> bool:
        supported = await self.get()
        return entry_point.lower() in {ep.lower() for ep in supported}


async def select_entry_point(
    registry: EntryPointRegistry,
    entry_point: Optional[str],
    *,
    stage: PipelineStage,
    operation: str,
    require_unique: bool = False,
) -> str:
    """
    Pick the EntryPoint for an operation and verify the bundler supports it.

    Without an explicit ``entry_point`` the first supported one is used; with
    ``require_unique`` the bundler must support exactly one.
    """
    if entry_point is None:
        supported = await registry.get()
        if not supported:
            raise NoEntryPointError(
                "bundler reported no supported EntryPoints - use different bundler URL",
                stage=stage,
                operation=operation,
            )
        if require_unique and len(supported) != 1:
            raise AmbiguousEntryPointError(
                "bundler supports multiple EntryPoints - must specify one to use",
                stage=stage,
                operation=operation,
                details={"supported": list(supported)},
            )
        entry_point = supported[0]

    if not await registry.is_supported(entry_point):
        raise UnsupportedEntryPointError(entry_point, stage=stage, operation=operation)
    return entry_point
