"""
Autoplay continuation.

Picks the next item when the queue has run dry: first among items related
to the one that just finished, then among plain search results for its
title. The pick is uniform over a small candidate window so chains do not
collapse onto the top-ranked near-duplicate.
"""

import random
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from chocomenta.domain.providers.exceptions import ResolverError
from chocomenta.domain.providers.resolver import ContentResolver

from .models import PlayableItem

DEFAULT_CANDIDATE_COUNT = 5


@dataclass(frozen=True)
class AutoplayPick:
    """An automatically selected item and the tier that produced it."""

    item: PlayableItem
    source: str  # 'related' | 'search'
    candidates: int


class AutoplayEngine:
    """Two-tier continuation: related items, then a title search."""

    def __init__(
        self,
        resolver: ContentResolver,
        candidate_count: int = DEFAULT_CANDIDATE_COUNT,
        rng: Optional[random.Random] = None,
    ):
        self.resolver = resolver
        self.candidate_count = candidate_count
        self._rng = rng or random.Random()

    async def _related(self, current: PlayableItem) -> list[PlayableItem]:
        try:
            return await self.resolver.search_related(
                current.external_id, limit=self.candidate_count
            )
        except ResolverError as e:
            logger.warning(f"Autoplay related lookup failed for {current.external_id}: {e}")
            return []

    async def _by_title(self, current: PlayableItem) -> list[PlayableItem]:
        if not current.title:
            return []
        try:
            return await self.resolver.search(current.title, limit=self.candidate_count)
        except ResolverError as e:
            logger.warning(f"Autoplay title search failed for {current.title!r}: {e}")
            return []

    async def continue_from(self, current: PlayableItem) -> Optional[AutoplayPick]:
        """Choose what plays after ``current``.

        Returns:
            The pick, or None when both tiers came back empty or failed
        """
        for source, lookup in (("related", self._related), ("search", self._by_title)):
            candidates = (await lookup(current))[: self.candidate_count]
            if candidates:
                item = self._rng.choice(candidates)
                logger.info(
                    f"Autoplay ({source}): picked {item.title!r} "
                    f"from {len(candidates)} candidates"
                )
                return AutoplayPick(item=item, source=source, candidates=len(candidates))
            logger.debug(f"Autoplay tier {source!r} returned no candidates")

        logger.info(f"Autoplay found nothing to follow {current.title!r}")
        return None
