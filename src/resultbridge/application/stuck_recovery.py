"""Last-resort recovery for tasks the provider never marks as finished.

Some provider tasks stay non-terminal in the record history long after the
media was uploaded. This strategy builds candidate media URLs from the
provider's observed storage naming convention and probes them with HEAD
requests. The guesses are speculative and the outcome is not deterministic,
so the strategy is off unless ``STUCK_RECOVERY_ENABLED`` is set.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator
from datetime import UTC, datetime

import inject

from src.resultbridge.domain.repositories import ProviderRepository
from src.setup.provider_config import ProviderSettings, get_provider_settings

logger = logging.getLogger(__name__)

# Upload timestamps observed trailing the record creation time.
_TIMESTAMP_OFFSETS = (0, 1, 2, -1)


class StuckTaskRecovery:
    def __init__(
        self,
        provider: ProviderRepository | None = None,
        settings: ProviderSettings | None = None,
    ) -> None:
        self._provider = provider or inject.instance(ProviderRepository)
        self._settings = settings or get_provider_settings()

    @property
    def enabled(self) -> bool:
        return self._settings.STUCK_RECOVERY_ENABLED

    def is_stuck(self, created_at: datetime | None, now: datetime | None = None) -> bool:
        if created_at is None:
            return False
        now = now or datetime.now(UTC)
        return (now - created_at).total_seconds() > self._settings.STUCK_TASK_AGE_SECONDS

    def candidate_urls(self, task_id: str, created_at: datetime) -> Iterator[str]:
        base_ts = int(created_at.timestamp())
        pairs = itertools.product(_TIMESTAMP_OFFSETS, self._settings.STUCK_GUESS_CANDIDATES)
        seen: set[str] = set()
        for offset, candidate in pairs:
            url = self._settings.STUCK_GUESS_URL_TEMPLATE.format(
                task_id=task_id,
                timestamp=base_ts + offset,
                candidate=candidate,
            )
            if url not in seen:
                seen.add(url)
                yield url

    async def recover(self, task_id: str, created_at: datetime) -> str | None:
        """Return the first guessed URL that answers HEAD successfully."""
        guesses = itertools.islice(
            self.candidate_urls(task_id, created_at), self._settings.STUCK_GUESS_MAX_ATTEMPTS
        )
        for url in guesses:
            if await self._provider.probe_url(url):
                logger.info("Recovered stuck task by URL probe", extra={"task_id": task_id, "url": url})
                return url
        logger.info("Stuck task recovery found nothing", extra={"task_id": task_id})
        return None
