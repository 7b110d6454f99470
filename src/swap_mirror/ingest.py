"""Ingestion boundary: deduplicates notifications and schedules replications."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Set

from .config import MirrorConfig
from .errors import ParseError, ReplicationError
from .models import SwapEvent
from .normalizer import normalize
from .orchestrator import ReplicationOrchestrator
from .wallet import WalletCapability

logger = logging.getLogger(__name__)


class NotificationDeduplicator:
    """Remembers notification ids for ``ttl`` seconds, keeping at most ``max_entries``."""

    def __init__(self, ttl: float = 600.0, max_entries: int = 10_000, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._seen: "OrderedDict[str, float]" = OrderedDict()

    def _evict(self, now: float) -> None:
        while self._seen:
            key, seen_at = next(iter(self._seen.items()))
            if now - seen_at < self.ttl and len(self._seen) < self.max_entries:
                break
            del self._seen[key]

    def first_sighting(self, key: str) -> bool:
        now = self.clock()
        self._evict(now)
        if key in self._seen:
            return False
        self._seen[key] = now
        return True

    def __len__(self) -> int:
        return len(self._seen)


class WebhookIngestor:
    def __init__(
        self,
        config: MirrorConfig,
        orchestrator: ReplicationOrchestrator,
        wallet: WalletCapability,
        rpc: Any,
        deduplicator: Optional[NotificationDeduplicator] = None,
    ) -> None:
        self.config = config
        self.orchestrator = orchestrator
        self.wallet = wallet
        self.rpc = rpc
        self.deduplicator = deduplicator or NotificationDeduplicator(ttl=config.dedup_ttl)
        self._tasks: Set[asyncio.Task] = set()

    def accept(self, document: Any) -> Optional[asyncio.Task]:
        """Schedules a replication for ``document`` if it describes a new, complete swap."""
        try:
            event = normalize(document, self.config.monitored_wallet, self.orchestrator.resolver.decimals_of)
        except ParseError as exc:
            logger.warning("dropping notification: %s", exc)
            return None

        sold, bought = event.sold, event.bought
        if sold is None or bought is None or not event.is_complete:
            logger.info("notification %s has no complete swap for %s", event.signature or "-", self.config.monitored_wallet)
            return None
        if event.signature and not self.deduplicator.first_sighting(event.signature):
            logger.info("duplicate notification %s ignored", event.signature)
            return None

        logger.info(
            "detected swap %s: sold %s %s, bought %s %s",
            event.signature or "-",
            sold.decimal_value,
            sold.token_id,
            bought.decimal_value,
            bought.token_id,
        )
        task = asyncio.create_task(self._replicate(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _replicate(self, event: SwapEvent) -> Optional[str]:
        try:
            signature = await self.orchestrator.replicate(event, self.config.policy, self.wallet, self.rpc)
        except ReplicationError as exc:
            logger.warning("replication of %s failed: %s", event.signature or "-", exc)
            return None
        logger.info("replicated %s as %s", event.signature or "-", signature)
        return signature

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
