import asyncio
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from .config import MirrorConfig, ReplicationPolicy
from .errors import IncompleteSwapError, ReplicationError
from .http_client import HttpClient
from .jupiter import JupiterQuoteClient, JupiterSwapBuilder
from .models import ReplicationAttempt, ReplicationState, SwapEvent, TokenAmount
from .submitter import TransactionSubmitter
from .tokens import TokenMetadataResolver, to_raw
from .wallet import WalletCapability

logger = logging.getLogger(__name__)

AttemptObserver = Callable[[ReplicationAttempt], None]


class ReplicationOrchestrator:
    """Mirrors one detected swap: size, quote, build, sign and submit.

    Nothing is retried. Signing and broadcasting are serialized per wallet so a
    wallet never has two transactions racing for the same blockhash window.
    Quoting, building and confirmation run concurrently.
    """

    def __init__(
        self,
        quotes: JupiterQuoteClient,
        builder: JupiterSwapBuilder,
        submitter: TransactionSubmitter,
        resolver: Optional[TokenMetadataResolver] = None,
        observer: Optional[AttemptObserver] = None,
        http: Optional[HttpClient] = None,
    ) -> None:
        self.quotes = quotes
        self.builder = builder
        self.submitter = submitter
        self.resolver = resolver or TokenMetadataResolver()
        self.observer = observer
        self.http = http
        self._submit_locks: Dict[str, asyncio.Lock] = {}

    @classmethod
    def from_config(cls, config: MirrorConfig, observer: Optional[AttemptObserver] = None) -> "ReplicationOrchestrator":
        http = HttpClient(timeout=config.request_timeout, user_agent="swap-mirror/1.0", api_key=config.api_key)
        return cls(
            quotes=JupiterQuoteClient(http, config.quote_url),
            builder=JupiterSwapBuilder(http, config.swap_url),
            submitter=TransactionSubmitter(commitment=config.commitment, confirm_timeout=config.confirm_timeout),
            resolver=TokenMetadataResolver(config.token_decimals),
            observer=observer,
            http=http,
        )

    def close(self) -> None:
        if self.http is not None:
            self.http.close()

    def mirrored_amount(self, sold: TokenAmount, policy: ReplicationPolicy) -> int:
        amount = sold.decimal_value * Decimal(str(policy.size_fraction))
        return to_raw(amount, self.resolver.decimals_of(sold.token_id))

    def _lock_for(self, wallet: WalletCapability) -> asyncio.Lock:
        return self._submit_locks.setdefault(str(wallet.public_id()), asyncio.Lock())

    def _advance(self, attempt: ReplicationAttempt, state: ReplicationState) -> None:
        logger.info("replication %s: %s -> %s", attempt.event.signature or "-", attempt.state.value, state.value)
        attempt.state = state

    def _finish(self, attempt: ReplicationAttempt) -> None:
        if self.observer is not None:
            self.observer(attempt)

    async def _run(self, attempt: ReplicationAttempt, policy: ReplicationPolicy, wallet: WalletCapability, rpc: Any) -> str:
        event = attempt.event
        sold, bought = event.sold, event.bought
        if sold is None or bought is None or not event.is_complete:
            raise IncompleteSwapError("swap event lacks a positive sold and bought leg")

        attempt.input_raw_amount = self.mirrored_amount(sold, policy)
        if attempt.input_raw_amount <= 0:
            raise IncompleteSwapError(f"mirrored amount of {sold.token_id} rounds to zero")

        self._advance(attempt, ReplicationState.QUOTING)
        quote = await self.quotes.get_quote(sold.token_id, bought.token_id, attempt.input_raw_amount, policy.slippage_bps)

        self._advance(attempt, ReplicationState.BUILDING)
        blob = await self.builder.build_transaction(wallet.public_id(), quote, policy.priority)

        async with self._lock_for(wallet):
            self._advance(attempt, ReplicationState.SIGNING)
            handle = await self.submitter.submit(blob, wallet, rpc)
        attempt.signature = handle.signature
        self._advance(attempt, ReplicationState.SUBMITTED)
        return await self.submitter.confirm(rpc, handle)

    async def replicate(self, event: SwapEvent, policy: ReplicationPolicy, wallet: WalletCapability, rpc: Any) -> str:
        attempt = ReplicationAttempt(event=event)
        try:
            signature = await self._run(attempt, policy, wallet, rpc)
        except ReplicationError as exc:
            attempt.error = exc
            if attempt.signature is None:
                attempt.signature = getattr(exc, "signature", None)
            self._advance(attempt, ReplicationState.FAILED)
            self._finish(attempt)
            raise
        self._advance(attempt, ReplicationState.CONFIRMED)
        self._finish(attempt)
        return signature
