"""Recent transactions of the monitored wallet, read from the RPC node."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey

from .errors import ActivityError

logger = logging.getLogger(__name__)

RPC_ERRORS = (RPCException, SolanaRpcException, OSError)


@dataclass(frozen=True)
class ActivityRecord:
    signature: str
    slot: Optional[int] = None
    block_time: Optional[int] = None
    # False when the node returned no transaction for the signature.
    has_details: bool = False


def _block_time_text(block_time: int) -> str:
    stamp = datetime.fromtimestamp(block_time, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"{block_time} ({stamp})"


def describe(index: int, record: ActivityRecord) -> List[str]:
    lines = [f"Transaction #{index}: {record.signature}"]
    if not record.has_details:
        lines.append("  No details available")
        return lines
    if record.block_time is not None:
        lines.append(f"  Block time: {_block_time_text(record.block_time)}")
    if record.slot is not None:
        lines.append(f"  Slot: {record.slot}")
    return lines


async def recent_activity(rpc: Any, wallet: str, limit: int = 10) -> List[ActivityRecord]:
    """Lists the newest ``limit`` signatures of ``wallet`` with their slot and block time."""
    try:
        address = Pubkey.from_string(wallet)
    except ValueError as exc:
        raise ActivityError(f"{wallet!r} is not a valid wallet address") from exc

    try:
        response = await rpc.get_signatures_for_address(address, limit=limit)
    except RPC_ERRORS as exc:
        raise ActivityError(f"failed to list signatures for {wallet}: {exc}") from exc
    statuses = response.value or []
    logger.info("found %d transactions for %s", len(statuses), wallet)

    records: List[ActivityRecord] = []
    for status in statuses:
        try:
            details = await rpc.get_transaction(
                status.signature, encoding="json", max_supported_transaction_version=0
            )
        except RPC_ERRORS as exc:
            raise ActivityError(f"failed to fetch transaction {status.signature}: {exc}") from exc
        if details.value is None:
            records.append(ActivityRecord(signature=str(status.signature)))
            continue
        records.append(
            ActivityRecord(
                signature=str(status.signature),
                slot=details.value.slot,
                block_time=details.value.block_time,
                has_details=True,
            )
        )
    return records
