from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TokenAmount:
    token_id: str
    raw_amount: int
    decimals: int

    @property
    def decimal_value(self) -> Decimal:
        return Decimal(self.raw_amount) / (Decimal(10) ** self.decimals)


@dataclass(frozen=True)
class SwapEvent:
    sold: Optional[TokenAmount] = None
    bought: Optional[TokenAmount] = None
    signature: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        if self.sold is None or self.bought is None:
            return False
        return self.sold.decimal_value > 0 and self.bought.decimal_value > 0


@dataclass(frozen=True)
class Quote:
    """A route proposed by the aggregator.

    ``raw`` is the untouched response document; it is sent back verbatim when
    the swap transaction is requested so the aggregator sees the same route.
    """

    input_mint: str
    in_amount: int
    output_mint: str
    out_amount: int
    other_amount_threshold: int
    swap_mode: str
    slippage_bps: int
    price_impact_pct: Optional[str]
    route_plan: Optional[List[Dict[str, Any]]]
    raw: Dict[str, Any] = field(repr=False)


@dataclass(frozen=True)
class UnsignedTransactionBlob:
    data: bytes = field(repr=False)
    last_valid_block_height: Optional[int] = None


@dataclass(frozen=True)
class SignedTransactionHandle:
    signature: str
    blockhash: str
    data: bytes = field(repr=False)
    last_valid_block_height: Optional[int] = None


class ReplicationState(str, Enum):
    IDLE = "idle"
    QUOTING = "quoting"
    BUILDING = "building"
    SIGNING = "signing"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class ReplicationAttempt:
    event: SwapEvent
    state: ReplicationState = ReplicationState.IDLE
    input_raw_amount: Optional[int] = None
    signature: Optional[str] = None
    error: Optional[Exception] = None
