"""Turns webhook notifications into :class:`SwapEvent` objects.

Two notification shapes are understood:

* ``events.swap`` with ``tokenInputs`` / ``tokenOutputs`` / ``nativeInput`` /
  ``nativeOutput`` entries carrying raw amounts and decimals;
* ``tokenTransfers`` / ``nativeTransfers`` with ``fromUserAccount`` and
  ``toUserAccount`` entries carrying UI amounts.

Only the first sold and the first bought leg belonging to the monitored wallet
are kept. Unparseable amounts degrade to zero, as do amounts beyond a u64 and
decimals beyond 255, which makes the event incomplete; structurally invalid
documents raise :class:`ParseError`.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from .errors import ParseError
from .models import SwapEvent, TokenAmount
from .tokens import MAX_DECIMALS, MAX_RAW_AMOUNT, NATIVE_DECIMALS, NATIVE_SYMBOL, decimals_of, to_raw

logger = logging.getLogger(__name__)

DecimalsLookup = Callable[[str], int]


class RawTokenAmount(BaseModel):
    tokenAmount: Any = None
    decimals: Any = None


class TokenLeg(BaseModel):
    userAccount: Optional[str] = None
    mint: Optional[str] = None
    rawTokenAmount: Optional[RawTokenAmount] = None


class NativeLeg(BaseModel):
    account: Optional[str] = None
    amount: Any = None


class SwapSection(BaseModel):
    tokenInputs: Optional[List[TokenLeg]] = None
    tokenOutputs: Optional[List[TokenLeg]] = None
    nativeInput: Optional[NativeLeg] = None
    nativeOutput: Optional[NativeLeg] = None


class EventsSection(BaseModel):
    swap: Optional[SwapSection] = None


class TokenTransfer(BaseModel):
    fromUserAccount: Optional[str] = None
    toUserAccount: Optional[str] = None
    mint: Optional[str] = None
    tokenAddress: Optional[str] = None
    tokenAmount: Any = None
    rawTokenAmount: Optional[RawTokenAmount] = None

    @property
    def token_id(self) -> Optional[str]:
        return self.mint or self.tokenAddress


class NativeTransfer(BaseModel):
    fromUserAccount: Optional[str] = None
    toUserAccount: Optional[str] = None
    amount: Any = None


class TransactionPayload(BaseModel):
    signature: Optional[str] = None
    events: Optional[EventsSection] = None
    tokenTransfers: Optional[List[TokenTransfer]] = None
    nativeTransfers: Optional[List[NativeTransfer]] = None


class WebhookDocument(BaseModel):
    transaction: TransactionPayload


def _parse_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if 0 < value <= MAX_RAW_AMOUNT else 0
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return 0
    # Compare before int() so exponents like 1e99999999 are never expanded.
    if not parsed.is_finite() or parsed <= 0 or parsed > MAX_RAW_AMOUNT:
        return 0
    return int(parsed)


def _parse_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not parsed.is_finite() or parsed <= 0 or parsed > MAX_RAW_AMOUNT:
        return Decimal(0)
    return parsed


def _raw_leg(token_id: str, raw: Optional[RawTokenAmount]) -> TokenAmount:
    if raw is None:
        return TokenAmount(token_id=token_id, raw_amount=0, decimals=0)
    decimals = _parse_int(raw.decimals) if raw.decimals is not None else None
    if decimals is None or decimals > MAX_DECIMALS:
        return TokenAmount(token_id=token_id, raw_amount=0, decimals=0)
    return TokenAmount(token_id=token_id, raw_amount=_parse_int(raw.tokenAmount), decimals=decimals)


def _native_leg(amount: Any) -> TokenAmount:
    return TokenAmount(token_id=NATIVE_SYMBOL, raw_amount=_parse_int(amount), decimals=NATIVE_DECIMALS)


def _transfer_leg(transfer: TokenTransfer, lookup: DecimalsLookup) -> TokenAmount:
    token_id = transfer.token_id or ""
    if transfer.rawTokenAmount is not None:
        return _raw_leg(token_id, transfer.rawTokenAmount)
    decimals = lookup(token_id)
    if not 0 <= decimals <= MAX_DECIMALS:
        return TokenAmount(token_id=token_id, raw_amount=0, decimals=0)
    return TokenAmount(token_id=token_id, raw_amount=to_raw(_parse_decimal(transfer.tokenAmount), decimals), decimals=decimals)


def _swap_legs(swap: SwapSection, wallet: str) -> Tuple[Optional[TokenAmount], Optional[TokenAmount]]:
    sold_candidates: List[TokenAmount] = [
        _raw_leg(leg.mint or "", leg.rawTokenAmount) for leg in swap.tokenInputs or [] if leg.userAccount == wallet
    ]
    if swap.nativeInput is not None and swap.nativeInput.account == wallet:
        sold_candidates.append(_native_leg(swap.nativeInput.amount))

    bought_candidates: List[TokenAmount] = [
        _raw_leg(leg.mint or "", leg.rawTokenAmount) for leg in swap.tokenOutputs or [] if leg.userAccount == wallet
    ]
    if swap.nativeOutput is not None and swap.nativeOutput.account == wallet:
        bought_candidates.append(_native_leg(swap.nativeOutput.amount))

    return next(iter(sold_candidates), None), next(iter(bought_candidates), None)


def _transfer_legs(
    transaction: TransactionPayload, wallet: str, lookup: DecimalsLookup
) -> Tuple[Optional[TokenAmount], Optional[TokenAmount]]:
    sold: Optional[TokenAmount] = None
    bought: Optional[TokenAmount] = None
    for transfer in transaction.tokenTransfers or []:
        if sold is None and transfer.fromUserAccount == wallet and transfer.toUserAccount != wallet:
            sold = _transfer_leg(transfer, lookup)
        elif bought is None and transfer.toUserAccount == wallet and transfer.fromUserAccount != wallet:
            bought = _transfer_leg(transfer, lookup)
    if sold is None:
        for native in transaction.nativeTransfers or []:
            if native.fromUserAccount == wallet and native.toUserAccount != wallet:
                sold = _native_leg(native.amount)
                break
    return sold, bought


def parse_payload(payload: Any) -> TransactionPayload:
    """Validates the notification document and returns its transaction object."""
    if isinstance(payload, list):
        if not payload:
            raise ParseError("notification batch is empty")
        payload = payload[0]
    if not isinstance(payload, dict):
        raise ParseError(f"notification must be a JSON object, got {type(payload).__name__}")
    try:
        if "transaction" in payload:
            return WebhookDocument.model_validate(payload).transaction
        if "events" in payload or "tokenTransfers" in payload:
            return TransactionPayload.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ParseError(f"invalid notification at {location}: {first['msg']}") from exc
    raise ParseError("notification has no transaction object")


def normalize(payload: Any, monitored_wallet_id: str, lookup: Optional[DecimalsLookup] = None) -> SwapEvent:
    transaction = parse_payload(payload)
    lookup = lookup or decimals_of

    sold: Optional[TokenAmount] = None
    bought: Optional[TokenAmount] = None
    if transaction.events is not None and transaction.events.swap is not None:
        sold, bought = _swap_legs(transaction.events.swap, monitored_wallet_id)
    if sold is None or bought is None:
        transfer_sold, transfer_bought = _transfer_legs(transaction, monitored_wallet_id, lookup)
        sold = sold or transfer_sold
        bought = bought or transfer_bought

    event = SwapEvent(sold=sold, bought=bought, signature=transaction.signature)
    if sold is not None:
        logger.debug("sold %s of %s", sold.decimal_value, sold.token_id)
    if bought is not None:
        logger.debug("bought %s of %s", bought.decimal_value, bought.token_id)
    return event
