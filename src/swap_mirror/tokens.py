"""Token identifiers and decimal precision lookups."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import Dict, Mapping, Optional

NATIVE_SYMBOL = "SOL"
NATIVE_DECIMALS = 9
WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

# Unknown mints are assumed to use the SPL default precision.
DEFAULT_DECIMALS = 9

# Mint decimals are a u8 and raw token amounts a u64 on chain.
MAX_DECIMALS = 255
MAX_RAW_AMOUNT = 2**64 - 1

KNOWN_DECIMALS: Dict[str, int] = {
    NATIVE_SYMBOL: NATIVE_DECIMALS,
    WSOL_MINT: NATIVE_DECIMALS,
    USDC_MINT: 6,
    USDT_MINT: 6,
}


def decimals_of(token_id: str) -> int:
    return KNOWN_DECIMALS.get(token_id, DEFAULT_DECIMALS)


def to_mint(token_id: str) -> str:
    """Translate the native alias to the wrapped SOL mint."""
    return WSOL_MINT if token_id == NATIVE_SYMBOL else token_id


def to_raw(amount: Decimal, decimals: int) -> int:
    """Scale a UI amount to raw units, truncating. Out-of-range results are 0."""
    if not 0 <= decimals <= MAX_DECIMALS or amount > MAX_RAW_AMOUNT:
        return 0
    scaled = amount * (Decimal(10) ** decimals)
    if scaled > MAX_RAW_AMOUNT:
        return 0
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


class TokenMetadataResolver:
    """Static decimals table, optionally extended with configured mints."""

    def __init__(self, extra_decimals: Optional[Mapping[str, int]] = None) -> None:
        self.table: Dict[str, int] = dict(KNOWN_DECIMALS)
        for mint, decimals in (extra_decimals or {}).items():
            self.table[mint] = int(decimals)

    def decimals_of(self, token_id: str) -> int:
        return self.table.get(token_id, DEFAULT_DECIMALS)
