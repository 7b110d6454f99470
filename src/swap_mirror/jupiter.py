import asyncio
import base64
import binascii
import logging
from typing import Any, Dict, Optional

from requests import HTTPError, RequestException
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .config import PriorityPolicy
from .errors import BuildError, BuildErrorKind, QuoteError, QuoteErrorKind
from .http_client import HttpClient
from .models import Quote, UnsignedTransactionBlob
from .tokens import to_mint

logger = logging.getLogger(__name__)

NO_ROUTE_STATUSES = (400, 404)


def _required_int(response: Dict[str, Any], key: str) -> int:
    value = response.get(key)
    if value is None:
        raise ValueError(f"quote response missing {key}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"quote field {key} is not an integer: {value!r}") from None


def _required_str(response: Dict[str, Any], key: str) -> str:
    value = response.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"quote response missing {key}")
    return value


def _error_body(exc: HTTPError) -> Optional[Dict[str, Any]]:
    if exc.response is None:
        return None
    try:
        body = exc.response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class JupiterQuoteClient:
    def __init__(self, http: HttpClient, quote_url: str) -> None:
        self.http = http
        self.quote_url = quote_url.rstrip("/")

    def quote_params(self, in_mint: str, out_mint: str, amount: int, slippage_bps: int) -> Dict[str, str]:
        return {
            "inputMint": to_mint(in_mint),
            "outputMint": to_mint(out_mint),
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
        }

    def parse_quote(self, response: Any, slippage_bps: int) -> Quote:
        if not isinstance(response, dict):
            raise ValueError("quote response is not a JSON object")
        route_plan = response.get("routePlan")
        if route_plan is not None and not isinstance(route_plan, list):
            raise ValueError("quote routePlan is not a list")
        price_impact = response.get("priceImpactPct")
        return Quote(
            input_mint=_required_str(response, "inputMint"),
            in_amount=_required_int(response, "inAmount"),
            output_mint=_required_str(response, "outputMint"),
            out_amount=_required_int(response, "outAmount"),
            other_amount_threshold=_required_int(response, "otherAmountThreshold"),
            swap_mode=_required_str(response, "swapMode"),
            slippage_bps=int(response.get("slippageBps", slippage_bps)),
            price_impact_pct=None if price_impact is None else str(price_impact),
            route_plan=route_plan,
            raw=dict(response),
        )

    async def get_quote(self, input_token: str, output_token: str, input_raw_amount: int, slippage_bps: int) -> Quote:
        if input_raw_amount <= 0:
            raise ValueError(f"input amount must be positive, got {input_raw_amount}")
        params = self.quote_params(input_token, output_token, input_raw_amount, slippage_bps)
        try:
            response = await asyncio.to_thread(self.http.get_json, self.quote_url, params)
        except HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            body = _error_body(exc)
            if status in NO_ROUTE_STATUSES and body is not None:
                raise QuoteError(QuoteErrorKind.NO_ROUTE, str(body.get("error") or body), cause=exc) from exc
            raise QuoteError(QuoteErrorKind.NETWORK, f"quote request returned status {status}", cause=exc) from exc
        except ValueError as exc:
            raise QuoteError(QuoteErrorKind.MALFORMED, "quote response was not valid JSON", cause=exc) from exc
        except RequestException as exc:
            raise QuoteError(QuoteErrorKind.NETWORK, "quote request failed", cause=exc) from exc

        if isinstance(response, dict) and (response.get("error") or response.get("errorCode")):
            raise QuoteError(QuoteErrorKind.NO_ROUTE, str(response.get("error") or response.get("errorCode")))
        try:
            quote = self.parse_quote(response, slippage_bps)
        except (TypeError, ValueError) as exc:
            raise QuoteError(QuoteErrorKind.MALFORMED, str(exc), cause=exc) from exc
        if quote.out_amount == 0:
            raise QuoteError(QuoteErrorKind.NO_ROUTE, "aggregator quoted a zero output amount")

        logger.info(
            "quote %s %s -> %s %s (min %s, impact %s)",
            quote.in_amount,
            quote.input_mint,
            quote.out_amount,
            quote.output_mint,
            quote.other_amount_threshold,
            quote.price_impact_pct,
        )
        return quote


class JupiterSwapBuilder:
    def __init__(self, http: HttpClient, swap_url: str) -> None:
        self.http = http
        self.swap_url = swap_url.rstrip("/")

    def swap_request(self, signer_public_id: Pubkey, quote: Quote, priority: PriorityPolicy) -> Dict[str, Any]:
        return {
            "userPublicKey": str(signer_public_id),
            "quoteResponse": quote.raw,
            "prioritizationFeeLamports": {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": priority.max_lamports,
                    "priorityLevel": priority.priority_level,
                }
            },
            "dynamicComputeUnitLimit": True,
        }

    def parse_swap_response(self, response: Any) -> UnsignedTransactionBlob:
        if not isinstance(response, dict):
            raise BuildError(BuildErrorKind.MISSING_PAYLOAD, "swap response is not a JSON object")

        simulation_error = response.get("simulationError")
        if simulation_error is not None:
            if isinstance(simulation_error, dict):
                reason = str(simulation_error.get("error") or simulation_error.get("errorCode") or simulation_error)
            else:
                reason = str(simulation_error)
            raise BuildError(
                BuildErrorKind.SIMULATION_REJECTED,
                f"transaction simulation failed: {reason}",
                reason=reason,
            )

        encoded = response.get("swapTransaction")
        if not isinstance(encoded, str) or not encoded:
            raise BuildError(BuildErrorKind.MISSING_PAYLOAD, "swap response has no swapTransaction")

        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise BuildError(BuildErrorKind.DECODE, "swapTransaction is not valid base64", cause=exc) from exc
        try:
            VersionedTransaction.from_bytes(data)
        except Exception as exc:
            raise BuildError(BuildErrorKind.DECODE, "swapTransaction is not a versioned transaction", cause=exc) from exc

        height = response.get("lastValidBlockHeight")
        return UnsignedTransactionBlob(data=data, last_valid_block_height=height if isinstance(height, int) else None)

    async def build_transaction(
        self, signer_public_id: Pubkey, quote: Quote, priority: PriorityPolicy
    ) -> UnsignedTransactionBlob:
        payload = self.swap_request(signer_public_id, quote, priority)
        try:
            response = await asyncio.to_thread(self.http.post_json, self.swap_url, payload)
        except ValueError as exc:
            raise BuildError(BuildErrorKind.NETWORK, "swap response was not valid JSON", cause=exc) from exc
        except RequestException as exc:
            raise BuildError(BuildErrorKind.NETWORK, "swap request failed", cause=exc) from exc

        blob = self.parse_swap_response(response)
        logger.info("built swap transaction (%d bytes) for %s", len(blob.data), signer_public_id)
        return blob
