import asyncio
import base64
import json
from types import SimpleNamespace
from typing import Any, List, Optional

import requests
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction


def unsigned_transaction(payer: Pubkey) -> bytes:
    """A swap-like v0 transaction paid by ``payer`` with a placeholder signature."""
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Keypair().pubkey(), lamports=1_000))
    message = MessageV0.try_compile(payer, [ix], [], Hash.default())
    return bytes(VersionedTransaction.populate(message, [Signature.default()]))


def swap_response(payer: Pubkey) -> dict:
    return {
        "swapTransaction": base64.b64encode(unsigned_transaction(payer)).decode("ascii"),
        "lastValidBlockHeight": 279_000_000,
    }


def quote_response(in_mint: str = "A", out_mint: str = "B", in_amount: int = 9_000_000) -> dict:
    return {
        "inputMint": in_mint,
        "inAmount": str(in_amount),
        "outputMint": out_mint,
        "outAmount": "4500000",
        "otherAmountThreshold": "4455000",
        "swapMode": "ExactIn",
        "slippageBps": 100,
        "priceImpactPct": "0.0012",
        "routePlan": [{"swapInfo": {"ammKey": "route-amm", "label": "Whirlpool"}, "percent": 100}],
    }


def http_error(status: int, body: Any) -> requests.HTTPError:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body).encode("utf-8")
    return requests.HTTPError(f"{status} error", response=response)


class FakeHttp:
    def __init__(self, get_responses: Optional[List[Any]] = None, post_responses: Optional[List[Any]] = None) -> None:
        self.get_responses = list(get_responses or [])
        self.post_responses = list(post_responses or [])
        self.get_calls: List[Any] = []
        self.post_calls: List[Any] = []

    @staticmethod
    def _next(responses: List[Any]) -> Any:
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get_json(self, url, params=None):
        self.get_calls.append((url, params))
        return self._next(self.get_responses)

    def post_json(self, url, payload):
        self.post_calls.append((url, payload))
        return self._next(self.post_responses)


class FakeRpc:
    def __init__(
        self,
        send_error: Optional[Exception] = None,
        confirm_err: Any = None,
        confirm_delay: float = 0.0,
        blockhash_error: Optional[Exception] = None,
        confirm_error: Optional[Exception] = None,
    ) -> None:
        self.blockhash = Hash.new_unique()
        self.blockhash_error = blockhash_error
        self.send_error = send_error
        self.confirm_error = confirm_error
        self.confirm_err = confirm_err
        self.confirm_delay = confirm_delay
        self.calls: List[str] = []
        self.sent: List[bytes] = []

    async def get_latest_blockhash(self, commitment=None):
        self.calls.append("get_latest_blockhash")
        if self.blockhash_error is not None:
            raise self.blockhash_error
        return SimpleNamespace(value=SimpleNamespace(blockhash=self.blockhash, last_valid_block_height=100))

    async def send_raw_transaction(self, txn, opts=None):
        self.calls.append("send_raw_transaction")
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(txn)
        return SimpleNamespace(value=VersionedTransaction.from_bytes(txn).signatures[0])

    async def confirm_transaction(self, tx_sig, commitment=None, sleep_seconds=0.5, last_valid_block_height=None):
        self.calls.append("confirm_transaction")
        if self.confirm_delay:
            await asyncio.sleep(self.confirm_delay)
        if self.confirm_error is not None:
            raise self.confirm_error
        return SimpleNamespace(value=[SimpleNamespace(err=self.confirm_err)])
