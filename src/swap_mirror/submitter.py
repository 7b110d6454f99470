"""Signs aggregator transactions with a fresh blockhash and submits them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Optional, Union

from solana.exceptions import SolanaRpcException
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.message import Message, MessageV0, to_bytes_versioned
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .errors import SubmitError, SubmitErrorKind
from .models import SignedTransactionHandle, UnsignedTransactionBlob
from .wallet import WalletCapability

logger = logging.getLogger(__name__)

NETWORK_ERRORS = (SolanaRpcException, OSError)


def rebind_blockhash(message: Union[Message, MessageV0], blockhash: Hash) -> Union[Message, MessageV0]:
    if isinstance(message, MessageV0):
        return MessageV0(
            message.header,
            message.account_keys,
            blockhash,
            message.instructions,
            message.address_table_lookups,
        )
    header = message.header
    return Message.new_with_compiled_instructions(
        header.num_required_signatures,
        header.num_readonly_signed_accounts,
        header.num_readonly_unsigned_accounts,
        message.account_keys,
        blockhash,
        message.instructions,
    )


class TransactionSubmitter:
    def __init__(self, commitment: str = "confirmed", confirm_timeout: float = 60.0, poll_interval: float = 0.5) -> None:
        self.commitment = Commitment(commitment)
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval

    def decode(self, blob: UnsignedTransactionBlob, wallet: WalletCapability) -> VersionedTransaction:
        try:
            transaction = VersionedTransaction.from_bytes(blob.data)
        except Exception as exc:
            raise SubmitError(SubmitErrorKind.DECODE, "blob is not a versioned transaction", cause=exc) from exc

        message = transaction.message
        if message.header.num_required_signatures != 1:
            raise SubmitError(
                SubmitErrorKind.DECODE,
                f"transaction requires {message.header.num_required_signatures} signatures, expected 1",
            )
        if not message.account_keys or message.account_keys[0] != wallet.public_id():
            raise SubmitError(SubmitErrorKind.DECODE, "transaction fee payer is not the bot wallet")
        return transaction

    def sign(
        self,
        transaction: VersionedTransaction,
        wallet: WalletCapability,
        blockhash: Hash,
        last_valid_block_height: Optional[int] = None,
    ) -> SignedTransactionHandle:
        message = rebind_blockhash(transaction.message, blockhash)
        signature = wallet.sign(to_bytes_versioned(message))
        signed = VersionedTransaction.populate(message, [signature])
        return SignedTransactionHandle(
            signature=str(signature),
            blockhash=str(blockhash),
            data=bytes(signed),
            last_valid_block_height=last_valid_block_height,
        )

    async def _latest_blockhash(self, rpc: Any) -> Any:
        try:
            response = await rpc.get_latest_blockhash(self.commitment)
        except RPCException as exc:
            raise SubmitError(SubmitErrorKind.NETWORK, f"node refused the blockhash request: {exc}", cause=exc) from exc
        except NETWORK_ERRORS as exc:
            raise SubmitError(SubmitErrorKind.NETWORK, "failed to fetch latest blockhash", cause=exc) from exc
        return response.value

    async def _send(self, rpc: Any, handle: SignedTransactionHandle) -> str:
        opts = TxOpts(skip_preflight=False, preflight_commitment=self.commitment)
        try:
            response = await rpc.send_raw_transaction(handle.data, opts=opts)
        except RPCException as exc:
            raise SubmitError(SubmitErrorKind.REJECTED, "node rejected the transaction", cause=exc) from exc
        except NETWORK_ERRORS as exc:
            # The node may have received it; report the id so callers can look it up.
            raise SubmitError(
                SubmitErrorKind.NETWORK, "transaction submission failed", cause=exc, signature=handle.signature
            ) from exc
        return str(response.value)

    async def _confirm(self, rpc: Any, signature: str, last_valid_block_height: Optional[int]) -> None:
        try:
            response = await asyncio.wait_for(
                rpc.confirm_transaction(
                    Signature.from_string(signature),
                    self.commitment,
                    sleep_seconds=self.poll_interval,
                    last_valid_block_height=last_valid_block_height,
                ),
                timeout=self.confirm_timeout,
            )
        except (asyncio.TimeoutError, UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as exc:
            raise SubmitError(
                SubmitErrorKind.TIMEOUT,
                f"transaction not confirmed within {self.confirm_timeout}s",
                cause=exc,
                signature=signature,
            ) from exc
        except RPCException as exc:
            raise SubmitError(
                SubmitErrorKind.NETWORK, f"node refused the status request: {exc}", cause=exc, signature=signature
            ) from exc
        except NETWORK_ERRORS as exc:
            raise SubmitError(
                SubmitErrorKind.NETWORK, "confirmation polling failed", cause=exc, signature=signature
            ) from exc

        statuses = response.value or []
        status = statuses[0] if statuses else None
        if status is None:
            raise SubmitError(SubmitErrorKind.TIMEOUT, "transaction status unavailable", signature=signature)
        if status.err is not None:
            raise SubmitError(SubmitErrorKind.REJECTED, f"transaction failed on chain: {status.err}", signature=signature)

    async def submit(self, blob: UnsignedTransactionBlob, wallet: WalletCapability, rpc: Any) -> SignedTransactionHandle:
        """Signs ``blob`` against a fresh blockhash and broadcasts it once.

        The returned handle carries the signature the node reported; it is
        already on the wire, so callers should record it before confirming.
        """
        transaction = self.decode(blob, wallet)
        latest = await self._latest_blockhash(rpc)
        handle = self.sign(transaction, wallet, latest.blockhash, latest.last_valid_block_height)
        signature = await self._send(rpc, handle)
        logger.info("submitted transaction %s", signature)
        return replace(handle, signature=signature)

    async def confirm(self, rpc: Any, handle: SignedTransactionHandle) -> str:
        await self._confirm(rpc, handle.signature, handle.last_valid_block_height)
        logger.info("confirmed transaction %s", handle.signature)
        return handle.signature

    async def sign_and_submit(self, blob: UnsignedTransactionBlob, wallet: WalletCapability, rpc: Any) -> str:
        handle = await self.submit(blob, wallet, rpc)
        return await self.confirm(rpc, handle)
