import unittest
from types import SimpleNamespace

from solana.rpc.core import RPCException
from solders.keypair import Keypair
from solders.signature import Signature

from swap_mirror.activity import ActivityRecord, describe, recent_activity
from swap_mirror.cli import build_parser
from swap_mirror.errors import ActivityError


class HistoryRpc:
    def __init__(self, history, list_error=None):
        # history: (signature, details or None) pairs, newest first
        self.history = history
        self.list_error = list_error
        self.signature_requests = []
        self.transaction_requests = []

    async def get_signatures_for_address(self, account, limit=None):
        self.signature_requests.append((account, limit))
        if self.list_error is not None:
            raise self.list_error
        statuses = [SimpleNamespace(signature=signature) for signature, _ in self.history[:limit]]
        return SimpleNamespace(value=statuses)

    async def get_transaction(self, tx_sig, encoding="json", max_supported_transaction_version=None):
        self.transaction_requests.append((tx_sig, encoding, max_supported_transaction_version))
        details = dict(self.history)[tx_sig]
        return SimpleNamespace(value=details)


class RecentActivityTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.wallet = str(Keypair().pubkey())

    async def test_lists_slot_and_block_time(self) -> None:
        landed, pruned = Signature.new_unique(), Signature.new_unique()
        rpc = HistoryRpc([(landed, SimpleNamespace(slot=250_000_000, block_time=1_700_000_000)), (pruned, None)])

        records = await recent_activity(rpc, self.wallet)

        self.assertEqual(str(rpc.signature_requests[0][0]), self.wallet)
        self.assertEqual(rpc.signature_requests[0][1], 10)
        self.assertEqual([request[1:] for request in rpc.transaction_requests], [("json", 0), ("json", 0)])
        self.assertEqual(
            records,
            [
                ActivityRecord(str(landed), slot=250_000_000, block_time=1_700_000_000, has_details=True),
                ActivityRecord(str(pruned)),
            ],
        )

    async def test_limit_is_forwarded(self) -> None:
        rpc = HistoryRpc([(Signature.new_unique(), None) for _ in range(5)])

        records = await recent_activity(rpc, self.wallet, limit=3)

        self.assertEqual(rpc.signature_requests[0][1], 3)
        self.assertEqual(len(records), 3)

    async def test_node_error_is_activity_error(self) -> None:
        rpc = HistoryRpc([], list_error=RPCException("node is behind"))

        with self.assertRaises(ActivityError):
            await recent_activity(rpc, self.wallet)

    async def test_invalid_wallet_is_activity_error(self) -> None:
        rpc = HistoryRpc([])

        with self.assertRaises(ActivityError):
            await recent_activity(rpc, "not-a-wallet")
        self.assertEqual(rpc.signature_requests, [])


class DescribeTests(unittest.TestCase):
    def test_transaction_with_details(self) -> None:
        record = ActivityRecord("sig-1", slot=250_000_000, block_time=1_700_000_000, has_details=True)

        self.assertEqual(
            describe(1, record),
            [
                "Transaction #1: sig-1",
                "  Block time: 1700000000 (2023-11-14T22:13:20Z)",
                "  Slot: 250000000",
            ],
        )

    def test_transaction_without_details(self) -> None:
        self.assertEqual(describe(2, ActivityRecord("sig-2")), ["Transaction #2: sig-2", "  No details available"])


class ParserTests(unittest.TestCase):
    def test_serve_is_the_default_command(self) -> None:
        self.assertEqual(build_parser().parse_args([]).command, "serve")

    def test_recent_command(self) -> None:
        args = build_parser().parse_args(["--log-level", "DEBUG", "recent", "--limit", "3"])

        self.assertEqual(args.command, "recent")
        self.assertEqual(args.limit, 3)
        self.assertEqual(args.log_level, "DEBUG")


if __name__ == "__main__":
    unittest.main()
