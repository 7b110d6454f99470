import unittest

from aiohttp.test_utils import TestClient, TestServer
from solders.keypair import Keypair

from swap_mirror.config import MirrorConfig
from swap_mirror.errors import QuoteError, QuoteErrorKind
from swap_mirror.ingest import NotificationDeduplicator, WebhookIngestor
from swap_mirror.server import ACKNOWLEDGEMENT, create_app
from swap_mirror.tokens import TokenMetadataResolver
from swap_mirror.wallet import KeypairWallet

MONITORED = "MonitoredWa11et1111111111111111111111111111"


def notification(signature="sig-1", owner=MONITORED):
    return {
        "transaction": {
            "signature": signature,
            "tokenTransfers": [
                {"fromUserAccount": owner, "toUserAccount": "pool", "mint": "MintA", "tokenAmount": 10},
                {"fromUserAccount": "pool", "toUserAccount": owner, "mint": "MintB", "tokenAmount": 5},
            ],
        }
    }


class FakeOrchestrator:
    def __init__(self, error=None):
        self.resolver = TokenMetadataResolver()
        self.events = []
        self.error = error

    async def replicate(self, event, policy, wallet, rpc):
        self.events.append(event)
        if self.error is not None:
            raise self.error
        return "mirrored-sig"


class NotificationDeduplicatorTests(unittest.TestCase):
    def test_repeated_key_within_ttl_is_dropped(self) -> None:
        now = [0.0]
        dedup = NotificationDeduplicator(ttl=10, clock=lambda: now[0])

        self.assertTrue(dedup.first_sighting("a"))
        self.assertFalse(dedup.first_sighting("a"))
        now[0] = 11.0
        self.assertTrue(dedup.first_sighting("a"))

    def test_size_is_bounded(self) -> None:
        dedup = NotificationDeduplicator(ttl=60, max_entries=2, clock=lambda: 0.0)

        for key in ("a", "b", "c"):
            dedup.first_sighting(key)

        self.assertEqual(len(dedup), 2)
        self.assertTrue(dedup.first_sighting("a"))


class WebhookIngestorTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.config = MirrorConfig(monitored_wallet=MONITORED)
        self.wallet = KeypairWallet(Keypair())

    async def test_duplicate_delivery_replicates_once(self) -> None:
        orchestrator = FakeOrchestrator()
        ingestor = WebhookIngestor(self.config, orchestrator, self.wallet, rpc=None)

        first = ingestor.accept(notification())
        second = ingestor.accept(notification())
        await ingestor.drain()

        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(len(orchestrator.events), 1)
        self.assertEqual(await first, "mirrored-sig")

    async def test_unrelated_or_malformed_notifications_are_skipped(self) -> None:
        orchestrator = FakeOrchestrator()
        ingestor = WebhookIngestor(self.config, orchestrator, self.wallet, rpc=None)

        self.assertIsNone(ingestor.accept(notification(owner="someone-else")))
        self.assertIsNone(ingestor.accept({"unexpected": True}))
        await ingestor.drain()

        self.assertEqual(orchestrator.events, [])

    async def test_replication_failure_is_contained(self) -> None:
        orchestrator = FakeOrchestrator(error=QuoteError(QuoteErrorKind.NETWORK, "down"))
        ingestor = WebhookIngestor(self.config, orchestrator, self.wallet, rpc=None)

        task = ingestor.accept(notification())

        self.assertIsNone(await task)


class WebhookServerTests(unittest.IsolatedAsyncioTestCase):
    async def test_always_acknowledges(self) -> None:
        orchestrator = FakeOrchestrator()
        ingestor = WebhookIngestor(MirrorConfig(monitored_wallet=MONITORED), orchestrator, KeypairWallet(Keypair()), rpc=None)

        async with TestClient(TestServer(create_app(ingestor))) as client:
            ok = await client.post("/webhook", json=notification())
            garbage = await client.post("/webhook", data=b"not json", headers={"Content-Type": "application/json"})
            ok_body = await ok.json()
            garbage_body = await garbage.json()
            await ingestor.drain()

        self.assertEqual(ok.status, 200)
        self.assertEqual(ok_body, ACKNOWLEDGEMENT)
        self.assertEqual(garbage.status, 200)
        self.assertEqual(garbage_body, ACKNOWLEDGEMENT)
        self.assertEqual(len(orchestrator.events), 1)

    async def test_extreme_amounts_are_acknowledged_and_dropped(self) -> None:
        orchestrator = FakeOrchestrator()
        ingestor = WebhookIngestor(MirrorConfig(monitored_wallet=MONITORED), orchestrator, KeypairWallet(Keypair()), rpc=None)
        huge_decimals = {
            "transaction": {
                "signature": "sig-decimals",
                "events": {
                    "swap": {
                        "tokenInputs": [
                            {"userAccount": MONITORED, "mint": "MintA", "rawTokenAmount": {"tokenAmount": "10", "decimals": 1_000_000}}
                        ],
                        "tokenOutputs": [
                            {"userAccount": MONITORED, "mint": "MintB", "rawTokenAmount": {"tokenAmount": "5", "decimals": 6}}
                        ],
                    }
                },
            }
        }
        huge_amount = notification(signature="sig-amount")
        huge_amount["transaction"]["tokenTransfers"][0]["tokenAmount"] = "1e99999999"

        async with TestClient(TestServer(create_app(ingestor))) as client:
            responses = [await client.post("/webhook", json=body) for body in (huge_decimals, huge_amount)]
            bodies = [await response.json() for response in responses]
            await ingestor.drain()

        self.assertEqual([response.status for response in responses], [200, 200])
        self.assertEqual(bodies, [ACKNOWLEDGEMENT, ACKNOWLEDGEMENT])
        self.assertEqual(orchestrator.events, [])


if __name__ == "__main__":
    unittest.main()
