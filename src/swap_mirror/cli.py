import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from aiohttp import web
from dotenv import load_dotenv
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment

from .activity import describe, recent_activity
from .config import MirrorConfig, load_config
from .errors import ActivityError, ConfigError
from .ingest import WebhookIngestor
from .log import configure_logging
from .orchestrator import ReplicationOrchestrator
from .server import create_app
from .wallet import KeypairWallet, load_wallet

logger = logging.getLogger(__name__)


def _rpc_client(config: MirrorConfig) -> AsyncClient:
    return AsyncClient(config.rpc_url, commitment=Commitment(config.commitment), timeout=config.request_timeout)


async def serve(config: MirrorConfig, wallet: KeypairWallet) -> None:
    rpc = _rpc_client(config)
    orchestrator = ReplicationOrchestrator.from_config(config)
    ingestor = WebhookIngestor(config, orchestrator, wallet, rpc)
    runner = web.AppRunner(create_app(ingestor))
    await runner.setup()
    try:
        site = web.TCPSite(runner, config.host, config.port)
        await site.start()
        logger.info("mirroring %s; webhook listening on http://%s:%d/webhook", config.monitored_wallet, config.host, config.port)
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        orchestrator.close()
        await rpc.close()


async def show_recent(config: MirrorConfig, limit: int) -> None:
    rpc = _rpc_client(config)
    try:
        records = await recent_activity(rpc, config.monitored_wallet, limit)
    finally:
        await rpc.close()
    print(f"Found {len(records)} transactions for {config.monitored_wallet}")
    for index, record in enumerate(records, start=1):
        print("\n".join(describe(index, record)))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Mirror swaps of a monitored Solana wallet")
    parser.add_argument("--config", type=Path, default=Path("swap_mirror.yaml"))
    parser.add_argument("--env-file", type=Path, default=Path(".env"))
    parser.add_argument("--keypair", type=Path, default=None, help="Solana CLI keypair file for the bot wallet")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", type=Path, default=None)
    commands = parser.add_subparsers(dest="command")
    parser.set_defaults(command="serve")
    commands.add_parser("serve", help="listen for webhook notifications and mirror swaps (default)")
    recent = commands.add_parser("recent", help="list the monitored wallet's latest transactions")
    recent.add_argument("--limit", type=int, default=10)
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv(args.env_file)
    configure_logging(args.log_level, args.log_file)
    try:
        config = load_config(args.config, os.environ)
    except ConfigError as exc:
        parser.error(str(exc))

    if args.command == "recent":
        try:
            asyncio.run(show_recent(config, args.limit))
        except ActivityError as exc:
            logger.error("%s", exc)
            sys.exit(1)
        return

    try:
        wallet = load_wallet(args.keypair, os.environ)
    except ConfigError as exc:
        parser.error(str(exc))
    try:
        asyncio.run(serve(config, wallet))
    except KeyboardInterrupt:
        logger.info("shutting down")


if __name__ == "__main__":
    main()
