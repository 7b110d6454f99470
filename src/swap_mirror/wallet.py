"""Signing capability for the bot wallet.

The pipeline only sees :class:`WalletCapability`; raw key material stays inside
the concrete implementation.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping, Optional, Protocol

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from .errors import ConfigError

logger = logging.getLogger(__name__)


class WalletCapability(Protocol):
    def public_id(self) -> Pubkey: ...

    def sign(self, message: bytes) -> Signature: ...


class KeypairWallet:
    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair
        self._pubkey = keypair.pubkey()

    def __repr__(self) -> str:
        return f"KeypairWallet({self._pubkey})"

    def public_id(self) -> Pubkey:
        return self._pubkey

    def sign(self, message: bytes) -> Signature:
        return self._keypair.sign_message(message)

    @classmethod
    def generate(cls) -> "KeypairWallet":
        wallet = cls(Keypair())
        logger.warning("generated new bot wallet %s; fund it before trading", wallet.public_id())
        return wallet

    @classmethod
    def from_secret(cls, raw: str) -> "KeypairWallet":
        """Accepts a base58 secret or a JSON array of 64 bytes."""
        raw = raw.strip()
        try:
            if raw.startswith("["):
                return cls(Keypair.from_bytes(bytes(json.loads(raw))))
            return cls(Keypair.from_bytes(base58.b58decode(raw)))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid bot wallet private key: {type(exc).__name__}") from None

    @classmethod
    def from_file(cls, path: Path) -> "KeypairWallet":
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"cannot read keypair file {path}: {exc.strerror}") from None
        return cls.from_secret(text)


def load_wallet(keypair_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> KeypairWallet:
    env = environ or {}
    if keypair_path is not None:
        wallet = KeypairWallet.from_file(keypair_path)
    elif env.get("BOT_WALLET_PRIVATE_KEY"):
        wallet = KeypairWallet.from_secret(env["BOT_WALLET_PRIVATE_KEY"])
    else:
        return KeypairWallet.generate()
    logger.info("bot wallet %s", wallet.public_id())
    return wallet
