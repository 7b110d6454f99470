import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError
from .tokens import MAX_DECIMALS

PRIORITY_LEVELS = ("medium", "high", "veryHigh")


@dataclass(frozen=True)
class PriorityPolicy:
    max_lamports: int
    priority_level: str = "veryHigh"


@dataclass(frozen=True)
class ReplicationPolicy:
    size_fraction: float = 0.9
    slippage_bps: int = 100
    priority_fee_cap_lamports: int = 10_000_000
    priority_level: str = "veryHigh"

    def __post_init__(self) -> None:
        if not 0 < self.size_fraction <= 1:
            raise ConfigError(f"size_fraction must be in (0, 1], got {self.size_fraction}")
        if self.slippage_bps < 0:
            raise ConfigError(f"slippage_bps must be non-negative, got {self.slippage_bps}")
        if self.priority_fee_cap_lamports < 0:
            raise ConfigError("priority_fee_cap_lamports must be non-negative")
        if self.priority_level not in PRIORITY_LEVELS:
            raise ConfigError(f"priority_level must be one of {PRIORITY_LEVELS}")

    @property
    def priority(self) -> PriorityPolicy:
        return PriorityPolicy(max_lamports=self.priority_fee_cap_lamports, priority_level=self.priority_level)


@dataclass(frozen=True)
class MirrorConfig:
    monitored_wallet: str
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    commitment: str = "confirmed"
    quote_url: str = "https://lite-api.jup.ag/swap/v1/quote"
    swap_url: str = "https://lite-api.jup.ag/swap/v1/swap"
    api_key: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 3000
    request_timeout: float = 10.0
    confirm_timeout: float = 60.0
    dedup_ttl: float = 600.0
    token_decimals: Dict[str, int] = field(default_factory=dict)
    policy: ReplicationPolicy = field(default_factory=ReplicationPolicy)

    def __post_init__(self) -> None:
        for mint, decimals in (self.token_decimals or {}).items():
            if not isinstance(decimals, int) or not 0 <= decimals <= MAX_DECIMALS:
                raise ConfigError(f"token_decimals for {mint} must be an integer in 0..{MAX_DECIMALS}, got {decimals!r}")


_ENV_FIELDS = {
    "RPC_ENDPOINT": ("rpc_url", str),
    "JUPITER_API_KEY": ("api_key", str),
    "WALLET_TO_MONITOR": ("monitored_wallet", str),
    "PORT": ("port", int),
}

_ENV_POLICY_FIELDS = {
    "SIZE_FRACTION": ("size_fraction", float),
    "SLIPPAGE_BPS": ("slippage_bps", int),
    "PRIORITY_FEE_CAP_LAMPORTS": ("priority_fee_cap_lamports", int),
}


def helius_rpc_url(api_key: str) -> str:
    return f"https://mainnet.helius-rpc.com/?api-key={api_key}"


def _coerce(name: str, raw: Any, kind: type) -> Any:
    try:
        return kind(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} is not a valid {kind.__name__}: {raw!r}") from None


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> MirrorConfig:
    """Build the process configuration from an optional YAML file and the environment.

    Environment variables win over file values. ``HELIUS_API_KEY`` selects the
    Helius RPC endpoint unless ``RPC_ENDPOINT`` or ``rpc_url`` is set.
    """
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = _read_yaml(path) if path is not None and path.exists() else {}
    policy_data: Dict[str, Any] = dict(data.pop("policy", None) or {})

    if "rpc_url" not in data and env.get("HELIUS_API_KEY"):
        data["rpc_url"] = helius_rpc_url(env["HELIUS_API_KEY"])
    for var, (name, kind) in _ENV_FIELDS.items():
        if env.get(var):
            data[name] = _coerce(var, env[var], kind)
    for var, (name, kind) in _ENV_POLICY_FIELDS.items():
        if env.get(var):
            policy_data[name] = _coerce(var, env[var], kind)

    if not data.get("monitored_wallet"):
        raise ConfigError("WALLET_TO_MONITOR must be set")

    known = set(MirrorConfig.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
    unknown_policy = sorted(set(policy_data) - set(ReplicationPolicy.__dataclass_fields__))
    if unknown_policy:
        raise ConfigError(f"unknown policy keys: {', '.join(unknown_policy)}")

    try:
        config = MirrorConfig(**data)
        return replace(config, policy=ReplicationPolicy(**policy_data))
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc
