from .config import MirrorConfig, PriorityPolicy, ReplicationPolicy, load_config
from .errors import (
    ActivityError,
    BuildError,
    BuildErrorKind,
    ConfigError,
    IncompleteSwapError,
    MirrorError,
    ParseError,
    QuoteError,
    QuoteErrorKind,
    ReplicationError,
    SubmitError,
    SubmitErrorKind,
)
from .models import Quote, ReplicationAttempt, ReplicationState, SwapEvent, TokenAmount, UnsignedTransactionBlob
from .normalizer import normalize
from .orchestrator import ReplicationOrchestrator
from .tokens import TokenMetadataResolver, decimals_of
from .wallet import KeypairWallet, WalletCapability

__all__ = [
    "ActivityError",
    "BuildError",
    "BuildErrorKind",
    "ConfigError",
    "IncompleteSwapError",
    "KeypairWallet",
    "MirrorConfig",
    "MirrorError",
    "ParseError",
    "PriorityPolicy",
    "Quote",
    "QuoteError",
    "QuoteErrorKind",
    "ReplicationAttempt",
    "ReplicationError",
    "ReplicationOrchestrator",
    "ReplicationPolicy",
    "ReplicationState",
    "SubmitError",
    "SubmitErrorKind",
    "SwapEvent",
    "TokenAmount",
    "TokenMetadataResolver",
    "UnsignedTransactionBlob",
    "WalletCapability",
    "decimals_of",
    "load_config",
    "normalize",
]
