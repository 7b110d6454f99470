"""Error taxonomy for the replication pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class MirrorError(Exception):
    """Root of every error raised by this package."""


class ConfigError(MirrorError):
    """Raised when startup configuration is missing or invalid."""


class ParseError(MirrorError):
    """Raised when an inbound notification does not match any known schema."""


class ActivityError(MirrorError):
    """Raised when the RPC node cannot list the monitored wallet's recent transactions."""


class ReplicationError(MirrorError):
    """Terminal failure of a single replication attempt."""

    kind: Optional[Enum] = None

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        prefix = f"[{self.kind.value}] " if self.kind is not None else ""
        if self.cause is not None:
            return f"{prefix}{self.message} (cause={self.cause})"
        return f"{prefix}{self.message}"


class IncompleteSwapError(ReplicationError):
    """The event lacks a positive sold or bought leg."""


class QuoteErrorKind(str, Enum):
    NETWORK = "network"
    NO_ROUTE = "no_route"
    MALFORMED = "malformed"


class BuildErrorKind(str, Enum):
    NETWORK = "network"
    SIMULATION_REJECTED = "simulation_rejected"
    MISSING_PAYLOAD = "missing_payload"
    DECODE = "decode"


class SubmitErrorKind(str, Enum):
    DECODE = "decode"
    REJECTED = "rejected"
    TIMEOUT = "timeout"
    NETWORK = "network"


class QuoteError(ReplicationError):
    def __init__(self, kind: QuoteErrorKind, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, cause)
        self.kind = kind


class BuildError(ReplicationError):
    def __init__(
        self,
        kind: BuildErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(message, cause)
        self.kind = kind
        # Aggregator-provided simulation failure text, if any.
        self.reason = reason


class SubmitError(ReplicationError):
    def __init__(
        self,
        kind: SubmitErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
        signature: Optional[str] = None,
    ) -> None:
        super().__init__(message, cause)
        self.kind = kind
        # Set once the transaction has been broadcast; it may still land.
        self.signature = signature
