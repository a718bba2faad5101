"""Record types passed between the signer, waiter and submission loops."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SubmitterRole(str, Enum):
    """Logical role of a submission loop."""

    TX_BATCH = "tx-batch"
    STATE_BATCH = "state-batch"


@dataclass(frozen=True)
class SubmitterBinding:
    """A submitter bound to its role, plus whether its loop should run."""

    role: SubmitterRole
    submitter: Any  # BatchSubmitter
    enabled: bool = True


@dataclass(frozen=True)
class NonceWindow:
    """Signer transaction counts read at startup."""

    latest: int
    pending: int

    @property
    def gap(self) -> int:
        return max(0, self.pending - self.latest)

    @property
    def stuck_nonces(self) -> range:
        """Nonces broadcast but never mined, in ascending order."""
        return range(self.latest, max(self.latest, self.pending))


@dataclass(frozen=True)
class TxAttempt:
    """One broadcast of a transaction."""

    tx_hash: str
    nonce: int
    params: dict = field(default_factory=dict, compare=False)
    sent_at: float = field(default_factory=time.time, compare=False)


@dataclass(frozen=True)
class Receipt:
    """Mined transaction receipt (subset of the JSON-RPC receipt)."""

    tx_hash: str
    block_number: int
    status: int = 1
    gas_used: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass
class ResubmissionState:
    """Every broadcast made for one logical send, oldest first."""

    nonce: int
    attempts: list[TxAttempt] = field(default_factory=list)

    @property
    def current(self) -> TxAttempt:
        return self.attempts[-1]

    def record(self, attempt: TxAttempt) -> None:
        if attempt.nonce != self.nonce:
            raise ValueError(
                f"attempt {attempt.tx_hash} has nonce {attempt.nonce}, expected {self.nonce}"
            )
        self.attempts.append(attempt)

    def newest_first(self) -> list[TxAttempt]:
        return list(reversed(self.attempts))


@dataclass
class LoopStats:
    """Counters for one submission loop."""

    role: SubmitterRole
    iterations: int = 0
    successes: int = 0
    failures: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None
    last_success_at: float | None = None  # unix seconds
