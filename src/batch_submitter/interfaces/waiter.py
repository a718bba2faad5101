"""ConfirmationWaiter protocol - waits for a tx, replacing it when it stalls."""

from __future__ import annotations

from typing import Protocol, Sequence

from batch_submitter.interfaces.signer import Signer
from batch_submitter.models.records import Receipt, TxAttempt


class ConfirmationWaiter(Protocol):
    """Turns a broadcast transaction into a confirmed receipt."""

    async def await_with_resubmission(
        self,
        tx: TxAttempt,
        prior_attempts: Sequence[TxAttempt],
        signer: Signer,
        confirmations: int,
        resubmission_timeout: float,
    ) -> Receipt:
        """Wait for `confirmations` blocks, resubmitting at the same nonce
        with a higher fee every `resubmission_timeout` seconds."""
        ...
