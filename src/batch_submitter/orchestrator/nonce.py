"""Nonce reconciler - clears broadcast-but-unmined transactions at startup."""

from __future__ import annotations

import logging

from batch_submitter.chain.confirmation import NonceConsumedError
from batch_submitter.chain.signer import SELF_TRANSFER_GAS
from batch_submitter.interfaces.signer import Signer
from batch_submitter.interfaces.waiter import ConfirmationWaiter
from batch_submitter.models.records import NonceWindow, Receipt

log = logging.getLogger(__name__)

# Replacement cadence for clearing transactions, independent of the
# configured submission resubmission timeout.
CLEAR_RESUBMISSION_TIMEOUT = 60.0


class NonceReconciliationError(Exception):
    """Stuck nonces could not be cleared. Unrecoverable at startup."""


class NonceReconciler:
    """Uses up every stuck nonce with a zero-value self-transfer.

    Each nonce in [latest, pending) gets one transfer to the signer's own
    address, sent in ascending order, and confirmed before the next one is
    broadcast. Must run before any submission loop touches the signer.
    """

    def __init__(
        self,
        signer: Signer,
        waiter: ConfirmationWaiter,
        num_confirmations: int,
        resubmission_timeout: float = CLEAR_RESUBMISSION_TIMEOUT,
    ) -> None:
        self._signer = signer
        self._waiter = waiter
        self._num_confirmations = num_confirmations
        self._resubmission_timeout = resubmission_timeout

    async def read_window(self) -> NonceWindow:
        pending = await self._signer.get_transaction_count("pending")
        latest = await self._signer.get_transaction_count("latest")
        return NonceWindow(latest=latest, pending=pending)

    async def reconcile(self) -> list[Receipt]:
        """Clear the nonce gap.

        Returns the receipts of the self-transfers that were mined. A nonce
        taken by the original stuck transaction instead counts as cleared.
        """
        try:
            window = await self.read_window()
            if window.gap == 0:
                log.info("No pending transactions (nonce %d)", window.latest)
                return []

            log.info(
                "Detected pending transactions. Clearing all transactions! "
                "(latest=%d pending=%d)", window.latest, window.pending,
            )
            receipts = []
            for nonce in window.stuck_nonces:
                receipt = await self._clear_nonce(nonce)
                if receipt is not None:
                    receipts.append(receipt)

            after = await self.read_window()
            if after.gap:
                raise NonceReconciliationError(
                    f"nonce gap remains after clearing: latest={after.latest} "
                    f"pending={after.pending}"
                )
        except NonceReconciliationError:
            raise
        except Exception as exc:
            raise NonceReconciliationError(f"Cannot clear transactions: {exc}") from exc

        log.info("Cleared %d pending transactions", window.gap)
        return receipts

    async def _clear_nonce(self, nonce: int) -> Receipt | None:
        attempt = await self._signer.send_transaction({
            "to": self._signer.address,
            "value": 0,
            "gas": SELF_TRANSFER_GAS,
            "nonce": nonce,
        })
        log.info("Submitting transaction with nonce: %d; hash: %s", nonce, attempt.tx_hash)
        try:
            return await self._waiter.await_with_resubmission(
                attempt,
                [],
                self._signer,
                self._num_confirmations,
                self._resubmission_timeout,
            )
        except NonceConsumedError:
            log.info("Nonce %d was mined by the original transaction", nonce)
            return None
