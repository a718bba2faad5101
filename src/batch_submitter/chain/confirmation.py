"""Confirmation waiter - waits for N confirmations, replacing stalled transactions."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, Sequence

from batch_submitter.interfaces.signer import Signer
from batch_submitter.models.records import Receipt, ResubmissionState, TxAttempt

log = logging.getLogger(__name__)

FEE_FIELDS = ("gasPrice", "maxFeePerGas", "maxPriorityFeePerGas")


class BroadcastError(Exception):
    """A replacement transaction could not be broadcast."""


class ConfirmationTimeout(Exception):
    """The resubmission cap was reached without a confirmation."""


class NonceConsumedError(Exception):
    """A transaction we did not send was mined at the awaited nonce."""

    def __init__(self, nonce: int) -> None:
        super().__init__(f"nonce {nonce} was consumed by another transaction")
        self.nonce = nonce


def bump_fees(params: dict, factor: float, cap: int | None = None) -> dict:
    """Return a copy of `params` with every fee field multiplied by `factor`.

    Values are rounded up so the bump is never lost to truncation, then
    clamped to `cap` when one is set. A fee already above the cap is kept
    as is: a replacement must never be cheaper than what it replaces.
    """
    bumped = dict(params)
    for key in FEE_FIELDS:
        if key not in bumped or bumped[key] is None:
            continue
        current = int(bumped[key])
        value = math.ceil(current * factor)
        if cap is not None:
            value = max(current, min(value, cap))
        bumped[key] = value
    if "maxPriorityFeePerGas" in bumped and "maxFeePerGas" in bumped:
        bumped["maxPriorityFeePerGas"] = min(
            bumped["maxPriorityFeePerGas"], bumped["maxFeePerGas"],
        )
    return bumped


class ResubmittingConfirmationWaiter:
    """Polls for a receipt and rebroadcasts at the same nonce on timeout.

    All attempts for the nonce are checked on every poll, newest first: a
    superseded attempt can still be the one that gets mined, and once any
    attempt is mined nothing else is broadcast for that nonce.
    """

    def __init__(
        self,
        poll_interval: float = 1.0,
        fee_bump: float = 1.125,
        max_gas_price: int | None = None,
        max_resubmissions: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if fee_bump <= 1:
            raise ValueError("fee_bump must be greater than 1")
        self._poll_interval = poll_interval
        self._fee_bump = fee_bump
        self._max_gas_price = max_gas_price
        self._max_resubmissions = max_resubmissions
        self._sleep = sleep
        self._clock = clock

    async def await_with_resubmission(
        self,
        tx: TxAttempt,
        prior_attempts: Sequence[TxAttempt],
        signer: Signer,
        confirmations: int,
        resubmission_timeout: float,
    ) -> Receipt:
        state = ResubmissionState(nonce=tx.nonce)
        for attempt in [*prior_attempts, tx]:
            state.record(attempt)

        required = max(confirmations, 1)
        deadline = self._clock() + resubmission_timeout
        resubmissions = 0

        while True:
            receipt = await self._find_receipt(state, signer)
            if receipt is not None:
                head = await signer.get_block_number()
                depth = head - receipt.block_number + 1
                if depth >= required:
                    if not receipt.succeeded:
                        log.warning(
                            "Transaction %s (nonce %d) reverted in block %d",
                            receipt.tx_hash, state.nonce, receipt.block_number,
                        )
                    log.debug(
                        "Transaction %s confirmed (%d/%d confirmations)",
                        receipt.tx_hash, depth, required,
                    )
                    return receipt
                log.debug(
                    "Transaction %s mined, waiting for confirmations (%d/%d)",
                    receipt.tx_hash, depth, required,
                )
            elif self._clock() >= deadline:
                if await signer.get_transaction_count("latest") > state.nonce:
                    # One of ours may have been mined since the receipt check.
                    if await self._find_receipt(state, signer) is None:
                        raise NonceConsumedError(state.nonce)
                    continue
                if (
                    self._max_resubmissions is not None
                    and resubmissions >= self._max_resubmissions
                ):
                    raise ConfirmationTimeout(
                        f"nonce {state.nonce} not confirmed after "
                        f"{resubmissions} resubmissions"
                    )
                resubmissions += 1
                await self._resubmit(state, signer)
                deadline = self._clock() + resubmission_timeout

            await self._sleep(self._poll_interval)

    async def _find_receipt(
        self, state: ResubmissionState, signer: Signer,
    ) -> Receipt | None:
        for attempt in state.newest_first():
            receipt = await signer.get_receipt(attempt.tx_hash)
            if receipt is not None:
                return receipt
        return None

    async def _resubmit(self, state: ResubmissionState, signer: Signer) -> None:
        current = state.current
        params = bump_fees(current.params, self._fee_bump, self._max_gas_price)
        if all(params.get(k) == current.params.get(k) for k in FEE_FIELDS):
            log.warning(
                "Nonce %d stalled but fee is at the cap, still waiting on %s",
                state.nonce, current.tx_hash,
            )
            return

        params["nonce"] = state.nonce
        try:
            replacement = await signer.send_transaction(params)
        except Exception as exc:
            raise BroadcastError(
                f"resubmission of nonce {state.nonce} failed: {exc}"
            ) from exc

        state.record(replacement)
        log.info(
            "Resubmitted nonce %d as %s (attempt %d, replaces %s)",
            state.nonce, replacement.tx_hash, len(state.attempts), current.tx_hash,
        )
