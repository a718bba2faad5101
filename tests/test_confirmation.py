"""Confirmation waiter: confirmation depth, resubmission, fee bumps, caps."""

from __future__ import annotations

import pytest

from batch_submitter.chain.confirmation import (
    BroadcastError,
    ConfirmationTimeout,
    NonceConsumedError,
    ResubmittingConfirmationWaiter,
    bump_fees,
)

from tests.factories import make_attempt
from tests.mocks import FakeClock, MockSigner


def make_waiter(clock, on_tick=None, **kwargs):
    """Waiter whose sleep advances the fake clock (and runs an optional hook)."""

    async def sleep(seconds: float) -> None:
        clock.advance(seconds)
        if on_tick is not None:
            on_tick()

    return ResubmittingConfirmationWaiter(poll_interval=1.0, sleep=sleep, clock=clock, **kwargs)


# ── bump_fees ─────────────────────────────────────────────────────


def test_bump_legacy_gas_price_rounds_up():
    assert bump_fees({"gasPrice": 100, "nonce": 3}, 1.125) == {"gasPrice": 113, "nonce": 3}


def test_bump_eip1559_fields():
    bumped = bump_fees({"maxFeePerGas": 200, "maxPriorityFeePerGas": 10}, 1.5)
    assert bumped == {"maxFeePerGas": 300, "maxPriorityFeePerGas": 15}


def test_bump_respects_cap():
    bumped = bump_fees({"maxFeePerGas": 200, "maxPriorityFeePerGas": 190}, 1.5, cap=250)
    assert bumped["maxFeePerGas"] == 250
    assert bumped["maxPriorityFeePerGas"] == 250


def test_bump_never_lowers_a_fee_above_the_cap():
    assert bump_fees({"gasPrice": 200}, 1.125, cap=100) == {"gasPrice": 200}


def test_bump_does_not_mutate_input():
    params = {"gasPrice": 100}
    bump_fees(params, 2)
    assert params == {"gasPrice": 100}


def test_fee_bump_must_increase():
    with pytest.raises(ValueError):
        ResubmittingConfirmationWaiter(fee_bump=1.0)


# ── Waiting ───────────────────────────────────────────────────────


async def test_returns_once_mined_with_one_confirmation():
    signer = MockSigner()
    clock = FakeClock()
    tx = await signer.send_transaction({"to": "0x1", "nonce": 0})

    receipt = await make_waiter(clock).await_with_resubmission(tx, [], signer, 1, 60)

    assert receipt.tx_hash == tx.tx_hash
    assert len(signer.sent) == 1
    assert clock.now == 0  # no polling needed


async def test_zero_confirmations_treated_as_one():
    signer = MockSigner()
    tx = await signer.send_transaction({"nonce": 0})
    receipt = await make_waiter(FakeClock()).await_with_resubmission(tx, [], signer, 0, 60)
    assert receipt.tx_hash == tx.tx_hash


async def test_waits_for_confirmation_depth():
    signer = MockSigner()
    clock = FakeClock()
    tx = await signer.send_transaction({"nonce": 0})
    mined_at = signer.receipts[tx.tx_hash].block_number

    waiter = make_waiter(clock, on_tick=lambda: signer.advance(1))
    receipt = await waiter.await_with_resubmission(tx, [], signer, 4, 60)

    assert receipt.block_number == mined_at
    assert signer.block_number - mined_at + 1 == 4
    assert clock.now == 3


async def test_mined_tx_is_never_resubmitted_while_confirming():
    signer = MockSigner()
    clock = FakeClock()
    tx = await signer.send_transaction({"nonce": 0})

    # Blocks arrive far slower than the resubmission timeout.
    ticks = {"n": 0}

    def slow_chain():
        ticks["n"] += 1
        if ticks["n"] % 10 == 0:
            signer.advance(1)

    waiter = make_waiter(clock, on_tick=slow_chain)
    await waiter.await_with_resubmission(tx, [], signer, 3, 5)

    assert len(signer.sent) == 1


async def test_reverted_receipt_is_returned(caplog):
    signer = MockSigner(mine_from_send=None)
    tx = await signer.send_transaction({"nonce": 0})
    signer.mine(tx, status=0)

    receipt = await make_waiter(FakeClock()).await_with_resubmission(tx, [], signer, 1, 60)

    assert not receipt.succeeded
    assert "reverted" in caplog.text


# ── Resubmission ──────────────────────────────────────────────────


async def test_resubmits_same_nonce_with_bumped_fee_after_timeout():
    signer = MockSigner(mine_from_send=2, gas_price=100)
    clock = FakeClock()
    tx = await signer.send_transaction({"to": "0x1", "nonce": 7})

    receipt = await make_waiter(clock).await_with_resubmission(tx, [], signer, 1, 10)

    assert len(signer.sent) == 2
    original, replacement = signer.sent
    assert replacement.nonce == original.nonce == 7
    assert replacement.params["gasPrice"] == 113
    assert replacement.params["to"] == "0x1"
    assert receipt.tx_hash == replacement.tx_hash
    assert clock.now == 11  # timeout at 10, one more poll finds the receipt


async def test_keeps_resubmitting_until_mined():
    signer = MockSigner(mine_from_send=4, gas_price=1000)
    tx = await signer.send_transaction({"nonce": 0})

    await make_waiter(FakeClock()).await_with_resubmission(tx, [], signer, 1, 3)

    prices = [a.params["gasPrice"] for a in signer.sent]
    assert prices == [1000, 1125, 1266, 1425]
    assert {a.nonce for a in signer.sent} == {0}


async def test_superseded_attempt_can_still_confirm():
    signer = MockSigner(mine_from_send=None)
    clock = FakeClock()
    tx = await signer.send_transaction({"nonce": 0})

    def mine_original_late():
        if clock.now == 15 and tx.tx_hash not in signer.receipts:
            signer.mine(tx)

    waiter = make_waiter(clock, on_tick=mine_original_late)
    receipt = await waiter.await_with_resubmission(tx, [], signer, 1, 10)

    assert len(signer.sent) == 2
    assert receipt.tx_hash == tx.tx_hash


async def test_prior_attempts_are_checked():
    signer = MockSigner(mine_from_send=None)
    first = await signer.send_transaction({"nonce": 2})
    second = await signer.send_transaction({"nonce": 2, "gasPrice": 150})
    signer.mine(first)

    receipt = await make_waiter(FakeClock()).await_with_resubmission(
        second, [first], signer, 1, 60,
    )
    assert receipt.tx_hash == first.tx_hash


async def test_prior_attempt_with_other_nonce_rejected():
    signer = MockSigner()
    with pytest.raises(ValueError):
        await make_waiter(FakeClock()).await_with_resubmission(
            make_attempt(nonce=2), [make_attempt(nonce=1)], signer, 1, 60,
        )


async def test_fee_at_cap_skips_rebroadcast():
    signer = MockSigner(mine_from_send=None, gas_price=100)
    clock = FakeClock()
    tx = await signer.send_transaction({"nonce": 0})

    def mine_eventually():
        if clock.now == 25:
            signer.mine(tx)

    waiter = make_waiter(clock, on_tick=mine_eventually, max_gas_price=100)
    receipt = await waiter.await_with_resubmission(tx, [], signer, 1, 10)

    assert len(signer.sent) == 1
    assert receipt.tx_hash == tx.tx_hash


async def test_fee_above_cap_is_never_rebroadcast_cheaper():
    signer = MockSigner(mine_from_send=None, gas_price=200)
    clock = FakeClock()
    tx = await signer.send_transaction({"nonce": 0})

    def mine_after_first_timeout():
        if clock.now == 12:
            signer.mine(tx)

    waiter = make_waiter(clock, on_tick=mine_after_first_timeout, max_gas_price=100)
    receipt = await waiter.await_with_resubmission(tx, [], signer, 1, 10)

    assert [a.params["gasPrice"] for a in signer.sent] == [200]
    assert receipt.tx_hash == tx.tx_hash


async def test_foreign_transaction_at_nonce_raises_consumed():
    signer = MockSigner(mine_from_send=None)
    clock = FakeClock()
    tx = await signer.send_transaction({"nonce": 0})

    def foreign_tx_mined():
        if clock.now == 5:
            signer.latest = 1

    waiter = make_waiter(clock, on_tick=foreign_tx_mined, max_gas_price=100)
    with pytest.raises(NonceConsumedError) as exc_info:
        await waiter.await_with_resubmission(tx, [], signer, 1, 10)

    assert exc_info.value.nonce == 0
    assert len(signer.sent) == 1


async def test_own_attempt_mined_is_not_mistaken_for_consumed():
    signer = MockSigner(mine_from_send=None)
    tx = await signer.send_transaction({"nonce": 0})
    signer.latest = 1

    class LateReceiptSigner:
        """Receipt only shows up on the second lookup."""

        def __init__(self, inner):
            self._inner = inner
            self.lookups = 0

        def __getattr__(self, name):
            return getattr(self._inner, name)

        async def get_receipt(self, tx_hash):
            self.lookups += 1
            if self.lookups == 2:
                self._inner.mine(tx)
            return await self._inner.get_receipt(tx_hash)

    receipt = await make_waiter(FakeClock()).await_with_resubmission(
        tx, [], LateReceiptSigner(signer), 1, 0,
    )

    assert receipt.tx_hash == tx.tx_hash
    assert len(signer.sent) == 1


async def test_resubmission_cap_raises_timeout():
    signer = MockSigner(mine_from_send=None)
    tx = await signer.send_transaction({"nonce": 0})

    waiter = make_waiter(FakeClock(), max_resubmissions=2)
    with pytest.raises(ConfirmationTimeout):
        await waiter.await_with_resubmission(tx, [], signer, 1, 5)

    assert len(signer.sent) == 3


async def test_broadcast_failure_during_resubmission():
    signer = MockSigner(mine_from_send=None)
    tx = await signer.send_transaction({"nonce": 0})
    signer.send_error = ValueError("replacement transaction underpriced")

    with pytest.raises(BroadcastError, match="underpriced"):
        await make_waiter(FakeClock()).await_with_resubmission(tx, [], signer, 1, 5)
