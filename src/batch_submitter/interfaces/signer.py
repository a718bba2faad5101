"""Signer protocol - the sequencer account on the base chain."""

from __future__ import annotations

from typing import Protocol

from batch_submitter.models.records import Receipt, TxAttempt


class Signer(Protocol):
    """Signs and broadcasts transactions for a single address."""

    @property
    def address(self) -> str:
        ...

    async def get_transaction_count(self, block_identifier: str = "latest") -> int:
        """Transaction count at "latest" (mined) or "pending" (mined + mempool)."""
        ...

    async def send_transaction(self, tx: dict) -> TxAttempt:
        """Sign and broadcast. An explicit tx["nonce"] is used as given."""
        ...

    async def get_receipt(self, tx_hash: str) -> Receipt | None:
        """Receipt for a mined transaction, None while it is unmined."""
        ...

    async def get_block_number(self) -> int:
        ...

    async def get_balance(self) -> int:
        """Balance in wei."""
        ...
