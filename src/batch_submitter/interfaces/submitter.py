"""BatchSubmitter protocol - finds work, builds, signs and confirms one batch."""

from __future__ import annotations

from typing import Callable, Mapping, Protocol

from batch_submitter.models.records import Receipt, SubmitterRole


class BatchSubmitter(Protocol):
    """Submits the next pending batch to the base chain."""

    async def submit_next_batch(self) -> Receipt | None:
        """Build and submit one batch. Returns None when there is nothing to submit."""
        ...


# Receives a SubmitterContext; returns one submitter per role.
SubmitterFactory = Callable[..., Mapping[SubmitterRole, BatchSubmitter]]
