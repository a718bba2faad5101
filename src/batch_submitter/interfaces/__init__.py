"""Protocol interfaces for the batch submitter components."""

from batch_submitter.interfaces.signer import Signer
from batch_submitter.interfaces.submitter import BatchSubmitter, SubmitterFactory
from batch_submitter.interfaces.waiter import ConfirmationWaiter

__all__ = [
    "BatchSubmitter", "SubmitterFactory",
    "Signer",
    "ConfirmationWaiter",
]
