"""Startup nonce reconciliation and the submission loop supervisor."""

from batch_submitter.orchestrator.nonce import (
    CLEAR_RESUBMISSION_TIMEOUT,
    NonceReconciler,
    NonceReconciliationError,
)
from batch_submitter.orchestrator.supervisor import LoopSupervisor

__all__ = [
    "CLEAR_RESUBMISSION_TIMEOUT", "NonceReconciler", "NonceReconciliationError",
    "LoopSupervisor",
]
