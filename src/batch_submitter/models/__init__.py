"""Data models for the batch submitter."""

from batch_submitter.models.config import DEFAULT_HD_PATH, PollConfig, SubmitterConfig
from batch_submitter.models.records import (
    LoopStats,
    NonceWindow,
    Receipt,
    ResubmissionState,
    SubmitterBinding,
    SubmitterRole,
    TxAttempt,
)

__all__ = [
    "DEFAULT_HD_PATH", "PollConfig", "SubmitterConfig",
    "LoopStats", "NonceWindow", "Receipt", "ResubmissionState",
    "SubmitterBinding", "SubmitterRole", "TxAttempt",
]
