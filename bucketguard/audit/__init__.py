"""bucketguard Audit Package.

Tamper-evident log of access decisions, recording which statement
allowed or denied each request.

Usage:
    from bucketguard.audit import DecisionLog, FileDecisionStorage

    log = DecisionLog(FileDecisionStorage("data/decisions.jsonl"))
    log.record(decision)

    valid, error = log.verify()
"""

from bucketguard.audit.models import DecisionRecord, DecisionLogStatus
from bucketguard.audit.storage import (
    DecisionStorage,
    MemoryDecisionStorage,
    FileDecisionStorage,
)
from bucketguard.audit.log import DecisionLog

__all__ = [
    "DecisionRecord",
    "DecisionLogStatus",
    "DecisionStorage",
    "MemoryDecisionStorage",
    "FileDecisionStorage",
    "DecisionLog",
]
