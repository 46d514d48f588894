"""Hash-chained decision log.

Every decision is appended as a DecisionRecord whose hash covers the
previous record's hash, so edits to past entries are detectable. This
mirrors the bucket's access log: each denial names the statement that
caused it.
"""

import hashlib
import json
import logging

from bucketguard.audit.models import DecisionLogStatus, DecisionRecord
from bucketguard.audit.storage import DecisionStorage, MemoryDecisionStorage
from bucketguard.authz.models import Decision
from bucketguard.errors import DecisionLogError

logger = logging.getLogger(__name__)


class DecisionLog:
    """Records decisions into append-only storage.

    Usage:
        log = DecisionLog(FileDecisionStorage("data/decisions.jsonl"))
        evaluator = PolicyEvaluator(document, recorder=log)

        # ... evaluate requests ...

        valid, error = log.verify()
    """

    HASH_ALGORITHM = "sha256"

    def __init__(self, storage: DecisionStorage | None = None):
        self.storage = storage if storage is not None else MemoryDecisionStorage()

    def compute_record_hash(self, record: DecisionRecord) -> str:
        """SHA-256 over the canonical JSON of the record content."""
        canonical = json.dumps(record.to_hash_content(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def record(self, decision: Decision) -> DecisionRecord:
        """Append a decision to the log."""
        latest = self.storage.get_latest()
        sequence = latest.sequence_number + 1 if latest else 1

        entry = DecisionRecord.from_decision(decision, sequence_number=sequence)
        entry.previous_hash = latest.record_hash if latest else ""
        entry.record_hash = self.compute_record_hash(entry)

        self.storage.append(entry)
        return entry

    def records(self) -> list[DecisionRecord]:
        return self.storage.get_all()

    def denials(self) -> list[DecisionRecord]:
        """Records whose decision was Deny (explicit or implicit)."""
        return [r for r in self.storage.get_all() if r.denied]

    def verify(self) -> tuple[bool, str | None]:
        """Walk the chain and validate every hash and link.

        Returns:
            (True, None) if intact, otherwise (False, description)
        """
        try:
            entries = self.storage.get_all()
        except DecisionLogError as exc:
            return False, str(exc)

        previous_hash = ""
        expected_sequence = 1

        for entry in entries:
            if entry.sequence_number != expected_sequence:
                return False, (
                    f"sequence gap: expected {expected_sequence}, "
                    f"found {entry.sequence_number}"
                )
            if entry.previous_hash != previous_hash:
                return False, f"record {entry.sequence_number}: broken link to previous record"
            if self.compute_record_hash(entry) != entry.record_hash:
                logger.warning("Decision log tampering detected at seq=%d", entry.sequence_number)
                return False, f"record {entry.sequence_number}: hash mismatch"

            previous_hash = entry.record_hash
            expected_sequence += 1

        return True, None

    def status(self) -> DecisionLogStatus:
        try:
            entries = self.storage.get_all()
        except DecisionLogError as exc:
            return DecisionLogStatus(
                total_records=0,
                denied_records=0,
                last_sequence=0,
                chain_valid=False,
                error_message=str(exc),
            )
        valid, error = self.verify()
        return DecisionLogStatus(
            total_records=len(entries),
            denied_records=sum(1 for e in entries if e.denied),
            last_sequence=entries[-1].sequence_number if entries else 0,
            chain_valid=valid,
            error_message=error,
        )
