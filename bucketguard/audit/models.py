"""Audit data models.

Decision records with hash chaining for tamper-evident logging.
"""

from datetime import datetime, UTC
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from bucketguard.authz.models import Decision, DecisionReason, Effect


class DecisionRecord(BaseModel):
    """Tamper-evident record of one access decision.

    Chain integrity:
    - Each record's `record_hash` is computed from its contents + `previous_hash`
    - `previous_hash` links to the prior record in the log
    - Genesis record has empty `previous_hash`
    """

    # Identity
    record_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this record"
    )
    sequence_number: int = Field(description="Monotonically increasing sequence")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the decision was made (UTC)"
    )

    # Request
    principal: str
    action: str
    resource: str

    # Outcome
    effect: Effect
    reason: DecisionReason
    deciding_statement: str | None = None
    matched_statements: list[str] = Field(default_factory=list)

    # Chain integrity
    previous_hash: str = Field(
        default="",
        description="Hash of previous record (empty for genesis)"
    )
    record_hash: str = Field(
        default="",
        description="Computed hash of this record"
    )

    @classmethod
    def from_decision(cls, decision: Decision, sequence_number: int) -> "DecisionRecord":
        return cls(
            sequence_number=sequence_number,
            principal=decision.request.principal,
            action=decision.request.action.value,
            resource=decision.request.resource,
            effect=decision.effect,
            reason=decision.reason,
            deciding_statement=decision.deciding_statement,
            matched_statements=list(decision.matched_statements),
        )

    @property
    def denied(self) -> bool:
        return self.effect == Effect.DENY

    def to_hash_content(self) -> dict[str, Any]:
        """Get the content used for hash computation.

        Excludes `record_hash` as that's what we're computing.
        """
        return {
            "record_id": self.record_id,
            "sequence_number": self.sequence_number,
            "timestamp": self.timestamp.isoformat(),
            "principal": self.principal,
            "action": self.action,
            "resource": self.resource,
            "effect": self.effect.value,
            "reason": self.reason.value,
            "deciding_statement": self.deciding_statement,
            "matched_statements": self.matched_statements,
            "previous_hash": self.previous_hash,
        }


class DecisionLogStatus(BaseModel):
    """Status of a decision log."""

    total_records: int
    denied_records: int
    last_sequence: int
    chain_valid: bool
    error_message: str | None = None
