"""Exception hierarchy for bucketguard.

Load-time problems (bad documents, bad patterns, bad bucket files) are
raised as subclasses of BucketGuardError. Evaluation itself never raises
for a well-formed document and request.
"""

from typing import Any


class BucketGuardError(Exception):
    """Base class for all bucketguard errors."""


class PolicyValidationError(BucketGuardError):
    """A policy document failed validation.

    Carries the position and Sid of the offending statement when the
    problem is local to one statement.
    """

    def __init__(
        self,
        message: str,
        statement_index: int | None = None,
        sid: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ):
        self.message = message
        self.statement_index = statement_index
        self.sid = sid
        self.errors = errors or []
        super().__init__(str(self))

    @property
    def location(self) -> str:
        """Human-readable pointer to the offending statement."""
        if self.statement_index is None:
            return "document"
        if self.sid:
            return f"statement {self.statement_index} ({self.sid})"
        return f"statement {self.statement_index}"

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


class ResourcePatternError(PolicyValidationError):
    """A resource pattern is not a valid S3 ARN pattern."""


class RequestValidationError(BucketGuardError):
    """An access request is malformed (unknown action, wildcard resource...)."""


class ConfigurationError(BucketGuardError):
    """A bucket configuration file is malformed."""


class DecisionLogError(BucketGuardError):
    """A stored decision record cannot be read back."""

    def __init__(self, message: str, line_number: int | None = None):
        self.message = message
        self.line_number = line_number
        super().__init__(f"line {line_number}: {message}" if line_number else message)
