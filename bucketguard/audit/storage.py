"""Decision log storage backends.

Append-only storage for decision records.
"""

import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from bucketguard.audit.models import DecisionRecord
from bucketguard.errors import DecisionLogError

logger = logging.getLogger(__name__)


class DecisionStorage(Protocol):
    """Protocol for decision log storage backends.

    Implementations must provide append-only semantics.
    """

    def append(self, record: DecisionRecord) -> None:
        """Append a record (insert only, no updates)."""
        ...

    def get_latest(self) -> DecisionRecord | None:
        """Get the most recent record."""
        ...

    def get_all(self) -> list[DecisionRecord]:
        """Get all records ordered by sequence."""
        ...


class MemoryDecisionStorage:
    """In-memory storage, used by tests and one-shot CLI runs."""

    def __init__(self):
        self._records: list[DecisionRecord] = []

    def append(self, record: DecisionRecord) -> None:
        self._records.append(record)

    def get_latest(self) -> DecisionRecord | None:
        return self._records[-1] if self._records else None

    def get_all(self) -> list[DecisionRecord]:
        return list(self._records)


class FileDecisionStorage:
    """File-based storage in JSONL (JSON Lines) format, one record per line."""

    def __init__(self, path: str | Path):
        """Initialize file storage.

        Args:
            path: JSONL file to append to (parent directories are created)
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("FileDecisionStorage initialized at %s", self.path)

    def append(self, record: DecisionRecord) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(record.model_dump_json() + "\n")

        logger.debug("Appended decision record seq=%d", record.sequence_number)

    def _read_lines(self) -> list[tuple[int, str]]:
        """Non-blank lines with their 1-based line numbers."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return [(number, line) for number, line in enumerate(f, start=1) if line.strip()]
        except UnicodeDecodeError as exc:
            raise DecisionLogError(f"{self.path}: not UTF-8 text") from exc

    def _parse(self, number: int, line: str) -> DecisionRecord:
        try:
            return DecisionRecord.model_validate_json(line)
        except ValidationError as exc:
            logger.warning("Unreadable decision record at %s line %d", self.path, number)
            raise DecisionLogError("unreadable record", line_number=number) from exc

    def get_latest(self) -> DecisionRecord | None:
        if not self.path.exists():
            return None

        lines = self._read_lines()
        if not lines:
            return None

        return self._parse(*lines[-1])

    def get_all(self) -> list[DecisionRecord]:
        if not self.path.exists():
            return []

        records = [self._parse(number, line) for number, line in self._read_lines()]
        return sorted(records, key=lambda r: r.sequence_number)
