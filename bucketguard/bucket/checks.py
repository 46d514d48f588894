"""Static checks over a bucket configuration.

Each check inspects one concern and yields findings. Checks never raise
for a configuration that loaded successfully.
"""

import logging
from enum import Enum
from typing import Callable, Iterator

from pydantic import BaseModel, Field

from bucketguard.authz.models import ANY_PRINCIPAL, Effect, Statement
from bucketguard.authz.patterns import WILDCARD, bucket_of, pattern_kinds
from bucketguard.bucket.models import BucketConfiguration, ObjectOwnership

logger = logging.getLogger(__name__)


class FindingSeverity(str, Enum):
    """Severity of a configuration finding."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_SEVERITY_ORDER = {
    FindingSeverity.ERROR: 0,
    FindingSeverity.WARNING: 1,
    FindingSeverity.INFO: 2,
}


class Finding(BaseModel):
    """One problem (or observation) about a bucket configuration."""

    code: str = Field(description="Stable machine-readable identifier")
    severity: FindingSeverity
    message: str
    statement_id: str | None = Field(
        default=None,
        description="Policy statement concerned, if any"
    )

    def __str__(self) -> str:
        where = f" [{self.statement_id}]" if self.statement_id else ""
        return f"{self.severity.value.upper():7} {self.code}{where}: {self.message}"


def check_encryption(config: BucketConfiguration) -> Iterator[Finding]:
    if config.encryption is None:
        yield Finding(
            code="encryption-missing",
            severity=FindingSeverity.ERROR,
            message="no default encryption configured",
        )


def check_logging(config: BucketConfiguration) -> Iterator[Finding]:
    if config.logging is None:
        yield Finding(
            code="logging-disabled",
            severity=FindingSeverity.WARNING,
            message="server access logging is disabled",
        )
    elif config.logging.target_bucket == config.name:
        yield Finding(
            code="logging-self-target",
            severity=FindingSeverity.ERROR,
            message="access logs are delivered into the logged bucket itself",
        )


def check_ownership(config: BucketConfiguration) -> Iterator[Finding]:
    if config.ownership == ObjectOwnership.OBJECT_WRITER:
        yield Finding(
            code="ownership-acls-enabled",
            severity=FindingSeverity.WARNING,
            message="ACLs are enabled (ObjectWriter); prefer BucketOwnerEnforced",
        )
    elif config.ownership == ObjectOwnership.BUCKET_OWNER_PREFERRED:
        yield Finding(
            code="ownership-acls-enabled",
            severity=FindingSeverity.INFO,
            message="ACLs are still honoured (BucketOwnerPreferred)",
        )


def check_public_access_block(config: BucketConfiguration) -> Iterator[Finding]:
    block = config.public_access_block
    if not block.fully_enabled:
        yield Finding(
            code="public-access-block-partial",
            severity=FindingSeverity.WARNING,
            message=f"public access block disabled: {', '.join(block.disabled_switches)}",
        )


def check_versioning(config: BucketConfiguration) -> Iterator[Finding]:
    if not config.versioning:
        yield Finding(
            code="versioning-disabled",
            severity=FindingSeverity.INFO,
            message="versioning is disabled",
        )


def _references_bucket(pattern: str, name: str) -> bool:
    bucket = bucket_of(pattern)
    if bucket.endswith(WILDCARD):
        return name.startswith(bucket[:-1])
    return bucket == name


def _ineffective_scopes(statement: Statement) -> list[str]:
    """Action scopes of a statement that none of its resources can match."""
    covered = set()
    for pattern in statement.resources:
        covered.update(pattern_kinds(pattern))

    scopes = {action.scope for action in statement.actions}
    return sorted(scope.value for scope in scopes - covered)


def check_policy(config: BucketConfiguration) -> Iterator[Finding]:
    if config.policy is None:
        yield Finding(
            code="policy-missing",
            severity=FindingSeverity.INFO,
            message="no bucket policy; access relies on identity policies only",
        )
        return

    for statement in config.policy.statements:
        statement_id = statement.statement_id

        foreign = sorted(p for p in statement.resources if not _references_bucket(p, config.name))
        if foreign:
            yield Finding(
                code="policy-foreign-bucket",
                severity=FindingSeverity.WARNING,
                message=f"resources outside {config.name}: {', '.join(foreign)}",
                statement_id=statement_id,
            )

        if statement.effect == Effect.ALLOW and ANY_PRINCIPAL in statement.principals:
            yield Finding(
                code="policy-public-allow",
                severity=FindingSeverity.ERROR,
                message="statement allows access to every principal ('*')",
                statement_id=statement_id,
            )

        for scope in _ineffective_scopes(statement):
            yield Finding(
                code="policy-ineffective-actions",
                severity=FindingSeverity.WARNING,
                message=(
                    f"{scope}-level actions listed but no resource pattern "
                    f"addresses {scope} ARNs"
                ),
                statement_id=statement_id,
            )


CHECKS: list[Callable[[BucketConfiguration], Iterator[Finding]]] = [
    check_encryption,
    check_logging,
    check_ownership,
    check_public_access_block,
    check_versioning,
    check_policy,
]


def check_bucket(config: BucketConfiguration) -> list[Finding]:
    """Run every check and return findings, most severe first."""
    findings = [finding for check in CHECKS for finding in check(config)]
    findings.sort(key=lambda f: (_SEVERITY_ORDER[f.severity], f.code, f.statement_id or ""))

    logger.info(
        "Checked bucket %s: %d findings (%d errors)",
        config.name,
        len(findings),
        sum(1 for f in findings if f.severity == FindingSeverity.ERROR),
    )
    return findings


def has_errors(findings: list[Finding]) -> bool:
    return any(f.severity == FindingSeverity.ERROR for f in findings)
