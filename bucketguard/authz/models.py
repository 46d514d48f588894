"""Authorization data models.

Defines S3 actions, policy statements, policy documents, access requests
and decisions. All models are immutable once constructed.
"""

import hashlib
import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bucketguard.authz.patterns import (
    WILDCARD,
    ResourceKind,
    bucket_of,
    pattern_matches,
    resource_kind,
    validate_pattern,
    validate_resource,
)
from bucketguard.errors import PolicyValidationError

POLICY_VERSIONS = ("2012-10-17", "2008-10-17")
ANY_PRINCIPAL = "*"


class Effect(str, Enum):
    """Effect of a policy statement."""

    ALLOW = "Allow"
    DENY = "Deny"


class Action(str, Enum):
    """S3 operations understood by the evaluator.

    Naming convention: s3:{Operation}
    """

    # Bucket-level actions (resource: arn:aws:s3:::bucket)
    LIST_BUCKET = "s3:ListBucket"
    LIST_BUCKET_VERSIONS = "s3:ListBucketVersions"
    GET_BUCKET_LOCATION = "s3:GetBucketLocation"
    GET_BUCKET_POLICY = "s3:GetBucketPolicy"
    PUT_BUCKET_POLICY = "s3:PutBucketPolicy"
    DELETE_BUCKET_POLICY = "s3:DeleteBucketPolicy"
    GET_BUCKET_ACL = "s3:GetBucketAcl"
    PUT_BUCKET_ACL = "s3:PutBucketAcl"
    GET_BUCKET_LOGGING = "s3:GetBucketLogging"
    PUT_BUCKET_LOGGING = "s3:PutBucketLogging"
    GET_ENCRYPTION_CONFIGURATION = "s3:GetEncryptionConfiguration"
    PUT_ENCRYPTION_CONFIGURATION = "s3:PutEncryptionConfiguration"
    GET_BUCKET_OWNERSHIP_CONTROLS = "s3:GetBucketOwnershipControls"
    PUT_BUCKET_OWNERSHIP_CONTROLS = "s3:PutBucketOwnershipControls"
    DELETE_BUCKET = "s3:DeleteBucket"

    # Object-level actions (resource: arn:aws:s3:::bucket/key)
    GET_OBJECT = "s3:GetObject"
    GET_OBJECT_VERSION = "s3:GetObjectVersion"
    PUT_OBJECT = "s3:PutObject"
    DELETE_OBJECT = "s3:DeleteObject"
    DELETE_OBJECT_VERSION = "s3:DeleteObjectVersion"
    GET_OBJECT_ACL = "s3:GetObjectAcl"
    PUT_OBJECT_ACL = "s3:PutObjectAcl"

    @property
    def scope(self) -> ResourceKind:
        """Whether the action applies to the bucket ARN or to object ARNs."""
        if self in OBJECT_ACTIONS:
            return ResourceKind.OBJECT
        return ResourceKind.BUCKET


OBJECT_ACTIONS = frozenset({
    Action.GET_OBJECT,
    Action.GET_OBJECT_VERSION,
    Action.PUT_OBJECT,
    Action.DELETE_OBJECT,
    Action.DELETE_OBJECT_VERSION,
    Action.GET_OBJECT_ACL,
    Action.PUT_OBJECT_ACL,
})


def parse_action(name: str) -> Action:
    """Resolve a single action name (case-insensitive, no wildcard)."""
    if not isinstance(name, str):
        raise ValueError(f"action must be a string, got {name!r}")
    lowered = name.strip().lower()
    for action in Action:
        if action.value.lower() == lowered:
            return action
    raise ValueError(f"unknown action {name!r}")


def expand_action(pattern: str) -> frozenset[Action]:
    """Expand an action pattern such as ``s3:*`` or ``s3:Get*``.

    Action names are case-insensitive, as in IAM.

    Raises:
        ValueError: if the pattern matches no known action
    """
    if not isinstance(pattern, str) or not pattern.strip():
        raise ValueError(f"action must be a non-empty string, got {pattern!r}")

    if not pattern.endswith(WILDCARD):
        return frozenset({parse_action(pattern)})

    if WILDCARD in pattern[:-1]:
        raise ValueError(f"action {pattern!r}: wildcard is only allowed as the last character")

    prefix = pattern[:-1].strip().lower()
    matched = frozenset(a for a in Action if a.value.lower().startswith(prefix))
    if not matched:
        raise ValueError(f"action pattern {pattern!r} matches no known action")
    return matched


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (str, Enum)):
        return [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    raise ValueError(f"expected a string or a list of strings, got {value!r}")


class Statement(BaseModel):
    """A single Allow/Deny statement.

    Matches a request when the principal, the action and at least one
    resource pattern all match. Action wildcards are expanded on
    construction, so ``actions`` always holds concrete actions.
    """

    model_config = ConfigDict(frozen=True)

    sid: str | None = Field(default=None, description="Optional statement identifier")
    effect: Effect = Field(description="Allow or Deny")
    principals: frozenset[str] = Field(
        min_length=1,
        description="Principal identifiers ('*' for everyone)"
    )
    actions: frozenset[Action] = Field(
        min_length=1,
        description="Concrete actions covered by the statement"
    )
    resources: frozenset[str] = Field(
        min_length=1,
        description="S3 resource patterns"
    )
    principal_types: frozenset[tuple[str, str]] = Field(
        default=frozenset(),
        description="(type, principal) pairs for principals not of type AWS, e.g. Service"
    )

    @field_validator("principals", mode="before")
    @classmethod
    def normalize_principals(cls, value: Any) -> list[str]:
        principals = []
        for principal in _as_list(value):
            if not isinstance(principal, str) or not principal.strip():
                raise ValueError(f"principal must be a non-empty string, got {principal!r}")
            principals.append(principal.strip())
        return principals

    @field_validator("actions", mode="before")
    @classmethod
    def expand_actions(cls, value: Any) -> list[Action]:
        actions: set[Action] = set()
        for item in _as_list(value):
            if isinstance(item, Action):
                actions.add(item)
            else:
                actions.update(expand_action(item))
        return list(actions)

    @field_validator("resources", mode="before")
    @classmethod
    def check_resources(cls, value: Any) -> list[str]:
        # ResourcePatternError is not a ValueError and propagates as-is
        return [validate_pattern(pattern) for pattern in _as_list(value)]

    @model_validator(mode="after")
    def check_principal_types(self) -> "Statement":
        untyped = {name for _, name in self.principal_types} - self.principals
        if untyped:
            raise ValueError(f"typed principal(s) not in principals: {', '.join(sorted(untyped))}")
        return self

    def principal_type(self, principal: str) -> str:
        """Principal element key a principal was declared under."""
        for kind, name in self.principal_types:
            if name == principal:
                return kind
        return "AWS"

    @property
    def statement_id(self) -> str:
        """Stable identifier: the Sid, or a hash of the statement content."""
        if self.sid:
            return self.sid
        canonical = json.dumps(self.to_aws(), sort_keys=True, separators=(",", ":"))
        return "stmt-" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:12]

    def applies_to_principal(self, principal: str) -> bool:
        return ANY_PRINCIPAL in self.principals or principal in self.principals

    def matching_resource(self, resource: str) -> str | None:
        """Return the first (sorted) pattern matching a concrete resource."""
        for pattern in sorted(self.resources):
            if pattern_matches(pattern, resource):
                return pattern
        return None

    def matches(self, request: "AccessRequest") -> bool:
        """Check whether this statement applies to a request."""
        if request.action not in self.actions:
            return False
        if not self.applies_to_principal(request.principal):
            return False
        # A bucket-level action never applies to an object ARN and vice versa
        if request.action.scope != request.resource_kind:
            return False
        return self.matching_resource(request.resource) is not None

    def to_aws(self) -> dict[str, Any]:
        """Render in AWS policy JSON shape (deterministic ordering)."""
        principals = sorted(self.principals)
        if principals == [ANY_PRINCIPAL]:
            principal: Any = ANY_PRINCIPAL
        else:
            grouped: dict[str, list[str]] = {}
            for name in principals:
                grouped.setdefault(self.principal_type(name), []).append(name)
            principal = {
                kind: names[0] if len(names) == 1 else names
                for kind, names in sorted(grouped.items())
            }

        actions = sorted(a.value for a in self.actions)
        resources = sorted(self.resources)

        rendered: dict[str, Any] = {}
        if self.sid:
            rendered["Sid"] = self.sid
        rendered["Effect"] = self.effect.value
        rendered["Principal"] = principal
        rendered["Action"] = actions[0] if len(actions) == 1 else actions
        rendered["Resource"] = resources[0] if len(resources) == 1 else resources
        return rendered


class PolicyDocument(BaseModel):
    """An ordered set of statements.

    Order is kept for display only; it never affects evaluation.
    """

    model_config = ConfigDict(frozen=True)

    version: str = Field(default="2012-10-17", description="Policy language version")
    id: str | None = Field(default=None, description="Optional policy identifier")
    statements: tuple[Statement, ...] = Field(default=())

    @field_validator("version")
    @classmethod
    def check_version(cls, value: str) -> str:
        if value not in POLICY_VERSIONS:
            raise ValueError(f"unsupported policy version {value!r}")
        return value

    @model_validator(mode="after")
    def check_unique_ids(self) -> "PolicyDocument":
        """Reject documents where two statements share an identifier."""
        seen: set[str] = set()
        for index, statement in enumerate(self.statements):
            statement_id = statement.statement_id
            if statement_id in seen:
                raise PolicyValidationError(
                    f"duplicate statement id {statement_id!r}",
                    statement_index=index,
                    sid=statement.sid,
                )
            seen.add(statement_id)
        return self

    def get_statement(self, statement_id: str) -> Statement | None:
        for statement in self.statements:
            if statement.statement_id == statement_id:
                return statement
        return None

    @property
    def principals(self) -> frozenset[str]:
        """Every principal named anywhere in the document."""
        names: set[str] = set()
        for statement in self.statements:
            names.update(statement.principals)
        return frozenset(names)

    @property
    def buckets(self) -> frozenset[str]:
        """Bucket segments referenced by resource patterns."""
        return frozenset(
            bucket_of(pattern)
            for statement in self.statements
            for pattern in statement.resources
        )

    def to_aws(self) -> dict[str, Any]:
        rendered: dict[str, Any] = {"Version": self.version}
        if self.id:
            rendered["Id"] = self.id
        rendered["Statement"] = [s.to_aws() for s in self.statements]
        return rendered


class AccessRequest(BaseModel):
    """A principal asking to perform one action on one concrete resource."""

    model_config = ConfigDict(frozen=True)

    principal: str = Field(min_length=1, description="Requesting identity")
    action: Action = Field(description="Requested action")
    resource: str = Field(description="Concrete S3 ARN (no wildcards)")

    @field_validator("action", mode="before")
    @classmethod
    def resolve_action(cls, value: Any) -> Action:
        if isinstance(value, Action):
            return value
        if isinstance(value, str) and WILDCARD in value:
            raise ValueError(f"a requested action cannot contain wildcards: {value!r}")
        return parse_action(value)

    @field_validator("resource", mode="before")
    @classmethod
    def check_resource(cls, value: Any) -> str:
        return validate_resource(value)

    @property
    def resource_kind(self) -> ResourceKind:
        return resource_kind(self.resource)

    @property
    def bucket(self) -> str:
        return bucket_of(self.resource)


class DecisionReason(str, Enum):
    """Why a decision came out the way it did."""

    EXPLICIT_ALLOW = "explicit_allow"
    EXPLICIT_DENY = "explicit_deny"
    IMPLICIT_DENY = "implicit_deny"


class Decision(BaseModel):
    """Result of evaluating a request against a document."""

    model_config = ConfigDict(frozen=True)

    effect: Effect = Field(description="Allow or Deny")
    reason: DecisionReason = Field(description="Explicit allow, explicit deny or implicit deny")
    deciding_statement: str | None = Field(
        default=None,
        description="Statement that decided the outcome (None for implicit deny)"
    )
    matched_statements: tuple[str, ...] = Field(
        default=(),
        description="Every statement matching the request, sorted by id"
    )
    request: AccessRequest

    @property
    def allowed(self) -> bool:
        return self.effect == Effect.ALLOW

    def summary(self) -> str:
        """One-line description suitable for logs and CLI output."""
        target = f"{self.request.principal} {self.request.action.value} {self.request.resource}"
        if self.reason == DecisionReason.IMPLICIT_DENY:
            return f"DENY {target} (implicit: no statement grants access)"
        verb = "ALLOW" if self.allowed else "DENY"
        kind = "granted" if self.allowed else "denied"
        return f"{verb} {target} ({kind} by {self.deciding_statement})"

