"""Policy evaluation engine.

Evaluation order:
1. Collect statements matching (principal, action, resource)
2. Any matching DENY statement -> explicit deny
3. Any matching ALLOW statement -> explicit allow
4. Default deny
"""

import logging
from typing import Iterable, Protocol

from bucketguard.authz.loader import parse_request
from bucketguard.authz.models import (
    AccessRequest,
    Action,
    Decision,
    DecisionReason,
    Effect,
    PolicyDocument,
    Statement,
)
from bucketguard.authz.patterns import ResourceKind, resource_kind, validate_resource

logger = logging.getLogger(__name__)


class DecisionRecorder(Protocol):
    """Anything that can persist decisions (see bucketguard.audit)."""

    def record(self, decision: Decision) -> object:
        ...


def matching_statements(document: PolicyDocument, request: AccessRequest) -> list[Statement]:
    """Return every statement of the document that applies to the request."""
    return [s for s in document.statements if s.matches(request)]


def evaluate(document: PolicyDocument, request: AccessRequest) -> Decision:
    """Decide a request against a document.

    Pure function: the result depends only on the set of statements, never
    on their order. When several statements carry the winning effect, the
    one with the smallest id is reported as deciding.
    """
    matched = matching_statements(document, request)
    matched_ids = tuple(sorted(s.statement_id for s in matched))

    denies = sorted(s.statement_id for s in matched if s.effect == Effect.DENY)
    if denies:
        return Decision(
            effect=Effect.DENY,
            reason=DecisionReason.EXPLICIT_DENY,
            deciding_statement=denies[0],
            matched_statements=matched_ids,
            request=request,
        )

    allows = sorted(s.statement_id for s in matched if s.effect == Effect.ALLOW)
    if allows:
        return Decision(
            effect=Effect.ALLOW,
            reason=DecisionReason.EXPLICIT_ALLOW,
            deciding_statement=allows[0],
            matched_statements=matched_ids,
            request=request,
        )

    return Decision(
        effect=Effect.DENY,
        reason=DecisionReason.IMPLICIT_DENY,
        matched_statements=matched_ids,
        request=request,
    )


class PolicyEvaluator:
    """Evaluates requests against one immutable policy document.

    Usage:
        evaluator = PolicyEvaluator(document, recorder=decision_log)

        decision = evaluator.check("jib_iam", "s3:GetObject", "arn:aws:s3:::bucket/key")
        if decision.allowed:
            # Proceed
        else:
            # Reject, decision.deciding_statement names the culprit
    """

    def __init__(self, document: PolicyDocument, recorder: DecisionRecorder | None = None):
        self.document = document
        self.recorder = recorder
        logger.debug(
            "PolicyEvaluator initialized with %d statements", len(document.statements)
        )

    def evaluate(self, request: AccessRequest) -> Decision:
        """Evaluate a request, log the outcome and record it if configured."""
        decision = evaluate(self.document, request)

        if decision.allowed:
            logger.debug(
                "Access ALLOWED by statement %s: principal=%s action=%s resource=%s",
                decision.deciding_statement, request.principal,
                request.action.value, request.resource,
            )
        elif decision.reason == DecisionReason.EXPLICIT_DENY:
            logger.info(
                "Access DENIED by statement %s: principal=%s action=%s resource=%s",
                decision.deciding_statement, request.principal,
                request.action.value, request.resource,
            )
        else:
            logger.info(
                "Access DENIED (default): principal=%s action=%s resource=%s",
                request.principal, request.action.value, request.resource,
            )

        if self.recorder is not None:
            self.recorder.record(decision)

        return decision

    def check(self, principal: str, action: str | Action, resource: str) -> Decision:
        """Build a request from raw values and evaluate it."""
        return self.evaluate(parse_request(principal, action, resource))

    def evaluate_many(self, requests: Iterable[AccessRequest]) -> list[Decision]:
        """Evaluate requests independently, preserving input order."""
        return [self.evaluate(request) for request in requests]

    def effective_permissions(self, principal: str, resource: str) -> frozenset[Action]:
        """Actions the principal is allowed to perform on a concrete resource.

        Only actions whose scope matches the resource kind are considered.
        Nothing is logged or recorded.
        """
        validate_resource(resource)
        kind: ResourceKind = resource_kind(resource)

        allowed = set()
        for action in Action:
            if action.scope != kind:
                continue
            request = AccessRequest(principal=principal, action=action, resource=resource)
            if evaluate(self.document, request).allowed:
                allowed.add(action)
        return frozenset(allowed)
