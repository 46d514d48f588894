"""Tests for policy evaluation.

Covers explicit-deny precedence, default deny, bucket/object scope
separation, determinism and order independence.
"""

import random

import pytest

from bucketguard.audit import DecisionLog
from bucketguard.authz import (
    AccessRequest,
    Action,
    DecisionReason,
    Effect,
    PolicyDocument,
    PolicyEvaluator,
    Statement,
    evaluate,
    load_document,
)
from bucketguard.errors import RequestValidationError, ResourcePatternError

BUCKET_ARN = "arn:aws:s3:::jib-bucket"
OBJECTS_ARN = "arn:aws:s3:::jib-bucket/*"
OBJECT_ARN = "arn:aws:s3:::jib-bucket/reports/2024.csv"


def request(principal: str, action: Action, resource: str) -> AccessRequest:
    return AccessRequest(principal=principal, action=action, resource=resource)


# =============================================================================
# Scenario: jib_iam allowed, jib02 denied
# =============================================================================


class TestJibScenario:
    """The reference bucket policy."""

    def test_allowed_principal_reads_object(self, jib_document):
        """jib_iam can GetObject on an object path."""
        decision = evaluate(jib_document, request("jib_iam", Action.GET_OBJECT, OBJECT_ARN))

        assert decision.allowed
        assert decision.reason == DecisionReason.EXPLICIT_ALLOW
        assert decision.deciding_statement == "AllowJibIamRead"

    def test_allowed_principal_lists_bucket(self, jib_document):
        """jib_iam can ListBucket on the bucket ARN."""
        decision = evaluate(jib_document, request("jib_iam", Action.LIST_BUCKET, BUCKET_ARN))
        assert decision.allowed

    def test_denied_principal(self, jib_document):
        """jib02 is explicitly denied, and the Deny statement is reported."""
        decision = evaluate(jib_document, request("jib02", Action.GET_OBJECT, OBJECT_ARN))

        assert not decision.allowed
        assert decision.effect == Effect.DENY
        assert decision.reason == DecisionReason.EXPLICIT_DENY
        assert decision.deciding_statement == "DenyJib02"

    def test_unknown_principal_implicitly_denied(self, jib_document):
        """A principal not named anywhere gets the default deny."""
        decision = evaluate(jib_document, request("unknown_user", Action.GET_OBJECT, OBJECT_ARN))

        assert not decision.allowed
        assert decision.reason == DecisionReason.IMPLICIT_DENY
        assert decision.deciding_statement is None
        assert decision.matched_statements == ()

    def test_action_not_granted(self, jib_document):
        """jib_iam has no PutObject grant."""
        decision = evaluate(jib_document, request("jib_iam", Action.PUT_OBJECT, OBJECT_ARN))
        assert decision.reason == DecisionReason.IMPLICIT_DENY

    def test_other_bucket_not_covered(self, jib_document):
        decision = evaluate(
            jib_document,
            request("jib_iam", Action.GET_OBJECT, "arn:aws:s3:::jib-bucket-logs/a.log"),
        )
        assert not decision.allowed


# =============================================================================
# Effect precedence
# =============================================================================


class TestPrecedence:
    """Explicit deny beats any number of allows."""

    def test_overlapping_allow_and_deny_resolves_to_deny(self):
        document = PolicyDocument(statements=(
            Statement(sid="A1", effect=Effect.ALLOW, principals=["alice"],
                      actions=["s3:GetObject"], resources=[OBJECTS_ARN]),
            Statement(sid="A2", effect=Effect.ALLOW, principals=["*"],
                      actions=["s3:*"], resources=["arn:aws:s3:::*"]),
            Statement(sid="D1", effect=Effect.DENY, principals=["alice"],
                      actions=["s3:GetObject"], resources=[OBJECT_ARN]),
        ))

        decision = evaluate(document, request("alice", Action.GET_OBJECT, OBJECT_ARN))

        assert decision.effect == Effect.DENY
        assert decision.deciding_statement == "D1"
        assert decision.matched_statements == ("A1", "A2", "D1")

    def test_wildcard_deny_overrides_named_allow(self):
        document = PolicyDocument(statements=(
            Statement(sid="AllowAlice", effect=Effect.ALLOW, principals=["alice"],
                      actions=["s3:PutObject"], resources=[OBJECTS_ARN]),
            Statement(sid="DenyAllWrites", effect=Effect.DENY, principals=["*"],
                      actions=["s3:Put*"], resources=[OBJECTS_ARN]),
        ))

        decision = evaluate(document, request("alice", Action.PUT_OBJECT, OBJECT_ARN))
        assert decision.deciding_statement == "DenyAllWrites"

    def test_empty_document_denies_everything(self):
        decision = evaluate(PolicyDocument(), request("alice", Action.GET_OBJECT, OBJECT_ARN))
        assert decision.reason == DecisionReason.IMPLICIT_DENY

    def test_several_denies_report_smallest_id(self):
        document = PolicyDocument(statements=(
            Statement(sid="Zeta", effect=Effect.DENY, principals=["bob"],
                      actions=["s3:GetObject"], resources=[OBJECTS_ARN]),
            Statement(sid="Alpha", effect=Effect.DENY, principals=["bob"],
                      actions=["s3:GetObject"], resources=[OBJECTS_ARN]),
        ))

        decision = evaluate(document, request("bob", Action.GET_OBJECT, OBJECT_ARN))
        assert decision.deciding_statement == "Alpha"


# =============================================================================
# Bucket-level vs object-level resources
# =============================================================================


class TestResourceScopes:
    """Bucket ARN and object ARNs are distinct."""

    def test_bucket_arn_only_does_not_grant_get_object(self):
        """A statement scoped to the bucket ARN grants nothing on objects."""
        document = load_document({
            "Statement": [{
                "Sid": "BucketOnly",
                "Effect": "Allow",
                "Principal": "jib_iam",
                "Action": ["s3:GetObject", "s3:ListBucket"],
                "Resource": BUCKET_ARN,
            }],
        })

        assert not evaluate(document, request("jib_iam", Action.GET_OBJECT, OBJECT_ARN)).allowed
        assert evaluate(document, request("jib_iam", Action.LIST_BUCKET, BUCKET_ARN)).allowed

    def test_object_pattern_only_does_not_grant_list_bucket(self):
        document = load_document({
            "Statement": [{
                "Sid": "ObjectsOnly",
                "Effect": "Allow",
                "Principal": "jib_iam",
                "Action": ["s3:GetObject", "s3:ListBucket"],
                "Resource": OBJECTS_ARN,
            }],
        })

        assert evaluate(document, request("jib_iam", Action.GET_OBJECT, OBJECT_ARN)).allowed
        assert not evaluate(document, request("jib_iam", Action.LIST_BUCKET, BUCKET_ARN)).allowed

    def test_action_scope_mismatch_is_implicit_deny(self):
        """ListBucket against an object ARN never matches, even under a wildcard."""
        document = load_document({
            "Statement": [{
                "Sid": "Everything",
                "Effect": "Allow",
                "Principal": "*",
                "Action": "s3:*",
                "Resource": "arn:aws:s3:::*",
            }],
        })

        decision = evaluate(document, request("jib_iam", Action.LIST_BUCKET, OBJECT_ARN))
        assert decision.reason == DecisionReason.IMPLICIT_DENY

        decision = evaluate(document, request("jib_iam", Action.GET_OBJECT, BUCKET_ARN))
        assert decision.reason == DecisionReason.IMPLICIT_DENY

    def test_key_prefix_pattern(self):
        document = load_document({
            "Statement": [{
                "Sid": "Reports",
                "Effect": "Allow",
                "Principal": "analyst",
                "Action": "s3:GetObject",
                "Resource": "arn:aws:s3:::jib-bucket/reports/*",
            }],
        })

        assert evaluate(document, request("analyst", Action.GET_OBJECT, OBJECT_ARN)).allowed
        assert not evaluate(
            document, request("analyst", Action.GET_OBJECT, "arn:aws:s3:::jib-bucket/private/a")
        ).allowed


# =============================================================================
# Determinism
# =============================================================================


class TestDeterminism:
    """Same inputs, same decision, whatever the statement order."""

    def test_repeated_evaluation_is_identical(self, jib_document):
        req = request("jib02", Action.GET_OBJECT, OBJECT_ARN)
        first = evaluate(jib_document, req)

        for _ in range(50):
            assert evaluate(jib_document, req) == first

    def test_statement_order_does_not_matter(self):
        statements = [
            Statement(effect=Effect.ALLOW, principals=["alice"],
                      actions=["s3:GetObject"], resources=[OBJECTS_ARN]),
            Statement(effect=Effect.ALLOW, principals=["*"],
                      actions=["s3:Get*"], resources=[OBJECTS_ARN]),
            Statement(effect=Effect.DENY, principals=["alice"],
                      actions=["s3:GetObject"], resources=[OBJECT_ARN]),
            Statement(effect=Effect.DENY, principals=["bob"],
                      actions=["s3:*"], resources=["arn:aws:s3:::jib-*"]),
        ]
        requests = [
            request(p, a, r)
            for p in ("alice", "bob", "carol")
            for a in (Action.GET_OBJECT, Action.GET_OBJECT_VERSION, Action.LIST_BUCKET)
            for r in (OBJECT_ARN, BUCKET_ARN)
        ]

        baseline = PolicyDocument(statements=tuple(statements))
        expected = [evaluate(baseline, r) for r in requests]

        rng = random.Random(1234)
        for _ in range(10):
            shuffled = statements[:]
            rng.shuffle(shuffled)
            document = PolicyDocument(statements=tuple(shuffled))
            assert [evaluate(document, r) for r in requests] == expected


# =============================================================================
# PolicyEvaluator
# =============================================================================


class TestPolicyEvaluator:
    """Stateful wrapper: logging, recording, helpers."""

    def test_check_parses_raw_values(self, evaluator):
        decision = evaluator.check("jib_iam", "s3:getobject", OBJECT_ARN)
        assert decision.allowed
        assert decision.request.action == Action.GET_OBJECT

    def test_check_rejects_wildcard_resource(self, evaluator):
        with pytest.raises(RequestValidationError):
            evaluator.check("jib_iam", "s3:GetObject", OBJECTS_ARN)

    def test_check_rejects_unknown_action(self, evaluator):
        with pytest.raises(RequestValidationError):
            evaluator.check("jib_iam", "s3:Teleport", OBJECT_ARN)

    def test_decisions_are_recorded(self, jib_document):
        log = DecisionLog()
        evaluator = PolicyEvaluator(jib_document, recorder=log)

        evaluator.check("jib_iam", "s3:GetObject", OBJECT_ARN)
        evaluator.check("jib02", "s3:GetObject", OBJECT_ARN)

        records = log.records()
        assert len(records) == 2
        assert [r.deciding_statement for r in log.denials()] == ["DenyJib02"]

    def test_denial_is_logged(self, evaluator, caplog):
        with caplog.at_level("INFO", logger="bucketguard.authz.engine"):
            evaluator.check("jib02", "s3:ListBucket", BUCKET_ARN)

        assert "DenyJib02" in caplog.text

    def test_evaluate_many_keeps_order(self, evaluator):
        decisions = evaluator.evaluate_many([
            request("jib_iam", Action.GET_OBJECT, OBJECT_ARN),
            request("jib02", Action.GET_OBJECT, OBJECT_ARN),
            request("nobody", Action.GET_OBJECT, OBJECT_ARN),
        ])
        assert [d.allowed for d in decisions] == [True, False, False]

    def test_effective_permissions(self, evaluator):
        assert evaluator.effective_permissions("jib_iam", OBJECT_ARN) == {Action.GET_OBJECT}
        assert evaluator.effective_permissions("jib_iam", BUCKET_ARN) == {Action.LIST_BUCKET}
        assert evaluator.effective_permissions("jib02", OBJECT_ARN) == frozenset()

    def test_effective_permissions_rejects_pattern(self, evaluator):
        with pytest.raises(ResourcePatternError):
            evaluator.effective_permissions("jib_iam", OBJECTS_ARN)

    def test_summary(self, evaluator):
        assert evaluator.check("jib02", "s3:GetObject", OBJECT_ARN).summary() == (
            f"DENY jib02 s3:GetObject {OBJECT_ARN} (denied by DenyJib02)"
        )
        assert "implicit" in evaluator.check("eve", "s3:GetObject", OBJECT_ARN).summary()
