"""bucketguard Authorization Package.

Offline model of S3 bucket-policy evaluation: explicit deny wins,
explicit allow grants, everything else is implicitly denied.

Usage:
    from bucketguard.authz import PolicyEvaluator, load_document_file

    document = load_document_file("configs/jib-bucket.yaml")
    evaluator = PolicyEvaluator(document)

    decision = evaluator.check("jib_iam", "s3:GetObject", "arn:aws:s3:::jib-bucket/report.csv")
    if decision.allowed:
        # Allowed
        pass
"""

from bucketguard.authz.models import (
    Action,
    Effect,
    Statement,
    PolicyDocument,
    AccessRequest,
    Decision,
    DecisionReason,
)
from bucketguard.authz.patterns import ResourceKind
from bucketguard.authz.loader import (
    load_document,
    load_document_file,
    parse_request,
    document_to_aws_json,
)
from bucketguard.authz.engine import PolicyEvaluator, evaluate

__all__ = [
    "Action",
    "Effect",
    "Statement",
    "PolicyDocument",
    "AccessRequest",
    "Decision",
    "DecisionReason",
    "ResourceKind",
    "load_document",
    "load_document_file",
    "parse_request",
    "document_to_aws_json",
    "PolicyEvaluator",
    "evaluate",
]
