"""Shared fixtures for bucketguard tests."""

from pathlib import Path

import pytest

from bucketguard.authz import PolicyEvaluator, load_document

CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"

BUCKET_ARN = "arn:aws:s3:::jib-bucket"
OBJECTS_ARN = "arn:aws:s3:::jib-bucket/*"


@pytest.fixture
def jib_policy() -> dict:
    """AWS-shaped policy: jib_iam may read, jib02 is denied."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "AllowJibIamRead",
                "Effect": "Allow",
                "Principal": {"AWS": "jib_iam"},
                "Action": ["s3:GetObject", "s3:ListBucket"],
                "Resource": [BUCKET_ARN, OBJECTS_ARN],
            },
            {
                "Sid": "DenyJib02",
                "Effect": "Deny",
                "Principal": {"AWS": "jib02"},
                "Action": ["s3:GetObject", "s3:ListBucket"],
                "Resource": [BUCKET_ARN, OBJECTS_ARN],
            },
        ],
    }


@pytest.fixture
def jib_document(jib_policy):
    return load_document(jib_policy)


@pytest.fixture
def evaluator(jib_document):
    return PolicyEvaluator(jib_document)


@pytest.fixture
def bucket_yaml() -> Path:
    return CONFIG_DIR / "jib-bucket.yaml"


@pytest.fixture
def policy_json() -> Path:
    return CONFIG_DIR / "jib-policy.json"
