"""bucketguard Bucket Package.

Bucket configuration (encryption, access logging, ownership controls,
public access block, policy) and static checks over it.

Usage:
    from bucketguard.bucket import load_bucket_file, check_bucket

    config = load_bucket_file("configs/jib-bucket.yaml")
    for finding in check_bucket(config):
        print(finding)
"""

from bucketguard.bucket.models import (
    SSEAlgorithm,
    ObjectOwnership,
    EncryptionConfig,
    LoggingConfig,
    PublicAccessBlock,
    BucketConfiguration,
    load_bucket_config,
    load_bucket_file,
)
from bucketguard.bucket.checks import (
    FindingSeverity,
    Finding,
    check_bucket,
    has_errors,
)

__all__ = [
    "SSEAlgorithm",
    "ObjectOwnership",
    "EncryptionConfig",
    "LoggingConfig",
    "PublicAccessBlock",
    "BucketConfiguration",
    "load_bucket_config",
    "load_bucket_file",
    "FindingSeverity",
    "Finding",
    "check_bucket",
    "has_errors",
]
