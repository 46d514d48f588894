"""S3 ARN parsing and resource-pattern matching.

Resource patterns are S3 ARNs with an optional single trailing ``*``:

    arn:aws:s3:::my-bucket          bucket-level resource
    arn:aws:s3:::my-bucket/*        every object in the bucket
    arn:aws:s3:::my-bucket/logs/*   objects under a key prefix

The bucket ARN and its ``/*`` object variant are distinct patterns: one
never matches what the other covers.
"""

import re
from enum import Enum

from bucketguard.errors import ResourcePatternError

S3_ARN_PREFIX = "arn:aws:s3:::"
WILDCARD = "*"

# S3 bucket naming rules (lowercase, digits, dots, hyphens; 3-63 chars)
_BUCKET_NAME = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
_BUCKET_PREFIX = re.compile(r"^[a-z0-9.-]*$")


class ResourceKind(str, Enum):
    """Whether an ARN (or an action) addresses the bucket or its objects."""

    BUCKET = "bucket"
    OBJECT = "object"


def is_valid_bucket_name(name: str) -> bool:
    """Check a bucket name against the S3 naming rules."""
    return bool(_BUCKET_NAME.match(name)) and ".." not in name


def _split(arn: str) -> tuple[str, str | None]:
    """Split an S3 ARN into (bucket, key). Key is None for bucket ARNs."""
    body = arn[len(S3_ARN_PREFIX):]
    bucket, sep, key = body.partition("/")
    return bucket, (key if sep else None)


def validate_pattern(pattern: str) -> str:
    """Validate a resource pattern and return it unchanged.

    Raises:
        ResourcePatternError: if the pattern is not an S3 ARN, carries a
            wildcard anywhere but the end, or names an invalid bucket.
    """
    if not isinstance(pattern, str) or not pattern:
        raise ResourcePatternError(f"resource pattern must be a non-empty string, got {pattern!r}")

    if pattern == WILDCARD:
        raise ResourcePatternError(
            "bare '*' is not supported; use 'arn:aws:s3:::*' to match every S3 resource"
        )

    if not pattern.startswith(S3_ARN_PREFIX):
        raise ResourcePatternError(f"{pattern!r} is not an S3 ARN (expected prefix {S3_ARN_PREFIX!r})")

    if WILDCARD in pattern[:-1]:
        raise ResourcePatternError(f"{pattern!r}: wildcard is only allowed as the last character")

    bucket, key = _split(pattern)

    if key is None:
        # Wildcard inside the bucket segment: the rest must be a valid prefix
        if bucket.endswith(WILDCARD):
            if not _BUCKET_PREFIX.match(bucket[:-1]):
                raise ResourcePatternError(f"{pattern!r}: invalid bucket name prefix")
        elif not is_valid_bucket_name(bucket):
            raise ResourcePatternError(f"{pattern!r}: invalid bucket name {bucket!r}")
        return pattern

    if not is_valid_bucket_name(bucket):
        raise ResourcePatternError(f"{pattern!r}: invalid bucket name {bucket!r}")
    if not key:
        raise ResourcePatternError(f"{pattern!r}: empty object key; use '{pattern}*' for all objects")

    return pattern


def validate_resource(resource: str) -> str:
    """Validate a concrete (wildcard-free) resource ARN."""
    if isinstance(resource, str) and WILDCARD in resource:
        raise ResourcePatternError(f"{resource!r}: a requested resource cannot contain wildcards")
    return validate_pattern(resource)


def resource_kind(arn: str) -> ResourceKind:
    """Classify a concrete ARN as bucket-level or object-level."""
    _, key = _split(arn)
    return ResourceKind.BUCKET if key is None else ResourceKind.OBJECT


def bucket_of(arn: str) -> str:
    """Return the bucket segment of an ARN or pattern (may end with '*')."""
    bucket, _ = _split(arn)
    return bucket


def bucket_arn(bucket: str) -> str:
    return f"{S3_ARN_PREFIX}{bucket}"


def objects_arn(bucket: str) -> str:
    return f"{S3_ARN_PREFIX}{bucket}/*"


def pattern_matches(pattern: str, resource: str) -> bool:
    """Exact match, or prefix match when the pattern ends with '*'."""
    if pattern.endswith(WILDCARD):
        return resource.startswith(pattern[:-1])
    return pattern == resource


def pattern_kinds(pattern: str) -> frozenset[ResourceKind]:
    """Kinds of concrete resource a pattern can match.

    ``arn:aws:s3:::b`` matches only the bucket, ``arn:aws:s3:::b/*`` only
    objects, while a wildcard in the bucket segment (``arn:aws:s3:::b*``)
    can match both.
    """
    bucket, key = _split(pattern)
    if key is not None:
        return frozenset({ResourceKind.OBJECT})
    if bucket.endswith(WILDCARD):
        return frozenset({ResourceKind.BUCKET, ResourceKind.OBJECT})
    return frozenset({ResourceKind.BUCKET})
