"""Bucket configuration models.

Describes the provider-side state of one S3 bucket: default encryption,
access logging, object ownership, public access block, versioning and
the bucket policy.
"""

import json
import logging
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from bucketguard.authz.loader import format_validation_errors, load_document, read_structured_file
from bucketguard.authz.models import PolicyDocument
from bucketguard.authz.patterns import bucket_arn, is_valid_bucket_name, objects_arn
from bucketguard.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SSEAlgorithm(str, Enum):
    """Server-side encryption algorithms."""

    AES256 = "AES256"
    KMS = "aws:kms"


class ObjectOwnership(str, Enum):
    """Object ownership settings (BucketOwnerEnforced disables ACLs)."""

    BUCKET_OWNER_ENFORCED = "BucketOwnerEnforced"
    BUCKET_OWNER_PREFERRED = "BucketOwnerPreferred"
    OBJECT_WRITER = "ObjectWriter"


def _check_bucket_name(value: str) -> str:
    if not is_valid_bucket_name(value):
        raise ValueError(f"invalid bucket name {value!r}")
    return value


class EncryptionConfig(BaseModel):
    """Default encryption at rest."""

    sse_algorithm: SSEAlgorithm = Field(default=SSEAlgorithm.AES256)
    kms_key_id: str | None = Field(
        default=None,
        description="KMS key ARN or alias (required for aws:kms)"
    )
    bucket_key_enabled: bool = Field(
        default=False,
        description="Use an S3 Bucket Key to reduce KMS requests"
    )

    @model_validator(mode="after")
    def check_kms_key(self) -> "EncryptionConfig":
        if self.sse_algorithm == SSEAlgorithm.KMS and not self.kms_key_id:
            raise ValueError("kms_key_id is required when sse_algorithm is aws:kms")
        if self.sse_algorithm == SSEAlgorithm.AES256 and self.kms_key_id:
            raise ValueError("kms_key_id is only valid with sse_algorithm aws:kms")
        return self


class LoggingConfig(BaseModel):
    """Server access logging destination."""

    target_bucket: str = Field(description="Bucket receiving access logs")
    target_prefix: str = Field(default="", description="Key prefix for log objects")

    @field_validator("target_bucket")
    @classmethod
    def check_target(cls, value: str) -> str:
        return _check_bucket_name(value)


class PublicAccessBlock(BaseModel):
    """The four S3 Block Public Access switches."""

    block_public_acls: bool = True
    ignore_public_acls: bool = True
    block_public_policy: bool = True
    restrict_public_buckets: bool = True

    @property
    def fully_enabled(self) -> bool:
        return all((
            self.block_public_acls,
            self.ignore_public_acls,
            self.block_public_policy,
            self.restrict_public_buckets,
        ))

    @property
    def disabled_switches(self) -> list[str]:
        return [name for name, enabled in self.model_dump().items() if not enabled]


class BucketConfiguration(BaseModel):
    """Declarative configuration of a single bucket."""

    name: str = Field(description="Bucket name")
    encryption: EncryptionConfig | None = Field(
        default=None,
        description="Default encryption (None = not configured)"
    )
    logging: LoggingConfig | None = Field(
        default=None,
        description="Access logging (None = disabled)"
    )
    ownership: ObjectOwnership = Field(default=ObjectOwnership.BUCKET_OWNER_ENFORCED)
    public_access_block: PublicAccessBlock = Field(default_factory=PublicAccessBlock)
    versioning: bool = False
    policy: PolicyDocument | None = Field(default=None, description="Bucket policy")

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _check_bucket_name(value)

    @field_validator("policy", mode="before")
    @classmethod
    def load_policy(cls, value: Any) -> Any:
        # AWS-shaped mappings go through the policy loader; its
        # PolicyValidationError propagates unchanged
        if isinstance(value, Mapping) and "Statement" in value:
            return load_document(value)
        return value

    @property
    def bucket_arn(self) -> str:
        return bucket_arn(self.name)

    @property
    def objects_arn(self) -> str:
        return objects_arn(self.name)


def load_bucket_config(data: Any) -> BucketConfiguration:
    """Build a BucketConfiguration from structured data.

    Accepts either the bucket mapping itself or a mapping with a
    top-level ``bucket`` key.

    Raises:
        ConfigurationError: for malformed bucket settings
        PolicyValidationError: for a malformed policy section
    """
    if isinstance(data, Mapping) and "bucket" in data:
        data = data["bucket"]
    if not isinstance(data, Mapping):
        raise ConfigurationError("bucket configuration must be a mapping")

    try:
        config = BucketConfiguration.model_validate(dict(data))
    except ValidationError as exc:
        raise ConfigurationError(format_validation_errors(exc)) from exc

    logger.debug("Loaded bucket configuration for %s", config.name)
    return config


def load_bucket_file(path: str | Path) -> BucketConfiguration:
    """Load a bucket configuration from a YAML or JSON file."""
    try:
        data = read_structured_file(path)
    except (json.JSONDecodeError, yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"{path}: cannot parse file: {exc}") from exc
    return load_bucket_config(data)
