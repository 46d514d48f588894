"""bucketguard: offline validation of S3 bucket access configuration."""

__version__ = "1.0.0"
