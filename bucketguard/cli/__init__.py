"""bucketguard CLI package."""

from bucketguard.cli.config import Settings
from bucketguard.cli.main import main, build_parser

__all__ = ["Settings", "main", "build_parser"]
