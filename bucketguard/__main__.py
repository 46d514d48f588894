"""Run the bucketguard CLI: python -m bucketguard."""

from bucketguard.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
