"""bucketguard command-line interface.

Usage:
    bucketguard evaluate configs/jib-bucket.yaml \\
        --principal jib_iam --action s3:GetObject \\
        --resource arn:aws:s3:::jib-bucket/report.csv
    bucketguard validate configs/jib-policy.json
    bucketguard export configs/jib-bucket.yaml
    bucketguard check-bucket configs/jib-bucket.yaml
    bucketguard simulate configs/jib-bucket.yaml --resource arn:aws:s3:::jib-bucket/report.csv
    bucketguard verify-log data/decisions.jsonl
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from bucketguard import __version__
from bucketguard.audit import DecisionLog, FileDecisionStorage
from bucketguard.authz import (
    PolicyDocument,
    PolicyEvaluator,
    document_to_aws_json,
    load_document_file,
    parse_request,
)
from bucketguard.authz.models import ANY_PRINCIPAL
from bucketguard.bucket import check_bucket, has_errors, load_bucket_file
from bucketguard.cli.config import Settings
from bucketguard.errors import BucketGuardError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_INVALID = 2
EXIT_DENIED = 3


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    """Send log records to stderr at the configured level."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level)
    logging.basicConfig(format=settings.log_format, stream=sys.stderr)
    logging.getLogger().setLevel(level)


def _emit(payload: Any, as_json: bool, text: str) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        print(text)


def _document_path(args: argparse.Namespace, settings: Settings) -> Path:
    path = args.document or settings.default_document
    if not path:
        raise BucketGuardError("no policy document given (argument or BUCKETGUARD_DEFAULT_DOCUMENT)")
    return Path(path)


def _load(args: argparse.Namespace, settings: Settings) -> PolicyDocument:
    return load_document_file(_document_path(args, settings))


def cmd_evaluate(args: argparse.Namespace, settings: Settings) -> int:
    document = _load(args, settings)

    recorder = None
    if args.audit_log or settings.audit_enabled:
        recorder = DecisionLog(FileDecisionStorage(args.audit_log or settings.audit_log_path))

    evaluator = PolicyEvaluator(document, recorder=recorder)
    decision = evaluator.evaluate(parse_request(args.principal, args.action, args.resource))

    lines = [decision.summary()]
    if decision.matched_statements:
        lines.append(f"matched statements: {', '.join(decision.matched_statements)}")
    _emit(decision.model_dump(mode="json"), args.json, "\n".join(lines))

    return EXIT_OK if decision.allowed else EXIT_DENIED


def cmd_validate(args: argparse.Namespace, settings: Settings) -> int:
    document = _load(args, settings)
    _emit(
        {"valid": True, "statements": [s.statement_id for s in document.statements]},
        args.json,
        f"OK: {len(document.statements)} statement(s)",
    )
    return EXIT_OK


def cmd_export(args: argparse.Namespace, settings: Settings) -> int:
    print(document_to_aws_json(_load(args, settings)))
    return EXIT_OK


def cmd_check_bucket(args: argparse.Namespace, settings: Settings) -> int:
    config = load_bucket_file(args.config)
    findings = check_bucket(config)

    text = "\n".join(str(f) for f in findings) if findings else f"OK: no findings for {config.name}"
    _emit([f.model_dump(mode="json") for f in findings], args.json, text)

    return EXIT_FINDINGS if has_errors(findings) else EXIT_OK


def cmd_simulate(args: argparse.Namespace, settings: Settings) -> int:
    document = _load(args, settings)
    evaluator = PolicyEvaluator(document)

    principals = args.principal or sorted(document.principals - {ANY_PRINCIPAL})

    rows = []
    for principal in principals:
        for resource in args.resource:
            allowed = evaluator.effective_permissions(principal, resource)
            rows.append({
                "principal": principal,
                "resource": resource,
                "allowed_actions": sorted(a.value for a in allowed),
            })

    text = "\n".join(
        f"{row['principal']} {row['resource']}: {', '.join(row['allowed_actions']) or '(none)'}"
        for row in rows
    )
    _emit(rows, args.json, text)
    return EXIT_OK


def cmd_verify_log(args: argparse.Namespace, settings: Settings) -> int:
    path = Path(args.path or settings.audit_log_path)
    if not path.exists():
        raise BucketGuardError(f"{path}: decision log not found")

    status = DecisionLog(FileDecisionStorage(path)).status()
    if status.chain_valid:
        text = f"OK: {status.total_records} record(s), {status.denied_records} denial(s)"
    else:
        text = f"INVALID: {status.error_message}"
    _emit(status.model_dump(mode="json"), args.json, text)

    return EXIT_OK if status.chain_valid else EXIT_FINDINGS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bucketguard",
        description="Validate and simulate S3 bucket access configuration offline.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", default=None, help="JSON output")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("evaluate", parents=[common], help="decide one access request")
    p.add_argument("document", nargs="?", help="policy or bucket file (.json/.yaml)")
    p.add_argument("--principal", required=True)
    p.add_argument("--action", required=True)
    p.add_argument("--resource", required=True)
    p.add_argument("--audit-log", help="append the decision to this JSONL decision log")
    p.set_defaults(func=cmd_evaluate)

    p = sub.add_parser("validate", parents=[common], help="validate a policy document")
    p.add_argument("document", nargs="?")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("export", help="print a policy document as AWS JSON")
    p.add_argument("document", nargs="?")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("check-bucket", parents=[common], help="run static bucket checks")
    p.add_argument("config", help="bucket configuration file")
    p.set_defaults(func=cmd_check_bucket)

    p = sub.add_parser("simulate", parents=[common], help="list allowed actions per principal")
    p.add_argument("document", nargs="?")
    p.add_argument("--principal", action="append", help="repeatable; default: every named principal")
    p.add_argument("--resource", action="append", required=True, help="repeatable")
    p.set_defaults(func=cmd_simulate)

    p = sub.add_parser("verify-log", parents=[common], help="verify a decision log hash chain")
    p.add_argument("path", nargs="?")
    p.set_defaults(func=cmd_verify_log)

    return parser


def main(argv: Sequence[str] | None = None, settings: Settings | None = None) -> int:
    settings = settings or Settings()
    args = build_parser().parse_args(argv)
    configure_logging(settings, verbose=args.verbose)

    if getattr(args, "json", None) is None:
        args.json = settings.output_format == "json"

    try:
        return args.func(args, settings)
    except BucketGuardError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_INVALID
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_INVALID
