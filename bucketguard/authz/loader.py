"""Policy document loading.

Reads policy documents in the AWS bucket-policy JSON shape (from dicts,
JSON files or YAML files) and turns them into validated PolicyDocument
models. Loading is all-or-nothing: any bad statement rejects the whole
document with an error naming that statement.
"""

import json
import logging
from collections.abc import Mapping
from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from bucketguard.authz.models import (
    ANY_PRINCIPAL,
    AccessRequest,
    Action,
    PolicyDocument,
    Statement,
)
from bucketguard.errors import (
    PolicyValidationError,
    RequestValidationError,
    ResourcePatternError,
)

logger = logging.getLogger(__name__)

REQUIRED_STATEMENT_KEYS = ("Effect", "Principal", "Action", "Resource")
UNSUPPORTED_STATEMENT_KEYS = ("Condition", "NotPrincipal", "NotAction", "NotResource")
PRINCIPAL_TYPES = ("AWS", "Service", "CanonicalUser", "Federated")


def format_validation_errors(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one line."""
    parts = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error["loc"])
        parts.append(f"{loc}: {error['msg']}" if loc else error["msg"])
    return "; ".join(parts)


def _principals(value: Any) -> tuple[list[str], list[tuple[str, str]]]:
    """Flatten the Principal element into identifiers plus their types.

    Accepts "*", a string, a list of strings, or a mapping such as
    {"AWS": "arn:aws:iam::123456789012:user/jib_iam"}. The second list
    holds (type, name) pairs for principals declared under a key other
    than AWS, so that export can put them back where they came from.
    """
    if isinstance(value, str):
        return [value], []
    if isinstance(value, list):
        return value, []
    if isinstance(value, Mapping):
        principals: list[str] = []
        typed: list[tuple[str, str]] = []
        for key, names in value.items():
            if key not in PRINCIPAL_TYPES:
                raise ValueError(f"unknown principal type {key!r}")
            if isinstance(names, str):
                names = [names]
            if not isinstance(names, list) or not all(isinstance(name, str) for name in names):
                raise ValueError(f"Principal.{key} must be a string or a list of strings")
            principals.extend(names)
            if key != "AWS":
                typed.extend((key, name.strip()) for name in names)
        return principals, typed
    raise ValueError(f"unsupported Principal value {value!r}")


def load_statement(raw: Any, index: int) -> Statement:
    """Build one Statement, raising PolicyValidationError on any problem."""
    if not isinstance(raw, Mapping):
        raise PolicyValidationError("statement must be a mapping", statement_index=index)

    sid = raw.get("Sid")
    if sid is not None and not isinstance(sid, str):
        raise PolicyValidationError("Sid must be a string", statement_index=index)

    for key in UNSUPPORTED_STATEMENT_KEYS:
        if key in raw:
            raise PolicyValidationError(
                f"unsupported element {key!r}", statement_index=index, sid=sid
            )

    missing = [key for key in REQUIRED_STATEMENT_KEYS if key not in raw]
    if missing:
        raise PolicyValidationError(
            f"missing required field(s): {', '.join(missing)}",
            statement_index=index,
            sid=sid,
        )

    unknown = sorted(set(raw) - set(REQUIRED_STATEMENT_KEYS) - {"Sid"})
    if unknown:
        raise PolicyValidationError(
            f"unknown field(s): {', '.join(unknown)}", statement_index=index, sid=sid
        )

    try:
        principals, principal_types = _principals(raw["Principal"])
        return Statement(
            sid=sid,
            effect=raw["Effect"],
            principals=principals,
            principal_types=principal_types,
            actions=raw["Action"],
            resources=raw["Resource"],
        )
    except ResourcePatternError as exc:
        raise ResourcePatternError(exc.message, statement_index=index, sid=sid) from exc
    except ValidationError as exc:
        raise PolicyValidationError(
            format_validation_errors(exc),
            statement_index=index,
            sid=sid,
            errors=exc.errors(include_url=False, include_context=False),
        ) from exc
    except ValueError as exc:
        raise PolicyValidationError(str(exc), statement_index=index, sid=sid) from exc


def load_document(data: Any) -> PolicyDocument:
    """Load a policy document from AWS-shaped structured data.

    Raises:
        PolicyValidationError: if any part of the document is malformed
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise PolicyValidationError(f"invalid JSON: {exc}") from exc

    if not isinstance(data, Mapping):
        raise PolicyValidationError("policy document must be a mapping")

    if "Statement" not in data:
        raise PolicyValidationError("missing required field: Statement")

    raw_statements = data["Statement"]
    if isinstance(raw_statements, Mapping):
        raw_statements = [raw_statements]
    if not isinstance(raw_statements, list):
        raise PolicyValidationError("Statement must be a list or a single statement")

    statements = tuple(load_statement(raw, index) for index, raw in enumerate(raw_statements))

    version = data.get("Version", "2012-10-17")
    if isinstance(version, date):
        # YAML reads an unquoted 2012-10-17 as a date
        version = version.isoformat()

    try:
        document = PolicyDocument(
            version=version,
            id=data.get("Id"),
            statements=statements,
        )
    except ValidationError as exc:
        raise PolicyValidationError(format_validation_errors(exc)) from exc

    logger.debug("Loaded policy document with %d statements", len(document.statements))
    return document


def read_structured_file(path: str | Path) -> Any:
    """Read a JSON or YAML file into plain Python data."""
    file_path = Path(path)
    text = file_path.read_text(encoding="utf-8")

    if file_path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_document_file(path: str | Path) -> PolicyDocument:
    """Load a policy document from a .json/.yaml file.

    A bucket configuration file (top-level ``bucket`` mapping) is accepted
    too; its ``policy`` section is loaded.
    """
    try:
        data = read_structured_file(path)
    except (json.JSONDecodeError, yaml.YAMLError, UnicodeDecodeError) as exc:
        raise PolicyValidationError(f"{path}: cannot parse file: {exc}") from exc

    if isinstance(data, Mapping) and "bucket" in data and "Statement" not in data:
        bucket = data["bucket"]
        if not isinstance(bucket, Mapping) or "policy" not in bucket:
            raise PolicyValidationError(f"{path}: bucket configuration has no policy section")
        data = bucket["policy"]

    document = load_document(data)
    logger.info("Loaded %s (%d statements)", path, len(document.statements))
    return document


def parse_request(principal: str, action: str | Action, resource: str) -> AccessRequest:
    """Build a validated AccessRequest from raw values."""
    if principal == ANY_PRINCIPAL:
        raise RequestValidationError("a request must name a concrete principal, not '*'")
    try:
        return AccessRequest(principal=principal, action=action, resource=resource)
    except ResourcePatternError as exc:
        raise RequestValidationError(exc.message) from exc
    except ValidationError as exc:
        raise RequestValidationError(format_validation_errors(exc)) from exc


def document_to_aws_json(document: PolicyDocument, indent: int | None = 2) -> str:
    """Render a document back into AWS bucket-policy JSON."""
    return json.dumps(document.to_aws(), indent=indent)
