"""
Structural validation of raw ingestion input.

Sanitises an untyped mapping (trims every string leaf) and validates it
against the IngestionRequest contract, collecting every violated field path
rather than stopping at the first.
"""
import logging
from typing import Any, Mapping

from pydantic import ValidationError

from models.ingestion import IngestionRequest
from models.result import FieldIssue
from resolution.errors import StructuralValidationError

logger = logging.getLogger(__name__)


def trim_strings(value: Any) -> Any:
    """Recursively strip whitespace from every string leaf."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, Mapping):
        return {k: trim_strings(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [trim_strings(v) for v in value]
    return value


def _issue_path(loc: tuple) -> str:
    parts = []
    for piece in loc:
        if isinstance(piece, int):
            parts.append(f"[{piece}]")
        else:
            parts.append(("." if parts else "") + str(piece))
    return "".join(parts) or "<root>"


def validate_ingestion_request(raw: Any) -> IngestionRequest:
    """
    Validate and sanitise one ingestion request.

    Accepts either a mapping (camelCase or snake_case keys) or an already
    built IngestionRequest, which is re-validated after trimming.
    Raises StructuralValidationError listing every violation.
    """
    if isinstance(raw, IngestionRequest):
        raw = raw.model_dump(by_alias=True)
    if not isinstance(raw, Mapping):
        raise StructuralValidationError([FieldIssue(path="<root>", message="expected an object")])

    try:
        return IngestionRequest.model_validate(trim_strings(raw))
    except ValidationError as exc:
        issues = [
            FieldIssue(path=_issue_path(err["loc"]), message=err["msg"])
            for err in exc.errors()
        ]
        logger.debug("Rejected ingestion request with %d issue(s)", len(issues))
        raise StructuralValidationError(issues) from exc
