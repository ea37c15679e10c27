"""
Exception types raised by the supplier resolution layer.

Expected business outcomes (low-confidence match, insufficient data, blocking
quality errors) are returned as IngestionResult values. Exceptions are for
bad input, conflicts the caller must handle, and missing records.
"""
from typing import Optional, Sequence

from models.result import FieldIssue, QualityIssue


class SupplierError(Exception):
    """Base class; ``code`` is a stable machine-readable key, ``status`` an HTTP-ish status."""

    code = "SUPPLIER_ERROR"
    status = 500

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status:
            self.status = status


class StructuralValidationError(SupplierError):
    """Ingestion input violates the request contract. ``issues`` lists every field path."""

    code = "VALIDATION_ERROR"
    status = 400

    def __init__(self, issues: Sequence[FieldIssue]):
        self.issues = list(issues)
        summary = "; ".join(f"{i.path}: {i.message}" for i in self.issues)
        super().__init__(f"Invalid supplier data: {summary}")


class DataQualityError(SupplierError):
    """Blocking data quality findings on a manual create/update."""

    code = "DATA_QUALITY_ERROR"
    status = 422

    def __init__(self, issues: Sequence[QualityIssue]):
        self.issues = list(issues)
        super().__init__("Data quality issues: " + ", ".join(i.message for i in self.issues))


class MissingIdentifierError(SupplierError):
    code = "MISSING_IDENTIFIER"
    status = 400

    def __init__(self, message: str = "Supplier must have either a company number or VAT number"):
        super().__init__(message)


class DuplicateIdentifierError(SupplierError):
    code = "DUPLICATE_COMPANY_NUMBER"
    status = 409

    def __init__(self, company_number: Optional[str]):
        self.company_number = company_number
        super().__init__(f"Supplier with company number {company_number} already exists")


class SlugCollisionError(SupplierError):
    code = "SLUG_COLLISION"
    status = 409

    def __init__(self, name: str, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not allocate a unique slug for '{name}' after {attempts} attempts")


class InsufficientDataError(SupplierError):
    code = "INSUFFICIENT_DATA"
    status = 422

    def __init__(self, score: int, threshold: int, missing_identifier: bool = False):
        self.score = score
        self.threshold = threshold
        self.missing_identifier = missing_identifier
        message = f"Insufficient data for supplier creation (score: {score}/{threshold})"
        if missing_identifier:
            message += "; no company number or VAT number"
        super().__init__(message)


class NotFoundError(SupplierError):
    code = "NOT_FOUND"
    status = 404

    def __init__(self, kind: str, ident: str, code: Optional[str] = None):
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} not found: {ident}", code=code)


class UniqueViolation(Exception):
    """
    Typed conflict signal raised by the persistence layer in place of
    sqlite3.IntegrityError. ``columns`` names the unique key that was hit,
    e.g. ("tenant_id", "slug").
    """

    def __init__(self, table: str, columns: Sequence[str], detail: str = ""):
        self.table = table
        self.columns = tuple(columns)
        super().__init__(detail or f"unique violation on {table}({', '.join(self.columns)})")

    def involves(self, column: str) -> bool:
        return column in self.columns
