from pydantic import BaseModel, Field
from typing import List, Literal, Optional


MatchType = Literal[
    # Tenant matcher
    "company_number",
    "vat_number",
    "name",
    "domain",
    "address",
    "composite",
    # Global resolver
    "fuzzy_name",
    "none",
]

SeverityLevel = Literal["error", "warning"]


class MatchDetails(BaseModel):
    """Per-signal points behind a composite score (before the confidence multiplier)."""
    name_score: int = 0
    address_score: int = 0
    domain_score: int = 0
    contact_score: int = 0
    bank_score: int = 0
    identifier: Optional[str] = None    # "company_number" / "vat_number" when one fired

    @property
    def raw_total(self) -> int:
        return (
            self.name_score + self.address_score + self.domain_score
            + self.contact_score + self.bank_score
        )


class MatchResult(BaseModel):
    """Best tenant supplier candidate for an observation."""
    supplier_id: Optional[str] = None
    confidence: int = 0                 # 0-100
    match_type: MatchType = "none"
    details: MatchDetails = Field(default_factory=MatchDetails)

    @property
    def matched(self) -> bool:
        return self.supplier_id is not None and self.confidence > 0


class GlobalSupplierMatch(BaseModel):
    """Best global supplier candidate for a tenant supplier."""
    global_supplier_id: str
    confidence: int
    match_type: MatchType


class QualityIssue(BaseModel):
    """A single data quality finding."""
    field: str
    message: str
    severity: SeverityLevel
    value: Optional[str] = None


class EnhancedData(BaseModel):
    """Cleaned values the quality validator recommends substituting."""
    normalized_name: Optional[str] = None
    country: Optional[str] = None
    validated_company_number: Optional[str] = None
    validated_vat: Optional[str] = None


class DataQualityResult(BaseModel):
    """Output of the business-level data quality check."""
    is_valid: bool
    errors: List[QualityIssue] = Field(default_factory=list)
    warnings: List[QualityIssue] = Field(default_factory=list)
    confidence: int = 100
    enhanced_data: Optional[EnhancedData] = None
    # No usable identifier; the caller decides whether that blocks
    missing_identifier: bool = False

    def error_summary(self) -> str:
        return ", ".join(e.message for e in self.errors)


class FieldIssue(BaseModel):
    """One structural violation in an ingestion request."""
    path: str
    message: str


class SearchDocument(BaseModel):
    """Shape handed to the search indexer after a supplier is created."""
    id: str
    tenant_id: str
    display_name: str
    legal_name: str
    company_number: Optional[str] = None
    vat_number: Optional[str] = None
    created_at: str


class LogoResult(BaseModel):
    """Outcome of one logo lookup for a global supplier."""
    success: bool
    logo_url: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False
