from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

SupplierStatus = Literal["active", "inactive", "deleted"]
AttributeType = Literal["address", "phone", "email", "website", "bank_account"]
LogoFetchStatus = Literal["pending", "success", "not_found", "failed"]
ReviewScope = Literal["tenant", "global"]
ReviewStatus = Literal["pending", "resolved", "dismissed"]


class Supplier(BaseModel):
    """
    A tenant-scoped canonical vendor record.
    company_number is unique per tenant when present; vat_number is not unique.
    """
    id: str
    tenant_id: str
    company_number: Optional[str] = None
    vat_number: Optional[str] = None
    legal_name: str
    display_name: str
    slug: str
    status: SupplierStatus = "active"
    global_supplier_id: Optional[str] = None
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None

    @property
    def all_names(self) -> List[str]:
        """Display name first, legal name second (deduplicated)."""
        names = [self.display_name]
        if self.legal_name and self.legal_name != self.display_name:
            names.append(self.legal_name)
        return names


class SupplierAttribute(BaseModel):
    """One normalised, hashed fact observed about a supplier."""
    id: str
    supplier_id: str
    attribute_type: AttributeType
    value: Dict[str, Any]               # Normalised payload
    hash: str                           # SHA-256 of the canonical payload
    confidence: int = 50                # 0-100
    seen_count: int = 1
    is_primary: bool = False
    is_active: bool = True
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    first_seen_at: str
    last_seen_at: str
    created_by: Optional[str] = None


class SupplierDataSource(BaseModel):
    """Provenance: which document or manual entry contributed to a supplier."""
    id: str
    supplier_id: str
    source_type: str
    source_id: str
    occurrence_count: int = 1
    first_seen_at: str
    last_seen_at: str


class SupplierWithAttributes(BaseModel):
    """A supplier plus its active attributes, the unit the matcher scores against."""
    supplier: Supplier
    attributes: List[SupplierAttribute] = Field(default_factory=list)

    def of_type(self, attribute_type: str) -> List[SupplierAttribute]:
        return [a for a in self.attributes if a.attribute_type == attribute_type]

    def grouped(self) -> Dict[str, List[SupplierAttribute]]:
        """Attributes grouped the way a supplier detail view presents them."""
        return {
            "addresses": self.of_type("address"),
            "phones": self.of_type("phone"),
            "emails": self.of_type("email"),
            "websites": self.of_type("website"),
            "bank_accounts": self.of_type("bank_account"),
        }


class GlobalSupplier(BaseModel):
    """Cross-tenant canonical company record; carries shared enrichment like logos."""
    id: str
    company_number: Optional[str] = None
    vat_number: Optional[str] = None
    canonical_name: str
    primary_domain: Optional[str] = None
    logo_url: Optional[str] = None
    logo_fetch_status: LogoFetchStatus = "pending"
    logo_fetch_attempts: int = 0
    logo_fetched_at: Optional[str] = None
    logo_last_failed_at: Optional[str] = None
    created_at: str
    updated_at: str


class ReviewItem(BaseModel):
    """A medium-confidence match parked for a human decision."""
    id: str
    scope: ReviewScope
    tenant_id: Optional[str] = None
    subject_ref: str                    # "invoice:<id>" or a tenant supplier id
    candidate_id: str                   # Existing supplier or global supplier id
    confidence: int
    match_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: ReviewStatus = "pending"
    created_at: str
    updated_at: str
