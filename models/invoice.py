from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class ExtractedField(BaseModel):
    """A single field as produced by document extraction, with its confidence (0-100)."""
    value: Any = None
    confidence: Optional[float] = None


class VendorAddress(BaseModel):
    line1: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None       # ISO 3166-1 alpha-2, e.g. "GB"


class VendorContacts(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None


class ExtractedVendorData(BaseModel):
    """
    Simplified vendor block pulled out of an invoice's extracted fields.
    confidence keys: name, companyNumber, vatNumber, address, email, phone, website.
    """
    name: Optional[str] = None
    company_number: Optional[str] = None
    vat_number: Optional[str] = None
    address: VendorAddress = Field(default_factory=VendorAddress)
    contacts: VendorContacts = Field(default_factory=VendorContacts)
    confidence: Optional[Dict[str, float]] = None


class TaxIdentifiers(BaseModel):
    company_number: Optional[str] = None
    vat_number: Optional[str] = None


class ProfileBankAccount(BaseModel):
    iban: Optional[str] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    swift_code: Optional[str] = None


class CompanyProfile(BaseModel):
    """Enrichment block attached to an invoice by an upstream company lookup."""
    tax_identifiers: TaxIdentifiers = Field(default_factory=TaxIdentifiers)
    bank_accounts: List[ProfileBankAccount] = Field(default_factory=list)


class InvoiceSupplierData(BaseModel):
    """Everything the invoice transformer needs from one processed invoice."""
    id: str
    vendor_data: ExtractedVendorData = Field(default_factory=ExtractedVendorData)
    company_profile: Optional[CompanyProfile] = None
    extracted_fields: Optional[Dict[str, ExtractedField]] = None
