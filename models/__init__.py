from .invoice import (
    ExtractedField, ExtractedVendorData, VendorAddress, VendorContacts,
    CompanyProfile, TaxIdentifiers, ProfileBankAccount, InvoiceSupplierData,
)
from .ingestion import (
    IngestionRequest, IngestionData, IngestionResult, SupplierIdentifiers,
    AddressInput, ContactInput, BankAccountInput,
)
from .supplier import (
    Supplier, SupplierAttribute, SupplierDataSource, SupplierWithAttributes,
    GlobalSupplier, ReviewItem,
)
from .result import (
    MatchResult, MatchDetails, GlobalSupplierMatch, QualityIssue, EnhancedData,
    DataQualityResult, FieldIssue, SearchDocument, LogoResult,
)

__all__ = [
    "ExtractedField", "ExtractedVendorData", "VendorAddress", "VendorContacts",
    "CompanyProfile", "TaxIdentifiers", "ProfileBankAccount", "InvoiceSupplierData",
    "IngestionRequest", "IngestionData", "IngestionResult", "SupplierIdentifiers",
    "AddressInput", "ContactInput", "BankAccountInput",
    "Supplier", "SupplierAttribute", "SupplierDataSource", "SupplierWithAttributes",
    "GlobalSupplier", "ReviewItem",
    "MatchResult", "MatchDetails", "GlobalSupplierMatch", "QualityIssue", "EnhancedData",
    "DataQualityResult", "FieldIssue", "SearchDocument", "LogoResult",
]
