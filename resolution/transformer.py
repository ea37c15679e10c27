"""
Invoice extraction -> supplier ingestion request.

Document extraction produces a flat map of fields, each with a value and a
confidence (``vendorName``, ``vendorTaxId``, ``vendorAddress`` ...). This
module pulls the vendor block out of that map and shapes it into an
IngestionRequest payload the ingestion service accepts.
"""
import logging
import re
from typing import Any, Dict, Mapping, Optional

from models.invoice import (
    ExtractedField,
    ExtractedVendorData,
    InvoiceSupplierData,
    VendorAddress,
    VendorContacts,
)

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "GB"

_IBAN_RE = re.compile(r"[A-Z]{2}\d{2}[A-Z0-9]+")
_VAT_PREFIX_RE = re.compile(r"^[A-Z]{2}[A-Z0-9]+")

# Fields counted by vendor_data_completeness
VENDOR_FIELDS = (
    "vendorName",
    "vendorTaxId",
    "vendorAddress",
    "vendorCity",
    "vendorPostalCode",
    "vendorCountry",
    "vendorEmail",
    "vendorPhone",
)


def _field(fields: Mapping[str, Any], name: str) -> Optional[ExtractedField]:
    raw = fields.get(name)
    if raw is None:
        return None
    if isinstance(raw, ExtractedField):
        return raw
    if isinstance(raw, Mapping):
        return ExtractedField.model_validate(raw)
    return ExtractedField(value=raw)


def _value(fields: Mapping[str, Any], name: str) -> Optional[str]:
    field = _field(fields, name)
    if field is None or field.value in (None, ""):
        return None
    return str(field.value).strip() or None


def _confidence(fields: Mapping[str, Any], name: str) -> Optional[float]:
    field = _field(fields, name)
    return field.confidence if field else None


def extract_vendor_data(fields: Optional[Mapping[str, Any]], with_confidence: bool = True) -> ExtractedVendorData:
    """
    Vendor block from extracted fields. A ``vendorTaxId`` counts as a VAT
    number only when it starts with a two-letter country prefix.
    """
    if not fields:
        return ExtractedVendorData()

    tax_id = _value(fields, "vendorTaxId")
    is_vat = bool(tax_id and _VAT_PREFIX_RE.match(tax_id.upper()))

    data = ExtractedVendorData(
        name=_value(fields, "vendorName"),
        company_number=_value(fields, "vendorCompanyNumber"),
        vat_number=tax_id if is_vat else None,
        address=VendorAddress(
            line1=_value(fields, "vendorAddress"),
            city=_value(fields, "vendorCity"),
            postal_code=_value(fields, "vendorPostalCode"),
            country=_value(fields, "vendorCountry"),
        ),
        contacts=VendorContacts(
            email=_value(fields, "vendorEmail"),
            phone=_value(fields, "vendorPhone"),
            website=_value(fields, "vendorWebsite"),
        ),
    )
    if with_confidence:
        scores = {
            "name": _confidence(fields, "vendorName"),
            "companyNumber": _confidence(fields, "vendorCompanyNumber"),
            "vatNumber": _confidence(fields, "vendorTaxId"),
            "address": _confidence(fields, "vendorAddress"),
            "email": _confidence(fields, "vendorEmail"),
            "phone": _confidence(fields, "vendorPhone"),
            "website": _confidence(fields, "vendorWebsite"),
        }
        data.confidence = {k: v for k, v in scores.items() if v is not None} or None
    return data


def vendor_data_completeness(fields: Optional[Mapping[str, Any]]) -> int:
    """Half share of vendor fields filled, half their average confidence (0-100)."""
    if not fields:
        return 0
    filled = 0
    total_confidence = 0.0
    for name in VENDOR_FIELDS:
        field = _field(fields, name)
        if field is not None and field.value:
            filled += 1
            total_confidence += field.confidence or 0
    if filled == 0:
        return 0
    completeness = filled / len(VENDOR_FIELDS) * 100
    return round(completeness * 0.5 + (total_confidence / filled) * 0.5)


def _bank_accounts(invoice: InvoiceSupplierData) -> list[Dict[str, Any]]:
    accounts: list[Dict[str, Any]] = []

    raw = None
    if invoice.extracted_fields:
        field = _field(invoice.extracted_fields, "bankAccount")
        raw = field.value if field else None

    if isinstance(raw, str) and raw.strip():
        match = _IBAN_RE.search(raw.replace(" ", "").upper())
        if match:
            accounts.append({"iban": match.group(0)})
        else:
            accounts.append({"accountNumber": raw.strip()})
    elif isinstance(raw, Mapping):
        account = {
            "iban": raw.get("iban"),
            "accountNumber": raw.get("accountNumber"),
            "bankName": raw.get("bankName"),
            "sortCode": raw.get("sortCode"),
            "accountName": raw.get("accountName"),
        }
        account = {k: v for k, v in account.items() if v}
        if account.get("iban") or account.get("accountNumber"):
            accounts.append(account)

    profile = invoice.company_profile
    for profile_account in (profile.bank_accounts if profile else []):
        if not (profile_account.iban or profile_account.account_number):
            continue
        duplicate = any(
            (profile_account.iban and a.get("iban") == profile_account.iban)
            or (profile_account.account_number and a.get("accountNumber") == profile_account.account_number)
            for a in accounts
        )
        if duplicate:
            continue
        account = {
            "iban": profile_account.iban,
            "accountNumber": profile_account.account_number,
            "bankName": profile_account.bank_name,
            # SWIFT/BIC is the closest thing a profile has to a sort code
            "sortCode": profile_account.swift_code,
        }
        accounts.append({k: v for k, v in account.items() if v})
    return accounts


def transform_invoice_to_supplier(
    invoice: InvoiceSupplierData,
    tenant_id: str,
    user_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Ingestion payload (camelCase) for the vendor on one invoice, or None when
    the invoice names no vendor or carries neither a company number nor a
    VAT number (directly or through the company profile). Invoices without a
    vendor block fall back to the flat extracted fields.
    """
    vendor = invoice.vendor_data
    if not (vendor.name and vendor.name.strip()) and invoice.extracted_fields:
        vendor = extract_vendor_data(invoice.extracted_fields)
        logger.debug("Invoice %s: vendor read from extracted fields (%d%% complete)",
                     invoice.id, vendor_data_completeness(invoice.extracted_fields))
    if not vendor.name or not vendor.name.strip():
        logger.debug("Invoice %s has no vendor name — no supplier request", invoice.id)
        return None

    tax_ids = invoice.company_profile.tax_identifiers if invoice.company_profile else None
    company_number = vendor.company_number or (tax_ids.company_number if tax_ids else None)
    vat_number = vendor.vat_number or (tax_ids.vat_number if tax_ids else None)
    if not (company_number or vat_number):
        logger.debug("Invoice %s vendor '%s' has no identifiers — no supplier request",
                     invoice.id, vendor.name)
        return None

    addresses = []
    address = vendor.address
    if address.line1:
        country = (address.country or DEFAULT_COUNTRY).upper()
        city = address.city or ("Unknown City" if country == "US" else "Unknown")
        addresses.append({
            "line1": address.line1,
            "city": city,
            "postalCode": address.postal_code,
            "country": country,
        })

    contacts = []
    if vendor.contacts.email:
        contacts.append({"type": "email", "value": vendor.contacts.email, "isPrimary": True})
    if vendor.contacts.phone:
        contacts.append({"type": "phone", "value": vendor.contacts.phone,
                         "isPrimary": not vendor.contacts.email})
    if vendor.contacts.website:
        contacts.append({"type": "website", "value": vendor.contacts.website, "isPrimary": False})

    request: Dict[str, Any] = {
        "tenantId": tenant_id,
        "source": "invoice",
        "sourceId": invoice.id,
        "data": {
            "name": vendor.name,
            "identifiers": {"companyNumber": company_number, "vatNumber": vat_number},
            "addresses": addresses,
            "contacts": contacts,
            "bankAccounts": _bank_accounts(invoice),
        },
    }
    if user_id:
        request["userId"] = user_id
    if vendor.confidence:
        request["data"]["confidence"] = dict(vendor.confidence)
    return request
