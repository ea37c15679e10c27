"""
Unit tests for turning processed invoices into supplier ingestion requests.
"""
import pytest

from models.invoice import InvoiceSupplierData
from resolution.field_validator import validate_ingestion_request
from resolution.transformer import (
    extract_vendor_data,
    transform_invoice_to_supplier,
    vendor_data_completeness,
)

TENANT = "11111111-1111-4111-8111-111111111111"


def _invoice(vendor: dict, **extra) -> InvoiceSupplierData:
    return InvoiceSupplierData.model_validate({"id": "inv-1", "vendor_data": vendor, **extra})


@pytest.mark.unit
class TestTransformInvoice:
    """Tests for transform_invoice_to_supplier."""

    def test_full_invoice(self, sample_invoice):
        """Test vendor block, profile identifiers and bank accounts are combined."""
        request = transform_invoice_to_supplier(InvoiceSupplierData.model_validate(sample_invoice), TENANT)

        assert request["tenantId"] == TENANT
        assert request["source"] == "invoice"
        assert request["sourceId"] == "inv-2024-001"
        data = request["data"]
        assert data["name"] == "Widget Supplies Ltd"
        assert data["identifiers"] == {"companyNumber": "87654321", "vatNumber": "GB987654321"}
        assert data["addresses"] == [
            {"line1": "5 Mill Lane", "city": "Leeds", "postalCode": "LS1 4AP", "country": "GB"}
        ]
        assert data["contacts"] == [
            {"type": "email", "value": "billing@widgets.co.uk", "isPrimary": True},
            {"type": "phone", "value": "0113 496 0000", "isPrimary": False},
        ]
        assert data["bankAccounts"] == [
            {"iban": "GB29NWBK60161331926819"},
            {"accountNumber": "31926819", "bankName": "Lloyds", "sortCode": "LOYDGB2L"},
        ]
        assert data["confidence"] == {"name": 95, "companyNumber": 88}

    def test_output_passes_structural_validation(self, sample_invoice):
        """Test the produced payload is a valid ingestion request."""
        request = transform_invoice_to_supplier(
            InvoiceSupplierData.model_validate(sample_invoice), TENANT,
            user_id="33333333-3333-4333-8333-333333333333",
        )
        parsed = validate_ingestion_request(request)
        assert parsed.data.identifiers.vat_number == "GB987654321"
        assert len(parsed.data.bank_accounts) == 2

    def test_no_identifiers_returns_none(self):
        """Test an invoice without company or VAT number produces no request."""
        invoice = _invoice({"name": "No Identifiers Ltd", "contacts": {"email": "a@b.com"}})
        assert transform_invoice_to_supplier(invoice, TENANT) is None

    def test_no_name_returns_none(self):
        """Test an invoice without a vendor name produces no request."""
        assert transform_invoice_to_supplier(_invoice({"name": "  ", "vat_number": "GB123456789"}), TENANT) is None

    def test_address_defaults(self):
        """Test missing city and country get placeholders."""
        request = transform_invoice_to_supplier(
            _invoice({"name": "ACME", "company_number": "12345678", "address": {"line1": "1 High St"}}),
            TENANT,
        )
        assert request["data"]["addresses"][0]["city"] == "Unknown"
        assert request["data"]["addresses"][0]["country"] == "GB"

        request = transform_invoice_to_supplier(
            _invoice({"name": "ACME Inc", "vat_number": "US123456789",
                      "address": {"line1": "1 Main St", "country": "us"}}),
            TENANT,
        )
        assert request["data"]["addresses"][0] == {
            "line1": "1 Main St", "city": "Unknown City", "postalCode": None, "country": "US",
        }

    def test_address_without_line1_dropped(self):
        """Test a city alone does not make an address."""
        request = transform_invoice_to_supplier(
            _invoice({"name": "ACME", "company_number": "12345678", "address": {"city": "Leeds"}}), TENANT,
        )
        assert request["data"]["addresses"] == []

    def test_phone_primary_without_email(self):
        """Test the phone becomes primary when there is no email; websites never are."""
        request = transform_invoice_to_supplier(
            _invoice({"name": "ACME", "company_number": "12345678",
                      "contacts": {"phone": "020 7946 0000", "website": "acme.co.uk"}}),
            TENANT,
        )
        assert request["data"]["contacts"] == [
            {"type": "phone", "value": "020 7946 0000", "isPrimary": True},
            {"type": "website", "value": "acme.co.uk", "isPrimary": False},
        ]

    def test_plain_account_number(self):
        """Test a non-IBAN bank string is kept as an account number."""
        request = transform_invoice_to_supplier(
            _invoice({"name": "ACME", "company_number": "12345678"},
                     extracted_fields={"bankAccount": {"value": " 12345678 "}}),
            TENANT,
        )
        assert request["data"]["bankAccounts"] == [{"accountNumber": "12345678"}]

    def test_bank_account_dict_and_profile_dedup(self):
        """Test structured bank values are accepted and profile duplicates skipped."""
        request = transform_invoice_to_supplier(
            _invoice(
                {"name": "ACME", "company_number": "12345678"},
                extracted_fields={"bankAccount": {"value": {"iban": "GB29NWBK60161331926819", "bankName": "NatWest"}}},
                company_profile={"bank_accounts": [{"iban": "GB29NWBK60161331926819"}, {"bank_name": "No Number"}]},
            ),
            TENANT,
        )
        assert request["data"]["bankAccounts"] == [{"iban": "GB29NWBK60161331926819", "bankName": "NatWest"}]


@pytest.mark.unit
class TestExtractVendorData:
    """Tests for reading vendor fields out of document extraction output."""

    @pytest.fixture
    def fields(self):
        return {
            "vendorName": {"value": "ACME Ltd", "confidence": 90},
            "vendorTaxId": {"value": "GB123456789", "confidence": 70},
            "vendorAddress": {"value": "1 High St", "confidence": 80},
            "vendorEmail": {"value": "a@acme.co.uk", "confidence": 80},
        }

    def test_extract(self, fields):
        """Test values and confidences are picked up."""
        vendor = extract_vendor_data(fields)
        assert vendor.name == "ACME Ltd"
        assert vendor.vat_number == "GB123456789"
        assert vendor.address.line1 == "1 High St"
        assert vendor.contacts.email == "a@acme.co.uk"
        assert vendor.confidence == {"name": 90, "vatNumber": 70, "address": 80, "email": 80}

    def test_tax_id_without_country_prefix_not_vat(self, fields):
        """Test a bare numeric tax id is not treated as a VAT number."""
        fields["vendorTaxId"] = {"value": "12345678"}
        assert extract_vendor_data(fields).vat_number is None

    def test_transform_from_extracted_fields(self, fields):
        """Test an invoice without a vendor block is read from its extracted fields."""
        invoice = InvoiceSupplierData.model_validate({"id": "inv-9", "extracted_fields": fields})
        request = transform_invoice_to_supplier(invoice, TENANT)

        assert request["data"]["name"] == "ACME Ltd"
        assert request["data"]["identifiers"] == {"companyNumber": None, "vatNumber": "GB123456789"}
        assert request["data"]["addresses"] == [
            {"line1": "1 High St", "city": "Unknown", "postalCode": None, "country": "GB"}
        ]
        assert request["data"]["confidence"] == {"name": 90, "vatNumber": 70, "address": 80, "email": 80}

        del fields["vendorTaxId"]
        invoice = InvoiceSupplierData.model_validate({"id": "inv-10", "extracted_fields": fields})
        assert transform_invoice_to_supplier(invoice, TENANT) is None

    def test_completeness(self, fields):
        """Test completeness blends filled share and average confidence."""
        # 4 of 8 fields filled (50%), average confidence 80
        assert vendor_data_completeness(fields) == 65
        assert vendor_data_completeness({}) == 0
