"""
Unit tests for structural request validation and business data quality checks.
"""
import pytest

from models.ingestion import IngestionRequest
from resolution.errors import StructuralValidationError
from resolution.field_validator import trim_strings, validate_ingestion_request
from resolution.quality_validator import DataQualityValidator, is_valid_phone, is_valid_website

TENANT = "11111111-1111-4111-8111-111111111111"


def _request(**overrides) -> dict:
    request = {
        "tenantId": TENANT,
        "source": "invoice",
        "sourceId": "inv-1",
        "data": {"name": "ACME Ltd", "identifiers": {"companyNumber": "12345678"}},
    }
    request.update(overrides)
    return request


@pytest.mark.unit
class TestFieldValidator:
    """Tests for validate_ingestion_request."""

    def test_valid_request_parsed(self):
        """Test a camelCase request becomes an IngestionRequest."""
        request = validate_ingestion_request(_request())
        assert isinstance(request, IngestionRequest)
        assert request.tenant_id == TENANT
        assert request.data.identifiers.company_number == "12345678"
        assert request.data.addresses == []

    def test_strings_trimmed(self):
        """Test every string leaf is trimmed before validation."""
        request = validate_ingestion_request(_request(sourceId="  inv-9  ", data={"name": "  ACME Ltd  "}))
        assert request.source_id == "inv-9"
        assert request.data.name == "ACME Ltd"

    def test_snake_case_accepted(self):
        """Test field names are accepted as well as camelCase aliases."""
        raw = {"tenant_id": TENANT, "source": "manual", "source_id": "m-1", "data": {"name": "ACME"}}
        assert validate_ingestion_request(raw).source == "manual"

    def test_identifiers_uppercased(self):
        """Test identifiers are upper-cased and blanks become None."""
        request = validate_ingestion_request(_request(data={
            "name": "ACME", "identifiers": {"companyNumber": "sc123456", "vatNumber": "  "},
        }))
        assert request.data.identifiers.company_number == "SC123456"
        assert request.data.identifiers.vat_number is None

    def test_collects_every_issue(self):
        """Test all violations are reported with their field paths."""
        raw = _request(
            tenantId="not-a-uuid",
            source="email",
            data={"name": "", "bankAccounts": [{"bankName": "NatWest"}]},
        )
        with pytest.raises(StructuralValidationError) as exc_info:
            validate_ingestion_request(raw)

        paths = {issue.path for issue in exc_info.value.issues}
        assert "tenantId" in paths
        assert "source" in paths
        assert "data.name" in paths
        assert "data.bankAccounts[0]" in paths
        assert exc_info.value.status == 400
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_address_requires_line1_city_country(self):
        """Test address structural rules."""
        raw = _request(data={"name": "ACME", "addresses": [{"line1": "1 High St", "country": "GBR"}]})
        with pytest.raises(StructuralValidationError) as exc_info:
            validate_ingestion_request(raw)
        paths = {issue.path for issue in exc_info.value.issues}
        assert "data.addresses[0].city" in paths
        assert "data.addresses[0].country" in paths

    def test_confidence_must_be_percentage(self):
        """Test per-field confidence values outside 0-100 are rejected."""
        raw = _request(data={"name": "ACME", "confidence": {"name": 120}})
        with pytest.raises(StructuralValidationError):
            validate_ingestion_request(raw)

    def test_non_mapping_rejected(self):
        """Test non-object input."""
        with pytest.raises(StructuralValidationError) as exc_info:
            validate_ingestion_request(["not", "an", "object"])
        assert exc_info.value.issues[0].path == "<root>"

    def test_trim_strings_nested(self):
        """Test trimming reaches lists and nested mappings."""
        assert trim_strings({"a": [" x ", {"b": " y"}], "n": 3}) == {"a": ["x", {"b": "y"}], "n": 3}


@pytest.mark.unit
class TestDataQualityValidator:
    """Tests for DataQualityValidator."""

    @pytest.fixture
    def validator(self):
        """Provide a default validator instance."""
        return DataQualityValidator()

    def test_clean_supplier(self, validator):
        """Test a good name and GB company number pass with full confidence."""
        result = validator.validate(name="ACME Ltd", company_number="12345678")
        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []
        assert result.confidence == 100
        assert result.missing_identifier is False
        assert result.enhanced_data.validated_company_number == "12345678"

    def test_name_too_short(self, validator):
        """Test a one-character name is a blocking error."""
        result = validator.validate(name="A", company_number="12345678")
        assert not result.is_valid
        assert result.errors[0].field == "name"
        assert "too short" in result.error_summary()

    def test_name_needs_a_letter(self, validator):
        """Test a digits-only name is rejected."""
        result = validator.validate(name="1234", company_number="12345678")
        assert not result.is_valid
        assert "at least one letter" in result.errors[0].message

    def test_bad_company_number_is_warning(self, validator):
        """Test a malformed GB company number warns and counts as missing."""
        result = validator.validate(name="ACME Ltd", company_number="ABC")
        assert result.is_valid
        assert [w.field for w in result.warnings] == ["companyNumber"]
        assert result.missing_identifier is True
        assert result.confidence == 65

    def test_vat_number_cleaned(self, validator):
        """Test spaced VAT numbers are cleaned and the country is taken from the prefix."""
        result = validator.validate(name="ACME Ltd", vat_number="gb 123 456 789")
        assert result.warnings == []
        assert result.enhanced_data.validated_vat == "GB123456789"
        assert result.enhanced_data.country == "GB"

    def test_bad_vat_for_known_country(self, validator):
        """Test a German VAT number with too few digits warns."""
        result = validator.validate(name="ACME GmbH", vat_number="DE12345")
        assert [w.field for w in result.warnings] == ["vatNumber"]
        assert result.missing_identifier is True

    def test_vat_length_fallback(self, validator):
        """Test countries without a pattern fall back to a length check."""
        result = validator.validate(name="ACME AB", vat_number="SE123456789012")
        assert result.missing_identifier is False

    def test_both_identifiers_bonus(self, validator):
        """Test confidence stays capped at 100 with both identifiers plus contacts."""
        result = validator.validate(
            name="ACME Ltd", company_number="12345678", vat_number="GB123456789",
            email="a@acme.co.uk",
        )
        assert result.confidence == 100

    def test_no_identifier_penalty(self, validator):
        """Test a name-only observation loses 30 points but stays valid."""
        result = validator.validate(name="ACME Ltd")
        assert result.is_valid
        assert result.missing_identifier is True
        assert result.confidence == 70

    def test_contact_warnings(self, validator):
        """Test bad email and phone produce warnings, not errors."""
        result = validator.validate(
            name="ACME Ltd", company_number="12345678", email="not-an-email", phone="123",
        )
        assert result.is_valid
        assert {w.field for w in result.warnings} == {"email", "phone"}

    def test_phone_and_website_helpers(self):
        """Test phone digit bounds and website parsing."""
        assert is_valid_phone("+44 20 7946 0000")
        assert not is_valid_phone("12-34")
        assert is_valid_website("acme.co.uk")
        assert is_valid_website("https://www.acme.co.uk/about")
        assert not is_valid_website("http://")
