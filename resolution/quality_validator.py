"""
Business-level data quality checks for an incoming supplier observation.

Checks:
  Name:         length 2-200, must contain a letter              (errors)
  Identifiers:  per-country company number / VAT number formats  (warnings)
  Contacts:     email shape, phone digit count, website URL      (warnings)

Blocking errors stop ingestion. Warnings lower the confidence score but the
offending value is kept verbatim. A missing identifier is reported through
``missing_identifier`` and left for the caller to decide on.
"""
import logging
import re
from typing import Optional
from urllib.parse import urlparse

from models.result import DataQualityResult, EnhancedData, QualityIssue

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "GB"

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 200

VAT_PATTERNS = {
    "GB": re.compile(r"^GB\d{9}(\d{3})?$"),
    "IE": re.compile(r"^IE\d{7}[A-Z]{1,2}$"),
    "FR": re.compile(r"^FR[A-Z0-9]{2}\d{9}$"),
    "DE": re.compile(r"^DE\d{9}$"),
    "NL": re.compile(r"^NL\d{9}B\d{2}$"),
    "ES": re.compile(r"^ES[A-Z]\d{7}[A-Z0-9]$"),
    "IT": re.compile(r"^IT\d{11}$"),
}

COMPANY_NUMBER_PATTERNS = {
    "GB": re.compile(r"^(?:\d{8}|[A-Z]{2}\d{6})$"),   # 8 digits or 2 letters + 6 digits
    "IE": re.compile(r"^\d{6}$"),
}

# Length bounds used when a country has no specific pattern
COMPANY_NUMBER_LENGTH = (4, 20)
VAT_LENGTH = (8, 15)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_DIGITS = (7, 20)

# Confidence arithmetic
ERROR_PENALTY = 20
WARNING_PENALTY = 5
BOTH_IDENTIFIERS_BONUS = 10
NO_IDENTIFIER_PENALTY = 30
CONTACT_BONUS = 5


def clean_identifier(value: str) -> str:
    """Drop everything except letters and digits, upper-cased."""
    return re.sub(r"[^A-Z0-9]", "", value.upper())


class DataQualityValidator:
    """
    Produces a DataQualityResult for one observation.

    Usage:
        result = DataQualityValidator().validate(name="ACME Ltd", vat_number="GB123456789")
    """

    def validate(
        self,
        name: str,
        company_number: Optional[str] = None,
        vat_number: Optional[str] = None,
        country: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        website: Optional[str] = None,
    ) -> DataQualityResult:
        """Run all checks and return the combined result."""
        enhanced = EnhancedData()
        errors = self._check_name(name or "", enhanced)

        warnings: list[QualityIssue] = []
        id_warnings, has_identifier = self._check_identifiers(
            company_number, vat_number, (country or DEFAULT_COUNTRY).upper(), enhanced,
        )
        warnings.extend(id_warnings)
        warnings.extend(self._check_contacts(email, phone, website))

        confidence = self._confidence(
            len(errors), len(warnings), has_identifier,
            both_identifiers=bool(company_number and vat_number),
            contact_count=sum(1 for c in (email, phone, website) if c),
        )

        if errors:
            logger.debug("Quality check failed for '%s': %d error(s)", name, len(errors))

        has_enhanced = any(v is not None for v in enhanced.model_dump().values())
        return DataQualityResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            confidence=confidence,
            enhanced_data=enhanced if has_enhanced else None,
            missing_identifier=not has_identifier,
        )

    # ------------------------------------------------------------------
    # Name
    # ------------------------------------------------------------------

    def _check_name(self, name: str, enhanced: EnhancedData) -> list[QualityIssue]:
        issues = []
        if len(name) < NAME_MIN_LENGTH:
            issues.append(QualityIssue(
                field="name", severity="error", value=name,
                message=f"Supplier name is too short (minimum {NAME_MIN_LENGTH} characters)",
            ))
        if len(name) > NAME_MAX_LENGTH:
            issues.append(QualityIssue(
                field="name", severity="error", value=name[:50],
                message=f"Supplier name is too long (maximum {NAME_MAX_LENGTH} characters)",
            ))
        if not re.search(r"[A-Za-z]", name):
            issues.append(QualityIssue(
                field="name", severity="error", value=name,
                message="Supplier name must contain at least one letter",
            ))
        if not issues:
            enhanced.normalized_name = name.strip().lower()
        return issues

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def _check_identifiers(
        self,
        company_number: Optional[str],
        vat_number: Optional[str],
        country: str,
        enhanced: EnhancedData,
    ) -> tuple[list[QualityIssue], bool]:
        issues = []
        has_identifier = False

        if company_number:
            pattern = COMPANY_NUMBER_PATTERNS.get(country)
            if pattern:
                cleaned = clean_identifier(company_number)
                if pattern.match(cleaned):
                    has_identifier = True
                    enhanced.validated_company_number = cleaned
                else:
                    issues.append(QualityIssue(
                        field="companyNumber", severity="warning", value=company_number,
                        message=f"Company number {company_number} does not match the {country} format",
                    ))
            elif COMPANY_NUMBER_LENGTH[0] <= len(company_number) <= COMPANY_NUMBER_LENGTH[1]:
                has_identifier = True
                enhanced.validated_company_number = company_number

        if vat_number:
            cleaned = clean_identifier(vat_number)
            vat_country = cleaned[:2] if re.match(r"^[A-Z]{2}", cleaned) else country
            pattern = VAT_PATTERNS.get(vat_country)
            if pattern:
                if pattern.match(cleaned):
                    has_identifier = True
                    enhanced.validated_vat = cleaned
                    enhanced.country = vat_country
                else:
                    issues.append(QualityIssue(
                        field="vatNumber", severity="warning", value=vat_number,
                        message=f"VAT number {vat_number} does not match the {vat_country} format",
                    ))
            elif VAT_LENGTH[0] <= len(cleaned) <= VAT_LENGTH[1]:
                has_identifier = True
                enhanced.validated_vat = cleaned

        return issues, has_identifier

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    def _check_contacts(
        self,
        email: Optional[str],
        phone: Optional[str],
        website: Optional[str],
    ) -> list[QualityIssue]:
        issues = []
        if email and not EMAIL_RE.match(email):
            issues.append(QualityIssue(
                field="email", severity="warning", value=email,
                message=f"Invalid email address: {email}",
            ))
        if phone and not is_valid_phone(phone):
            issues.append(QualityIssue(
                field="phone", severity="warning", value=phone,
                message=f"Invalid phone number: {phone}",
            ))
        if website and not is_valid_website(website):
            issues.append(QualityIssue(
                field="website", severity="warning", value=website,
                message=f"Invalid website: {website}",
            ))
        return issues

    @staticmethod
    def _confidence(
        error_count: int,
        warning_count: int,
        has_identifier: bool,
        both_identifiers: bool,
        contact_count: int,
    ) -> int:
        confidence = 100
        confidence -= error_count * ERROR_PENALTY
        confidence -= warning_count * WARNING_PENALTY
        if both_identifiers:
            confidence = min(100, confidence + BOTH_IDENTIFIERS_BONUS)
        elif not has_identifier:
            confidence -= NO_IDENTIFIER_PENALTY
        confidence += contact_count * CONTACT_BONUS
        return max(0, min(100, confidence))


def is_valid_phone(phone: str) -> bool:
    digits = re.sub(r"\D", "", phone)
    return PHONE_DIGITS[0] <= len(digits) <= PHONE_DIGITS[1]


def is_valid_website(website: str) -> bool:
    url = website if website.lower().startswith("http") else f"https://{website}"
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in parsed.netloc
