"""
Supplier matching module.

Scores an incoming observation against a tenant's existing suppliers using
multiple strategies in priority order:
  1. Company number exact match       -> 100, stops the search
  2. VAT number exact match           -> 95 for that candidate
  3. Composite of weaker signals:
       name tiers (fuzzy, legal suffixes ignored), address tiers,
       shared email/website domain, matching phone / email,
       matching bank account
     scaled by the observation's average extraction confidence.
"""
import logging
import re
from typing import Iterable, Optional

from models.ingestion import IngestionData
from models.result import MatchDetails, MatchResult
from models.supplier import SupplierWithAttributes
from resolution import constants as C
from resolution.attributes import address_payload, bank_account_payload
from resolution.domain import domains_from_contacts, email_domain, url_domain
from resolution.fuzzy import name_similarity
from resolution.normalizer import normalize

logger = logging.getLogger(__name__)


def _digits(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def _name_points(similarity: int) -> int:
    if similarity >= 100:
        return C.NAME_EXACT
    for minimum, points in C.NAME_TIERS:
        if similarity >= minimum:
            return points
    return 0


def _address_points(observed: dict, existing: dict) -> int:
    country = observed.get("country")
    if not country or country != existing.get("country"):
        return 0
    city = observed.get("city")
    if city and city == existing.get("city"):
        line1 = observed.get("line1")
        if line1 and line1 == existing.get("line1"):
            return C.ADDRESS_FULL
        return C.ADDRESS_CITY_COUNTRY
    return C.ADDRESS_COUNTRY


def _bank_points(observed: dict, existing: dict) -> int:
    iban = observed.get("iban")
    if iban and iban == existing.get("iban"):
        return C.BANK_IBAN
    account = observed.get("account_number")
    if account and account == existing.get("account_number"):
        sort_a, sort_b = observed.get("sort_code"), existing.get("sort_code")
        if not (sort_a and sort_b) or _digits(sort_a) == _digits(sort_b):
            return C.BANK_ACCOUNT_NUMBER
    bank = observed.get("bank_name")
    if bank and bank == existing.get("bank_name"):
        return C.BANK_NAME_ONLY
    return 0


def confidence_multiplier(confidence: Optional[dict]) -> float:
    """Average of the positive per-field extraction confidences mapped to a multiplier."""
    values = [v for v in (confidence or {}).values() if v and v > 0]
    if not values:
        return 1.0
    average = sum(values) / len(values)
    for minimum, multiplier in C.CONFIDENCE_MULTIPLIERS:
        if average >= minimum:
            return multiplier
    return C.LOW_CONFIDENCE_MULTIPLIER


class SupplierMatcher:
    """
    Stateless scorer. Candidates are SupplierWithAttributes, normally every
    active supplier of the tenant loaded in one read.

    Usage:
        result = SupplierMatcher().match(request.data, candidates)
        if result.matched and result.confidence >= config.auto_accept_threshold: ...
    """

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def match(self, data: IngestionData, candidates: Iterable[SupplierWithAttributes]) -> MatchResult:
        """Highest-scoring candidate, or an unmatched result when nothing scores above 0."""
        best = MatchResult()
        for candidate in candidates:
            result = self.score(data, candidate)
            if result.match_type == "company_number":
                logger.info(
                    "Supplier matched by company number: %s -> %s",
                    data.identifiers.company_number, candidate.supplier.display_name,
                )
                return result
            if result.confidence > best.confidence:
                best = result

        if best.matched:
            logger.info(
                "Best supplier candidate for '%s': %s (confidence=%d, type=%s)",
                data.name, best.supplier_id, best.confidence, best.match_type,
            )
        else:
            logger.info("No supplier match found for: %s", data.name)
        return best

    def score(self, data: IngestionData, candidate: SupplierWithAttributes) -> MatchResult:
        existing = candidate.supplier
        ids = data.identifiers

        if ids.company_number and existing.company_number and ids.company_number == existing.company_number:
            return MatchResult(
                supplier_id=existing.id,
                confidence=C.COMPANY_NUMBER_MATCH,
                match_type="company_number",
                details=MatchDetails(identifier="company_number"),
            )

        if ids.vat_number and existing.vat_number and ids.vat_number == existing.vat_number:
            return MatchResult(
                supplier_id=existing.id,
                confidence=C.VAT_NUMBER_MATCH,
                match_type="vat_number",
                details=MatchDetails(identifier="vat_number"),
            )

        details = MatchDetails(
            name_score=_name_points(max(name_similarity(data.name, n) for n in existing.all_names)),
            address_score=self._address_score(data, candidate),
            domain_score=self._domain_score(data, candidate),
            contact_score=self._contact_score(data, candidate),
            bank_score=self._bank_score(data, candidate),
        )
        raw = details.raw_total
        if raw <= 0:
            return MatchResult(details=details)

        confidence = min(round(raw * confidence_multiplier(data.confidence)), 100)
        return MatchResult(
            supplier_id=existing.id if confidence > 0 else None,
            confidence=confidence,
            match_type=self._match_type(details, confidence) if confidence > 0 else "none",
            details=details,
        )

    def creation_score(self, data: IngestionData) -> int:
        """How much evidence the observation carries for creating a new supplier (0-100)."""
        if not data.name or not data.name.strip():
            return 0
        score = C.CREATE_BASE_NAME
        if data.identifiers.company_number:
            score += C.CREATE_COMPANY_NUMBER
        if data.identifiers.vat_number:
            score += C.CREATE_VAT_NUMBER

        if data.addresses:
            first = data.addresses[0]
            if first.line1 and first.city and first.country:
                score += C.ADDRESS_FULL
            elif first.city and first.country:
                score += C.ADDRESS_CITY_COUNTRY
            elif first.country:
                score += C.ADDRESS_COUNTRY

        types = {c.type for c in data.contacts if c.value}
        if "email" in types:
            score += C.CREATE_EMAIL + C.CREATE_EMAIL_DOMAIN
        if "phone" in types:
            score += C.CREATE_PHONE
        if "website" in types:
            score += C.CREATE_WEBSITE

        if data.bank_accounts:
            first_account = data.bank_accounts[0]
            if first_account.iban:
                score += C.BANK_IBAN
            elif first_account.account_number:
                score += C.BANK_ACCOUNT_NUMBER
            elif first_account.bank_name:
                score += C.BANK_NAME_ONLY

        return min(score, 100)

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def _address_score(self, data: IngestionData, candidate: SupplierWithAttributes) -> int:
        existing = [a.value for a in candidate.of_type("address")]
        best = 0
        for address in data.addresses:
            observed = normalize(address_payload(address))
            for other in existing:
                best = max(best, _address_points(observed, other))
        return best

    def _domain_score(self, data: IngestionData, candidate: SupplierWithAttributes) -> int:
        observed = set(domains_from_contacts(data.contacts))
        if not observed:
            return 0
        existing = set()
        for attr in candidate.of_type("email"):
            existing.add(email_domain(attr.value.get("value")))
        for attr in candidate.of_type("website"):
            existing.add(url_domain(attr.value.get("value")))
        return C.DOMAIN_MATCH if observed & existing else 0

    def _contact_score(self, data: IngestionData, candidate: SupplierWithAttributes) -> int:
        score = 0
        emails = {a.value.get("value") for a in candidate.of_type("email")}
        if any(c.type == "email" and c.value.strip().lower() in emails for c in data.contacts):
            score += C.EMAIL_MATCH
        phones = {_digits(a.value.get("value")) for a in candidate.of_type("phone")}
        phones.discard("")
        if any(c.type == "phone" and _digits(c.value) in phones for c in data.contacts):
            score += C.PHONE_MATCH
        return score

    def _bank_score(self, data: IngestionData, candidate: SupplierWithAttributes) -> int:
        existing = [a.value for a in candidate.of_type("bank_account")]
        best = 0
        for account in data.bank_accounts:
            observed = normalize(bank_account_payload(account))
            for other in existing:
                best = max(best, _bank_points(observed, other))
        return best

    @staticmethod
    def _match_type(details: MatchDetails, confidence: int) -> str:
        """
        The dominant dedicated signal when it carries at least half the raw
        score. Otherwise composite, which needs a confidence of at least 50;
        weaker mixed matches report their largest dedicated signal.
        """
        signals = {
            "name": details.name_score,
            "domain": details.domain_score,
            "address": details.address_score,
        }
        dominant = max(signals, key=signals.get)
        if signals[dominant] > 0 and signals[dominant] * 2 >= details.raw_total:
            return dominant
        if confidence >= C.COMPOSITE_MIN_CONFIDENCE:
            return "composite"
        return dominant if signals[dominant] > 0 else "name"
