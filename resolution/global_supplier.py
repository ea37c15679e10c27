"""
Cross-tenant global supplier registry.

Each tenant supplier is linked, when the evidence is strong enough, to one
global record per real-world company. Matching cascade (no tenant scoping):
  1. Company number exact                                  -> 100
  2. VAT number, accepted at name similarity >= 70         -> 95
  3. Email / website domain equals primary_domain          -> min(90, name similarity)
  4. Fuzzy canonical name >= 85, only without identifiers  -> similarity
Decision: >= 90 link; 60-89 queue for review; otherwise create a new global
record when the supplier carries an identifier.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from config import Config
from models.result import GlobalSupplierMatch
from models.supplier import Supplier, SupplierAttribute
from resolution import constants as C
from resolution.database import Database, SupplierStore
from resolution.domain import email_domain, url_domain
from resolution.errors import UniqueViolation
from resolution.fuzzy import name_similarity

logger = logging.getLogger(__name__)


@dataclass
class GlobalLinkOutcome:
    action: str                                 # linked | created | queued | none
    global_supplier_id: Optional[str] = None
    confidence: int = 0
    needs_logo: bool = False                    # new record with a domain to look up


def supplier_domains(attributes: Iterable[SupplierAttribute]) -> list[str]:
    """Unique domains from email then website attributes, primary ones first."""
    ordered = sorted(
        (a for a in attributes if a.attribute_type in ("email", "website") and a.is_active),
        key=lambda a: (not a.is_primary, a.attribute_type != "email"),
    )
    domains: list[str] = []
    for attr in ordered:
        raw = attr.value.get("value")
        domain = email_domain(raw) if attr.attribute_type == "email" else url_domain(raw)
        if domain and domain not in domains:
            domains.append(domain)
    return domains


class GlobalSupplierResolver:
    """
    Usage:
        outcome = GlobalSupplierResolver(db, config).link_supplier(supplier_id)
    """

    def __init__(self, db: Database, config: Optional[Config] = None):
        self.db = db
        self.config = config or Config()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def link_supplier(self, supplier_id: str) -> GlobalLinkOutcome:
        """Find or create the global record for one tenant supplier and link it."""
        with self.db.transaction() as store:
            supplier = store.get_supplier(supplier_id)
            if supplier is None:
                logger.warning("Cannot link missing supplier %s to a global supplier", supplier_id)
                return GlobalLinkOutcome(action="none")
            if supplier.global_supplier_id:
                return GlobalLinkOutcome(action="linked", global_supplier_id=supplier.global_supplier_id,
                                         confidence=100)
            attributes = store.get_attributes(supplier.id)
            return self._resolve(store, supplier, attributes)

    def find_match(
        self,
        store: SupplierStore,
        supplier: Supplier,
        attributes: Iterable[SupplierAttribute],
    ) -> Optional[GlobalSupplierMatch]:
        if supplier.company_number:
            existing = store.global_by_company_number(supplier.company_number)
            if existing:
                return GlobalSupplierMatch(
                    global_supplier_id=existing.id,
                    confidence=C.COMPANY_NUMBER_MATCH,
                    match_type="company_number",
                )

        if supplier.vat_number:
            # Trading names can share a VAT registration, so require a similar name
            for candidate in store.globals_by_vat_number(supplier.vat_number):
                if name_similarity(supplier.display_name, candidate.canonical_name) >= C.GLOBAL_VAT_NAME_MIN:
                    return GlobalSupplierMatch(
                        global_supplier_id=candidate.id,
                        confidence=C.VAT_NUMBER_MATCH,
                        match_type="vat_number",
                    )

        best: Optional[GlobalSupplierMatch] = None
        for domain in supplier_domains(attributes):
            for candidate in store.globals_by_domain(domain):
                score = min(C.GLOBAL_DOMAIN_MAX, name_similarity(supplier.display_name, candidate.canonical_name))
                if score > 0 and (best is None or score > best.confidence):
                    best = GlobalSupplierMatch(
                        global_supplier_id=candidate.id, confidence=score, match_type="domain",
                    )
        if best:
            return best

        if not (supplier.company_number or supplier.vat_number):
            return self._fuzzy_name_match(store, supplier)
        return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fuzzy_name_match(self, store: SupplierStore, supplier: Supplier) -> Optional[GlobalSupplierMatch]:
        best: Optional[GlobalSupplierMatch] = None
        scanned = 0
        for page in store.global_name_pages(self.config.global_scan_page_size,
                                            self.config.global_name_scan_limit):
            scanned += len(page)
            for candidate in page:
                score = name_similarity(supplier.display_name, candidate.canonical_name)
                if score >= C.GLOBAL_FUZZY_NAME_MIN and (best is None or score > best.confidence):
                    best = GlobalSupplierMatch(
                        global_supplier_id=candidate.id, confidence=score, match_type="fuzzy_name",
                    )
        logger.debug("Global fuzzy name scan for '%s' covered %d row(s)", supplier.display_name, scanned)
        return best

    def _resolve(
        self,
        store: SupplierStore,
        supplier: Supplier,
        attributes: list[SupplierAttribute],
    ) -> GlobalLinkOutcome:
        match = self.find_match(store, supplier, attributes)

        if match and match.confidence >= self.config.global_link_threshold:
            store.link_supplier_to_global(supplier.id, match.global_supplier_id)
            logger.info(
                "Linked supplier %s to global supplier %s (confidence=%d, type=%s)",
                supplier.id, match.global_supplier_id, match.confidence, match.match_type,
            )
            return GlobalLinkOutcome("linked", match.global_supplier_id, match.confidence)

        if match and match.confidence >= self.config.global_review_threshold:
            logger.info(
                "Medium confidence global match for supplier %s: %s (confidence=%d) — queued for review",
                supplier.id, match.global_supplier_id, match.confidence,
            )
            if self.config.persist_review_candidates:
                store.upsert_review_item(
                    scope="global",
                    tenant_id=supplier.tenant_id,
                    subject_ref=supplier.id,
                    candidate_id=match.global_supplier_id,
                    confidence=match.confidence,
                    match_type=match.match_type,
                    payload={
                        "name": supplier.display_name,
                        "company_number": supplier.company_number,
                        "vat_number": supplier.vat_number,
                    },
                )
            return GlobalLinkOutcome("queued", match.global_supplier_id, match.confidence)

        if not (supplier.company_number or supplier.vat_number):
            logger.debug("Supplier %s has no identifiers; no global supplier created", supplier.id)
            return GlobalLinkOutcome(action="none")

        domains = supplier_domains(attributes)
        primary_domain = domains[0] if domains else None
        try:
            created = store.insert_global(
                canonical_name=supplier.display_name,
                company_number=supplier.company_number,
                vat_number=supplier.vat_number,
                primary_domain=primary_domain,
            )
        except UniqueViolation as exc:
            if not exc.involves("company_number"):
                raise
            # Another tenant created it first; link to the winner
            winner = store.global_by_company_number(supplier.company_number)
            store.link_supplier_to_global(supplier.id, winner.id)
            logger.info("Global supplier for %s created concurrently; linked to %s",
                        supplier.company_number, winner.id)
            return GlobalLinkOutcome("linked", winner.id, C.COMPANY_NUMBER_MATCH)

        store.link_supplier_to_global(supplier.id, created.id)
        logger.info("Created global supplier %s for '%s' (domain=%s)",
                    created.id, created.canonical_name, primary_domain)
        return GlobalLinkOutcome("created", created.id, 0, needs_logo=primary_domain is not None)
