"""
Supplier ingestion: resolves one vendor observation to a tenant supplier.

  validate -> quality check -> match -> update | create | skip -> side effects

  confidence >= auto-accept       update the matched supplier (provenance + attribute merge)
  no match, or <= ignore level    create when the observation has an identifier or
                                  enough other evidence, otherwise skip
  anything in between             skip and park the candidate in the review queue

Each write path is one transaction. Global linking, search indexing and the
logo fetch run after commit, each in its own error boundary; none of them
can undo a committed supplier.
"""
import logging
from typing import Any, Callable, Iterable, Optional

from config import Config
from models.ingestion import IngestionRequest, IngestionResult
from models.result import DataQualityResult, MatchResult, SearchDocument
from models.supplier import Supplier
from resolution.attributes import observed_attributes
from resolution.collaborators import InlineJobDispatcher, JobDispatcher, NullSearchIndexer, SearchIndexer
from resolution.database import Database, SupplierStore
from resolution.errors import DuplicateIdentifierError, InsufficientDataError, SupplierError, UniqueViolation
from resolution.field_validator import validate_ingestion_request
from resolution.global_supplier import GlobalSupplierResolver
from resolution.logo_service import LogoService
from resolution.quality_validator import DataQualityValidator
from resolution.slug import generate_slug, with_slug_retry
from resolution.supplier_matcher import SupplierMatcher

logger = logging.getLogger(__name__)


def merge_attributes(
    store: SupplierStore,
    supplier_id: str,
    request: IngestionRequest,
    confidence: int,
    increment: int,
    creating: bool = False,
) -> tuple[int, int]:
    """
    Insert unseen attributes, bump seen_count / confidence on known ones.
    Returns (inserted, refreshed).
    """
    known = set() if creating else store.attribute_hashes(supplier_id)
    inserted = refreshed = 0
    for attr in observed_attributes(request.data):
        is_new = (attr.attribute_type, attr.hash) not in known
        store.upsert_attribute(
            supplier_id=supplier_id,
            attribute_type=attr.attribute_type,
            value=attr.value,
            value_hash=attr.hash,
            confidence=confidence,
            increment=increment,
            # Only a brand-new supplier takes primaries from the observation
            is_primary=attr.is_primary and creating,
            source_type=request.source,
            source_id=request.source_id,
            created_by=request.user_id,
        )
        if is_new:
            inserted += 1
        else:
            refreshed += 1
    return inserted, refreshed


class SupplierIngestionService:
    """
    Usage:
        service = SupplierIngestionService(Database(config.db_path), config)
        result = service.ingest(payload)      # payload: dict or IngestionRequest
    """

    def __init__(
        self,
        db: Database,
        config: Optional[Config] = None,
        search_indexer: Optional[SearchIndexer] = None,
        job_dispatcher: Optional[JobDispatcher] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.db = db
        self.config = config or Config()
        self.matcher = SupplierMatcher()
        self.quality = DataQualityValidator()
        self.global_resolver = GlobalSupplierResolver(db, self.config)
        self.search_indexer = search_indexer or NullSearchIndexer()
        self.job_dispatcher = job_dispatcher or InlineJobDispatcher(LogoService(db, self.config))
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def ingest(self, raw: Any) -> IngestionResult:
        """
        Resolve one observation. Raises StructuralValidationError for bad
        input and DuplicateIdentifierError / SlugCollisionError for conflicts;
        every expected business outcome comes back as an IngestionResult.
        """
        request = validate_ingestion_request(raw)
        data = request.data

        quality = self._quality_check(request)
        if not quality.is_valid:
            logger.warning("Supplier data quality validation failed for '%s': %s",
                           data.name, quality.error_summary())
            return IngestionResult(
                success=False,
                action="skipped",
                error=f"Data quality issues: {quality.error_summary()}",
            )
        if quality.warnings:
            logger.info("Supplier data quality warnings for '%s' (confidence=%d): %s",
                        data.name, quality.confidence,
                        "; ".join(w.message for w in quality.warnings))
        request = self._apply_enhanced(request, quality)

        with self.db.reader() as store:
            candidates = store.active_suppliers_with_attributes(request.tenant_id)
        match = self.matcher.match(request.data, candidates)

        if match.matched and match.confidence >= self.config.auto_accept_threshold:
            return self._update_existing(request, match)

        if not match.matched or match.confidence <= self.config.ignore_threshold:
            return self._create_or_skip(request, quality)

        logger.info("Low confidence match for '%s' (%s, confidence=%d), skipping",
                    request.data.name, match.supplier_id, match.confidence)
        self._queue_review(request, match)
        return IngestionResult(success=True, action="skipped")

    def ingest_many(self, raws: Iterable[Any]) -> list[IngestionResult]:
        """Ingest a batch; a failing item becomes a skipped result and the batch continues."""
        results = []
        for index, raw in enumerate(raws):
            try:
                results.append(self.ingest(raw))
            except SupplierError as exc:
                logger.warning("Batch item %d rejected: %s", index, exc.message)
                results.append(IngestionResult(success=False, action="skipped", error=exc.message))
        created = sum(1 for r in results if r.action == "created")
        updated = sum(1 for r in results if r.action == "updated")
        logger.info("Batch complete: %d item(s), %d created, %d updated, %d skipped",
                    len(results), created, updated, len(results) - created - updated)
        return results

    # ------------------------------------------------------------------
    # Decision steps
    # ------------------------------------------------------------------

    def _quality_check(self, request: IngestionRequest) -> DataQualityResult:
        data = request.data
        return self.quality.validate(
            name=data.name,
            company_number=data.identifiers.company_number,
            vat_number=data.identifiers.vat_number,
            country=data.addresses[0].country if data.addresses else None,
            email=data.first_contact("email"),
            phone=data.first_contact("phone"),
            website=data.first_contact("website"),
        )

    @staticmethod
    def _apply_enhanced(request: IngestionRequest, quality: DataQualityResult) -> IngestionRequest:
        enhanced = quality.enhanced_data
        if enhanced is None:
            return request
        updates = {}
        if enhanced.validated_company_number:
            updates["company_number"] = enhanced.validated_company_number
        if enhanced.validated_vat:
            updates["vat_number"] = enhanced.validated_vat
        if not updates:
            return request
        identifiers = request.data.identifiers.model_copy(update=updates)
        data = request.data.model_copy(update={"identifiers": identifiers})
        return request.model_copy(update={"data": data})

    def _create_or_skip(self, request: IngestionRequest, quality: DataQualityResult) -> IngestionResult:
        data = request.data
        score = self.matcher.creation_score(data)
        has_identifier = data.identifiers.has_any
        logger.info(
            "Supplier creation score for '%s': %d/%d (identifiers=%s, addresses=%d, contacts=%d)",
            data.name, score, self.config.create_threshold, has_identifier,
            len(data.addresses), len(data.contacts),
        )
        if has_identifier or score >= self.config.create_threshold:
            return self._create_new(request)

        reason = InsufficientDataError(score, self.config.create_threshold, quality.missing_identifier)
        logger.warning("Insufficient data for supplier creation: '%s' (%s)", data.name, reason.message)
        return IngestionResult(success=False, action="skipped", error=reason.message)

    def _queue_review(self, request: IngestionRequest, match: MatchResult) -> None:
        if not self.config.persist_review_candidates:
            return
        if match.confidence < self.config.suggest_threshold:
            logger.debug("Candidate %s for '%s' below suggest threshold (%d < %d), not queued",
                         match.supplier_id, request.data.name, match.confidence, self.config.suggest_threshold)
            return
        with self.db.transaction() as store:
            store.upsert_review_item(
                scope="tenant",
                tenant_id=request.tenant_id,
                subject_ref=f"{request.source}:{request.source_id}",
                candidate_id=match.supplier_id,
                confidence=match.confidence,
                match_type=match.match_type,
                payload=request.model_dump(by_alias=True, exclude_none=True),
            )

    # ------------------------------------------------------------------
    # Write paths
    # ------------------------------------------------------------------

    def _update_existing(self, request: IngestionRequest, match: MatchResult) -> IngestionResult:
        with self.db.transaction() as store:
            source = store.upsert_data_source(match.supplier_id, request.source, request.source_id)
            inserted, refreshed = merge_attributes(
                store, match.supplier_id, request,
                confidence=self.config.default_attribute_confidence,
                increment=self.config.repeat_observation_increment,
            )
            supplier = store.get_supplier(match.supplier_id)
        logger.info(
            "Updated supplier %s via %s (confidence=%d): source seen %d time(s), "
            "%d new attribute(s), %d re-observed",
            match.supplier_id, match.match_type, match.confidence,
            source.occurrence_count, inserted, refreshed,
        )
        return IngestionResult(
            success=True,
            action="updated",
            supplier_id=match.supplier_id,
            global_supplier_id=supplier.global_supplier_id if supplier else None,
        )

    def _create_new(self, request: IngestionRequest) -> IngestionResult:
        data = request.data

        def attempt() -> Supplier:
            with self.db.transaction() as store:
                supplier = store.insert_supplier(
                    tenant_id=request.tenant_id,
                    name=data.name,
                    slug=generate_slug(store, request.tenant_id, data.name),
                    company_number=data.identifiers.company_number,
                    vat_number=data.identifiers.vat_number,
                )
                store.upsert_data_source(supplier.id, request.source, request.source_id)
                merge_attributes(
                    store, supplier.id, request,
                    confidence=self.config.default_attribute_confidence,
                    increment=self.config.repeat_observation_increment,
                    creating=True,
                )
                return supplier

        try:
            supplier = with_slug_retry(
                data.name,
                attempt,
                max_attempts=self.config.slug_max_attempts,
                backoff_ms=(self.config.slug_backoff_min_ms, self.config.slug_backoff_max_ms),
                sleep=self._sleep,
            )
        except UniqueViolation as exc:
            if exc.involves("company_number"):
                raise DuplicateIdentifierError(data.identifiers.company_number) from exc
            raise

        logger.info("Created supplier %s '%s' (slug=%s, source=%s:%s)",
                    supplier.id, supplier.display_name, supplier.slug,
                    request.source, request.source_id)

        global_id = self._after_create(supplier)
        return IngestionResult(
            success=True,
            action="created",
            supplier_id=supplier.id,
            global_supplier_id=global_id,
        )

    # ------------------------------------------------------------------
    # Post-commit side effects
    # ------------------------------------------------------------------

    def _after_create(self, supplier: Supplier) -> Optional[str]:
        """Run best-effort tasks for a committed supplier; returns the linked global id, if any."""
        state: dict[str, Any] = {}

        def link_global() -> None:
            outcome = self.global_resolver.link_supplier(supplier.id)
            state["outcome"] = outcome

        def index_search() -> None:
            self.search_indexer.index_supplier(SearchDocument(
                id=supplier.id,
                tenant_id=supplier.tenant_id,
                display_name=supplier.display_name,
                legal_name=supplier.legal_name,
                company_number=supplier.company_number,
                vat_number=supplier.vat_number,
                created_at=supplier.created_at,
            ))

        def fetch_logo() -> None:
            outcome = state.get("outcome")
            if outcome is not None and outcome.needs_logo:
                self.job_dispatcher.trigger_logo_fetch([outcome.global_supplier_id])

        for name, task in (("global link", link_global),
                           ("search index", index_search),
                           ("logo fetch", fetch_logo)):
            try:
                task()
            except Exception as exc:
                logger.error("Post-commit %s failed for supplier %s: %s", name, supplier.id, exc)

        outcome = state.get("outcome")
        if outcome is not None and outcome.action in ("linked", "created"):
            return outcome.global_supplier_id
        return None
