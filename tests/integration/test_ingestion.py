"""
Integration tests for supplier ingestion: matching, creation, updates and side effects.
"""
import logging

import pytest

from resolution import slug as slug_module
from resolution.errors import SlugCollisionError, StructuralValidationError
from resolution.ingestion import SupplierIngestionService

ADDRESS = {"line1": "1 High Street", "city": "London", "country": "GB"}


class RecordingIndexer:
    def __init__(self):
        self.documents = []

    def index_supplier(self, document):
        self.documents.append(document)


class RecordingDispatcher:
    def __init__(self):
        self.calls = []

    def trigger_logo_fetch(self, global_supplier_ids):
        self.calls.append(list(global_supplier_ids))


class BrokenCollaborator:
    def index_supplier(self, document):
        raise ConnectionError("search backend down")

    def trigger_logo_fetch(self, global_supplier_ids):
        raise ConnectionError("queue down")


@pytest.mark.integration
class TestIngestion:
    """End-to-end ingestion against a real SQLite file."""

    def test_create_new_supplier(self, ingestion_service, test_db, sample_request):
        """Test an unknown supplier with identifiers is created with provenance and attributes."""
        result = ingestion_service.ingest(sample_request)

        assert result.success
        assert result.action == "created"
        assert result.error is None
        with test_db.reader() as store:
            supplier = store.get_supplier(result.supplier_id)
            attributes = store.get_attributes(supplier.id)
            sources = store.get_data_sources(supplier.id)
        assert supplier.slug == "acme-ltd"
        assert supplier.company_number == "12345678"
        assert supplier.vat_number == "GB123456789"
        assert sorted(a.attribute_type for a in attributes) == [
            "address", "bank_account", "email", "phone", "website",
        ]
        assert all(a.confidence == 70 and a.seen_count == 1 for a in attributes)
        primaries = {a.attribute_type for a in attributes if a.is_primary}
        assert primaries == {"address", "bank_account", "email"}
        assert [(s.source_type, s.source_id, s.occurrence_count) for s in sources] == [("invoice", "inv-0001", 1)]

    def test_company_number_match_updates(self, ingestion_service, make_request):
        """Test 'Totally Different Ltd' with a known company number updates the existing supplier."""
        first = ingestion_service.ingest(make_request("ACME Ltd", identifiers={"companyNumber": "12345678"}))
        second = ingestion_service.ingest(
            make_request("Totally Different Ltd", identifiers={"companyNumber": "12345678"})
        )

        assert first.action == "created"
        assert second.action == "updated"
        assert second.success
        assert second.supplier_id == first.supplier_id

    def test_reingest_same_source(self, ingestion_service, test_db, sample_request):
        """Test re-delivering the same document bumps counters, not rows."""
        first = ingestion_service.ingest(sample_request)
        second = ingestion_service.ingest(sample_request)

        assert second.action == "updated"
        with test_db.reader() as store:
            sources = store.get_data_sources(first.supplier_id)
            attributes = store.get_attributes(first.supplier_id)
        assert len(sources) == 1
        assert sources[0].occurrence_count == 2
        assert len(attributes) == 5
        assert all(a.seen_count == 2 and a.confidence == 75 for a in attributes)

    def test_update_adds_new_attributes_as_non_primary(self, ingestion_service, test_db, make_request):
        """Test an update inserts unseen facts without taking over primaries."""
        first = ingestion_service.ingest(make_request(
            "ACME Ltd", identifiers={"companyNumber": "12345678"}, addresses=[ADDRESS],
        ))
        ingestion_service.ingest(make_request(
            "ACME Ltd", identifiers={"companyNumber": "12345678"},
            addresses=[{"line1": "9 Dock Road", "city": "Hull", "country": "GB"}],
        ))
        with test_db.reader() as store:
            addresses = [a for a in store.get_attributes(first.supplier_id) if a.attribute_type == "address"]
            sources = store.get_data_sources(first.supplier_id)
        assert len(addresses) == 2
        assert sum(a.is_primary for a in addresses) == 1
        assert next(a for a in addresses if a.is_primary).value["city"] == "london"
        assert len(sources) == 2

    def test_semantically_equal_attribute(self, ingestion_service, test_db, make_request):
        """Test case and whitespace differences count as the same attribute."""
        first = ingestion_service.ingest(make_request(
            "ACME Ltd", identifiers={"companyNumber": "12345678"},
            contacts=[{"type": "email", "value": "Accounts@ACME.co.uk"}],
        ))
        ingestion_service.ingest(make_request(
            "ACME Ltd", identifiers={"companyNumber": "12345678"},
            contacts=[{"type": "email", "value": "  accounts@acme.co.uk "}],
        ))
        with test_db.reader() as store:
            (email,) = store.get_attributes(first.supplier_id)
        assert email.seen_count == 2
        assert email.confidence == 75

    def test_insufficient_data_skipped(self, ingestion_service, test_db, make_request, tenant_id):
        """Test a bare name without identifiers is not enough to create a supplier."""
        result = ingestion_service.ingest(make_request("Mystery Vendor"))

        assert not result.success
        assert result.action == "skipped"
        assert result.supplier_id is None
        assert result.error.startswith("Insufficient data for supplier creation (score: 30/60)")
        with test_db.reader() as store:
            assert store.list_suppliers(tenant_id) == []

    def test_enough_evidence_without_identifiers(self, ingestion_service, make_request):
        """Test a supplier with address and email but no identifiers can still be created."""
        result = ingestion_service.ingest(make_request(
            "Brand New Co", addresses=[ADDRESS],
            contacts=[{"type": "email", "value": "hello@brandnew.io"}],
        ))
        assert result.action == "created"
        assert result.global_supplier_id is None

    def test_weak_match_treated_as_no_match(self, ingestion_service, make_request):
        """Test a match at or below the ignore level falls through to the creation gate."""
        ingestion_service.ingest(make_request(
            "ACME Ltd", identifiers={"companyNumber": "12345678"},
            contacts=[{"type": "website", "value": "acme.co.uk"}],
        ))
        result = ingestion_service.ingest(make_request(
            "Zeta", contacts=[{"type": "email", "value": "zeta@acme.co.uk"}],
        ))
        # Domain-only similarity (20) is ignored; 30 name + 25 email is below the creation gate
        assert result.action == "skipped"
        assert "Insufficient data" in result.error

    def test_medium_confidence_queued_for_review(self, ingestion_service, test_db, make_request, tenant_id):
        """Test a medium-confidence candidate is skipped and parked in the review queue."""
        existing = ingestion_service.ingest(make_request(
            "ACME Ltd", identifiers={"companyNumber": "12345678"},
            contacts=[{"type": "email", "value": "accounts@acme.co.uk"}],
        ))
        result = ingestion_service.ingest(make_request(
            "ACME Limited", source_id="inv-review",
            contacts=[{"type": "email", "value": "sales@acme.co.uk"}],
        ))

        assert result.success
        assert result.action == "skipped"
        assert result.supplier_id is None
        with test_db.reader() as store:
            (item,) = store.list_review_items(scope="tenant", tenant_id=tenant_id)
            assert len(store.list_suppliers(tenant_id)) == 1
        assert item.subject_ref == "invoice:inv-review"
        assert item.candidate_id == existing.supplier_id
        assert item.confidence == 50
        assert item.match_type == "name"
        assert item.payload["data"]["name"] == "ACME Limited"

    def test_review_queue_can_be_disabled(self, test_db, test_config, make_request):
        """Test no review row is written when persistence is off."""
        test_config.persist_review_candidates = False
        service = SupplierIngestionService(test_db, test_config, sleep=lambda s: None)
        service.ingest(make_request(
            "ACME Ltd", identifiers={"companyNumber": "12345678"},
            contacts=[{"type": "email", "value": "accounts@acme.co.uk"}],
        ))
        result = service.ingest(make_request(
            "ACME Limited", contacts=[{"type": "email", "value": "sales@acme.co.uk"}],
        ))

        assert result.action == "skipped"
        with test_db.reader() as store:
            assert store.list_review_items() == []

    def test_weak_candidate_not_queued(self, ingestion_service, test_db, make_request):
        """Test a candidate below the suggest threshold is skipped without a review row."""
        ingestion_service.ingest(make_request("ACME Ltd", identifiers={"companyNumber": "12345678"}))
        # Name alone scores 30: above ignore (20), below suggest (40)
        result = ingestion_service.ingest(make_request("ACME Limited"))

        assert result.success
        assert result.action == "skipped"
        with test_db.reader() as store:
            assert store.list_review_items() == []

    def test_data_quality_failure(self, ingestion_service, make_request):
        """Test blocking quality errors come back as a skipped result."""
        result = ingestion_service.ingest(make_request("1234", identifiers={"companyNumber": "12345678"}))

        assert not result.success
        assert result.action == "skipped"
        assert result.error == "Data quality issues: Supplier name must contain at least one letter"

    def test_quality_cleans_identifiers(self, ingestion_service, test_db, make_request):
        """Test validated identifiers replace the raw ones before storage."""
        result = ingestion_service.ingest(make_request("ACME Ltd", identifiers={"vatNumber": "gb 123 456 789"}))
        with test_db.reader() as store:
            assert store.get_supplier(result.supplier_id).vat_number == "GB123456789"

    def test_structural_error_raised(self, ingestion_service, make_request):
        """Test malformed input raises StructuralValidationError."""
        bad = make_request("ACME Ltd")
        bad["tenantId"] = "nope"
        with pytest.raises(StructuralValidationError):
            ingestion_service.ingest(bad)

    def test_cross_tenant_isolation(self, ingestion_service, make_request, tenant_id, other_tenant_id):
        """Test another tenant's supplier is never matched, but both share one global record."""
        a = ingestion_service.ingest(make_request("ACME Ltd", identifiers={"companyNumber": "12345678"}))
        b = ingestion_service.ingest(make_request(
            "ACME Ltd", tenant=other_tenant_id, identifiers={"companyNumber": "12345678"},
        ))

        assert a.action == b.action == "created"
        assert a.supplier_id != b.supplier_id
        assert a.global_supplier_id is not None
        assert b.global_supplier_id == a.global_supplier_id

    def test_result_wire_format(self, ingestion_service, sample_request):
        """Test results serialise camelCase without empty fields."""
        wire = ingestion_service.ingest(sample_request).to_wire()
        assert wire["success"] is True
        assert wire["action"] == "created"
        assert "supplierId" in wire
        assert "error" not in wire

    def test_ingest_many_continues_after_errors(self, ingestion_service, make_request):
        """Test a bad item in a batch becomes a skipped result."""
        bad = make_request("ACME Ltd")
        bad["source"] = "carrier-pigeon"
        results = ingestion_service.ingest_many([
            make_request("ACME Ltd", identifiers={"companyNumber": "12345678"}),
            bad,
            make_request("Mystery Vendor"),
        ])
        assert [r.action for r in results] == ["created", "skipped", "skipped"]
        assert results[1].error.startswith("Invalid supplier data")


@pytest.mark.integration
class TestIngestionSideEffects:
    """Post-commit work: search indexing, logo dispatch, failure isolation."""

    def test_search_index_and_logo_dispatch(self, test_db, test_config, sample_request):
        """Test a created supplier is indexed and its new global record queued for a logo."""
        indexer, dispatcher = RecordingIndexer(), RecordingDispatcher()
        service = SupplierIngestionService(test_db, test_config, indexer, dispatcher, sleep=lambda s: None)
        result = service.ingest(sample_request)

        (document,) = indexer.documents
        assert document.id == result.supplier_id
        assert document.company_number == "12345678"
        assert dispatcher.calls == [[result.global_supplier_id]]
        with test_db.reader() as store:
            assert store.get_global(result.global_supplier_id).primary_domain == "acme.co.uk"

    def test_side_effect_failures_do_not_undo_creation(self, test_db, test_config, sample_request, caplog):
        """Test broken collaborators are logged and the supplier stays committed."""
        broken = BrokenCollaborator()
        service = SupplierIngestionService(test_db, test_config, broken, broken, sleep=lambda s: None)
        with caplog.at_level(logging.ERROR, logger="resolution.ingestion"):
            result = service.ingest(sample_request)

        assert result.success
        assert result.action == "created"
        assert result.global_supplier_id is not None
        assert "search index failed" in caplog.text
        assert "logo fetch failed" in caplog.text
        with test_db.reader() as store:
            assert store.get_supplier(result.supplier_id) is not None

    def test_global_link_failure_isolated(self, ingestion_service, make_request, monkeypatch, caplog):
        """Test an exception while linking globally still returns a created result."""
        def explode(supplier_id):
            raise RuntimeError("registry unavailable")

        monkeypatch.setattr(ingestion_service.global_resolver, "link_supplier", explode)
        with caplog.at_level(logging.ERROR, logger="resolution.ingestion"):
            result = ingestion_service.ingest(make_request("ACME Ltd", identifiers={"companyNumber": "12345678"}))

        assert result.action == "created"
        assert result.global_supplier_id is None
        assert "global link failed" in caplog.text


@pytest.mark.integration
class TestSlugAllocation:
    """Slug generation through the write paths."""

    def test_slug_collision_retried(self, ingestion_service, make_request, monkeypatch):
        """Test a lost slug race is retried with a freshly generated slug."""
        ingestion_service.ingest(make_request("ACME Ltd", identifiers={"companyNumber": "12345678"}))
        calls = []

        def stale_then_real(store, tenant_id, name):
            calls.append(name)
            if len(calls) == 1:
                return "acme-ltd"
            return slug_module.generate_slug(store, tenant_id, name)

        monkeypatch.setattr("resolution.ingestion.generate_slug", stale_then_real)
        result = ingestion_service.ingest(
            make_request("Zebra Crossing Ltd", identifiers={"companyNumber": "87654321"})
        )
        assert result.action == "created"
        assert len(calls) == 2

    def test_slug_collision_exhausted(self, ingestion_service, make_request, monkeypatch):
        """Test SlugCollisionError after every attempt collides."""
        ingestion_service.ingest(make_request("ACME Ltd", identifiers={"companyNumber": "12345678"}))
        monkeypatch.setattr("resolution.ingestion.generate_slug", lambda store, tenant_id, name: "acme-ltd")

        with pytest.raises(SlugCollisionError):
            ingestion_service.ingest(make_request("Zebra Crossing Ltd", identifiers={"companyNumber": "87654321"}))


@pytest.mark.integration
class TestConcurrentIngestion:
    """Ingestion while another writer commits for the same tenant."""

    def test_commit_between_candidate_queries(self, test_db, test_config, ingestion_service, make_request,
                                              monkeypatch):
        """Test a supplier committed mid-load does not break the running ingestion."""
        from resolution.database import SupplierStore

        ingestion_service.ingest(make_request("ACME Ltd", identifiers={"companyNumber": "12345678"}))
        other_service = SupplierIngestionService(test_db, test_config, sleep=lambda s: None)
        original = SupplierStore._execute
        interleaved = []

        def commit_between(self, sql, params=()):
            cursor = original(self, sql, params)
            if not interleaved and sql.startswith("SELECT * FROM suppliers WHERE tenant_id"):
                interleaved.append(other_service.ingest(make_request(
                    "Concurrent Ltd",
                    identifiers={"companyNumber": "87654321"},
                    contacts=[{"type": "email", "value": "sales@concurrent.co.uk", "isPrimary": True}],
                )))
            return cursor

        monkeypatch.setattr(SupplierStore, "_execute", commit_between)
        result = ingestion_service.ingest(make_request("Third Ltd", identifiers={"companyNumber": "11223344"}))

        assert interleaved[0].action == "created"
        assert result.success
        assert result.action == "created"
