"""
Manual supplier management and tenant-scoped queries.

Every operation takes the tenant id and refuses to touch a supplier that
belongs to another tenant (reported as not found).
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from config import Config
from models.supplier import Supplier, SupplierDataSource, SupplierWithAttributes
from resolution.database import Database, SupplierStore
from resolution.errors import (
    DataQualityError,
    DuplicateIdentifierError,
    MissingIdentifierError,
    NotFoundError,
    UniqueViolation,
)
from resolution.quality_validator import DataQualityValidator
from resolution.slug import generate_slug, with_slug_retry

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("legal_name", "display_name", "status")


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class SupplierService:
    def __init__(self, db: Database, config: Optional[Config] = None):
        self.db = db
        self.config = config or Config()
        self.quality = DataQualityValidator()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(
        self,
        tenant_id: str,
        legal_name: str,
        display_name: Optional[str] = None,
        company_number: Optional[str] = None,
        vat_number: Optional[str] = None,
    ) -> Supplier:
        """Create a supplier by hand. At least one identifier is required."""
        company_number = _clean(company_number)
        vat_number = _clean(vat_number)
        company_number = company_number.upper() if company_number else None
        vat_number = vat_number.upper() if vat_number else None
        display_name = _clean(display_name) or legal_name.strip()

        if not (company_number or vat_number):
            raise MissingIdentifierError()

        quality = self.quality.validate(
            name=display_name, company_number=company_number, vat_number=vat_number,
        )
        if not quality.is_valid:
            raise DataQualityError(quality.errors)

        def attempt() -> Supplier:
            with self.db.transaction() as store:
                return store.insert_supplier(
                    tenant_id=tenant_id,
                    name=display_name,
                    legal_name=legal_name.strip(),
                    slug=generate_slug(store, tenant_id, display_name),
                    company_number=company_number,
                    vat_number=vat_number,
                )

        try:
            supplier = with_slug_retry(
                display_name, attempt,
                max_attempts=self.config.slug_max_attempts,
                backoff_ms=(self.config.slug_backoff_min_ms, self.config.slug_backoff_max_ms),
            )
        except UniqueViolation as exc:
            if exc.involves("company_number"):
                raise DuplicateIdentifierError(company_number) from exc
            raise

        logger.info("Created supplier manually: %s '%s' (tenant %s)", supplier.id, supplier.display_name, tenant_id)
        return supplier

    def update(self, supplier_id: str, tenant_id: str, **fields) -> Supplier:
        """Change legal_name, display_name or status. Unknown fields are ignored."""
        updates = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS and v is not None}
        with self.db.transaction() as store:
            self._owned(store, supplier_id, tenant_id)
            supplier = store.update_supplier(supplier_id, **updates)
        logger.info("Updated supplier %s: %s", supplier_id, ", ".join(sorted(updates)) or "no changes")
        return supplier

    def delete(self, supplier_id: str, tenant_id: str) -> Supplier:
        """Soft delete: the row stays, status becomes 'deleted'."""
        with self.db.transaction() as store:
            self._owned(store, supplier_id, tenant_id)
            supplier = store.update_supplier(
                supplier_id,
                status="deleted",
                deleted_at=datetime.now(timezone.utc).isoformat(),
            )
        logger.info("Soft-deleted supplier %s", supplier_id)
        return supplier

    def set_primary_attribute(self, supplier_id: str, tenant_id: str, attribute_id: str) -> None:
        with self.db.transaction() as store:
            self._owned(store, supplier_id, tenant_id)
            attribute = store.get_attribute(attribute_id)
            if attribute is None or attribute.supplier_id != supplier_id:
                raise NotFoundError("Attribute", attribute_id, code="ATTRIBUTE_NOT_FOUND")
            store.set_primary_attribute(supplier_id, attribute_id, attribute.attribute_type)
        logger.info("Set primary %s attribute %s on supplier %s",
                    attribute.attribute_type, attribute_id, supplier_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, supplier_id: str, tenant_id: str) -> Supplier:
        with self.db.reader() as store:
            return self._owned(store, supplier_id, tenant_id)

    def get_with_attributes(self, supplier_id: str, tenant_id: str) -> SupplierWithAttributes:
        with self.db.reader() as store:
            supplier = self._owned(store, supplier_id, tenant_id)
            return SupplierWithAttributes(supplier=supplier, attributes=store.get_attributes(supplier_id))

    def data_sources(self, supplier_id: str, tenant_id: str) -> list[SupplierDataSource]:
        with self.db.reader() as store:
            self._owned(store, supplier_id, tenant_id)
            return store.get_data_sources(supplier_id)

    def list_suppliers(
        self,
        tenant_id: str,
        limit: int = 50,
        offset: int = 0,
        include_deleted: bool = False,
    ) -> list[Supplier]:
        with self.db.reader() as store:
            return store.list_suppliers(tenant_id, limit=limit, offset=offset, include_deleted=include_deleted)

    def search_by_name(self, tenant_id: str, query: str, limit: int = 20) -> list[Supplier]:
        query = query.strip()
        if not query:
            return []
        with self.db.reader() as store:
            return store.search_by_name(tenant_id, query, limit=limit)

    def get_by_company_number(self, tenant_id: str, company_number: str) -> Optional[Supplier]:
        with self.db.reader() as store:
            return store.get_by_company_number(tenant_id, company_number.strip().upper())

    def get_by_vat_number(self, tenant_id: str, vat_number: str) -> Optional[Supplier]:
        with self.db.reader() as store:
            return store.get_by_vat_number(tenant_id, vat_number.strip().upper())

    @staticmethod
    def _owned(store: SupplierStore, supplier_id: str, tenant_id: str) -> Supplier:
        supplier = store.get_supplier(supplier_id)
        if supplier is None or supplier.tenant_id != tenant_id:
            raise NotFoundError("Supplier", supplier_id, code="SUPPLIER_NOT_FOUND")
        return supplier
