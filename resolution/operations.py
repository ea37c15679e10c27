"""
Maintenance operations across the global registry: backfilling global links
for suppliers created before linking existed (or whose link failed), and
handing pending logo lookups to the job dispatcher.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from config import Config
from resolution.collaborators import InlineJobDispatcher, JobDispatcher
from resolution.database import Database
from resolution.global_supplier import GlobalSupplierResolver
from resolution.logo_service import LogoService

logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    examined: int = 0
    linked: int = 0
    created: int = 0
    queued: int = 0
    failed: list[str] = field(default_factory=list)
    logo_requests: list[str] = field(default_factory=list)


class SupplierOperations:
    def __init__(
        self,
        db: Database,
        config: Optional[Config] = None,
        job_dispatcher: Optional[JobDispatcher] = None,
    ):
        self.db = db
        self.config = config or Config()
        self.resolver = GlobalSupplierResolver(db, self.config)
        self.job_dispatcher = job_dispatcher or InlineJobDispatcher(LogoService(db, self.config))

    def backfill_global_links(self, tenant_id: Optional[str] = None, limit: int = 100) -> BackfillReport:
        """Link (or create) global suppliers for active suppliers that have none."""
        report = BackfillReport()
        with self.db.reader() as store:
            pending = store.suppliers_without_global(tenant_id, limit=limit)

        for supplier in pending:
            report.examined += 1
            try:
                outcome = self.resolver.link_supplier(supplier.id)
            except Exception as exc:
                logger.error("Failed to resolve global supplier for %s: %s", supplier.id, exc)
                report.failed.append(supplier.id)
                continue
            if outcome.action == "linked":
                report.linked += 1
            elif outcome.action == "created":
                report.created += 1
            elif outcome.action == "queued":
                report.queued += 1
            if outcome.needs_logo:
                report.logo_requests.append(outcome.global_supplier_id)

        if report.logo_requests:
            self.trigger_logo_fetch(report.logo_requests)
        logger.info(
            "Global backfill: %d examined, %d linked, %d created, %d queued, %d failed",
            report.examined, report.linked, report.created, report.queued, len(report.failed),
        )
        return report

    def trigger_logo_fetch(self, global_supplier_ids: list[str]) -> list[str]:
        """Dispatch logo lookups for the given globals that have a domain; returns those dispatched."""
        with self.db.reader() as store:
            with_domain = []
            for global_id in global_supplier_ids:
                supplier = store.get_global(global_id)
                if supplier and supplier.primary_domain:
                    with_domain.append(global_id)
                else:
                    logger.debug("Global supplier %s has no domain, skipping logo fetch", global_id)
        batch = with_domain[: self.config.logo_fetch_batch_size]
        if not batch:
            return []
        try:
            self.job_dispatcher.trigger_logo_fetch(batch)
        except Exception as exc:
            logger.error("Failed to trigger logo fetch for %s: %s", ", ".join(batch), exc)
            return []
        logger.info("Triggered logo fetch for %d global supplier(s)", len(batch))
        return batch

    def trigger_pending_logo_fetches(self) -> list[str]:
        with self.db.reader() as store:
            pending = store.globals_needing_logos(self.config.logo_fetch_batch_size)
        return self.trigger_logo_fetch([g.id for g in pending])
