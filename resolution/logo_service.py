"""
Logo lookup for global suppliers.

Logos come from the img.logo.dev CDN keyed by the supplier's primary domain.
The CDN serves a placeholder for unknown domains, so a lookup only builds the
URL; the bookkeeping on global_suppliers (status, attempts, last failure)
decides when a supplier is tried again.

Retry policy:
  failed, fewer than 5 attempts   wait 2^(attempts-1) days since the last failure
  failed, 5 or more attempts      wait 30 days since the last failure
  success                         refresh after 30 days
  not_found                       retry after 90 days
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

from config import Config
from models.result import LogoResult
from models.supplier import GlobalSupplier
from resolution.database import Database

logger = logging.getLogger(__name__)

LOGO_BASE_URL = "https://img.logo.dev"

MAX_ATTEMPTS_BEFORE_COOLDOWN = 5
COOLDOWN_DAYS = 30
SUCCESS_REFRESH_DAYS = 30
NOT_FOUND_RETRY_DAYS = 90
FAILED_BACKOFF_CAP_EXPONENT = 4     # 16 days


def clean_domain(domain: str) -> str:
    """'https://www.acme.co.uk:443/about?x=1' -> 'acme.co.uk'"""
    clean = re.sub(r"^https?://", "", domain.strip(), flags=re.IGNORECASE)
    clean = re.sub(r"^www\.", "", clean, flags=re.IGNORECASE)
    clean = re.split(r"[/?#]", clean, maxsplit=1)[0]
    clean = clean.split(":", 1)[0]
    return clean.lower()


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def should_skip(supplier: GlobalSupplier, now: Optional[datetime] = None) -> bool:
    """True while a supplier whose last lookup failed is still inside its backoff window."""
    if supplier.logo_fetch_status != "failed":
        return False
    now = now or datetime.now(timezone.utc)
    attempts = supplier.logo_fetch_attempts or 0
    last_failed = _parse_ts(supplier.logo_last_failed_at)

    if attempts >= MAX_ATTEMPTS_BEFORE_COOLDOWN:
        if last_failed is None:
            return True
        return now - last_failed < timedelta(days=COOLDOWN_DAYS)

    if last_failed and attempts > 0:
        return now - last_failed < timedelta(hours=(2 ** (attempts - 1)) * 24)
    return False


def needs_refresh(
    fetched_at: Optional[str],
    status: str,
    attempts: int = 0,
    now: Optional[datetime] = None,
) -> bool:
    fetched = _parse_ts(fetched_at)
    if fetched is None:
        return True
    age = (now or datetime.now(timezone.utc)) - fetched

    if status == "success":
        return age > timedelta(days=SUCCESS_REFRESH_DAYS)
    if status == "not_found":
        return age > timedelta(days=NOT_FOUND_RETRY_DAYS)
    if status == "failed":
        if attempts > 0:
            return age > timedelta(days=2 ** min(attempts - 1, FAILED_BACKOFF_CAP_EXPONENT))
        return age > timedelta(days=1)
    return True


class LogoService:
    """
    Resolves and records logos for global suppliers.

    Usage:
        service = LogoService(db, config)
        service.fetch_and_cache(global_supplier_id)
    """

    def __init__(self, db: Database, config: Optional[Config] = None):
        self.db = db
        self.config = config or Config()
        if not self.config.logo_token:
            logger.warning("Logo token not configured (LOGO_DEV_TOKEN) — logo lookups disabled")

    def logo_url(self, domain: str) -> LogoResult:
        if not self.config.logo_token:
            return LogoResult(success=False, error="Logo token not configured")
        if not domain:
            return LogoResult(success=False, error="Domain is required")
        query = urlencode({
            "token": self.config.logo_token,
            "size": self.config.logo_size,
            "format": self.config.logo_format,
            "transparent": "true",
        })
        return LogoResult(success=True, logo_url=f"{LOGO_BASE_URL}/{clean_domain(domain)}?{query}")

    def fetch_and_cache(self, global_supplier_id: str) -> LogoResult:
        """Look up the logo for one global supplier and record the outcome."""
        with self.db.reader() as store:
            supplier = store.get_global(global_supplier_id)
        if supplier is None:
            return LogoResult(success=False, error="Global supplier not found")

        if should_skip(supplier):
            logger.info(
                "Skipping logo fetch for %s after %d attempt(s)",
                global_supplier_id, supplier.logo_fetch_attempts,
            )
            return LogoResult(success=False, error="Skipped due to repeated failures", skipped=True)

        if not supplier.primary_domain:
            with self.db.transaction() as store:
                store.record_logo_result(global_supplier_id, "not_found")
            return LogoResult(success=False, error="No domain available for supplier")

        result = self.logo_url(supplier.primary_domain)
        if not self.config.logo_token:
            # Configuration problem, not a property of this supplier
            return result

        with self.db.transaction() as store:
            if result.success:
                store.record_logo_result(global_supplier_id, "success", result.logo_url)
            else:
                store.record_logo_result(global_supplier_id, "failed")
        logger.info("Logo %s for %s (%s)",
                    "resolved" if result.success else "failed",
                    supplier.canonical_name, supplier.primary_domain)
        return result

    def fetch_pending(self, limit: Optional[int] = None) -> dict[str, LogoResult]:
        """
        Process never-fetched suppliers first, then stale ones whose refresh
        window has passed. Returns results keyed by global supplier id.
        """
        limit = limit or self.config.logo_fetch_batch_size
        with self.db.reader() as store:
            due = store.globals_needing_logos(limit)
            if len(due) < limit:
                stale = store.globals_with_status(("success", "not_found", "failed"), limit=limit * 5)
                due.extend(
                    g for g in stale
                    if needs_refresh(g.logo_fetched_at, g.logo_fetch_status, g.logo_fetch_attempts)
                )
        results = {}
        for supplier in due[:limit]:
            results[supplier.id] = self.fetch_and_cache(supplier.id)
        return results
