"""
Narrow interfaces to the services supplier resolution calls after commit.

Search indexing and background job dispatch live outside this package; the
ingestion service only needs these two methods. The defaults here keep a
standalone install working: indexing is logged and dropped, logo fetches run
in-process.
"""
import logging
from typing import Protocol, Sequence

from models.result import SearchDocument

logger = logging.getLogger(__name__)


class SearchIndexer(Protocol):
    def index_supplier(self, document: SearchDocument) -> None: ...


class JobDispatcher(Protocol):
    def trigger_logo_fetch(self, global_supplier_ids: Sequence[str]) -> None: ...


class NullSearchIndexer:
    """Used when no search backend is configured."""

    def index_supplier(self, document: SearchDocument) -> None:
        logger.debug("Search indexing disabled; skipped supplier %s", document.id)


class InlineJobDispatcher:
    """Runs logo fetches synchronously through a LogoService."""

    def __init__(self, logo_service) -> None:
        self.logo_service = logo_service

    def trigger_logo_fetch(self, global_supplier_ids: Sequence[str]) -> None:
        for global_id in global_supplier_ids:
            self.logo_service.fetch_and_cache(global_id)
