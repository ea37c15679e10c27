from .database import Database, SupplierStore
from .supplier_matcher import SupplierMatcher
from .quality_validator import DataQualityValidator
from .global_supplier import GlobalSupplierResolver
from .ingestion import SupplierIngestionService
from .supplier_service import SupplierService
from .operations import SupplierOperations
from .logo_service import LogoService
from .transformer import transform_invoice_to_supplier

__all__ = [
    "Database", "SupplierStore", "SupplierMatcher", "DataQualityValidator",
    "GlobalSupplierResolver", "SupplierIngestionService", "SupplierService",
    "SupplierOperations", "LogoService", "transform_invoice_to_supplier",
]
