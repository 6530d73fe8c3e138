# Services Package
from .audit_service import AuditService
from .balance_cache import BalanceCache
from .budget_service import BudgetService
from .archive_service import ArchiveService
from .stock_service import StockService
from .allocation_service import AllocationService
from .sync_service import SyncService
from . import archive_registry

__all__ = [
    "AuditService",
    "BalanceCache",
    "BudgetService",
    "ArchiveService",
    "StockService",
    "AllocationService",
    "SyncService",
    "archive_registry",
]
