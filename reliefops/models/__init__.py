from .base import IntegerIdMixin, TimestampMixin, utcnow
from .master import AppUser, Disaster, Shelter, Evacuee, Category, ReliefGood, relief_good_category
from .stock import Stock, StockStatus, compute_percent, compute_status
from .budget import BarangayBudget, BarangayBudgetItem, BudgetStatus, ACTIVE_BUDGET_STATUSES
from .allocation import ResourceAllocation, ResourceDistribution
from .archive import Archive
from .audit import AuditLog, AuditSeverity
from .sync_log import SyncLog, SyncStatus

__all__ = [
    # Base
    "IntegerIdMixin", "TimestampMixin", "utcnow",
    # Reference
    "AppUser", "Disaster", "Shelter", "Evacuee", "Category", "ReliefGood", "relief_good_category",
    # Stock
    "Stock", "StockStatus", "compute_percent", "compute_status",
    # Budget
    "BarangayBudget", "BarangayBudgetItem", "BudgetStatus", "ACTIVE_BUDGET_STATUSES",
    # Allocation
    "ResourceAllocation", "ResourceDistribution",
    # Archive
    "Archive",
    # Audit
    "AuditLog", "AuditSeverity",
    # Sync
    "SyncLog", "SyncStatus",
]
