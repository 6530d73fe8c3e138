# Pydantic Schemas Package
from .stock import StockCreate, StockIn, StockAdjust, StockUpdate, StockActive, StockResponse
from .budget import (
    BudgetCreate, BudgetUpdate, BudgetItemCreate, BudgetItemUpdate, BudgetItemResponse, BudgetResponse
)
from .allocation import AllocationCreate, DistributionCreate, AllocationResponse, DistributionResponse
from .archive import ArchiveCreate, ArchiveRestore, ArchiveResponse, ArchiveDetail
from .audit import AuditLogResponse
from .sync import SyncStatusResponse, SyncHistoryItem

__all__ = [
    "StockCreate", "StockIn", "StockAdjust", "StockUpdate", "StockActive", "StockResponse",
    "BudgetCreate", "BudgetUpdate", "BudgetItemCreate", "BudgetItemUpdate", "BudgetItemResponse", "BudgetResponse",
    "AllocationCreate", "DistributionCreate", "AllocationResponse", "DistributionResponse",
    "ArchiveCreate", "ArchiveRestore", "ArchiveResponse", "ArchiveDetail",
    "AuditLogResponse",
    "SyncStatusResponse", "SyncHistoryItem",
]
