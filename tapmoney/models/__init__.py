"""
Data Models Package

This package contains all Pydantic models used in TapMoney.
All data flowing through the system must conform to these schemas.
"""

from tapmoney.models.expense import (
    CIVIL_TIMEZONE,
    ExpenseCategory,
    ExpenseRecord,
    PipelineState,
    PipelineStatus,
    ResponseEnvelope,
    WireExpense,
)
from tapmoney.models.insights import (
    CategorySeries,
    CategoryTotal,
    DailyTotal,
    DayGroup,
    InsightsReport,
    TimeWindow,
    TopItem,
)
from tapmoney.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "CIVIL_TIMEZONE",
    "ExpenseCategory",
    "ExpenseRecord",
    "PipelineState",
    "PipelineStatus",
    "ResponseEnvelope",
    "WireExpense",
    # Insight models
    "CategorySeries",
    "CategoryTotal",
    "DailyTotal",
    "DayGroup",
    "InsightsReport",
    "TimeWindow",
    "TopItem",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
