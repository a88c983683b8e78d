"""
Core Data Models for TapMoney

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: The wire schema (WireExpense) is strict - the remote
parser is an untrusted black box, so "12" is NOT an amount.
The persisted model (ExpenseRecord) is what the rest of the system trusts.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Every day/month boundary in the system is computed in this zone,
# regardless of where the code runs.
CIVIL_TIMEZONE = ZoneInfo("Asia/Taipei")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Suggested expense categories.

    DESIGN DECISION: This vocabulary is a SUGGESTION for the remote parser
    and the edit form. ExpenseRecord.category stays free text so that a
    category nobody anticipated is still stored and aggregated.
    """
    FOOD = "food"
    SHOPPING = "shopping"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    HEALTH = "health"
    LIVING = "living"
    OTHER = "other"


class PipelineState(str, Enum):
    """
    Ingestion pipeline state.

    FAILED is "idle with an error message" - the next submission
    moves it back through SUBMITTING.
    """
    IDLE = "idle"
    SUBMITTING = "submitting"
    FAILED = "failed"


# =============================================================================
# CORE EXPENSE MODEL
# =============================================================================

class ExpenseRecord(BaseModel):
    """
    A single persisted expense entry.

    Everything except the id can be edited after creation.
    """

    # Identity - assigned once, never reassigned
    id: UUID = Field(
        default_factory=uuid4,
        frozen=True,
        description="Unique record ID"
    )

    icon: str = Field(
        ...,
        description="Display glyph, usually a single emoji"
    )
    title: str = Field(
        ...,
        description="Short label"
    )
    amount: int = Field(
        ...,
        description="Amount in whole currency units (sign not enforced)"
    )
    category: str = Field(
        ...,
        description="Free-form category, see ExpenseCategory for the usual ones"
    )
    timestamp: datetime = Field(
        ...,
        description="When the expense happened (aware instant)"
    )
    note: Optional[str] = Field(
        default=None,
        description="Optional free text"
    )

    @field_validator('timestamp')
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Naive datetimes are read as civil (Asia/Taipei) wall time."""
        if v.tzinfo is None:
            return v.replace(tzinfo=CIVIL_TIMEZONE)
        return v

    @property
    def civil_timestamp(self) -> datetime:
        """The timestamp expressed in the civil timezone."""
        return self.timestamp.astimezone(CIVIL_TIMEZONE)

    @property
    def has_suggested_category(self) -> bool:
        """Is the category one of the suggested vocabulary?"""
        return self.category in {c.value for c in ExpenseCategory}


# =============================================================================
# WIRE MODELS (remote parser protocol)
# =============================================================================

class WireExpense(BaseModel):
    """
    One expense object as sent by the remote parser.

    CRITICAL: strict=True - no silent coercion of "120" into 120.
    Field order matters: the first failing field is the one reported.
    """
    model_config = ConfigDict(strict=True, extra="ignore")

    icon: str
    title: str
    amount: int
    category: str
    timestamp: str
    note: Optional[str] = None

    @field_validator('amount', mode='before')
    @classmethod
    def accept_integral_float(cls, v: Any) -> Any:
        """JSON has one number type: 120.0 is an amount, 120.5 is not."""
        if isinstance(v, float):
            if not v.is_integer():
                raise ValueError(f"amount must be a whole number, got {v}")
            return int(v)
        return v


class ResponseEnvelope(BaseModel):
    """
    Top-level response of the remote parser.

    Either `data` carries expense objects, or `raw` carries whatever the
    model produced when it could not produce structure. Elements of `data`
    are left untyped here; the transcoder classifies each one.
    """
    model_config = ConfigDict(extra="ignore")

    data: Optional[list[Any]] = None
    raw: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return bool(self.data)


# =============================================================================
# PIPELINE STATUS
# =============================================================================

class PipelineStatus(BaseModel):
    """Immutable snapshot of the ingestion pipeline's observable state."""
    model_config = ConfigDict(frozen=True)

    state: PipelineState = PipelineState.IDLE
    error_message: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.state == PipelineState.SUBMITTING

    @property
    def is_idle(self) -> bool:
        return self.state != PipelineState.SUBMITTING
