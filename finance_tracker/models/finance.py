"""
Finance Data Models

These models define the schemas of every row the application reads from
or writes to the hosted tables. They are designed to:
1. Enforce type safety at runtime
2. Make invalid states unrepresentable (closed enums for every status)
3. Map English attribute names onto the stored column names

DESIGN DECISION: The tables keep their historical French column names
(`montant`, `mois`, `statut`...). Each field declares the column as its
alias, so rows are parsed with `from_row()` and written with `to_row()`
while the rest of the code only sees the attribute names.
"""

import datetime as dt
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


def month_key(day: date) -> str:
    """Budget month (YYYY-MM) a given date belongs to."""
    return day.strftime("%Y-%m")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class GoalStatus(str, Enum):
    """Lifecycle of a savings goal."""
    IN_PROGRESS = "en_cours"
    ACHIEVED = "atteint"
    ABANDONED = "abandonne"


class TontineFrequency(str, Enum):
    """How often members contribute to a tontine."""
    WEEKLY = "hebdomadaire"
    MONTHLY = "mensuel"
    QUARTERLY = "trimestriel"


class TontineStatus(str, Enum):
    ACTIVE = "actif"
    FINISHED = "termine"
    SUSPENDED = "suspendu"


class TontineTransactionType(str, Enum):
    """
    Direction of money in a tontine.

    A CONTRIBUTION leaves the user's pocket, a PAYOUT is the pooled
    amount the user receives on their turn.
    """
    CONTRIBUTION = "cotisation"
    PAYOUT = "reception"


class TontineTransactionStatus(str, Enum):
    PENDING = "en_attente"
    PAID = "paye"
    RECEIVED = "recu"


# =============================================================================
# BASE ROW MODEL
# =============================================================================

class RowModel(BaseModel):
    """
    Base class for every stored row.

    Rows are accepted either by column name or by attribute name.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    @classmethod
    def from_row(cls, row: dict[str, Any]):
        """Parse a row returned by the storage layer."""
        return cls.model_validate(row)

    def to_row(self, exclude_none: bool = True) -> dict[str, Any]:
        """
        Serialize to a storage row keyed by column name.

        None values are dropped by default so the database applies its
        own defaults (generated ids, timestamps).
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)


# =============================================================================
# ROW MODELS
# =============================================================================

class Profile(RowModel):
    """
    User profile, one-to-one with an identity.

    The profile id IS the identity id; the table uses it as primary key.
    """
    id: str = Field(..., min_length=1)
    display_name: str = Field(..., alias="nom", min_length=1, max_length=200)
    email: Optional[str] = None
    country: str = Field(default="Cameroun", alias="pays")
    currency: str = Field(default="FCFA", alias="devise")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(RowModel):
    """
    Partial profile edit from the profile screen.

    Only the fields actually passed are written. A field that is passed
    must hold a non-blank value: null or whitespace is rejected.
    """
    model_config = ConfigDict(extra="forbid")

    display_name: Optional[str] = Field(default=None, alias="nom", min_length=1, max_length=200)
    country: Optional[str] = Field(default=None, alias="pays", min_length=1, max_length=100)
    currency: Optional[str] = Field(default=None, alias="devise", min_length=1, max_length=10)

    @field_validator('display_name', 'country', 'currency')
    @classmethod
    def not_null(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("must not be empty")
        return v

    def columns(self) -> dict[str, Any]:
        """Stored columns of the fields that were set."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class Budget(RowModel):
    """
    Monthly budget aggregate.

    One row per (user_id, month). Totals are only moved by the budget
    ledger and never go below zero.
    """
    id: Optional[str] = None
    user_id: str
    month: str = Field(..., alias="mois", pattern=MONTH_PATTERN)
    income: int = Field(default=0, alias="revenu", ge=0)
    total_spent: int = Field(default=0, alias="total_depense", ge=0)
    total_saved: int = Field(default=0, alias="total_epargne", ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def remaining(self) -> int:
        """Money left this month after spending and saving (may be negative)."""
        return self.income - self.total_spent - self.total_saved


class Category(RowModel):
    id: Optional[str] = None
    user_id: str
    name: str = Field(..., alias="nom", min_length=1, max_length=100)
    color: str = Field(default="gray", alias="couleur")
    icon: str = Field(default="more-horizontal", alias="icone")
    allocated_budget: int = Field(default=0, alias="budget_alloue", ge=0)
    created_at: Optional[datetime] = None


class Expense(RowModel):
    """
    A single expense.

    Belongs to the budget of the month its date falls in, decided when
    the expense is recorded.
    """
    id: Optional[str] = None
    user_id: str
    budget_id: Optional[str] = None
    category_id: Optional[str] = Field(default=None, alias="categorie_id")
    amount: int = Field(..., alias="montant", ge=0)
    description: Optional[str] = Field(default=None, max_length=500)
    date: dt.date = Field(..., alias="date_depense")
    created_at: Optional[datetime] = None

    @property
    def month(self) -> str:
        return month_key(self.date)


class ExpenseDraft(BaseModel):
    """Expense as entered by the user, before it is attached to a budget."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: int = Field(..., ge=0)
    date: dt.date
    category_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator('description')
    @classmethod
    def blank_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class Goal(RowModel):
    """
    Savings goal.

    current_amount only moves through explicit contributions; it is
    never derived from expenses.
    """
    id: Optional[str] = None
    user_id: str
    title: str = Field(..., alias="titre", min_length=1, max_length=200)
    description: Optional[str] = None
    target_amount: int = Field(..., alias="montant_cible", gt=0)
    current_amount: int = Field(default=0, alias="montant_actuel", ge=0)
    deadline: Optional[date] = None
    status: GoalStatus = Field(default=GoalStatus.IN_PROGRESS, alias="statut")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def progress_percentage(self) -> float:
        """Progress as stored and displayed, not clamped."""
        return self.current_amount / self.target_amount * 100

    @property
    def progress_bar_width(self) -> float:
        """Progress bar width in percent, clamped to 100."""
        return min(self.progress_percentage, 100.0)


class Tontine(RowModel):
    id: Optional[str] = None
    user_id: str
    name: str = Field(..., alias="nom", min_length=1, max_length=200)
    description: Optional[str] = None
    contribution_amount: int = Field(..., alias="montant_cotisation", gt=0)
    frequency: TontineFrequency = Field(default=TontineFrequency.MONTHLY, alias="frequence")
    participant_count: int = Field(..., alias="nombre_participants", ge=2)
    start_date: Optional[date] = Field(default=None, alias="date_debut")
    status: TontineStatus = Field(default=TontineStatus.ACTIVE, alias="statut")
    created_at: Optional[datetime] = None

    @property
    def pot_amount(self) -> int:
        """Pooled amount a member receives on their turn."""
        return self.contribution_amount * self.participant_count


class TontineTransaction(RowModel):
    id: Optional[str] = None
    tontine_id: str
    user_id: str
    amount: int = Field(..., alias="montant", ge=0)
    type: TontineTransactionType
    status: TontineTransactionStatus = Field(
        default=TontineTransactionStatus.PENDING,
        alias="statut",
    )
    date: Optional[dt.date] = Field(default=None, alias="date_transaction")
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


# Seeded the first time a user has no categories.
DEFAULT_CATEGORIES: list[dict[str, Any]] = [
    {"name": "Alimentation", "color": "green", "icon": "utensils", "allocated_budget": 80000},
    {"name": "Transport", "color": "blue", "icon": "car", "allocated_budget": 30000},
    {"name": "Logement", "color": "purple", "icon": "home", "allocated_budget": 40000},
    {"name": "Santé", "color": "red", "icon": "heart", "allocated_budget": 20000},
    {"name": "Loisirs", "color": "yellow", "icon": "gamepad", "allocated_budget": 15000},
    {"name": "Famille", "color": "pink", "icon": "users", "allocated_budget": 100000},
    {"name": "Divers", "color": "gray", "icon": "more-horizontal", "allocated_budget": 10000},
]
