"""Domain records and the closed vocabularies they use.

Transactions, wishlist items and investment settings are plain dataclasses.
Enumerations carry their own display label and a semantic colour tag so the
UI never has to interpret raw strings or integers.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .errors import ValidationError


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def label(self) -> str:
        return self.value.title()


class Priority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return self.name.title()

    @property
    def color(self) -> str:
        return PRIORITY_COLORS[self]


class Necessity(IntEnum):
    NICE_TO_HAVE = 1
    USEFUL = 2
    IMPORTANT = 3
    VERY_IMPORTANT = 4
    ESSENTIAL = 5

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()

    @property
    def color(self) -> str:
        return NECESSITY_COLORS[self]


class IncomeSource(str, Enum):
    SALARY = "salary"
    FREELANCE = "freelance"
    INVESTMENT = "investment"
    GIFT = "gift"
    OTHER = "other"


class ExpenseCategory(str, Enum):
    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    BILLS = "bills"
    SHOPPING = "shopping"
    HEALTH = "health"
    EDUCATION = "education"
    TRAVEL = "travel"
    OTHER = "other"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"

    @property
    def label(self) -> str:
        if self is PaymentMethod.UPI:
            return "UPI"
        return self.value.replace("_", " ").title()


PRIORITY_COLORS = {
    Priority.LOW: "muted",
    Priority.MEDIUM: "info",
    Priority.HIGH: "danger",
}

NECESSITY_COLORS = {
    Necessity.NICE_TO_HAVE: "muted",
    Necessity.USEFUL: "info",
    Necessity.IMPORTANT: "caution",
    Necessity.VERY_IMPORTANT: "warning",
    Necessity.ESSENTIAL: "danger",
}

CATEGORY_COLORS: Dict[str, str] = {
    "food": "orange",
    "transport": "blue",
    "entertainment": "purple",
    "bills": "red",
    "shopping": "pink",
    "health": "green",
    "education": "indigo",
    "travel": "cyan",
    "other": "gray",
    "recurring": "teal",
}


def category_color(category: Optional[str]) -> str:
    """Colour tag for a category badge; unknown or empty categories are gray."""
    if not category:
        return "gray"
    return CATEGORY_COLORS.get(category.lower(), "gray")


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _coerce(convert: Callable[[Any], Any], value: Any, field: str) -> Any:
    """Apply ``convert`` to a field value, reporting bad input as a validation error."""
    try:
        return convert(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {field}: {value!r}", field=field) from exc


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class Transaction:
    type: TransactionType
    amount: float
    date: date
    category: Optional[str] = None
    source: Optional[str] = None
    payment_method: Optional[str] = None
    description: Optional[str] = None
    is_recurring: bool = False
    id: Optional[int] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self) -> None:
        self.type = _coerce(TransactionType, self.type, "type")
        self.amount = _coerce(float, self.amount, "amount")
        self.date = _coerce(_parse_date, self.date, "date")
        self.is_recurring = bool(self.is_recurring)

    @property
    def is_income(self) -> bool:
        return self.type is TransactionType.INCOME

    @property
    def fingerprint(self) -> Tuple[Optional[str], Optional[str], float, TransactionType]:
        """Match key used to spot an already-materialized recurring copy."""
        return (self.description, self.category, self.amount, self.type)

    def to_record(self) -> Dict[str, Any]:
        """Column values for an insert, without store-assigned fields."""
        return {
            "user_id": self.user_id,
            "type": self.type.value,
            "amount": self.amount,
            "date": self.date.isoformat(),
            "category": self.category,
            "source": self.source,
            "payment_method": self.payment_method,
            "description": self.description,
            "is_recurring": int(self.is_recurring),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Transaction":
        names = {f.name for f in fields(cls)}
        return cls(**{k: row[k] for k in row.keys() if k in names})


@dataclass
class WishlistItem:
    item_name: str
    cost: float
    priority: Priority = Priority.MEDIUM
    necessity: Necessity = Necessity.IMPORTANT
    is_purchased: bool = False
    id: Optional[int] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self) -> None:
        self.cost = _coerce(float, self.cost, "cost")
        self.priority = _coerce(lambda v: Priority(int(v)), self.priority, "priority")
        self.necessity = _coerce(lambda v: Necessity(int(v)), self.necessity, "necessity")
        self.is_purchased = bool(self.is_purchased)

    def to_record(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "item_name": self.item_name,
            "cost": self.cost,
            "priority": int(self.priority),
            "necessity": int(self.necessity),
            "is_purchased": int(self.is_purchased),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "WishlistItem":
        names = {f.name for f in fields(cls)}
        return cls(**{k: row[k] for k in row.keys() if k in names})


@dataclass
class InvestmentSettings:
    yearly_amount: float = 0.0
    return_rate: float = 12.0
    invested_duration: int = 10
    total_duration: int = 10
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "InvestmentSettings":
        names = {f.name for f in fields(cls)}
        return cls(**{k: row[k] for k in row.keys() if k in names})


@dataclass(frozen=True)
class User:
    id: str
    email: Optional[str] = None


# Columns a caller may change through an update.
TRANSACTION_EDITABLE_FIELDS = (
    "type", "amount", "date", "category", "source",
    "payment_method", "description", "is_recurring",
)
WISHLIST_EDITABLE_FIELDS = ("item_name", "cost", "priority", "necessity", "is_purchased")


def new_income(amount: float, source: str, txn_date: Any, *, category: Optional[str] = None,
               description: Optional[str] = None, is_recurring: bool = False) -> Transaction:
    """Build a validated income transaction."""
    txn = Transaction(
        type=TransactionType.INCOME,
        amount=amount,
        date=txn_date,
        category=_optional_text(category),
        source=_optional_text(source),
        description=_optional_text(description),
        is_recurring=is_recurring,
    )
    validate_transaction(txn)
    return txn


def new_expense(amount: float, category: str, payment_method: str, txn_date: Any, *,
                description: Optional[str] = None, is_recurring: bool = False) -> Transaction:
    """Build a validated expense transaction."""
    txn = Transaction(
        type=TransactionType.EXPENSE,
        amount=amount,
        date=txn_date,
        category=_optional_text(category),
        payment_method=_optional_text(payment_method),
        description=_optional_text(description),
        is_recurring=is_recurring,
    )
    validate_transaction(txn)
    return txn


def validate_transaction(txn: Transaction) -> None:
    """Raise :class:`ValidationError` if ``txn`` breaks a record invariant."""
    if not txn.amount > 0:
        raise ValidationError("Amount must be positive", field="amount")
    if txn.type is TransactionType.INCOME:
        if not txn.source:
            raise ValidationError("Source is required", field="source")
        if txn.payment_method is not None:
            raise ValidationError("Income cannot have a payment method", field="payment_method")
    else:
        if not txn.category:
            raise ValidationError("Category is required", field="category")
        if not txn.payment_method:
            raise ValidationError("Payment method is required", field="payment_method")
        if txn.source is not None:
            raise ValidationError("Expenses cannot have a source", field="source")


def validate_wishlist_item(item: WishlistItem) -> None:
    if not (item.item_name or "").strip():
        raise ValidationError("Item name is required", field="item_name")
    if not item.cost > 0:
        raise ValidationError("Cost must be positive", field="cost")


def coerce_wishlist_item(item_name: str, cost: float, priority: Any, necessity: Any) -> WishlistItem:
    """Build a validated wishlist item, reporting out-of-range ordinals."""
    try:
        priority = Priority(int(priority))
    except (TypeError, ValueError):
        raise ValidationError("Priority must be between 1-3", field="priority") from None
    try:
        necessity = Necessity(int(necessity))
    except (TypeError, ValueError):
        raise ValidationError("Necessity must be between 1-5", field="necessity") from None
    item = WishlistItem(item_name=(item_name or "").strip(), cost=cost, priority=priority, necessity=necessity)
    validate_wishlist_item(item)
    return item


def validate_investment_settings(settings: InvestmentSettings) -> None:
    if settings.yearly_amount < 0:
        raise ValidationError("Yearly amount cannot be negative", field="yearly_amount")
    if settings.invested_duration < 0 or settings.total_duration < 0:
        raise ValidationError("Durations cannot be negative", field="total_duration")
    if settings.total_duration < settings.invested_duration:
        raise ValidationError(
            "Total duration must be greater than or equal to invested duration",
            field="total_duration",
        )


def apply_patch(txn: Transaction, patch: Mapping[str, Any]) -> Transaction:
    """Return a copy of ``txn`` with the editable fields in ``patch`` replaced."""
    unknown = set(patch) - set(TRANSACTION_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    updated = replace(txn, **dict(patch))
    # Keep the income/expense-only columns consistent with the type.
    if updated.is_income:
        updated.payment_method = None
    else:
        updated.source = None
    validate_transaction(updated)
    return updated

