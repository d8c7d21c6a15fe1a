"""Headline statistics for the dashboard overview.

All figures come from one pass over the user's transactions.  The balance
covers the whole history; the monthly figures only count transactions dated
in the current calendar month, and the savings-rate change compares the
current month with the previous one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from .models import Transaction
from .periods import month_bounds, shift_months


def savings_rate(income: float, expenses: float) -> float:
    """Share of income kept, in percent; 0 when there is no income."""
    if income <= 0:
        return 0.0
    return (income - expenses) / income * 100


def format_fixed(value: float, places: int = 2) -> str:
    # Avoid rendering "-0.00" for values that round to zero.
    text = f"{value:.{places}f}"
    return text[1:] if text.startswith("-") and float(text) == 0 else text


@dataclass(frozen=True)
class DashboardStats:
    balance: float = 0.0
    monthly_income: float = 0.0
    monthly_expenses: float = 0.0
    savings_rate: float = 0.0
    previous_savings_rate: float = 0.0

    @property
    def savings_rate_change(self) -> float:
        return self.savings_rate - self.previous_savings_rate

    @property
    def monthly_savings(self) -> str:
        """Current savings rate as a 2-decimal string, e.g. ``"60.00"``."""
        return format_fixed(self.savings_rate)

    @property
    def savings_rate_change_display(self) -> str:
        return format_fixed(self.savings_rate_change)


def calculate_dashboard_stats(
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
) -> DashboardStats:
    """Compute balance, this month's totals and the month-over-month rate change."""
    today = today or date.today()
    month_start, month_end = month_bounds(today)
    prev_start, prev_end = month_bounds(shift_months(today, -1))

    total_income = total_expenses = 0.0
    monthly_income = monthly_expenses = 0.0
    prev_income = prev_expenses = 0.0

    for txn in transactions:
        amount = txn.amount
        if txn.is_income:
            total_income += amount
        else:
            total_expenses += amount

        if month_start <= txn.date <= month_end:
            if txn.is_income:
                monthly_income += amount
            else:
                monthly_expenses += amount
        elif prev_start <= txn.date <= prev_end:
            if txn.is_income:
                prev_income += amount
            else:
                prev_expenses += amount

    return DashboardStats(
        balance=total_income - total_expenses,
        monthly_income=monthly_income,
        monthly_expenses=monthly_expenses,
        savings_rate=savings_rate(monthly_income, monthly_expenses),
        previous_savings_rate=savings_rate(prev_income, prev_expenses),
    )
