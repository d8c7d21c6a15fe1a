"""Time-series grouping of transactions for charts.

Both groupings return dense series: every month or day in the requested
window is present, oldest first, with zero totals where nothing happened,
so charts render a continuous axis.  They are recomputed on every call.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd

from .models import Transaction, TransactionType

FRAME_COLUMNS = ['id', 'date', 'type', 'amount', 'category', 'description', 'is_recurring']


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Tabulate transactions with a datetime ``date`` column and string ``type``."""
    records = [
        {
            'id': txn.id,
            'date': txn.date,
            'type': txn.type.value,
            'amount': txn.amount,
            'category': txn.category,
            'description': txn.description,
            'is_recurring': txn.is_recurring,
        }
        for txn in transactions
    ]
    frame = pd.DataFrame(records, columns=FRAME_COLUMNS)
    frame['date'] = pd.to_datetime(frame['date'])
    frame['amount'] = pd.to_numeric(frame['amount'], errors='coerce').fillna(0.0)
    return frame


def _sum_by_type(frame: pd.DataFrame, key: pd.Series) -> pd.DataFrame:
    """Income and expense totals per value of ``key``."""
    if frame.empty:
        return pd.DataFrame(columns=['income', 'expenses'], dtype=float)
    table = frame.groupby([key, 'type'])['amount'].sum().unstack('type', fill_value=0.0)
    table = table.reindex(
        columns=[TransactionType.INCOME.value, TransactionType.EXPENSE.value],
        fill_value=0.0,
    )
    return table.rename(columns={'expense': 'expenses'})


def _savings_rate(income: pd.Series, savings: pd.Series) -> np.ndarray:
    positive = income.where(income > 0)
    return np.where(income > 0, savings / positive * 100, 0.0)


def group_transactions_by_month(
    transactions: Iterable[Transaction],
    months: int = 6,
    today: Optional[date] = None,
) -> pd.DataFrame:
    """Totals for the ``months`` calendar months ending with the current one.

    Columns: ``period``, ``month`` (e.g. ``"Jan 2024"``), ``income``,
    ``expenses``, ``savings`` and ``savings_rate`` (percent, 0 without income).
    """
    columns = ['period', 'month', 'income', 'expenses', 'savings', 'savings_rate']
    if months <= 0:
        return pd.DataFrame(columns=columns)

    today = today or date.today()
    periods = pd.period_range(end=pd.Period(today, freq='M'), periods=months, freq='M')

    frame = transactions_to_frame(transactions)
    start, end = periods[0].start_time, periods[-1].end_time
    frame = frame[(frame['date'] >= start) & (frame['date'] <= end)]

    totals = _sum_by_type(frame, frame['date'].dt.to_period('M')).reindex(periods, fill_value=0.0)
    result = pd.DataFrame({
        'period': periods,
        'month': periods.strftime('%b %Y'),
        'income': totals['income'].to_numpy(dtype=float),
        'expenses': totals['expenses'].to_numpy(dtype=float),
    })
    result['savings'] = result['income'] - result['expenses']
    result['savings_rate'] = _savings_rate(result['income'], result['savings'])
    return result[columns]


def group_transactions_by_day(
    transactions: Iterable[Transaction],
    days: int = 30,
    today: Optional[date] = None,
) -> pd.DataFrame:
    """Daily totals for the ``days + 1`` calendar days ending today, inclusive.

    Columns: ``date``, ``label`` (e.g. ``"Jan 05"``), ``income``, ``expenses``.
    """
    columns = ['date', 'label', 'income', 'expenses']
    if days < 0:
        return pd.DataFrame(columns=columns)

    end = pd.Timestamp(today or date.today())
    start = end - pd.Timedelta(days=days)
    index = pd.date_range(start, end, freq='D')

    frame = transactions_to_frame(transactions)
    frame = frame[(frame['date'] >= start) & (frame['date'] <= end)]

    totals = _sum_by_type(frame, frame['date']).reindex(index, fill_value=0.0)
    return pd.DataFrame({
        'date': index.date,
        'label': index.strftime('%b %d'),
        'income': totals['income'].to_numpy(dtype=float),
        'expenses': totals['expenses'].to_numpy(dtype=float),
    })[columns]


def summarize_window(grouped: pd.DataFrame) -> Dict[str, float]:
    """Total income, expenses and savings across a grouped window."""
    income = float(grouped['income'].sum()) if not grouped.empty else 0.0
    expenses = float(grouped['expenses'].sum()) if not grouped.empty else 0.0
    return {
        'total_income': income,
        'total_expenses': expenses,
        'total_savings': income - expenses,
    }


def category_breakdown(
    transactions: Iterable[Transaction],
    transaction_type: TransactionType = TransactionType.EXPENSE,
) -> pd.Series:
    """Amount per category for one transaction type, largest first."""
    frame = transactions_to_frame(transactions)
    frame = frame[frame['type'] == TransactionType(transaction_type).value]
    if frame.empty:
        return pd.Series(dtype=float, name='amount')
    categories = frame['category'].fillna('other').replace('', 'other')
    return frame.groupby(categories)['amount'].sum().sort_values(ascending=False)
