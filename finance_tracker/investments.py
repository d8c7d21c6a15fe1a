"""Year-by-year projection of a fixed yearly investment.

Each year's contribution is added at the start of the year and the whole
balance then compounds once at the annual rate.  Contributions stop after
``invested_duration`` years; the balance keeps compounding until
``total_duration``.
"""

from __future__ import annotations

from typing import Dict, List

import pandas as pd

from .models import InvestmentSettings

PROJECTION_COLUMNS = [
    'year',
    'contribution',
    'invested_amount',
    'yearly_return',
    'monthly_return',
    'total_market_value',
]


def project_investment(settings: InvestmentSettings) -> pd.DataFrame:
    """Projection table with one row per year, starting at year 1."""
    rate = settings.return_rate / 100
    invested_so_far = 0.0
    market_value = 0.0
    rows: List[Dict[str, float]] = []

    for year in range(1, int(settings.total_duration) + 1):
        contribution = settings.yearly_amount if year <= settings.invested_duration else 0.0
        begin_balance = market_value + contribution
        end_balance = begin_balance * (1 + rate)
        yearly_return = end_balance - begin_balance

        invested_so_far += contribution
        market_value = end_balance

        rows.append({
            'year': year,
            'contribution': contribution,
            'invested_amount': invested_so_far,
            'yearly_return': yearly_return,
            'monthly_return': yearly_return / 12,
            'total_market_value': market_value,
        })

    return pd.DataFrame(rows, columns=PROJECTION_COLUMNS)


def projection_summary(projection: pd.DataFrame) -> Dict[str, float]:
    """Final invested amount, market value and total gain of a projection."""
    if projection.empty:
        return {'invested_amount': 0.0, 'total_market_value': 0.0, 'total_gain': 0.0}
    last = projection.iloc[-1]
    invested = float(last['invested_amount'])
    value = float(last['total_market_value'])
    return {'invested_amount': invested, 'total_market_value': value, 'total_gain': value - invested}
