"""Materialize recurring transactions into the current month.

A transaction flagged ``is_recurring`` stands for an obligation that repeats
every month.  Once such a transaction is at least one whole month old, the
current month should contain a copy of it; if none is found a new row dated
today is created.  A copy is recognised by its fingerprint (description,
category, amount, type), so running the check repeatedly within a month
never creates more than one copy.

The check is a best-effort background task: failures are logged and reported
as zero rows created.  :class:`RecurringCheckThrottle` limits how often it
runs; the fingerprint match is what keeps it idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Protocol

from . import config
from .db import LedgerStore
from .errors import AuthenticationError
from .models import Transaction
from .periods import month_bounds, whole_months_between

logger = logging.getLogger(__name__)

MINIMUM_AGE_MONTHS = 1


class LastCheckState(Protocol):
    def get(self) -> Optional[Any]: ...

    def set(self, value: Any) -> None: ...


def plan_recurring_copies(
    recurring: List[Transaction],
    current_month: List[Transaction],
    today: date,
) -> List[Transaction]:
    """Copies of ``recurring`` rows that are due and missing from ``current_month``."""
    seen = {txn.fingerprint for txn in current_month}
    copies: List[Transaction] = []

    for txn in recurring:
        if whole_months_between(txn.date, today) < MINIMUM_AGE_MONTHS:
            continue
        if txn.fingerprint in seen:
            continue
        copy = replace(
            txn,
            date=today,
            is_recurring=True,
            id=None,
            created_at=None,
            updated_at=None,
        )
        copies.append(copy)
        seen.add(copy.fingerprint)

    return copies


def materialize_recurring(
    store: LedgerStore,
    identity: Any,
    today: Optional[date] = None,
) -> int:
    """Create this month's missing recurring copies; return how many were created."""
    today = today or date.today()
    try:
        user = identity.get_current_user()
        if user is None:
            raise AuthenticationError()

        recurring = store.list_transactions(user.id, is_recurring=True)
        if not recurring:
            return 0

        month_start, month_end = month_bounds(today)
        current_month = store.list_transactions(user.id, start_date=month_start, end_date=month_end)

        copies = plan_recurring_copies(recurring, current_month, today)
        if copies:
            store.insert_transactions(copies)
            logger.info("Created %d recurring transaction(s) for %s", len(copies), today.strftime("%B %Y"))
        return len(copies)
    except Exception as exc:
        logger.error("Recurring transactions error: %s", exc)
        return 0


class RecurringCheckThrottle:
    """Allow the recurring check at most once per ``interval``.

    ``state`` stores the last check as an ISO-8601 timestamp.
    """

    def __init__(
        self,
        state: LastCheckState,
        interval: Optional[timedelta] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.state = state
        self.interval = interval or timedelta(minutes=config.RECURRING_CHECK_INTERVAL_MINUTES)
        self.clock = clock

    def should_check(self) -> bool:
        last_check = self.state.get()
        if not last_check:
            return True
        try:
            last = datetime.fromisoformat(str(last_check))
        except ValueError:
            return True
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        return self.clock() - last >= self.interval

    def mark_checked(self) -> None:
        self.state.set(self.clock().isoformat())

    def run(self, store: LedgerStore, identity: Any, today: Optional[date] = None) -> Optional[int]:
        """Run the check if due; ``None`` means it was skipped."""
        if not self.should_check():
            return None
        created = materialize_recurring(store, identity, today)
        self.mark_checked()
        return created
