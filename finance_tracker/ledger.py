"""In-memory transaction list kept in step with the store's change feed.

:class:`TransactionLedger` is loaded once and then updated incrementally
from :class:`~finance_tracker.realtime.ChangeEvent` objects: inserts are
prepended, updates replace the row with the same id, deletes remove it.
Everything is keyed on the transaction id, so a duplicated event is
harmless, an update that overtakes its insert still lands, a late event
carrying an older ``updated_at`` does not overwrite a newer row, and a row
that was deleted is not brought back by a late insert or update.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .config import ITEMS_PER_PAGE
from .db import TRANSACTIONS_TABLE
from .models import Transaction, TransactionType
from .realtime import ChangeEvent, ChangeKind, Subscription

SORT_FIELDS = ('date', 'amount')
SORT_ORDERS = ('asc', 'desc')


@dataclass
class TransactionFilters:
    type: str = 'all'
    sort_by: str = 'date'
    sort_order: str = 'desc'
    category: Optional[str] = None
    recurring_only: bool = False

    def __post_init__(self) -> None:
        if self.type != 'all':
            self.type = TransactionType(self.type).value
        if self.sort_by not in SORT_FIELDS:
            raise ValueError(f"sort_by must be one of {SORT_FIELDS}")
        if self.sort_order not in SORT_ORDERS:
            raise ValueError(f"sort_order must be one of {SORT_ORDERS}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "TransactionFilters":
        """Rebuild filters saved in the persistent cache, ignoring bad values."""
        if not data:
            return cls()
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        try:
            return cls(**known)
        except (TypeError, ValueError):
            return cls()


def filter_and_sort(transactions: Iterable[Transaction], filters: TransactionFilters) -> List[Transaction]:
    rows = list(transactions)
    if filters.type != 'all':
        rows = [t for t in rows if t.type.value == filters.type]
    if filters.category:
        rows = [t for t in rows if t.category == filters.category]
    if filters.recurring_only:
        rows = [t for t in rows if t.is_recurring]

    if filters.sort_by == 'date':
        key = lambda t: t.date  # noqa: E731
    else:
        key = lambda t: t.amount  # noqa: E731
    return sorted(rows, key=key, reverse=filters.sort_order == 'desc')


def paginate(rows: Sequence[Any], page: int, per_page: int = ITEMS_PER_PAGE) -> Tuple[List[Any], int]:
    """Rows on 1-based ``page`` and the total page count.

    Pages past either end are clamped to the nearest valid page.
    """
    total_pages = math.ceil(len(rows) / per_page) if per_page > 0 else 0
    if total_pages == 0:
        return [], 0
    page = min(max(page, 1), total_pages)
    start = (page - 1) * per_page
    return list(rows[start:start + per_page]), total_pages


def _is_older(incoming: Transaction, current: Transaction) -> bool:
    # Store timestamps are fixed-format UTC ISO strings, so they sort as text.
    if not incoming.updated_at or not current.updated_at:
        return False
    return incoming.updated_at < current.updated_at


class TransactionLedger:
    """The current user's transactions as last confirmed by the store."""

    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._rows: List[Transaction] = list(transactions)
        self._deleted: Set[int] = set()

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def transactions(self) -> List[Transaction]:
        return list(self._rows)

    def reset(self, transactions: Iterable[Transaction]) -> None:
        """Replace the contents after a full refetch."""
        self._rows = list(transactions)
        self._deleted.clear()

    def _index_of(self, transaction_id: Optional[int]) -> Optional[int]:
        for position, row in enumerate(self._rows):
            if row.id == transaction_id:
                return position
        return None

    def apply(self, event: ChangeEvent) -> bool:
        """Fold one change event in; return whether the list changed."""
        if event.table != TRANSACTIONS_TABLE:
            return False
        record: Transaction = event.record
        position = self._index_of(record.id)

        if event.kind is ChangeKind.DELETE:
            self._deleted.add(record.id)
            if position is None:
                return False
            del self._rows[position]
            return True

        if record.id in self._deleted:
            return False
        if position is not None:
            current = self._rows[position]
            if current == record or _is_older(record, current):
                return False
            self._rows[position] = record
            return True
        self._rows.insert(0, record)
        return True

    def apply_all(self, events: Iterable[ChangeEvent]) -> int:
        return sum(1 for event in events if self.apply(event))

    def sync(self, subscription: Subscription) -> int:
        """Apply everything waiting on ``subscription``."""
        return self.apply_all(subscription.drain())
