from dataclasses import replace

import pytest

from finance_tracker.db import TRANSACTIONS_TABLE, WISHLIST_TABLE, LedgerStore
from finance_tracker.ledger import TransactionFilters, TransactionLedger, filter_and_sort, paginate
from finance_tracker.models import Transaction, User, WishlistItem, new_income
from finance_tracker.realtime import ChangeEvent, ChangeKind
from finance_tracker.services import StaticIdentity, TransactionService


def _txn(txn_id, amount=100, day='2024-03-01', kind='income', **extra):
    if kind == 'income':
        extra.setdefault('source', 'salary')
    else:
        extra.setdefault('category', 'food')
        extra.setdefault('payment_method', 'card')
    return Transaction(type=kind, amount=amount, date=day, id=txn_id, user_id='u1', **extra)


def _event(kind, record, table=TRANSACTIONS_TABLE):
    return ChangeEvent(kind=kind, table=table, user_id='u1', record=record)


def test_insert_prepends_and_update_replaces():
    ledger = TransactionLedger([_txn(1)])

    assert ledger.apply(_event(ChangeKind.INSERT, _txn(2, 50)))
    assert [t.id for t in ledger.transactions] == [2, 1]

    assert ledger.apply(_event(ChangeKind.UPDATE, _txn(1, 175)))
    assert [t.amount for t in ledger.transactions] == [50, 175]


def test_duplicate_events_are_harmless():
    ledger = TransactionLedger()
    event = _event(ChangeKind.INSERT, _txn(1))

    assert ledger.apply(event)
    assert not ledger.apply(event)
    assert len(ledger) == 1


def test_late_events_do_not_overwrite_newer_rows():
    held = _txn(1, 300, updated_at='2024-03-01T10:00:00.000002+00:00')
    ledger = TransactionLedger([held])

    stale = _txn(1, 100, updated_at='2024-03-01T10:00:00.000001+00:00')
    assert not ledger.apply(_event(ChangeKind.INSERT, stale))
    assert not ledger.apply(_event(ChangeKind.UPDATE, stale))
    assert ledger.transactions == [held]

    assert ledger.apply(_event(ChangeKind.UPDATE, _txn(1, 450, updated_at='2024-03-01T10:00:01.000000+00:00')))
    assert [t.amount for t in ledger.transactions] == [450]


def test_update_before_insert_still_lands():
    ledger = TransactionLedger()
    assert ledger.apply(_event(ChangeKind.UPDATE, _txn(7, 300)))
    assert not ledger.apply(_event(ChangeKind.INSERT, _txn(7, 300)))
    assert [t.amount for t in ledger.transactions] == [300]


def test_deleted_rows_stay_deleted():
    ledger = TransactionLedger([_txn(1), _txn(2)])

    assert ledger.apply(_event(ChangeKind.DELETE, _txn(1)))
    assert not ledger.apply(_event(ChangeKind.UPDATE, _txn(1, 999)))
    assert not ledger.apply(_event(ChangeKind.DELETE, _txn(1)))
    assert [t.id for t in ledger.transactions] == [2]


def test_delete_before_insert_is_remembered():
    ledger = TransactionLedger()
    assert not ledger.apply(_event(ChangeKind.DELETE, _txn(3)))
    assert not ledger.apply(_event(ChangeKind.INSERT, _txn(3)))
    assert ledger.transactions == []


def test_other_tables_are_ignored():
    ledger = TransactionLedger()
    item = WishlistItem('Lamp', 1500, id=1, user_id='u1')
    assert not ledger.apply(_event(ChangeKind.INSERT, item, table=WISHLIST_TABLE))


def test_reset_clears_tombstones():
    ledger = TransactionLedger([_txn(1)])
    ledger.apply(_event(ChangeKind.DELETE, _txn(1)))
    ledger.reset([_txn(1)])
    assert ledger.apply(_event(ChangeKind.UPDATE, _txn(1, 5)))


def test_sync_follows_the_store(tmp_path):
    store = LedgerStore(tmp_path / 'ledger.db')
    store.init_db()
    service = TransactionService(store, StaticIdentity(User('u1')))
    first = service.add_transaction(new_income(100, 'salary', '2024-03-01'))

    ledger = TransactionLedger(service.list_transactions())
    subscription = store.subscribe('u1', tables=[TRANSACTIONS_TABLE])

    second = service.add_transaction(new_income(200, 'freelance', '2024-03-02'))
    service.update_transaction(first.id, {'amount': 150})
    service.delete_transaction(second.id)

    assert ledger.sync(subscription) == 3
    assert ledger.transactions == service.list_transactions()
    assert ledger.sync(subscription) == 0


def test_filter_and_sort():
    rows = [
        _txn(1, 300, '2024-03-05'),
        _txn(2, 50, '2024-03-07', kind='expense', is_recurring=True),
        _txn(3, 900, '2024-02-01', kind='expense', category='bills'),
        _txn(4, 10, '2024-03-09', kind='expense'),
    ]

    expenses = filter_and_sort(rows, TransactionFilters(type='expense'))
    assert [t.id for t in expenses] == [4, 2, 3]

    by_amount = filter_and_sort(rows, TransactionFilters(sort_by='amount', sort_order='asc'))
    assert [t.id for t in by_amount] == [4, 2, 1, 3]

    assert [t.id for t in filter_and_sort(rows, TransactionFilters(category='food'))] == [4, 2]
    assert [t.id for t in filter_and_sort(rows, TransactionFilters(recurring_only=True))] == [2]


def test_filters_reject_unknown_values():
    with pytest.raises(ValueError):
        TransactionFilters(sort_by='description')
    with pytest.raises(ValueError):
        TransactionFilters(type='transfer')


def test_filters_from_saved_state():
    saved = TransactionFilters(sort_by='amount', sort_order='asc', recurring_only=True)
    assert TransactionFilters.from_dict(saved.to_dict()) == saved
    assert TransactionFilters.from_dict({'sort_by': 'nonsense'}) == TransactionFilters()
    assert TransactionFilters.from_dict({'sort_order': 'asc', 'stale_key': 1}).sort_order == 'asc'
    assert TransactionFilters.from_dict(None) == TransactionFilters()
    assert replace(saved, type='income').type == 'income'


def test_paginate():
    rows = list(range(23))

    page, total = paginate(rows, 1)
    assert page == list(range(10)) and total == 3

    page, total = paginate(rows, 3)
    assert page == [20, 21, 22]

    assert paginate(rows, 99)[0] == [20, 21, 22]
    assert paginate(rows, 0)[0] == list(range(10))
    assert paginate([], 1) == ([], 0)
    assert paginate(rows, 2, per_page=5)[0] == [5, 6, 7, 8, 9]
