import sqlite3
from datetime import date

import pytest

from finance_tracker.db import TRANSACTIONS_TABLE, WISHLIST_TABLE, LedgerStore
from finance_tracker.errors import AuthenticationError, StoreError, ValidationError
from finance_tracker.models import (
    InvestmentSettings,
    Necessity,
    Priority,
    Transaction,
    TransactionType,
    User,
    new_expense,
    new_income,
)
from finance_tracker.realtime import ChangeKind
from finance_tracker.services import (
    InvestmentService,
    StaticIdentity,
    TransactionService,
    WishlistService,
)

USER = User(id='user-1')
OTHER = User(id='user-2')


@pytest.fixture
def store(tmp_path):
    store = LedgerStore(tmp_path / 'ledger.db')
    store.init_db()
    return store


@pytest.fixture
def transactions(store):
    return TransactionService(store, StaticIdentity(USER))


def test_add_and_list_newest_first(transactions):
    transactions.add_transaction(new_income(50000, 'salary', '2024-01-05'))
    transactions.add_transaction(new_expense(20000, 'bills', 'upi', '2024-01-10', description='Rent'))
    transactions.add_transaction(new_expense(300, 'food', 'cash', '2024-01-10'))

    rows = transactions.list_transactions()

    assert [(r.date, r.amount) for r in rows] == [
        (date(2024, 1, 10), 300),
        (date(2024, 1, 10), 20000),
        (date(2024, 1, 5), 50000),
    ]
    assert all(r.user_id == USER.id for r in rows)
    assert all(r.created_at and r.updated_at for r in rows)
    assert rows[1].payment_method == 'upi' and rows[1].source is None


def test_queries_are_scoped_to_owner(store, transactions):
    TransactionService(store, StaticIdentity(OTHER)).add_transaction(new_income(10, 'gift', '2024-01-01'))
    mine = transactions.add_transaction(new_income(20, 'salary', '2024-01-02'))

    assert [r.id for r in transactions.list_transactions()] == [mine.id]
    with pytest.raises(StoreError):
        TransactionService(store, StaticIdentity(OTHER)).delete_transaction(mine.id)


def test_list_filters(store, transactions):
    transactions.add_transaction(new_income(100, 'salary', '2024-01-31', is_recurring=True))
    transactions.add_transaction(new_expense(50, 'food', 'card', '2024-02-01'))
    transactions.add_transaction(new_expense(75, 'food', 'card', '2024-02-29', is_recurring=True))

    february = store.list_transactions(USER.id, start_date=date(2024, 2, 1), end_date='2024-02-29')
    assert [r.amount for r in february] == [75, 50]

    recurring = store.list_transactions(USER.id, is_recurring=True)
    assert {r.amount for r in recurring} == {100, 75}

    income = store.list_transactions(USER.id, transaction_type=TransactionType.INCOME)
    assert [r.amount for r in income] == [100]


def test_update_replaces_editable_fields(transactions):
    stored = transactions.add_transaction(new_expense(120, 'transport', 'card', '2024-03-03'))

    updated = transactions.update_transaction(stored.id, {'amount': 150, 'description': 'Taxi'})

    assert updated.amount == 150
    assert updated.description == 'Taxi'
    assert updated.created_at == stored.created_at


def test_update_switching_type_clears_other_column(transactions):
    stored = transactions.add_transaction(new_expense(120, 'other', 'cash', '2024-03-03'))

    updated = transactions.update_transaction(
        stored.id, {'type': 'income', 'source': 'freelance'}
    )

    assert updated.type is TransactionType.INCOME
    assert updated.source == 'freelance'
    assert updated.payment_method is None


def test_invalid_updates_are_rejected(transactions):
    stored = transactions.add_transaction(new_income(100, 'salary', '2024-03-01'))

    with pytest.raises(ValidationError):
        transactions.update_transaction(stored.id, {'amount': 0})
    with pytest.raises(ValidationError):
        transactions.update_transaction(stored.id, {'user_id': 'someone-else'})
    assert transactions.list_transactions()[0].amount == 100


def test_malformed_update_values_are_validation_errors(transactions, caplog):
    stored = transactions.add_transaction(new_income(100, 'salary', '2024-03-01'))

    with pytest.raises(ValidationError) as excinfo:
        transactions.update_transaction(stored.id, {'amount': 'abc'})
    assert excinfo.value.field == 'amount'
    with pytest.raises(ValidationError) as excinfo:
        transactions.update_transaction(stored.id, {'date': 'someday'})
    assert excinfo.value.field == 'date'
    with pytest.raises(ValidationError) as excinfo:
        transactions.update_transaction(stored.id, {'type': 'transfer'})
    assert excinfo.value.field == 'type'
    assert 'Failed to update transaction' in caplog.text
    assert transactions.list_transactions()[0].amount == 100


def test_store_updates_and_deletes_require_an_owner(store, transactions):
    stored = transactions.add_transaction(new_income(100, 'salary', '2024-03-01'))

    for owner in ('', None):
        with pytest.raises(ValidationError) as excinfo:
            store.update_transaction(stored.id, {'amount': 5}, user_id=owner)
        assert excinfo.value.field == 'user_id'
        with pytest.raises(ValidationError):
            store.delete_transaction(stored.id, user_id=owner)
        with pytest.raises(ValidationError):
            store.get_transaction(stored.id, owner)
    with pytest.raises(TypeError):
        store.update_transaction(stored.id, {'amount': 5})
    with pytest.raises(StoreError, match='not found'):
        store.delete_transaction(stored.id, user_id=OTHER.id)
    assert store.get_transaction(stored.id, USER.id).amount == 100


def test_missing_rows_raise(transactions):
    with pytest.raises(StoreError, match='not found'):
        transactions.update_transaction(999, {'amount': 5})
    with pytest.raises(StoreError, match='not found'):
        transactions.delete_transaction(999)


def test_delete_returns_removed_row(transactions):
    stored = transactions.add_transaction(new_income(100, 'salary', '2024-03-01'))
    removed = transactions.delete_transaction(stored.id)
    assert removed.id == stored.id
    assert transactions.list_transactions() == []


def test_batch_insert_is_all_or_nothing(store):
    good = Transaction(type='income', amount=10, date='2024-01-01', source='salary', user_id=USER.id)
    bad = Transaction(type='expense', amount=-5, date='2024-01-01', category='food',
                      payment_method='card', user_id=USER.id)

    with pytest.raises(ValidationError):
        store.insert_transactions([good, bad])
    assert store.list_transactions(USER.id) == []


def test_records_must_have_an_owner(store):
    with pytest.raises(ValidationError):
        store.insert_transactions([new_income(10, 'salary', '2024-01-01')])


def test_missing_user_fails_fast(store, caplog):
    service = TransactionService(store, StaticIdentity(None))

    with pytest.raises(AuthenticationError, match='User not authenticated'):
        service.list_transactions()
    with pytest.raises(AuthenticationError):
        service.add_transaction(new_income(10, 'salary', '2024-01-01'))
    assert 'Failed to add transaction' in caplog.text
    assert store.list_transactions(USER.id) == []


def test_transaction_validation_messages():
    with pytest.raises(ValidationError) as excinfo:
        new_income(0, 'salary', '2024-01-01')
    assert excinfo.value.field == 'amount'

    with pytest.raises(ValidationError) as excinfo:
        new_expense(10, 'food', '', '2024-01-01')
    assert excinfo.value.field == 'payment_method'

    with pytest.raises(ValidationError) as excinfo:
        new_income(10, '  ', '2024-01-01')
    assert excinfo.value.field == 'source'


def test_migration_adds_missing_columns(tmp_path):
    db_path = tmp_path / 'legacy.db'
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE transactions (id INTEGER PRIMARY KEY AUTOINCREMENT, user_id TEXT NOT NULL, "
            "type TEXT NOT NULL, amount REAL NOT NULL, date TEXT NOT NULL, category TEXT, "
            "description TEXT, created_at TEXT)"
        )
    conn.close()

    store = LedgerStore(db_path)
    store.init_db()

    with store.connect() as conn:
        columns = {row[1] for row in conn.execute("PRAGMA table_info(transactions)")}
    assert {'source', 'payment_method', 'is_recurring', 'updated_at'} <= columns


def test_change_feed_publishes_committed_mutations(store, transactions):
    with store.subscribe(USER.id, tables=[TRANSACTIONS_TABLE]) as subscription:
        other = store.subscribe(OTHER.id)
        stored = transactions.add_transaction(new_income(100, 'salary', '2024-03-01'))
        transactions.update_transaction(stored.id, {'amount': 200})
        transactions.delete_transaction(stored.id)

        events = subscription.drain()

    assert [e.kind for e in events] == [ChangeKind.INSERT, ChangeKind.UPDATE, ChangeKind.DELETE]
    assert all(e.table == TRANSACTIONS_TABLE for e in events)
    assert events[1].record.amount == 200
    assert other.drain() == []
    assert subscription.closed


def test_closed_subscription_receives_nothing(store, transactions):
    subscription = store.subscribe(USER.id)
    subscription.close()
    transactions.add_transaction(new_income(100, 'salary', '2024-03-01'))
    assert subscription.get() is None


def test_stores_on_one_database_share_a_change_feed(tmp_path):
    writer = LedgerStore(tmp_path / 'shared.db')
    writer.init_db()
    reader = LedgerStore(tmp_path / 'shared.db')
    assert reader.feed is writer.feed
    assert LedgerStore(tmp_path / 'elsewhere.db').feed is not writer.feed

    with reader.subscribe(USER.id, tables=[TRANSACTIONS_TABLE]) as subscription:
        TransactionService(writer, StaticIdentity(USER)).add_transaction(new_income(100, 'salary', '2024-03-01'))
        events = subscription.drain()

    assert [(e.kind, e.record.amount) for e in events] == [(ChangeKind.INSERT, 100)]
    assert len(writer.feed) == 0


def test_wishlist_crud_and_ordering(store):
    service = WishlistService(store, StaticIdentity(USER))
    service.add_wishlist_item('Books', 800, 1, 3)
    laptop = service.add_wishlist_item('Laptop', 80000, 3, 4)
    service.add_wishlist_item('Phone', 30000, 3, 5)

    assert [i.item_name for i in service.fetch_wishlist()] == ['Phone', 'Laptop', 'Books']

    purchased = service.mark_purchased(laptop.id)
    assert purchased.is_purchased
    assert [i.item_name for i in service.fetch_wishlist(include_purchased=False)] == ['Phone', 'Books']

    updated = service.update_wishlist_item(laptop.id, {'cost': 75000, 'priority': Priority.MEDIUM})
    assert updated.cost == 75000 and updated.priority is Priority.MEDIUM
    assert updated.necessity is Necessity.VERY_IMPORTANT

    service.delete_wishlist_item(laptop.id)
    assert len(service.fetch_wishlist()) == 2


def test_wishlist_validation(store):
    service = WishlistService(store, StaticIdentity(USER))

    with pytest.raises(ValidationError, match='Priority must be between 1-3'):
        service.add_wishlist_item('Bike', 100, 4, 3)
    with pytest.raises(ValidationError, match='Necessity must be between 1-5'):
        service.add_wishlist_item('Bike', 100, 2, 0)
    with pytest.raises(ValidationError):
        service.add_wishlist_item('Bike', 0, 2, 3)
    with pytest.raises(ValidationError):
        service.add_wishlist_item('   ', 100, 2, 3)

    item = service.add_wishlist_item('Bike', 100, 2, 3)
    with pytest.raises(ValidationError):
        service.update_wishlist_item(item.id, {'priority': 9})
    with pytest.raises(ValidationError) as excinfo:
        service.update_wishlist_item(item.id, {'priority': None})
    assert excinfo.value.field == 'priority'
    with pytest.raises(ValidationError) as excinfo:
        service.update_wishlist_item(item.id, {'cost': 'lots'})
    assert excinfo.value.field == 'cost'
    with pytest.raises(ValidationError):
        store.update_wishlist_item(item.id, {'cost': 5}, user_id='')
    assert service.fetch_wishlist()[0].priority is Priority.MEDIUM


def test_wishlist_events_use_wishlist_table(store):
    service = WishlistService(store, StaticIdentity(USER))
    with store.subscribe(USER.id, tables=[WISHLIST_TABLE]) as subscription:
        service.add_wishlist_item('Lamp', 1500, 2, 2)
        (event,) = subscription.drain()
    assert event.table == WISHLIST_TABLE and event.kind is ChangeKind.INSERT


def test_investment_settings_upsert(store):
    service = InvestmentService(store, StaticIdentity(USER))
    assert service.get_investment_settings() is None

    service.update_investment_settings(InvestmentSettings(yearly_amount=60000, return_rate=11,
                                                          invested_duration=5, total_duration=15))
    saved = service.update_investment_settings(InvestmentSettings(yearly_amount=72000, return_rate=12,
                                                                  invested_duration=10, total_duration=20))

    assert saved.user_id == USER.id
    assert saved.yearly_amount == 72000
    assert service.get_investment_settings().total_duration == 20

    with pytest.raises(ValidationError):
        service.update_investment_settings(InvestmentSettings(invested_duration=10, total_duration=5))
    assert service.get_investment_settings().total_duration == 20
