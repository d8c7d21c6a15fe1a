"""Streamlit app for the finance tracker.

The app is a thin layer over the services and calculation modules: every
page reads the user's transactions from a session-held
:class:`~finance_tracker.ledger.TransactionLedger`, which is loaded once and
then kept current from the store's change feed.

To run the dashboard from the command line::

    streamlit run finance_tracker/dashboard.py

or use ``run_dashboard.py`` in the project root.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, Optional

import pandas as pd
import streamlit as st

# Support both ``streamlit run finance_tracker/dashboard.py`` and package imports.
if __package__:
    from . import analytics, config
    from . import visualization as viz
    from .dashboard_stats import calculate_dashboard_stats
    from .db import TRANSACTIONS_TABLE, LedgerStore
    from .errors import FinanceTrackerError
    from .formatting import format_currency, format_date
    from .investments import project_investment, projection_summary
    from .ledger import TransactionFilters, TransactionLedger, filter_and_sort, paginate
    from .models import (
        ExpenseCategory, IncomeSource, InvestmentSettings, Necessity, PaymentMethod,
        Priority, Transaction, TransactionType, WishlistItem, new_expense, new_income,
    )
    from .persistent_cache import CacheValueStore, load_cache, save_cache
    from .recurring import RecurringCheckThrottle
    from .services import InvestmentService, TransactionService, WishlistService, identity_from_config
    from .wishlist import assess_wishlist
else:
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from finance_tracker import analytics, config  # type: ignore
    from finance_tracker import visualization as viz  # type: ignore
    from finance_tracker.dashboard_stats import calculate_dashboard_stats  # type: ignore
    from finance_tracker.db import TRANSACTIONS_TABLE, LedgerStore  # type: ignore
    from finance_tracker.errors import FinanceTrackerError  # type: ignore
    from finance_tracker.formatting import format_currency, format_date  # type: ignore
    from finance_tracker.investments import project_investment, projection_summary  # type: ignore
    from finance_tracker.ledger import TransactionFilters, TransactionLedger, filter_and_sort, paginate  # type: ignore
    from finance_tracker.models import (  # type: ignore
        ExpenseCategory, IncomeSource, InvestmentSettings, Necessity, PaymentMethod,
        Priority, Transaction, TransactionType, WishlistItem, new_expense, new_income,
    )
    from finance_tracker.persistent_cache import CacheValueStore, load_cache, save_cache  # type: ignore
    from finance_tracker.recurring import RecurringCheckThrottle  # type: ignore
    from finance_tracker.services import (  # type: ignore
        InvestmentService, TransactionService, WishlistService, identity_from_config,
    )
    from finance_tracker.wishlist import assess_wishlist  # type: ignore

logger = logging.getLogger(__name__)

PAGES = ["Overview", "Income", "Expenses", "Wishlist", "Investments", "Analytics"]
STATUS_BADGES = {
    "danger": "🔴",
    "warning": "🟠",
    "success": "🟢",
    "caution": "🟡",
    "muted": "⚪",
}
TREND_WINDOWS = [7, 30, 90]
COMPARISON_WINDOWS = [3, 6, 12, 24]


def get_store() -> LedgerStore:
    """Session-held store; the schema is created on first use.

    Stores opened on the same database share one change feed, so every
    session sees changes made in the others.
    """
    if "store" not in st.session_state:
        store = LedgerStore()
        store.init_db()
        st.session_state["store"] = store
    return st.session_state["store"]


def _run_recurring_check(store: LedgerStore, identity: Any, state: Any = None) -> Optional[int]:
    """Materialize recurring transactions when the throttle allows it."""
    throttle = RecurringCheckThrottle(state or CacheValueStore("recurring_last_check"))
    created = throttle.run(store, identity)
    if created:
        st.toast(f"Added {created} recurring transaction(s) for this month")
    return created


def _drop_ledger() -> None:
    """Forget the session's ledger and close its change subscription."""
    subscription = st.session_state.pop("subscription", None)
    if subscription is not None:
        subscription.close()
    st.session_state.pop("ledger", None)


def _ensure_ledger(service: TransactionService) -> TransactionLedger:
    """Load the ledger once per session and fold in pending change events."""
    state = st.session_state
    if "ledger" not in state or state["subscription"].closed:
        _drop_ledger()
        ledger = TransactionLedger(service.list_transactions())
        user_id = service.current_user_id()
        state["ledger"] = ledger
        state["subscription"] = service.store.subscribe(user_id, tables=[TRANSACTIONS_TABLE])
    ledger = state["ledger"]
    ledger.sync(state["subscription"])
    return ledger


def _attempt(action: Callable[[], Any], success: str) -> Optional[Any]:
    """Run a store action; show a toast on success and the error otherwise."""
    try:
        result = action()
    except FinanceTrackerError as exc:
        st.error(str(exc))
        return None
    st.toast(success)
    return result


def _option_index(options: list, value: Any, default: int = 0) -> int:
    return options.index(value) if value in options else default


def _rerun() -> None:
    if hasattr(st, "rerun"):
        st.rerun()
    else:  # pragma: no cover - older Streamlit
        st.experimental_rerun()


def render_overview(ledger: TransactionLedger, wishlist: WishlistService) -> None:
    st.header("📊 Overview")
    transactions = ledger.transactions
    stats = calculate_dashboard_stats(transactions)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Balance", format_currency(stats.balance))
    col2.metric("Income this month", format_currency(stats.monthly_income))
    col3.metric("Expenses this month", format_currency(stats.monthly_expenses))
    col4.metric(
        "Savings rate",
        f"{stats.monthly_savings}%",
        delta=f"{stats.savings_rate_change_display}% vs last month",
    )

    st.subheader("Recent transactions")
    recent = filter_and_sort(transactions, TransactionFilters())[:5]
    if recent:
        st.dataframe(_transactions_table(recent), use_container_width=True, hide_index=True)
    else:
        st.info("No transactions yet. Add income or an expense to get started.")

    st.subheader("Wishlist")
    _render_wishlist_table(wishlist, stats.balance, limit=5)


def _transactions_table(rows) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "Date": format_date(t.date),
            "Type": t.type.label,
            "Amount": format_currency(t.amount),
            "Category": (t.category or "").title(),
            "Source / Method": (t.source or t.payment_method or "").replace("_", " ").title(),
            "Description": t.description or "",
            "Recurring": "🔁" if t.is_recurring else "",
        }
        for t in rows
    ])


def render_transactions_page(service: TransactionService, ledger: TransactionLedger, txn_type: TransactionType) -> None:
    is_income = txn_type is TransactionType.INCOME
    st.header("💵 Income" if is_income else "💸 Expenses")

    with st.expander("Add income" if is_income else "Add expense"):
        with st.form(f"add_{txn_type.value}", clear_on_submit=True):
            amount = st.number_input("Amount", min_value=0.0, step=100.0)
            txn_date = st.date_input("Date", value=date.today())
            description = st.text_input("Description")
            is_recurring = st.checkbox("Recurring monthly")
            if is_income:
                source = st.selectbox("Source", [s.value for s in IncomeSource], format_func=str.title)
                category = st.text_input("Category (optional)")
            else:
                category = st.selectbox("Category", [c.value for c in ExpenseCategory], format_func=str.title)
                method = st.selectbox("Payment method", list(PaymentMethod), format_func=lambda m: m.label)
            if st.form_submit_button("Save"):
                try:
                    if is_income:
                        txn = new_income(amount, source, txn_date, category=category,
                                         description=description, is_recurring=is_recurring)
                    else:
                        txn = new_expense(amount, category, method.value, txn_date,
                                          description=description, is_recurring=is_recurring)
                except FinanceTrackerError as exc:
                    st.error(str(exc))
                else:
                    if _attempt(lambda: service.add_transaction(txn), f"{txn_type.label} added successfully"):
                        _rerun()

    cache = load_cache()
    saved = TransactionFilters.from_dict(cache.get("filters"))
    col1, col2, col3 = st.columns(3)
    sort_by = col1.selectbox("Sort by", ["date", "amount"], index=["date", "amount"].index(saved.sort_by),
                             format_func=str.title)
    sort_order = col2.selectbox("Order", ["desc", "asc"], index=["desc", "asc"].index(saved.sort_order),
                                format_func=lambda o: "Newest / largest first" if o == "desc" else "Oldest / smallest first")
    recurring_only = col3.checkbox("Recurring only", value=saved.recurring_only)
    preferences = TransactionFilters(sort_by=sort_by, sort_order=sort_order, recurring_only=recurring_only)
    if preferences != saved:
        cache["filters"] = preferences.to_dict()
        save_cache(cache)
    filters = replace(preferences, type=txn_type.value)

    rows = filter_and_sort(ledger.transactions, filters)
    page_key = f"{txn_type.value}_page"
    page_rows, total_pages = paginate(rows, st.session_state.get(page_key, 1))
    if not page_rows:
        st.info(f"No {txn_type.value} recorded yet.")
        return

    st.dataframe(_transactions_table(page_rows), use_container_width=True, hide_index=True)
    if total_pages > 1:
        st.session_state[page_key] = st.number_input("Page", min_value=1, max_value=total_pages,
                                                     value=min(st.session_state.get(page_key, 1), total_pages))

    with st.expander("Edit or delete a transaction"):
        choice = st.selectbox(
            "Transaction",
            page_rows,
            format_func=lambda t: f"{format_date(t.date)} · {format_currency(t.amount)} · {t.description or ''}",
        )
        _render_transaction_editor(service, choice)
        if st.button("🗑️ Delete", key=f"delete_{txn_type.value}"):
            if _attempt(lambda: service.delete_transaction(choice.id), f"{txn_type.label} deleted successfully"):
                _rerun()


def _transaction_patch(
    txn_type: TransactionType,
    *,
    amount: float,
    txn_date: Any,
    description: str,
    is_recurring: bool,
    category: Optional[str] = None,
    source: Optional[str] = None,
    payment_method: Optional[str] = None,
) -> Dict[str, Any]:
    """Fields from the edit form, leaving out the column the type does not use."""
    patch: Dict[str, Any] = {
        "amount": amount,
        "date": txn_date,
        "description": (description or "").strip() or None,
        "is_recurring": is_recurring,
        "category": (category or "").strip() or None,
    }
    if txn_type is TransactionType.INCOME:
        patch["source"] = source
    else:
        patch["payment_method"] = payment_method
    return patch


def _save_transaction_edit(service: TransactionService, txn: Transaction, patch: Dict[str, Any]) -> Optional[Transaction]:
    return _attempt(lambda: service.update_transaction(txn.id, patch), f"{txn.type.label} updated successfully")


def _render_transaction_editor(service: TransactionService, txn: Transaction) -> None:
    key = f"edit_txn_{txn.id}"
    with st.form(key):
        amount = st.number_input("Amount", min_value=0.0, step=100.0, value=float(txn.amount), key=f"{key}_amount")
        txn_date = st.date_input("Date", value=txn.date, key=f"{key}_date")
        description = st.text_input("Description", value=txn.description or "", key=f"{key}_description")
        is_recurring = st.checkbox("Recurring monthly", value=txn.is_recurring, key=f"{key}_recurring")
        source = method = None
        if txn.is_income:
            sources = [s.value for s in IncomeSource]
            source = st.selectbox("Source", sources, index=_option_index(sources, txn.source),
                                  format_func=str.title, key=f"{key}_source")
            category = st.text_input("Category (optional)", value=txn.category or "", key=f"{key}_category")
        else:
            categories = [c.value for c in ExpenseCategory]
            category = st.selectbox("Category", categories, index=_option_index(categories, txn.category),
                                    format_func=str.title, key=f"{key}_category")
            methods = [m.value for m in PaymentMethod]
            method = st.selectbox("Payment method", methods, index=_option_index(methods, txn.payment_method),
                                  format_func=lambda m: PaymentMethod(m).label, key=f"{key}_method")
        if st.form_submit_button("💾 Save changes"):
            patch = _transaction_patch(
                txn.type,
                amount=amount,
                txn_date=txn_date,
                description=description,
                is_recurring=is_recurring,
                category=category,
                source=source,
                payment_method=method,
            )
            if _save_transaction_edit(service, txn, patch):
                _rerun()


def _wishlist_patch(item_name: str, cost: float, priority: Any, necessity: Any) -> Dict[str, Any]:
    return {
        "item_name": (item_name or "").strip(),
        "cost": cost,
        "priority": int(priority),
        "necessity": int(necessity),
    }


def _save_wishlist_edit(service: WishlistService, item: WishlistItem, patch: Dict[str, Any]) -> Optional[WishlistItem]:
    return _attempt(lambda: service.update_wishlist_item(item.id, patch), "Wishlist item updated")


def _render_wishlist_editor(service: WishlistService, item: WishlistItem) -> None:
    key = f"edit_wish_{item.id}"
    with st.form(key):
        item_name = st.text_input("Item name", value=item.item_name, key=f"{key}_name")
        cost = st.number_input("Cost", min_value=0.0, step=100.0, value=float(item.cost), key=f"{key}_cost")
        priority = st.selectbox("Priority", list(Priority), index=list(Priority).index(item.priority),
                                format_func=lambda p: p.label, key=f"{key}_priority")
        necessity = st.select_slider("Necessity", options=list(Necessity), value=item.necessity,
                                     format_func=lambda n: n.label, key=f"{key}_necessity")
        if st.form_submit_button("💾 Save changes"):
            if _save_wishlist_edit(service, item, _wishlist_patch(item_name, cost, priority, necessity)):
                _rerun()


def _render_wishlist_table(service: WishlistService, balance: float, limit: Optional[int] = None) -> None:
    try:
        items = service.fetch_wishlist(include_purchased=False)
    except FinanceTrackerError as exc:
        st.error(str(exc))
        return
    assessed = assess_wishlist(items, balance)
    if limit:
        assessed = assessed[:limit]
    if not assessed:
        st.info("Your wishlist is empty.")
        return
    st.dataframe(pd.DataFrame([
        {
            "Item": item.item_name,
            "Cost": format_currency(item.cost),
            "Priority": item.priority.label,
            "Necessity": item.necessity.label,
            "Score": assessment.purchase_score,
            "Status": f"{STATUS_BADGES[assessment.status_color]} {assessment.message}",
        }
        for item, assessment in assessed
    ]), use_container_width=True, hide_index=True)


def render_wishlist(service: WishlistService, ledger: TransactionLedger) -> None:
    st.header("🛍️ Wishlist")
    balance = calculate_dashboard_stats(ledger.transactions).balance
    st.caption(f"Current balance: {format_currency(balance)}")

    with st.expander("Add item"):
        with st.form("add_wishlist", clear_on_submit=True):
            item_name = st.text_input("Item name")
            cost = st.number_input("Cost", min_value=0.0, step=100.0)
            priority = st.selectbox("Priority", list(Priority), index=1, format_func=lambda p: p.label)
            necessity = st.select_slider("Necessity", options=list(Necessity), value=Necessity.IMPORTANT,
                                         format_func=lambda n: n.label)
            if st.form_submit_button("Save"):
                if _attempt(lambda: service.add_wishlist_item(item_name, cost, priority, necessity),
                            "Item added to wishlist"):
                    _rerun()

    _render_wishlist_table(service, balance)

    try:
        items = service.fetch_wishlist()
    except FinanceTrackerError:
        return
    pending = [item for item in items if not item.is_purchased]
    if pending:
        with st.expander("Update an item"):
            choice = st.selectbox("Item", pending, format_func=lambda i: i.item_name)
            _render_wishlist_editor(service, choice)
            col1, col2 = st.columns(2)
            if col1.button("✅ Mark purchased"):
                if _attempt(lambda: service.mark_purchased(choice.id), "Wishlist item updated"):
                    _rerun()
            if col2.button("🗑️ Delete"):
                if _attempt(lambda: service.delete_wishlist_item(choice.id), "Wishlist item deleted"):
                    _rerun()


def render_investments(service: InvestmentService) -> None:
    st.header("📈 Investment Tracker")
    try:
        saved = service.get_investment_settings() or InvestmentSettings()
    except FinanceTrackerError as exc:
        st.error(str(exc))
        saved = InvestmentSettings()

    col1, col2, col3, col4 = st.columns(4)
    settings = InvestmentSettings(
        yearly_amount=col1.number_input("Yearly amount", min_value=0.0, value=float(saved.yearly_amount), step=1000.0),
        return_rate=col2.number_input("Return rate (%)", value=float(saved.return_rate), step=0.5),
        invested_duration=int(col3.number_input("Invested years", min_value=0, value=int(saved.invested_duration))),
        total_duration=int(col4.number_input("Total years", min_value=0, value=int(saved.total_duration))),
    )
    if st.button("💾 Save settings"):
        _attempt(lambda: service.update_investment_settings(settings), "Investment settings saved")

    projection = project_investment(settings)
    summary = projection_summary(projection)
    m1, m2, m3 = st.columns(3)
    m1.metric("Invested", format_currency(summary["invested_amount"], decimals=0))
    m2.metric("Market value", format_currency(summary["total_market_value"], decimals=0))
    m3.metric("Gain", format_currency(summary["total_gain"], decimals=0))
    st.plotly_chart(viz.create_investment_growth_chart(projection), use_container_width=True)

    display = projection.copy()
    for column in ["contribution", "invested_amount", "yearly_return", "monthly_return", "total_market_value"]:
        display[column] = display[column].map(lambda v: format_currency(v, decimals=0))
    st.dataframe(display, use_container_width=True, hide_index=True)


def render_analytics(ledger: TransactionLedger) -> None:
    st.header("🔍 Analytics")
    cache = load_cache()
    transactions = ledger.transactions

    days = st.radio("Trend window (days)", TREND_WINDOWS, horizontal=True,
                    index=_option_index(TREND_WINDOWS, cache.get("trend_days"), default=1))
    daily = analytics.group_transactions_by_day(transactions, days)
    st.plotly_chart(viz.create_spending_trends_chart(daily), use_container_width=True)

    months = st.radio("Comparison window (months)", COMPARISON_WINDOWS, horizontal=True,
                      index=_option_index(COMPARISON_WINDOWS, cache.get("comparison_months"), default=1))
    monthly = analytics.group_transactions_by_month(transactions, months)
    totals = analytics.summarize_window(monthly)
    c1, c2, c3 = st.columns(3)
    c1.metric("Total income", format_currency(totals["total_income"]))
    c2.metric("Total expenses", format_currency(totals["total_expenses"]))
    c3.metric("Net savings", format_currency(totals["total_savings"]))
    st.plotly_chart(viz.create_month_comparison_chart(monthly), use_container_width=True)
    st.plotly_chart(viz.create_savings_rate_chart(monthly), use_container_width=True)
    st.plotly_chart(
        viz.create_category_pie_chart(analytics.category_breakdown(transactions), title="Expenses by category"),
        use_container_width=True,
    )

    if cache.get("trend_days") != days or cache.get("comparison_months") != months:
        cache.update({"trend_days": days, "comparison_months": months})
        save_cache(cache)


def main() -> None:
    """Entry point for the Streamlit app."""
    st.set_page_config(page_title="Finance Tracker", page_icon="💰", layout="wide")
    config.configure_logging()

    store = get_store()
    identity = identity_from_config()
    if identity.get_current_user() is None:
        logger.warning("Dashboard started without FINTRACK_USER_ID")
        st.error("No user configured. Set FINTRACK_USER_ID to use the dashboard.")
        st.stop()

    transactions = TransactionService(store, identity)
    wishlist = WishlistService(store, identity)
    investments = InvestmentService(store, identity)

    _run_recurring_check(store, identity)
    st.sidebar.title("💰 Finance Tracker")
    if st.sidebar.button("🔄 Reload data"):
        _drop_ledger()
    try:
        ledger = _ensure_ledger(transactions)
    except FinanceTrackerError as exc:
        st.error(f"Could not load transactions: {exc}")
        st.stop()

    page = st.sidebar.radio("Navigate", PAGES)

    renderers: Dict[str, Callable[[], None]] = {
        "Overview": lambda: render_overview(ledger, wishlist),
        "Income": lambda: render_transactions_page(transactions, ledger, TransactionType.INCOME),
        "Expenses": lambda: render_transactions_page(transactions, ledger, TransactionType.EXPENSE),
        "Wishlist": lambda: render_wishlist(wishlist, ledger),
        "Investments": lambda: render_investments(investments),
        "Analytics": lambda: render_analytics(ledger),
    }
    renderers[page]()


if __name__ == "__main__":  # pragma: no cover
    main()
