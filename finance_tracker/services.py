"""Owner-aware services over the ledger store.

Each service resolves the current user before touching the store and fails
fast with :class:`AuthenticationError` when there is none.  Failures are
logged and re-raised so the caller can show them and leave its state alone.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional

from . import config
from .db import LedgerStore
from .errors import AuthenticationError, FinanceTrackerError
from .models import (
    InvestmentSettings,
    Transaction,
    User,
    WishlistItem,
    coerce_wishlist_item,
    validate_investment_settings,
    validate_transaction,
)

logger = logging.getLogger(__name__)


class StaticIdentity:
    """Identity collaborator that always reports the same user (or nobody)."""

    def __init__(self, user: Optional[User] = None):
        self._user = user

    def get_current_user(self) -> Optional[User]:
        return self._user


def identity_from_config() -> StaticIdentity:
    if not config.USER_ID:
        return StaticIdentity(None)
    return StaticIdentity(User(id=config.USER_ID, email=config.USER_EMAIL))


@contextmanager
def _reporting(action: str) -> Iterator[None]:
    try:
        yield
    except FinanceTrackerError as exc:
        logger.error("Failed to %s: %s", action, exc)
        raise


class _OwnerScopedService:
    def __init__(self, store: LedgerStore, identity: Any):
        self.store = store
        self.identity = identity

    def current_user_id(self) -> str:
        user = self.identity.get_current_user()
        if user is None or not user.id:
            raise AuthenticationError()
        return user.id


class TransactionService(_OwnerScopedService):
    """CRUD for income and expense transactions."""

    def list_transactions(self) -> List[Transaction]:
        with _reporting("fetch transactions"):
            return self.store.list_transactions(self.current_user_id())

    def add_transaction(self, transaction: Transaction) -> Transaction:
        with _reporting("add transaction"):
            user_id = self.current_user_id()
            transaction.user_id = user_id
            validate_transaction(transaction)
            (stored,) = self.store.insert_transactions([transaction])
            logger.info("%s %s added", stored.type.label, stored.id)
            return stored

    def update_transaction(self, transaction_id: int, updates: Mapping[str, Any]) -> Transaction:
        with _reporting("update transaction"):
            stored = self.store.update_transaction(transaction_id, updates, user_id=self.current_user_id())
            logger.info("%s %s updated", stored.type.label, stored.id)
            return stored

    def delete_transaction(self, transaction_id: int) -> Transaction:
        with _reporting("delete transaction"):
            removed = self.store.delete_transaction(transaction_id, user_id=self.current_user_id())
            logger.info("%s %s deleted", removed.type.label, removed.id)
            return removed


class WishlistService(_OwnerScopedService):
    """CRUD for wishlist items."""

    def fetch_wishlist(self, include_purchased: bool = True) -> List[WishlistItem]:
        with _reporting("fetch wishlist"):
            return self.store.list_wishlist(self.current_user_id(), include_purchased=include_purchased)

    def add_wishlist_item(self, item_name: str, cost: float, priority: Any, necessity: Any) -> WishlistItem:
        with _reporting("add wishlist item"):
            user_id = self.current_user_id()
            item = coerce_wishlist_item(item_name, cost, priority, necessity)
            item.user_id = user_id
            stored = self.store.insert_wishlist_item(item)
            logger.info("Item %s added to wishlist", stored.id)
            return stored

    def update_wishlist_item(self, item_id: int, updates: Mapping[str, Any]) -> WishlistItem:
        with _reporting("update wishlist item"):
            stored = self.store.update_wishlist_item(item_id, updates, user_id=self.current_user_id())
            logger.info("Wishlist item %s updated", stored.id)
            return stored

    def mark_purchased(self, item_id: int, purchased: bool = True) -> WishlistItem:
        return self.update_wishlist_item(item_id, {"is_purchased": purchased})

    def delete_wishlist_item(self, item_id: int) -> WishlistItem:
        with _reporting("delete wishlist item"):
            removed = self.store.delete_wishlist_item(item_id, user_id=self.current_user_id())
            logger.info("Wishlist item %s deleted", removed.id)
            return removed


class InvestmentService(_OwnerScopedService):
    """Load and save the single investment settings row of the current user."""

    def get_investment_settings(self) -> Optional[InvestmentSettings]:
        with _reporting("fetch investment settings"):
            return self.store.get_investment_settings(self.current_user_id())

    def update_investment_settings(self, settings: InvestmentSettings) -> InvestmentSettings:
        with _reporting("save investment settings"):
            settings.user_id = self.current_user_id()
            validate_investment_settings(settings)
            stored = self.store.upsert_investment_settings(settings)
            logger.info("Investment settings saved for %s", stored.user_id)
            return stored
