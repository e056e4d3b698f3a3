"""
Fees and school finances: customers (fee payers), transactions and the
admin dashboard statistics that are kept live from both collections.
"""

import threading
from datetime import date as date_type, datetime, time as time_type, timezone
from typing import Callable, Dict, List, Optional, Union

from app_logger import get_logger
from database import DocumentStore, Subscription, now
from errors import DocumentNotFound, RequiredFieldError, ValidationError
from schemas import Customer, Transaction

logger = get_logger(__name__)

CUSTOMERS = "customers"
TRANSACTIONS = "transactions"
RECENT_LIMIT = 5


def as_datetime(value: Union[date_type, datetime, str, None]) -> datetime:
    if value is None:
        return now()
    if isinstance(value, str):
        value = date_type.fromisoformat(value)
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time_type.min, tzinfo=timezone.utc)


# Customers

def add_customer(store: DocumentStore, name: str, phone: str, email: str = "", status: str = "Active") -> dict:
    if not (name or "").strip():
        raise RequiredFieldError("name")
    if not (phone or "").strip():
        raise RequiredFieldError("phone")
    customer = Customer(name=name, phone=phone, email=email or "", status=status, createdAt=now())
    saved = store.create_document(CUSTOMERS, customer.model_dump())
    logger.info(f"Added customer {saved['id']} ({name})")
    return saved


def list_customers(store: DocumentStore) -> List[dict]:
    return store.get_documents(CUSTOMERS, order_by="name")


# Transactions

def add_transaction(store: DocumentStore, type: str, amount: float, status: str = "Completed",
                    date=None, note: str = "", customer_id: Optional[str] = None,
                    description: Optional[str] = None) -> dict:
    customer_name = None
    if type == "income":
        if not customer_id:
            raise ValidationError("Select a customer", "CUSTOMER_REQUIRED")
        customer = store.get_document(CUSTOMERS, customer_id)
        if not customer:
            raise DocumentNotFound(CUSTOMERS, customer_id)
        customer_name = customer.get("name")

    txn = Transaction(
        type=type,
        amount=amount,
        status=status,
        date=as_datetime(date),
        note=note or "",
        name=(customer_name if type == "income" else description) or "",
        customerId=customer_id if type == "income" else None,
        customerName=customer_name,
        description=description,
        createdAt=now(),
    )
    saved = store.create_document(TRANSACTIONS, txn.model_dump())
    logger.info(f"Recorded {type} of {amount} ({status}) as {saved['id']}")
    return saved


def update_transaction(store: DocumentStore, txn_id: str, status: str, note: Optional[str] = None,
                       date=None) -> dict:
    fields = {"status": status, "note": note or "", "date": as_datetime(date)}
    if not store.update_document(TRANSACTIONS, txn_id, fields):
        raise DocumentNotFound(TRANSACTIONS, txn_id)
    logger.info(f"Transaction {txn_id} updated to {status}")
    return store.get_document(TRANSACTIONS, txn_id)


def list_transactions(store: DocumentStore, search: str = "") -> List[dict]:
    txns = store.get_documents(TRANSACTIONS, order_by="date", descending=True)
    term = (search or "").lower()
    return [t for t in txns if term in (t.get("name") or "").lower()]


# Dashboard statistics

def empty_stats() -> Dict:
    return {"revenue": 0.0, "customers": 0, "pending": 0.0, "profit": 0.0, "recent": []}


def summarize_transactions(txns: List[dict]) -> Dict:
    revenue = expense = pending = 0.0
    for t in txns:
        amount = float(t.get("amount") or 0)
        if t.get("type") == "income":
            revenue += amount
            if t.get("status") == "Pending":
                pending += amount
        else:
            expense += amount
    return {"revenue": revenue, "pending": pending, "profit": revenue - expense, "recent": txns[:RECENT_LIMIT]}


class DashboardFeed:
    """
    Live admin statistics. Transactions and the customer count arrive on two
    independent subscriptions, so each callback only patches its own part of
    the stats and listeners may see one half updated before the other.
    """

    def __init__(self, store: DocumentStore, on_change: Optional[Callable[[Dict], None]] = None):
        self.store = store
        self.on_change = on_change
        self.stats = empty_stats()
        self._subs: List[Subscription] = []
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return bool(self._subs)

    def start(self) -> "DashboardFeed":
        if not self._subs:
            self._subs = [
                self.store.subscribe(TRANSACTIONS, self._on_transactions, order_by="date", descending=True),
                self.store.subscribe(CUSTOMERS, self._on_customers),
            ]
        return self

    def stop(self) -> None:
        for sub in self._subs:
            sub.unsubscribe()
        self._subs = []

    def _on_transactions(self, snapshot: List[dict]) -> None:
        self._merge(summarize_transactions(snapshot))

    def _on_customers(self, snapshot: List[dict]) -> None:
        self._merge({"customers": len(snapshot)})

    def _merge(self, part: Dict) -> None:
        # Callbacks run on the writers' threads
        with self._lock:
            self.stats = {**self.stats, **part}
            if self.on_change:
                self.on_change(self.stats)

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.stop()


def feed_for_session(session, store: DocumentStore,
                     on_change: Optional[Callable[[Dict], None]] = None) -> Optional[DashboardFeed]:
    """Start the stats feed only for a real admin, whatever the view role."""
    if not session.can_fetch_financials:
        return None
    return DashboardFeed(store, on_change).start()
