import threading

import pytest

import finance
from errors import DocumentNotFound, ValidationError


def test_summarize_transactions():
    txns = [
        {"type": "income", "amount": 500, "status": "Completed"},
        {"type": "income", "amount": 200, "status": "Pending"},
        {"type": "expense", "amount": 150, "status": "Completed"},
    ]
    stats = finance.summarize_transactions(txns)
    assert stats["revenue"] == 700
    assert stats["pending"] == 200
    assert stats["profit"] == 550
    assert len(stats["recent"]) == 3


def test_recent_is_capped():
    txns = [{"type": "income", "amount": 1} for _ in range(8)]
    assert len(finance.summarize_transactions(txns)["recent"]) == 5


def test_income_requires_customer(store):
    with pytest.raises(ValidationError) as exc:
        finance.add_transaction(store, "income", 100)
    assert exc.value.message == "Select a customer"

    with pytest.raises(DocumentNotFound):
        finance.add_transaction(store, "income", 100, customer_id="missing")


def test_income_takes_customer_name(store):
    customer = finance.add_customer(store, "Mrs Okafor", "0801")
    txn = finance.add_transaction(store, "income", 100, customer_id=customer["id"], date="2026-01-15")
    assert txn["name"] == "Mrs Okafor"
    assert txn["customerName"] == "Mrs Okafor"
    assert txn["date"].year == 2026


def test_expense_uses_description(store):
    txn = finance.add_transaction(store, "expense", 40, description="Chalk")
    assert txn["name"] == "Chalk"
    assert txn["customerId"] is None


def test_update_transaction(store):
    customer = finance.add_customer(store, "Mrs Okafor", "0801")
    txn = finance.add_transaction(store, "income", 100, status="Pending", customer_id=customer["id"])
    updated = finance.update_transaction(store, txn["id"], "Completed", note="Paid in cash")
    assert updated["status"] == "Completed"
    assert updated["note"] == "Paid in cash"

    with pytest.raises(DocumentNotFound):
        finance.update_transaction(store, "ghost", "Completed")


def test_list_transactions_search(store):
    finance.add_transaction(store, "expense", 40, description="Chalk", date="2026-01-01")
    finance.add_transaction(store, "expense", 90, description="Generator fuel", date="2026-01-02")
    assert [t["name"] for t in finance.list_transactions(store)] == ["Generator fuel", "Chalk"]
    assert [t["name"] for t in finance.list_transactions(store, "CHALK")] == ["Chalk"]


def test_customer_requires_name_and_phone(store):
    with pytest.raises(ValidationError):
        finance.add_customer(store, "", "0801")
    with pytest.raises(ValidationError):
        finance.add_customer(store, "Mr Ade", " ")


def test_dashboard_feed_updates_each_half_independently(store):
    updates = []
    feed = finance.DashboardFeed(store, updates.append).start()
    assert len(updates) == 2
    assert feed.stats["customers"] == 0

    customer = finance.add_customer(store, "Mrs Okafor", "0801")
    assert len(updates) == 3
    assert updates[-1]["customers"] == 1
    assert updates[-1]["revenue"] == 0

    finance.add_transaction(store, "income", 250, customer_id=customer["id"])
    assert len(updates) == 4
    assert updates[-1]["revenue"] == 250
    assert updates[-1]["customers"] == 1

    feed.stop()
    assert not feed.active
    assert store.subscription_count() == 0
    finance.add_customer(store, "Mr Ade", "0802")
    assert len(updates) == 4


def test_dashboard_feed_as_context_manager(store):
    with finance.DashboardFeed(store) as feed:
        assert store.subscription_count() == 2
    assert store.subscription_count() == 0
    assert feed.stats == finance.empty_stats()


def test_concurrent_callbacks_keep_both_halves(store):
    seen = []
    feed = finance.DashboardFeed(store, seen.append)
    txns = [{"type": "income", "amount": 100, "status": "Completed"}]
    customers = [{"id": "c1"}, {"id": "c2"}, {"id": "c3"}]
    start = threading.Barrier(2)

    def drive(callback, snapshot):
        start.wait()
        for _ in range(500):
            callback(snapshot)

    workers = [
        threading.Thread(target=drive, args=(feed._on_transactions, txns)),
        threading.Thread(target=drive, args=(feed._on_customers, customers)),
    ]
    for w in workers:
        w.start()
    for w in workers:
        w.join()

    assert feed.stats["revenue"] == 100
    assert feed.stats["customers"] == 3
    assert len(seen) == 1000
    assert seen[-1] == feed.stats
