from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from sqlalchemy import update
from sqlmodel import Session, select

from storefront import backend_pre_start, crud, initial_data
from storefront.core import redis as core_redis
from storefront.core.config import settings
from storefront.core.db import init_db
from storefront.models import PendingTransaction, ShopifyOrder, utc_now
from storefront.services.fulfillment_service import FulfillmentService
from storefront.worker import scheduler as scheduler_mod
from storefront.worker import tasks

ORDER = {
    "items": [{"productId": 1, "name": "PLG 經典款", "quantity": 1, "priceCents": 500}],
    "shipping": {"method": "home", "address": {"city": "台北市", "district": "信義區", "detail": "市府路45號"}},
}


class FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    def set(self, key, value, ex=None, nx=False):  # type: ignore[no-untyped-def]
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    def eval(self, script, numkeys, key, value):  # type: ignore[no-untyped-def]
        if self.store.get(key) == value:
            del self.store[key]
            return 1
        return 0


@pytest.fixture
def fake_redis(monkeypatch, engine) -> FakeRedis:
    client = FakeRedis()
    monkeypatch.setattr(tasks, "get_redis", lambda: client)
    monkeypatch.setattr(tasks, "engine", engine)
    return client


@pytest.fixture
def fulfillment(fake_shopify, fake_logistics) -> FulfillmentService:
    return FulfillmentService(fake_shopify, fake_logistics)


def _stale(db, trade_no: str, *, age_seconds: int | None = None, order=None) -> None:
    crud.transactions.persist_pending(
        session=db, merchant_trade_no=trade_no, user_id=1, total_amount=500, order_payload=order or ORDER
    )
    age = settings.PAYMENT_CLAIM_LEASE_SECONDS + 60 if age_seconds is None else age_seconds
    db.exec(
        update(PendingTransaction)
        .where(PendingTransaction.merchant_trade_no == trade_no)
        .values(claimed_at=utc_now() - timedelta(seconds=age), claim_token="crashed", attempts=1)
    )
    db.commit()


def test_reconcile_adopts_or_releases(db, fake_redis, fulfillment, fake_shopify):
    _stale(db, "R1")
    _stale(db, "R2")
    _stale(db, "R3", age_seconds=5)
    existing = fake_shopify.add_existing("R1")

    summary = tasks.reconcile_stale_transactions(fulfillment)
    assert summary == {"adopted": 1, "released": 1, "skipped": 0, "failed": 0}
    assert fake_shopify.lookups == ["plg-trade-R1", "plg-trade-R2"]
    assert fake_shopify.created == []
    assert fake_redis.store == {}

    db.expire_all()
    adopted = db.get(PendingTransaction, "R1")
    assert adopted.processed_at is not None
    assert adopted.shopify_order_id == existing["id"]
    record = db.exec(select(ShopifyOrder).where(ShopifyOrder.merchant_trade_no == "R1")).one()
    assert record.shopify_order_id == existing["id"]

    released = db.get(PendingTransaction, "R2")
    assert released.processed_at is None
    assert released.claim_token is None
    assert released.claimed_at is None

    # 仍在租约内的交易不处理
    live = db.get(PendingTransaction, "R3")
    assert live.claim_token == "crashed"


def test_reconcile_adopted_pickup_creates_shipment(db, fake_redis, fulfillment, fake_shopify, fake_logistics):
    pickup = {
        "items": ORDER["items"],
        "shipping": {"method": "seveneleven", "store": {"id": "131386", "name": "建盛門市"}},
    }
    _stale(db, "R4", order=pickup)
    fake_shopify.add_existing("R4")

    assert tasks.reconcile_stale_transactions(fulfillment)["adopted"] == 1
    assert len(fake_logistics.requests) == 1
    db.expire_all()
    assert crud.get_shipment(session=db, merchant_trade_no="R4").logistics_id == "1718"


def test_reconcile_counts_failures_and_releases_claim(db, fake_redis, fulfillment, fake_shopify, downstream_failure):
    _stale(db, "R5")
    def _broken_lookup(tag: str):
        raise downstream_failure

    fake_shopify.find_order_by_tag = _broken_lookup

    summary = tasks.reconcile_stale_transactions(fulfillment)
    assert summary["failed"] == 1
    db.expire_all()
    assert db.get(PendingTransaction, "R5").claim_token is None


def test_reconcile_skips_when_locked(db, fake_redis, fulfillment, fake_shopify):
    _stale(db, "R6")
    fake_redis.store[tasks.RECONCILE_LOCK_KEY] = "other-worker"

    summary = tasks.reconcile_stale_transactions(fulfillment)
    assert summary == {"adopted": 0, "released": 0, "skipped": 0, "failed": 0}
    assert fake_shopify.lookups == []
    assert fake_redis.store[tasks.RECONCILE_LOCK_KEY] == "other-worker"


def test_reconcile_transaction_skips_live_claim(db, fulfillment):
    _stale(db, "R7", age_seconds=5)
    assert tasks.reconcile_transaction(session=db, fulfillment=fulfillment, merchant_trade_no="R7") == "skipped"


def test_lock_helpers_swallow_redis_errors():
    class Broken:
        def set(self, *args, **kwargs):  # type: ignore[no-untyped-def]
            raise core_redis.redis.ConnectionError("down")

        def eval(self, *args, **kwargs):  # type: ignore[no-untyped-def]
            raise core_redis.redis.ConnectionError("down")

    assert core_redis.acquire_lock(Broken(), "k", "v", expire_seconds=1) is False
    assert core_redis.release_lock(Broken(), "k", "v") is False


def test_build_scheduler():
    scheduler = scheduler_mod.build_scheduler()
    jobs = scheduler.get_jobs()
    assert [job.id for job in jobs] == ["ecpay_reconcile"]
    assert jobs[0].func is tasks.reconcile_stale_transactions
    assert jobs[0].trigger.interval == timedelta(minutes=settings.RECONCILE_INTERVAL_MINUTES)


def test_prestart_and_seed_scripts(engine, db, monkeypatch):
    monkeypatch.setattr(backend_pre_start, "engine", engine)
    monkeypatch.setattr(initial_data, "engine", engine)

    backend_pre_start.init(engine)
    backend_pre_start.main()

    assert initial_data.init() == 2
    # 已有商品时不重复写入
    assert initial_data.init() == 0
    initial_data.main()


def test_init_db_without_seed_file(engine, db):
    with Session(engine) as session:
        assert init_db(session, products_file=Path("/nonexistent/products.json")) == 0


def test_reconcile_once_entrypoint(db, fake_redis, monkeypatch, fulfillment):
    from storefront.worker import reconcile_once

    monkeypatch.setattr(tasks, "default_fulfillment", lambda: fulfillment)
    _stale(db, "R8")
    reconcile_once.main()
    db.expire_all()
    assert db.get(PendingTransaction, "R8").claimed_at is None
